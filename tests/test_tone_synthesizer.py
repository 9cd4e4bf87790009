import numpy as np
import pytest

from audio_timeline import OfflineTimeline
from interval_tables import Note
from tone_synthesizer import (
    HARMONY_ENVELOPE, MAIN_ENVELOPE, ToneSynthesizer, envelope_for_delay,
)

SR = 8000


def test_build_tone_frequency_and_onset() -> None:
    tone = ToneSynthesizer.build_tone('A', 5, 0.5, volume=0.4, delay=0.02, now=1.0)
    assert tone.note is Note.A
    assert tone.frequency == pytest.approx(880.0)
    assert tone.onset == pytest.approx(1.02)
    assert tone.stop_time == pytest.approx(1.52)
    assert tone.noise_stop == pytest.approx(0.5)


def test_noise_stops_with_short_tones() -> None:
    assert ToneSynthesizer.build_tone('C', 4, 0.3).noise_stop == pytest.approx(0.3)


def test_role_follows_delay() -> None:
    assert envelope_for_delay(0) is MAIN_ENVELOPE
    assert envelope_for_delay(0.02) is HARMONY_ENVELOPE
    assert ToneSynthesizer.build_tone('C', 4, 1.0).is_main
    assert not ToneSynthesizer.build_tone('C', 4, 1.0, delay=0.02).is_main


def test_main_envelope_is_longer_and_louder_than_harmony() -> None:
    main = ToneSynthesizer.build_tone('C', 4, 0.8, volume=0.4, delay=0.0)
    harmony = ToneSynthesizer.build_tone('C', 4, 0.8, volume=0.4, delay=0.02)
    assert main.envelope.attack > harmony.envelope.attack
    assert main.envelope.decay > harmony.envelope.decay
    assert main.envelope.release > harmony.envelope.release
    assert main.envelope.sustain > harmony.envelope.sustain
    assert main.partial_peak(0) > harmony.partial_peak(0)
    assert harmony.partial_peak(0) == pytest.approx(0.4 * 0.6)


def test_partial_levels_fall_off() -> None:
    tone = ToneSynthesizer.build_tone('C', 4, 1.0, volume=1.0)
    peaks = [tone.partial_peak(i) for i in range(4)]
    assert peaks == pytest.approx([1.0, 0.4, 0.2, 0.1])


def test_release_starts_after_decay_when_tone_is_short() -> None:
    tone = ToneSynthesizer.build_tone('C', 4, 0.8)
    events = ToneSynthesizer.partial_automation(tone, 1.0)
    times = [at for _, at, _ in events]
    assert times == sorted(times)
    assert events[3][1] == pytest.approx(0.31)
    assert events[-1] == ('exponential', 0.8, 0.001)


def test_build_tone_rejects_bad_timing() -> None:
    with pytest.raises(ValueError):
        ToneSynthesizer.build_tone('C', 4, 0.0)
    with pytest.raises(ValueError):
        ToneSynthesizer.build_tone('C', 4, 1.0, delay=-0.1)


def test_render_shape_and_envelope_edges() -> None:
    synth = ToneSynthesizer(sample_rate=SR, seed=1)
    out = synth.render(ToneSynthesizer.build_tone('C', 4, 0.5, volume=1.0))
    assert out.dtype == np.float32
    assert len(out) == int(0.5 * SR)
    assert abs(out[0]) < 1e-9
    assert np.max(np.abs(out)) > 0.5
    assert abs(out[-1]) < 0.01


def test_render_main_peaks_above_harmony() -> None:
    synth = ToneSynthesizer(sample_rate=SR, seed=1)
    main = synth.render(ToneSynthesizer.build_tone('E', 4, 0.5, volume=0.4))
    harmony = synth.render(ToneSynthesizer.build_tone('E', 4, 0.5, volume=0.4, delay=0.02))
    assert np.max(np.abs(main)) > np.max(np.abs(harmony))


def test_partials_above_nyquist_are_skipped() -> None:
    synth = ToneSynthesizer(sample_rate=SR, seed=1)
    out = synth.render(ToneSynthesizer.build_tone('A', 9, 0.2, volume=1.0))
    assert np.all(np.isfinite(out))
    assert np.max(np.abs(out)) < 0.01


def test_silent_tone_renders_zeros() -> None:
    synth = ToneSynthesizer(sample_rate=SR)
    out = synth.render(ToneSynthesizer.build_tone('C', 4, 0.2, volume=0.0))
    assert not np.any(out)


def test_play_tone_schedules_at_timeline_time() -> None:
    timeline = OfflineTimeline(sample_rate=SR)
    timeline.advance(0.25)
    synth = ToneSynthesizer(timeline)
    tone = synth.play_tone('G', 3, 0.4, volume=0.3, delay=0.05)
    assert synth.sample_rate == SR
    assert timeline.scheduled == [tone]
    assert tone.onset == pytest.approx(0.30)
    assert timeline.active_voices == 1


def test_play_tone_needs_a_timeline() -> None:
    with pytest.raises(RuntimeError):
        ToneSynthesizer(sample_rate=SR).play_tone('C', 4, 0.5)


def test_noise_burst_alone_is_cut_at_half_a_second() -> None:
    synth = ToneSynthesizer(sample_rate=SR, seed=7)
    # every partial of C8 is at or above Nyquist at 8 kHz, leaving only the noise
    tone = synth.build_tone('C', 8, 1.0)
    out = synth.render(tone)
    cut = int(0.5 * SR)
    assert len(out) == SR
    assert np.any(out[:cut] != 0)
    assert not np.any(out[cut:])
    assert np.max(np.abs(out)) < tone.volume * 0.05

    spectrum = np.abs(np.fft.rfft(out[:cut])) ** 2
    freqs = np.fft.rfftfreq(cut, 1 / SR)
    # centre 8 x 4186 Hz is clamped to 0.9 x Nyquist
    band = spectrum[(freqs > 3400) & (freqs < 3800)].sum()
    low = spectrum[freqs < 1000].sum()
    assert band > 5 * low


def test_noise_burst_follows_short_tones() -> None:
    synth = ToneSynthesizer(sample_rate=SR, seed=7)
    out = synth.render(synth.build_tone('C', 8, 0.3))
    assert len(out) == int(0.3 * SR)
    assert np.any(out[:int(0.25 * SR)] != 0)
