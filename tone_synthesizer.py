"""
ToneSynthesizer - Renders a note as layered partials plus a noise burst and
schedules it on an audio timeline
"""
import logging
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

from audio_processor import AudioProcessor
from interval_tables import Note, note_frequency
from settings import SAMPLE_RATE

_LOGGER = logging.getLogger("autoharmony.tone_synthesizer")

PARTIAL_MULTIPLES = (1, 2, 3, 4)
PARTIAL_LEVELS = (1.0, 0.4, 0.2, 0.1)
PARTIAL_WAVES = ('triangle', 'triangle', 'sine', 'sine')

RELEASE_TARGET = 0.001

NOISE_AMPLITUDE = 0.02
NOISE_PARTIAL = 8          # noise band sits around this multiple of the fundamental
NOISE_Q = 10.0
NOISE_MAX_SEC = 0.5


@dataclass(frozen=True)
class ToneEnvelope:
    """Attack/decay/sustain/release shape shared by all partials of a tone."""
    attack: float
    decay: float
    sustain: float       # fraction of peak
    release: float
    peak_scale: float = 1.0


MAIN_ENVELOPE = ToneEnvelope(attack=0.01, decay=0.3, sustain=0.7, release=0.8)
HARMONY_ENVELOPE = ToneEnvelope(attack=0.005, decay=0.15, sustain=0.4, release=0.4,
                                peak_scale=0.6)


def envelope_for_delay(delay):
    """Tones sounding right away get the main envelope, delayed ones the harmony envelope."""
    return MAIN_ENVELOPE if delay == 0 else HARMONY_ENVELOPE


@dataclass(frozen=True)
class ScheduledTone:
    """Immutable description of one tone placed on the audio timeline."""
    note: Note
    octave: int
    frequency: float
    onset: float         # absolute timeline seconds
    duration: float
    volume: float
    envelope: ToneEnvelope
    delay: float = 0.0
    partial_levels: Tuple[float, ...] = field(default=PARTIAL_LEVELS)

    @property
    def is_main(self):
        return self.delay == 0

    @property
    def stop_time(self):
        return self.onset + self.duration

    @property
    def noise_stop(self):
        return min(NOISE_MAX_SEC, self.duration)

    def partial_peak(self, index):
        return self.volume * self.partial_levels[index] * self.envelope.peak_scale


class ToneSynthesizer:
    """Turns note requests into rendered, scheduled tones."""

    def __init__(self, timeline=None, sample_rate=None, seed=None):
        """Initialize ToneSynthesizer.

        Args:
            timeline: AudioTimeline that receives scheduled tones
            sample_rate: Render rate; defaults to the timeline's rate
            seed: Optional seed for the noise generator
        """
        self.timeline = timeline
        if sample_rate is None:
            sample_rate = timeline.sample_rate if timeline is not None else SAMPLE_RATE
        self.sample_rate = sample_rate
        self.audio_processor = AudioProcessor()
        self.rng = np.random.default_rng(seed)

    @staticmethod
    def build_tone(note, octave, duration, volume=0.8, delay=0.0, now=0.0):
        """Describe a tone without rendering it.

        Args:
            note: Pitch class
            octave: Octave number, 4 being the reference octave
            duration: Length in seconds
            volume: Peak level before partial weighting
            delay: Offset from now to onset in seconds
            now: Current timeline time in seconds

        Returns:
            ScheduledTone
        """
        if duration <= 0:
            raise ValueError(f"Tone duration must be positive, got {duration}")
        if delay < 0:
            raise ValueError(f"Tone delay cannot be negative, got {delay}")
        note = Note.parse(note)
        return ScheduledTone(
            note=note,
            octave=octave,
            frequency=note_frequency(note, octave),
            onset=now + delay,
            duration=duration,
            volume=volume,
            envelope=envelope_for_delay(delay),
            delay=delay,
        )

    @staticmethod
    def partial_automation(tone, peak):
        env = tone.envelope
        decay_end = env.attack + env.decay
        release_start = max(decay_end, tone.duration - env.release)
        return [
            ('set', 0.0, 0.0),
            ('linear', env.attack, peak),
            ('exponential', decay_end, peak * env.sustain),
            ('set', release_start, peak * env.sustain),
            ('exponential', tone.duration, RELEASE_TARGET),
        ]

    @staticmethod
    def noise_automation(tone):
        return [
            ('set', 0.0, 0.0),
            ('linear', 0.001, tone.volume * 0.05),
            ('exponential', 0.1, tone.volume * 0.01),
            ('exponential', NOISE_MAX_SEC, RELEASE_TARGET),
        ]

    def render(self, tone):
        """Render a tone into a mono buffer starting at its onset.

        Args:
            tone: ScheduledTone

        Returns:
            float32 array of tone.duration seconds
        """
        sr = self.sample_rate
        samples = int(round(tone.duration * sr))
        out = np.zeros(samples, dtype=np.float64)
        if samples == 0 or tone.volume <= 0:
            return out.astype(np.float32)

        for index, multiple in enumerate(PARTIAL_MULTIPLES):
            freq = tone.frequency * multiple
            if freq >= sr / 2:
                continue
            wave = self.audio_processor.oscillator(freq, samples, sr, PARTIAL_WAVES[index])
            envelope = self.audio_processor.automation_envelope(
                samples, sr, self.partial_automation(tone, tone.partial_peak(index))
            )
            out += wave * envelope

        noise_len = min(samples, int(round(tone.noise_stop * sr)))
        if noise_len > 0:
            noise = self.rng.uniform(-1.0, 1.0, noise_len) * NOISE_AMPLITUDE
            noise = self.audio_processor.bandpass_filter(
                noise, tone.frequency * NOISE_PARTIAL, sr, q=NOISE_Q
            )
            noise *= self.audio_processor.automation_envelope(
                noise_len, sr, self.noise_automation(tone)
            )
            out[:noise_len] += self.audio_processor.apply_fade_out(noise, sr)

        return out.astype(np.float32)

    def play_tone(self, note, octave, duration, volume=0.8, delay=0.0):
        """Render a tone and hand it to the timeline; returns without waiting.

        Returns:
            The ScheduledTone placed on the timeline
        """
        if self.timeline is None:
            raise RuntimeError("ToneSynthesizer has no timeline to schedule on")
        tone = self.build_tone(note, octave, duration, volume, delay,
                               now=self.timeline.current_time)
        self.timeline.schedule(tone, self.render(tone))
        _LOGGER.debug("Scheduled %s%d at %.3fs for %.2fs (vol %.2f)",
                      tone.note.label, tone.octave, tone.onset, tone.duration, tone.volume)
        return tone
