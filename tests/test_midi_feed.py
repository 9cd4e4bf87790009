import pytest
from mido import Message, MidiFile, MidiTrack

from audio_timeline import OfflineTimeline
from harmony_engine import HarmonyEngine
from interval_tables import Note
from midi_feed import NoteTrigger, midi_to_triggers, render_midi, replay
from settings import EngineSettings

SR = 8000


@pytest.fixture
def midi_path(tmp_path):
    # 480 ticks per beat at the default 120 BPM: 480 ticks = 0.5 s
    mid = MidiFile()
    track = MidiTrack()
    mid.tracks.append(track)
    track.append(Message('note_on', note=60, velocity=100, channel=0, time=0))
    track.append(Message('note_off', note=60, velocity=0, channel=0, time=480))
    track.append(Message('note_on', note=64, velocity=90, channel=0, time=0))
    track.append(Message('note_on', note=64, velocity=0, channel=0, time=480))
    track.append(Message('note_on', note=36, velocity=100, channel=9, time=0))
    track.append(Message('note_on', note=67, velocity=80, channel=1, time=0))
    path = tmp_path / "arpeggio.mid"
    mid.save(str(path))
    return str(path)


def _offline_engine():
    return HarmonyEngine(OfflineTimeline(sample_rate=SR), EngineSettings(sample_rate=SR))


def test_triggers_pair_note_on_and_off(midi_path) -> None:
    triggers = midi_to_triggers(midi_path)
    assert [(t.note, t.octave) for t in triggers] == [(Note.C, 4), (Note.E, 4), (Note.G, 4)]
    assert [t.time for t in triggers] == pytest.approx([0.0, 0.5, 1.0])
    assert [t.duration for t in triggers] == pytest.approx([0.5, 0.5, 0.8])


def test_channel_filter(midi_path) -> None:
    triggers = midi_to_triggers(midi_path, allowed_channels=[1])
    assert [t.note for t in triggers] == [Note.G]


def test_offline_replay_places_notes_at_their_times(midi_path) -> None:
    engine = _offline_engine()
    replay(engine, midi_to_triggers(midi_path), realtime=False)
    onsets = [t.onset for t in engine.timeline.scheduled if t.volume == 1.0]
    assert onsets == pytest.approx([0.0, 0.5, 1.0])
    assert len(engine.history) == 3


def test_realtime_replay_waits_between_triggers() -> None:
    engine = _offline_engine()
    waits = []
    triggers = [NoteTrigger(0.0, Note.C, 4, 0.1), NoteTrigger(0.5, Note.E, 4, 0.1)]
    replay(engine, triggers, sleep=waits.append)
    assert len(waits) == 1
    assert waits[0] == pytest.approx(0.5, abs=0.05)
    assert len(engine.history) == 2


def test_offline_replay_needs_an_offline_timeline() -> None:
    with pytest.raises(ValueError):
        replay(HarmonyEngine(), [], realtime=False)


def test_render_midi_writes_a_wav(midi_path, tmp_path) -> None:
    import soundfile as sf

    out = render_midi(_offline_engine(), midi_path, str(tmp_path / "out.wav"))
    info = sf.info(out)
    assert info.samplerate == SR
    assert info.duration > 1.8
