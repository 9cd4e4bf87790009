import os
from types import SimpleNamespace

import pytest
from mido import Message, MidiFile, MidiTrack

from audio_timeline import OfflineTimeline
from harmony_engine import HarmonyEngine
from keyboard_piano import KeyboardPiano, describe, main, parse_args
from settings import EngineSettings

SR = 8000


def _key(char=None, name=None):
    return SimpleNamespace(char=char, name=name)


@pytest.fixture
def piano():
    engine = HarmonyEngine(OfflineTimeline(sample_rate=SR), EngineSettings(sample_rate=SR))
    lines = []
    return KeyboardPiano(engine, octave=4, duration=0.2, out=lines.append), lines


def test_key_press_plays_once_until_released(piano) -> None:
    keyboard, lines = piano
    keyboard.on_press(_key('a'))
    keyboard.on_press(_key('a'))
    assert [str(p) for p in keyboard.engine.history] == ['C4']
    keyboard.on_release(_key('a'))
    keyboard.on_press(_key('A'))
    assert len(keyboard.engine.history) == 2
    assert lines[-1].startswith("Key: C major")


def test_top_key_plays_the_next_octave(piano) -> None:
    keyboard, _ = piano
    keyboard.on_press(_key('k'))
    assert str(keyboard.engine.history[-1]) == 'C5'


def test_octave_keys_shift_within_range(piano) -> None:
    keyboard, lines = piano
    keyboard.on_press(_key('x'))
    assert keyboard.octave == 5
    assert lines[-1] == "Octave 5"
    for _ in range(10):
        keyboard.handle('z')
    assert keyboard.octave == 1
    keyboard.handle('j')
    assert str(keyboard.engine.history[-1]) == 'B1'


def test_reset_and_progression_keys(piano) -> None:
    keyboard, lines = piano
    keyboard.handle('p')
    assert keyboard.engine.context.progression == (1, 6, 4, 5)
    keyboard.handle('a')
    keyboard.handle('r')
    assert len(keyboard.engine.history) == 0
    assert keyboard.engine.context.progression == (1, 5, 6, 4)


def test_unmapped_and_special_keys(piano) -> None:
    keyboard, lines = piano
    keyboard.on_press(_key('q'))
    keyboard.on_press(_key(None, 'shift'))
    assert lines == []
    assert keyboard.on_press(_key(None, 'esc')) is False


def test_describe() -> None:
    info = {'key': 'A', 'mode': 'minor', 'scale': [], 'recent_notes': ['A4', 'C5'],
            'progression': [1, 5, 6, 4], 'progression_index': 2}
    assert describe(info) == "Key: A minor | Progression: 1-5-6-4 @ 3 | Recent: A4 C5"


def test_parse_args_validation() -> None:
    args = parse_args(["--key", "Bb", "--mode", "minor", "--octave", "3"])
    assert (args.key, args.mode, args.octave) == ("Bb", "minor", 3)
    with pytest.raises(SystemExit):
        parse_args(["--render", "out.wav"])
    with pytest.raises(SystemExit):
        parse_args(["--duration", "0"])


def test_main_renders_midi_offline(tmp_path, capsys) -> None:
    mid = MidiFile()
    track = MidiTrack()
    mid.tracks.append(track)
    for note in (57, 60, 64):
        track.append(Message('note_on', note=note, velocity=100, time=0))
        track.append(Message('note_off', note=note, velocity=0, time=240))
    midi_path = str(tmp_path / "a_minor.mid")
    mid.save(midi_path)
    out = str(tmp_path / "a_minor.wav")

    assert main(["--midi", midi_path, "--render", out, "--sample-rate", str(SR)]) == 0
    assert os.path.exists(out)
    assert "Key: A minor" in capsys.readouterr().out


def test_main_reports_missing_midi(tmp_path) -> None:
    assert main(["--midi", str(tmp_path / "missing.mid")]) == 1
