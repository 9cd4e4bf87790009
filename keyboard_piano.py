"""
KeyboardPiano - Plays the harmony engine from the computer keyboard or a MIDI file

Usage:
    autoharmony                          # play with keys A-K
    autoharmony --key A --mode minor     # start in A minor
    autoharmony --midi song.mid          # replay a MIDI file through the engine
    autoharmony --midi song.mid --render out.wav
"""
import argparse
import logging
import os
import sys
import time

from audio_timeline import OfflineTimeline
from errors import InvalidNoteError
from harmony_engine import HarmonyEngine
from interval_tables import Mode, Note
from midi_feed import midi_to_triggers, render_midi, replay
from settings import DEFAULT_DURATION, DEFAULT_OCTAVE, SAMPLE_RATE, EngineSettings

# key -> (note, octave offset)
KEY_NOTE_MAP = {
    'a': (Note.C, 0),
    'w': (Note.C_SHARP, 0),
    's': (Note.D, 0),
    'e': (Note.D_SHARP, 0),
    'd': (Note.E, 0),
    'f': (Note.F, 0),
    't': (Note.F_SHARP, 0),
    'g': (Note.G, 0),
    'y': (Note.G_SHARP, 0),
    'h': (Note.A, 0),
    'u': (Note.A_SHARP, 0),
    'j': (Note.B, 0),
    'k': (Note.C, 1),
}
OCTAVE_DOWN_KEY = 'z'
OCTAVE_UP_KEY = 'x'
RESET_KEY = 'r'
PROGRESSION_KEY = 'p'
MIN_OCTAVE = 1
MAX_OCTAVE = 7


def describe(info):
    """One status line from HarmonyEngine.get_harmonic_info()."""
    progression = '-'.join(str(d) for d in info['progression'])
    return (f"Key: {info['key']} {info['mode']} | "
            f"Progression: {progression} @ {info['progression_index'] + 1} | "
            f"Recent: {' '.join(info['recent_notes'])}")


class KeyboardPiano:
    """Maps key presses to engine triggers, one trigger per physical press."""

    def __init__(self, engine, octave=DEFAULT_OCTAVE, duration=DEFAULT_DURATION, out=print):
        self.engine = engine
        self.octave = octave
        self.duration = duration
        self.out = out
        self.keys_down = set()

    @staticmethod
    def key_char(key):
        char = getattr(key, 'char', None)
        return char.lower() if char else None

    def on_press(self, key):
        if getattr(key, 'name', None) == 'esc':
            return False
        k = self.key_char(key)
        if k is None or k in self.keys_down:
            return None
        self.keys_down.add(k)
        self.handle(k)
        return None

    def on_release(self, key):
        k = self.key_char(key)
        if k is not None:
            self.keys_down.discard(k)

    def handle(self, k):
        if k in KEY_NOTE_MAP:
            note, offset = KEY_NOTE_MAP[k]
            self.engine.play_note(note, self.octave + offset, self.duration)
        elif k == OCTAVE_DOWN_KEY:
            self.octave = max(MIN_OCTAVE, self.octave - 1)
            self.out(f"Octave {self.octave}")
            return
        elif k == OCTAVE_UP_KEY:
            self.octave = min(MAX_OCTAVE, self.octave + 1)
            self.out(f"Octave {self.octave}")
            return
        elif k == RESET_KEY:
            self.engine.reset()
        elif k == PROGRESSION_KEY:
            self.engine.cycle_progression()
        else:
            return
        self.out(describe(self.engine.get_harmonic_info()))

    def run(self):
        from pynput import keyboard

        self.out("Keyboard piano ready! Keys A-K play, Z/X change octave, "
                 "P switches progression, R resets. Esc to exit.")
        with keyboard.Listener(on_press=self.on_press, on_release=self.on_release) as listener:
            listener.join()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Harmonizing keyboard piano: plays each note with inferred harmony",
    )
    parser.add_argument("--octave", "-o", type=int, default=DEFAULT_OCTAVE,
                        help=f"Starting octave (default: {DEFAULT_OCTAVE})")
    parser.add_argument("--duration", "-d", type=float, default=DEFAULT_DURATION,
                        help=f"Note length in seconds (default: {DEFAULT_DURATION})")
    parser.add_argument("--key", "-k", type=str, default=None,
                        help="Initial key, e.g. C, F#, Bb (default: C)")
    parser.add_argument("--mode", "-m", choices=[m.value for m in Mode], default=Mode.MAJOR.value,
                        help="Initial mode (default: major)")
    parser.add_argument("--midi", type=str, default=None,
                        help="Replay this MIDI file through the engine instead of the keyboard")
    parser.add_argument("--render", type=str, default=None,
                        help="With --midi, render offline to this WAV file")
    parser.add_argument("--sample-rate", type=int, default=SAMPLE_RATE,
                        help=f"Output sample rate (default: {SAMPLE_RATE})")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args(argv)
    if args.render and not args.midi:
        parser.error("--render requires --midi")
    if args.duration <= 0:
        parser.error("--duration must be positive")
    return args


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = EngineSettings(
        sample_rate=args.sample_rate,
        default_octave=args.octave,
        default_duration=args.duration,
    )
    timeline = OfflineTimeline(args.sample_rate, settings.master_gain) if args.render else None
    engine = HarmonyEngine(timeline, settings)

    if args.midi and not os.path.exists(args.midi):
        print(f"File not found: {args.midi}", file=sys.stderr)
        return 1

    if args.key or args.mode != Mode.MAJOR.value:
        try:
            engine.set_key(args.key or Note.C, args.mode)
        except InvalidNoteError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 2

    try:
        if args.render:
            print(f"Rendering {args.midi} -> {args.render}")
            render_midi(engine, args.midi, args.render)
            print(describe(engine.get_harmonic_info()))
        elif args.midi:
            print(f"Playing MIDI: {args.midi}")
            with engine:
                replay(engine, midi_to_triggers(args.midi))
                # let the last release ring out
                time.sleep(args.duration * 1.5)
            print(describe(engine.get_harmonic_info()))
        else:
            with engine:
                KeyboardPiano(engine, args.octave, args.duration).run()
    except KeyboardInterrupt:
        pass
    finally:
        engine.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
