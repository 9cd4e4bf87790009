"""
IntervalTables - Pitch classes, scale and chord interval patterns, note frequencies
"""
from enum import Enum, IntEnum

from errors import InvalidNoteError


NOTE_NAMES = ['C', 'C#', 'D', 'D#', 'E', 'F',
              'F#', 'G', 'G#', 'A', 'A#', 'B']

FLAT_NAMES = {'Db': 'C#', 'Eb': 'D#', 'Gb': 'F#', 'Ab': 'G#', 'Bb': 'A#',
              'Cb': 'B', 'Fb': 'E', 'E#': 'F', 'B#': 'C'}


class Note(IntEnum):
    """One of the 12 pitch classes, valued by its chromatic index."""
    C = 0
    C_SHARP = 1
    D = 2
    D_SHARP = 3
    E = 4
    F = 5
    F_SHARP = 6
    G = 7
    G_SHARP = 8
    A = 9
    A_SHARP = 10
    B = 11

    @property
    def label(self):
        return NOTE_NAMES[self.value]

    def transpose(self, semitones):
        return Note((self.value + semitones) % 12)

    def distance(self, other):
        """Circular chromatic distance, 0 to 6."""
        delta = abs(self.value - Note(other).value)
        return min(delta, 12 - delta)

    @classmethod
    def parse(cls, text):
        """Convert a pitch-class name such as 'C#' or 'Eb' into a Note.

        Args:
            text: Note name, a Note, or a chromatic index

        Returns:
            Note member

        Raises:
            InvalidNoteError: If the name is not a known pitch class
        """
        if isinstance(text, Note):
            return text
        if isinstance(text, int):
            return cls(text % 12)
        if not isinstance(text, str):
            raise InvalidNoteError(f"Invalid note name: {text!r}")

        name = text.strip()
        if name:
            name = name[0].upper() + name[1:]
        name = FLAT_NAMES.get(name, name)
        if name not in NOTE_NAMES:
            raise InvalidNoteError(f"Invalid note name: {text!r}")
        return cls(NOTE_NAMES.index(name))

    def __str__(self):
        return self.label


class Mode(str, Enum):
    MAJOR = 'major'
    MINOR = 'minor'

    def __str__(self):
        return self.value


class ChordType(Enum):
    """Chord qualities, valued by their semitone offsets from the root."""
    MAJOR = (0, 4, 7)
    MINOR = (0, 3, 7)
    DIMINISHED = (0, 3, 6)
    MAJOR7 = (0, 4, 7, 11)
    MINOR7 = (0, 3, 7, 10)
    DOMINANT7 = (0, 4, 7, 10)

    @property
    def intervals(self):
        return self.value


SCALE_INTERVALS = {
    Mode.MAJOR: (0, 2, 4, 5, 7, 9, 11),
    Mode.MINOR: (0, 2, 3, 5, 7, 8, 10),  # natural minor
}

# Progressions as scale degrees; the first one is the default
CHORD_PROGRESSIONS = (
    (1, 5, 6, 4),  # I-V-vi-IV
    (1, 6, 4, 5),  # I-vi-IV-V
    (6, 4, 1, 5),  # vi-IV-I-V
    (1, 4, 5, 1),  # I-IV-V-I
    (2, 5, 1),     # ii-V-I
    (1, 3, 4, 1),  # I-iii-IV-I
)
DEFAULT_PROGRESSION = CHORD_PROGRESSIONS[0]

# Octave 4 reference pitches, indexed by Note
NOTE_FREQUENCIES = (
    261.63, 277.18, 293.66, 311.13, 329.63, 349.23,
    369.99, 392.00, 415.30, 440.00, 466.16, 493.88,
)
REFERENCE_OCTAVE = 4


def note_frequency(note, octave=REFERENCE_OCTAVE):
    """Frequency in Hz of a pitch class in the given octave."""
    return NOTE_FREQUENCIES[Note.parse(note)] * 2 ** (octave - REFERENCE_OCTAVE)


def parse_note_name(text):
    """Split a note name like 'C#4' or 'Bb3' into (Note, octave).

    Args:
        text: Note name with trailing octave number (may be negative)

    Returns:
        Tuple of (Note, octave)
    """
    if not isinstance(text, str):
        raise InvalidNoteError(f"Unrecognized note format: {text!r}")
    name = text.strip().rstrip('0123456789')
    if name.endswith('-'):
        name = name[:-1]
    digits = text.strip()[len(name):]
    if not name or not digits:
        raise InvalidNoteError(f"Unrecognized note format: {text!r}")
    try:
        octave = int(digits)
    except ValueError:
        raise InvalidNoteError(f"Unrecognized note format: {text!r}") from None
    return Note.parse(name), octave


def format_note(note, octave):
    return f"{Note.parse(note).label}{octave}"


def midi_to_note(number):
    """Convert a MIDI note number into (Note, octave), with 60 = C4."""
    return Note(number % 12), number // 12 - 1
