"""
HarmonicContext - Current key, mode, scale and chord progression position,
plus the bounded history of played notes
"""
import time
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from interval_tables import (
    DEFAULT_PROGRESSION, SCALE_INTERVALS, ChordType, Mode, Note, format_note,
)
from settings import HISTORY_CAPACITY


def build_scale(root, mode):
    """Build the 7-note diatonic scale of a key.

    Args:
        root: Tonic of the key
        mode: Mode.MAJOR or Mode.MINOR

    Returns:
        Tuple of 7 Notes ordered by scale degree
    """
    root = Note.parse(root)
    return tuple(root.transpose(interval) for interval in SCALE_INTERVALS[Mode(mode)])


def scale_degree(note, scale):
    """1-based position of note in scale, or None if it is not a member."""
    note = Note.parse(note)
    if note not in scale:
        return None
    return scale.index(note) + 1


def chord_type_for_degree(degree, mode):
    """Triad quality on a scale degree.

    Args:
        degree: Scale degree 1..7
        mode: Mode.MAJOR or Mode.MINOR

    Returns:
        ChordType of the triad built on that degree
    """
    if Mode(mode) is Mode.MAJOR:
        if degree in (2, 3, 6):
            return ChordType.MINOR
        if degree == 7:
            return ChordType.DIMINISHED
        return ChordType.MAJOR

    if degree in (1, 4, 5):
        return ChordType.MINOR
    if degree in (3, 6, 7):
        return ChordType.MAJOR
    if degree == 2:
        return ChordType.DIMINISHED
    return ChordType.MAJOR


def build_chord(root, chord_type=ChordType.MAJOR):
    root = Note.parse(root)
    return tuple(root.transpose(interval) for interval in chord_type.intervals)


def validate_progression(degrees):
    progression = tuple(int(d) for d in degrees)
    if not progression:
        raise ValueError("Chord progression must contain at least one degree")
    for degree in progression:
        if not 1 <= degree <= 7:
            raise ValueError(f"Invalid scale degree in progression: {degree}")
    return progression


@dataclass(frozen=True)
class HarmonicContext:
    """The engine's belief about key, mode and position in a chord progression.

    The scale is always derived from (key, mode), so it can never drift out
    of sync with them. Instances are immutable; every change returns a new
    context.
    """
    key: Note = Note.C
    mode: Mode = Mode.MAJOR
    progression: Tuple[int, ...] = DEFAULT_PROGRESSION
    progression_index: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'key', Note.parse(self.key))
        object.__setattr__(self, 'mode', Mode(self.mode))
        object.__setattr__(self, 'progression', validate_progression(self.progression))
        if not 0 <= self.progression_index < len(self.progression):
            raise ValueError(
                f"Progression index {self.progression_index} out of range "
                f"for progression of length {len(self.progression)}"
            )

    @classmethod
    def default(cls):
        return cls()

    @property
    def scale(self):
        return build_scale(self.key, self.mode)

    @property
    def current_degree(self):
        return self.progression[self.progression_index]

    def degree_of(self, note):
        return scale_degree(note, self.scale)

    def current_chord(self):
        """Chord on the current progression degree, typed by degree and mode."""
        degree = self.current_degree
        root = self.scale[degree - 1]
        return build_chord(root, chord_type_for_degree(degree, self.mode))

    def chord_on(self, note):
        """Diatonic chord rooted at a scale note, or None for a non-scale note."""
        degree = self.degree_of(note)
        if degree is None:
            return None
        return build_chord(note, chord_type_for_degree(degree, self.mode))

    def with_key(self, key, mode=Mode.MAJOR, reset_progression=False):
        index = 0 if reset_progression else self.progression_index
        return replace(self, key=Note.parse(key), mode=Mode(mode), progression_index=index)

    def with_progression(self, degrees):
        return replace(self, progression=validate_progression(degrees), progression_index=0)

    def advanced(self):
        next_index = (self.progression_index + 1) % len(self.progression)
        return replace(self, progression_index=next_index)


@dataclass(frozen=True)
class PlayedNote:
    note: Note
    octave: int
    timestamp: float = field(default_factory=time.time)
    scale_degree: Optional[int] = None

    def __str__(self):
        return format_note(self.note, self.octave)


class NoteHistory:
    """Bounded first-in-first-out record of played notes."""

    def __init__(self, capacity=HISTORY_CAPACITY):
        if capacity < 1:
            raise ValueError(f"History capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._entries = deque(maxlen=capacity)

    def append(self, played):
        self._entries.append(played)

    def recent(self, count):
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def notes(self, count=None):
        """Pitch classes of the history, oldest first, optionally only the last count."""
        entries = self._entries if count is None else self.recent(count)
        return [entry.note for entry in entries]

    def clear(self):
        self._entries.clear()

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def __getitem__(self, index):
        return self._entries[index]
