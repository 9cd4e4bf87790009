"""
HarmonySelector - Chooses companion notes for a played note and drives the
chord progression cycle
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from interval_tables import Note

PASSING_TONE_NEIGHBOURS = 2


@dataclass(frozen=True)
class Harmony:
    """Notes to sound with a played note.

    bass is part of the result shape but no selection rule fills it yet.
    """
    notes: Tuple[Note, ...] = ()
    bass: Optional[Note] = None
    advances_progression: bool = False


def closest_scale_notes(note, scale, count=PASSING_TONE_NEIGHBOURS):
    """Scale notes nearest to note by circular chromatic distance.

    Args:
        note: Reference Note
        scale: Scale as a tuple of Notes in degree order
        count: How many notes to return

    Returns:
        Tuple of Notes, nearest first; equal distances keep scale-degree order
    """
    ranked = sorted(
        enumerate(scale),
        key=lambda item: (item[1].distance(note), item[0]),
    )
    return tuple(scale_note for _, scale_note in ranked[:count])


def select_harmony(context, note):
    """Pick harmony for one played note without changing any state.

    Args:
        context: Current HarmonicContext
        note: The played Note

    Returns:
        Harmony; advances_progression is set when the note belongs to the
        chord the progression is currently on
    """
    note = Note.parse(note)
    if context.degree_of(note) is None:
        # Chromatic passing tone
        return Harmony(closest_scale_notes(note, context.scale))

    progression_chord = context.current_chord()
    if note in progression_chord:
        others = tuple(n for n in progression_chord if n != note)
        return Harmony(others, advances_progression=True)

    chord = context.chord_on(note)
    return Harmony(chord[1:])


def apply_harmony(context, harmony):
    """Move the progression forward when the selected harmony says so."""
    if harmony.advances_progression:
        return context.advanced()
    return context
