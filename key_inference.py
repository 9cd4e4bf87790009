"""
KeyInference - Scores every major and minor key against recent notes
"""
import logging
from dataclasses import dataclass

from harmonic_context import build_scale, scale_degree
from interval_tables import Mode, Note
from settings import ANALYSIS_WINDOW, MIN_HISTORY_FOR_ANALYSIS

_LOGGER = logging.getLogger("autoharmony.key_inference")

IN_SCALE_SCORE = 1.0
# Extra weight for the functional degrees
DEGREE_BONUS = {
    1: 2.0,   # tonic
    5: 1.5,   # dominant
    4: 1.0,   # subdominant
}
MODE_ORDER = (Mode.MAJOR, Mode.MINOR)


@dataclass(frozen=True)
class KeyCandidate:
    key: Note
    mode: Mode
    score: float


def score_key(notes, root, mode):
    """Score how well notes fit the key (root, mode).

    Args:
        notes: Iterable of Notes
        root: Candidate tonic
        mode: Candidate mode

    Returns:
        Score, higher is a better fit
    """
    scale = build_scale(root, mode)
    score = 0.0
    for note in notes:
        degree = scale_degree(note, scale)
        if degree is None:
            continue
        score += IN_SCALE_SCORE + DEGREE_BONUS.get(degree, 0.0)
    return score


def detect_possible_keys(notes):
    """Rank all 24 keys by how well they explain notes.

    Ties are broken by the lower chromatic index of the tonic, then major
    before minor.

    Args:
        notes: Sequence of Notes (or note names)

    Returns:
        List of KeyCandidate, best first
    """
    notes = [Note.parse(n) for n in notes]
    candidates = [
        KeyCandidate(root, mode, score_key(notes, root, mode))
        for root in Note
        for mode in MODE_ORDER
    ]
    return sorted(
        candidates,
        key=lambda c: (-c.score, c.key.value, MODE_ORDER.index(c.mode)),
    )


def infer_context(history, context, window=ANALYSIS_WINDOW,
                  min_history=MIN_HISTORY_FOR_ANALYSIS):
    """Re-estimate the key from the most recent notes.

    Args:
        history: NoteHistory of played notes
        context: Current HarmonicContext
        window: Number of most recent notes to consider
        min_history: Minimum history length before any analysis happens

    Returns:
        HarmonicContext, either context itself or a copy carrying the new key
        and mode with the progression position untouched
    """
    if len(history) < min_history:
        return context

    candidates = detect_possible_keys(history.notes(window))
    best = candidates[0]
    if best.key == context.key and best.mode == context.mode:
        return context

    _LOGGER.debug("Key change %s %s -> %s %s (score %.1f)",
                  context.key.label, context.mode.value,
                  best.key.label, best.mode.value, best.score)
    return context.with_key(best.key, best.mode)
