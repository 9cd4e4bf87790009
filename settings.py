"""
Settings - Engine-wide defaults for playback, history and analysis
"""
from dataclasses import dataclass

# ================== Audio ==================
SAMPLE_RATE = 44100
BLOCK_SIZE = 1024
MASTER_GAIN = 0.3

# ================== Harmony ==================
HISTORY_CAPACITY = 20
ANALYSIS_WINDOW = 6       # most recent notes considered for key detection
MIN_HISTORY_FOR_ANALYSIS = 3
RECENT_NOTES_SHOWN = 5

# ================== Playing ==================
DEFAULT_OCTAVE = 4
DEFAULT_DURATION = 0.8    # seconds
LOWEST_OCTAVE = -1       # MIDI note 0
HIGHEST_OCTAVE = 9
MAX_NOTE_DURATION = 30.0  # seconds


@dataclass(frozen=True)
class EngineSettings:
    """Bundle of the defaults above, handed to a HarmonyEngine."""
    sample_rate: int = SAMPLE_RATE
    block_size: int = BLOCK_SIZE
    master_gain: float = MASTER_GAIN
    history_capacity: int = HISTORY_CAPACITY
    analysis_window: int = ANALYSIS_WINDOW
    min_history_for_analysis: int = MIN_HISTORY_FOR_ANALYSIS
    recent_notes_shown: int = RECENT_NOTES_SHOWN
    default_octave: int = DEFAULT_OCTAVE
    default_duration: float = DEFAULT_DURATION
