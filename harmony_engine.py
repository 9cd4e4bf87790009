"""
HarmonyEngine - Records played notes, follows the key, picks harmony and
schedules the resulting tones
"""
import logging
import numbers
import time

from audio_timeline import RUNNING, SoundDeviceTimeline
from errors import AudioBackendError, InvalidNoteError
from harmonic_context import HarmonicContext, NoteHistory, PlayedNote
from harmony_selector import apply_harmony, select_harmony
from interval_tables import CHORD_PROGRESSIONS, Mode, Note, format_note
from key_inference import infer_context
from settings import HIGHEST_OCTAVE, LOWEST_OCTAVE, MAX_NOTE_DURATION, EngineSettings
from tone_synthesizer import ToneSynthesizer

_LOGGER = logging.getLogger("autoharmony.harmony_engine")

MAIN_VOLUME = 1.0
HARMONY_STAGGER = 0.02        # seconds between harmony onsets
HARMONY_VOLUME = 0.4
HARMONY_VOLUME_STEP = 0.1
HARMONY_DURATION_SCALE = 1.2
BASS_DELAY = 0.05
BASS_VOLUME = 0.3
BASS_DURATION_SCALE = 1.5
BASS_MIN_OCTAVE = 2


def harmony_octave(octave, index):
    """Octave for the index-th harmony note: same, one up, then one down."""
    if index == 0:
        return octave
    if index == 1:
        return octave + 1
    return octave - 1


def timing_problem(octave, duration):
    """Describe why octave/duration cannot be played, or return None if they can."""
    if isinstance(octave, bool) or not isinstance(octave, numbers.Integral):
        return f"octave must be an integer, got {octave!r}"
    if not LOWEST_OCTAVE <= octave <= HIGHEST_OCTAVE:
        return f"octave {octave} outside {LOWEST_OCTAVE}..{HIGHEST_OCTAVE}"
    if isinstance(duration, bool) or not isinstance(duration, numbers.Real):
        return f"duration must be a number, got {duration!r}"
    # also rejects NaN
    if not 0 < duration <= MAX_NOTE_DURATION:
        return f"duration {duration} outside (0, {MAX_NOTE_DURATION}]"
    return None


class HarmonyEngine:
    """Entry point for note triggers.

    One engine owns one harmonic context, one note history and one audio
    output. Construct it once at startup and hand it to whatever produces
    note events; call close() (or use it as a context manager) on shutdown.
    """

    def __init__(self, timeline=None, settings=None):
        """Initialize HarmonyEngine.

        Args:
            timeline: AudioTimeline to play on; a sounddevice output is
                created on first use when omitted
            settings: EngineSettings, defaults when omitted
        """
        self.settings = settings or EngineSettings()
        self.timeline = timeline
        self.synthesizer = None
        self.history = NoteHistory(self.settings.history_capacity)
        self.context = HarmonicContext.default()
        self.disabled = False

    # ================== Lifecycle ==================

    def open(self):
        """Create the audio output. Returns False if the engine is (now) disabled."""
        if self.disabled:
            return False
        if self.synthesizer is not None:
            return True
        try:
            if self.timeline is None:
                self.timeline = SoundDeviceTimeline(
                    sample_rate=self.settings.sample_rate,
                    master_gain=self.settings.master_gain,
                    block_size=self.settings.block_size,
                )
            self.timeline.open()
        except AudioBackendError as exc:
            self.disabled = True
            _LOGGER.error("Audio output unavailable, playing silently from now on: %s", exc)
            return False
        self.synthesizer = ToneSynthesizer(self.timeline)
        return True

    def close(self):
        if self.timeline is not None:
            self.timeline.close()
        self.synthesizer = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _ensure_output(self):
        if not self.open():
            return False
        if self.timeline.state == RUNNING:
            return True
        try:
            self.timeline.resume()
        except AudioBackendError as exc:
            _LOGGER.warning("Could not resume audio output, note skipped: %s", exc)
            return False
        return True

    # ================== Playing ==================

    def find_best_harmony(self, note):
        """Update the key estimate, pick harmony for note and advance the progression.

        Args:
            note: Played Note or note name

        Returns:
            Harmony for the note
        """
        note = Note.parse(note)
        self.context = infer_context(
            self.history, self.context,
            window=self.settings.analysis_window,
            min_history=self.settings.min_history_for_analysis,
        )
        harmony = select_harmony(self.context, note)
        self.context = apply_harmony(self.context, harmony)
        return harmony

    def play_note(self, note, octave=None, duration=None):
        """Play a note together with its harmony.

        Returns once all tones are scheduled. Failures are logged and never
        raised; without a working output the harmonic state still follows
        the notes.

        Args:
            note: Note or note name such as 'F#'
            octave: Octave of the played note
            duration: Length of the main tone in seconds

        Returns:
            The Harmony that was played, or None if the request was invalid
        """
        octave = self.settings.default_octave if octave is None else octave
        duration = self.settings.default_duration if duration is None else duration
        try:
            note = Note.parse(note)
        except InvalidNoteError as exc:
            _LOGGER.warning("Ignoring note trigger: %s", exc)
            return None
        problem = timing_problem(octave, duration)
        if problem:
            _LOGGER.warning("Ignoring note trigger for %s: %s", note.label, problem)
            return None

        self.history.append(PlayedNote(
            note=note,
            octave=octave,
            timestamp=time.time(),
            scale_degree=self.context.degree_of(note),
        ))
        harmony = self.find_best_harmony(note)

        if not self._ensure_output():
            return harmony

        try:
            self._schedule(note, octave, duration, harmony)
        except AudioBackendError as exc:
            _LOGGER.warning("Dropped tones for %s: %s", format_note(note, octave), exc)
        return harmony

    def _schedule(self, note, octave, duration, harmony):
        play_tone = self.synthesizer.play_tone
        play_tone(note, octave, duration, MAIN_VOLUME, 0.0)

        for index, harmony_note in enumerate(harmony.notes):
            play_tone(
                harmony_note,
                harmony_octave(octave, index),
                duration * HARMONY_DURATION_SCALE,
                HARMONY_VOLUME - index * HARMONY_VOLUME_STEP,
                index * HARMONY_STAGGER,
            )

        if harmony.bass is not None:
            play_tone(
                harmony.bass,
                max(BASS_MIN_OCTAVE, octave - 2),
                duration * BASS_DURATION_SCALE,
                BASS_VOLUME,
                BASS_DELAY,
            )

    # ================== Context ==================

    def next_chord(self):
        return self.context.current_chord()

    def get_harmonic_info(self):
        """Snapshot of the harmonic state for display."""
        ctx = self.context
        return {
            'key': ctx.key.label,
            'mode': ctx.mode.value,
            'scale': [n.label for n in ctx.scale],
            'recent_notes': [str(p) for p in self.history.recent(self.settings.recent_notes_shown)],
            'progression': list(ctx.progression),
            'progression_index': ctx.progression_index,
        }

    def set_key(self, key, mode=Mode.MAJOR):
        """Force the key and mode; the progression restarts, history is kept."""
        self.context = self.context.with_key(key, mode, reset_progression=True)

    def set_progression(self, degrees):
        """Switch to another chord progression, starting at its first chord."""
        self.context = self.context.with_progression(degrees)

    def cycle_progression(self):
        """Move to the next preset progression and return it."""
        current = self.context.progression
        if current in CHORD_PROGRESSIONS:
            index = (CHORD_PROGRESSIONS.index(current) + 1) % len(CHORD_PROGRESSIONS)
        else:
            index = 0
        self.set_progression(CHORD_PROGRESSIONS[index])
        return self.context.progression

    def reset(self):
        self.history.clear()
        self.context = HarmonicContext.default()
