"""
MidiFeed - Turns MIDI files into note triggers and replays them through an engine
"""
import logging
import time
from dataclasses import dataclass

from mido import MidiFile

from audio_timeline import OfflineTimeline
from interval_tables import Note, midi_to_note
from settings import DEFAULT_DURATION

_LOGGER = logging.getLogger("autoharmony.midi_feed")

DRUM_CHANNEL = 9
MIN_TRIGGER_DURATION = 0.05


@dataclass(frozen=True)
class NoteTrigger:
    time: float        # seconds from the start of the file
    note: Note
    octave: int
    duration: float


def midi_to_triggers(midi_path, allowed_channels=None, default_duration=DEFAULT_DURATION):
    """Parse a MIDI file into timed note triggers.

    Args:
        midi_path: Path to MIDI file
        allowed_channels: Optional list of allowed MIDI channels
        default_duration: Duration for notes that are never released

    Returns:
        List of NoteTrigger ordered by start time
    """
    mid = MidiFile(midi_path)
    triggers = []
    elapsed = 0.0
    active_notes = {}

    for msg in mid:
        elapsed += msg.time
        if msg.is_meta or not hasattr(msg, 'channel'):
            continue
        if msg.channel == DRUM_CHANNEL:
            continue
        if allowed_channels is not None and msg.channel not in allowed_channels:
            continue

        if msg.type == 'note_on' and msg.velocity > 0:
            active_notes[(msg.note, msg.channel)] = elapsed
        elif (msg.type == 'note_off') or (msg.type == 'note_on' and msg.velocity == 0):
            key = (msg.note, msg.channel)
            if key in active_notes:
                start = active_notes.pop(key)
                triggers.append(_trigger(msg.note, start, elapsed - start))

    for (number, _), start in active_notes.items():
        triggers.append(_trigger(number, start, default_duration))

    triggers.sort(key=lambda t: t.time)
    _LOGGER.info("Read %d note triggers from %s", len(triggers), midi_path)
    return triggers


def _trigger(number, start, duration):
    note, octave = midi_to_note(number)
    return NoteTrigger(start, note, octave, max(duration, MIN_TRIGGER_DURATION))


def replay(engine, triggers, realtime=True, sleep=time.sleep):
    """Feed triggers to engine.play_note in time order.

    Args:
        engine: HarmonyEngine
        triggers: NoteTriggers ordered by time
        realtime: Wait between triggers; otherwise drive the engine's
            OfflineTimeline clock instead
        sleep: Sleep function used in realtime mode
    """
    if not realtime and not isinstance(engine.timeline, OfflineTimeline):
        raise ValueError("Offline replay needs an engine built on an OfflineTimeline")

    started = time.monotonic()
    for trigger in triggers:
        if realtime:
            wait = trigger.time - (time.monotonic() - started)
            if wait > 0:
                sleep(wait)
        else:
            engine.timeline.advance(trigger.time - engine.timeline.current_time)
        engine.play_note(trigger.note, trigger.octave, trigger.duration)


def render_midi(engine, midi_path, output_path, allowed_channels=None):
    """Replay a MIDI file offline through engine and save the result as WAV.

    Returns:
        The output path
    """
    triggers = midi_to_triggers(midi_path, allowed_channels)
    replay(engine, triggers, realtime=False)
    return engine.timeline.write_wav(output_path)
