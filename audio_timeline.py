"""
AudioTimeline - Output sink that mixes scheduled tones on its own clock
"""
import logging
import threading

import numpy as np

from audio_processor import AudioProcessor
from errors import AudioBackendError
from settings import BLOCK_SIZE, MASTER_GAIN, SAMPLE_RATE

_LOGGER = logging.getLogger("autoharmony.audio_timeline")

SUSPENDED = 'suspended'
RUNNING = 'running'
CLOSED = 'closed'


class _Voice:
    __slots__ = ('tone', 'samples', 'start_frame', 'pos')

    def __init__(self, tone, samples, start_frame):
        self.tone = tone
        self.samples = samples
        self.start_frame = start_frame
        self.pos = 0

    @property
    def end_frame(self):
        return self.start_frame + len(self.samples)


class AudioTimeline:
    """Append-only timeline of rendered tones mixed block by block.

    Tones are never cancelled; each one drops out of the mix once its
    samples are exhausted. The clock only moves when blocks are mixed.
    """

    def __init__(self, sample_rate=SAMPLE_RATE, master_gain=MASTER_GAIN):
        self.sample_rate = sample_rate
        self.master_gain = master_gain
        self.state = SUSPENDED
        self.audio_processor = AudioProcessor()
        self._voices = []
        self._frame = 0
        self._lock = threading.Lock()

    @property
    def current_time(self):
        return self._frame / self.sample_rate

    @property
    def active_voices(self):
        with self._lock:
            return len(self._voices)

    def open(self):
        if self.state == CLOSED:
            raise AudioBackendError("Audio timeline is closed")

    def resume(self):
        self.open()
        self.state = RUNNING

    def close(self):
        with self._lock:
            self._voices.clear()
        self.state = CLOSED

    def schedule(self, tone, samples):
        """Place rendered samples on the timeline at tone.onset.

        Args:
            tone: ScheduledTone describing the samples
            samples: Mono float32 buffer starting at the onset
        """
        if self.state == CLOSED:
            raise AudioBackendError("Cannot schedule on a closed audio timeline")
        start_frame = int(round(tone.onset * self.sample_rate))
        with self._lock:
            self._voices.append(_Voice(tone, samples, start_frame))

    def mix(self, frames):
        """Mix the next block of audio and advance the clock.

        Args:
            frames: Number of frames to produce

        Returns:
            Mono float32 block
        """
        buffer = np.zeros(frames, dtype=np.float32)
        with self._lock:
            block_start = self._frame
            finished = []
            for voice in self._voices:
                offset = voice.start_frame - block_start
                if offset >= frames:
                    continue
                # a voice scheduled slightly in the past starts right away
                offset = max(0, offset)
                chunk = voice.samples[voice.pos:voice.pos + frames - offset]
                buffer[offset:offset + len(chunk)] += chunk
                voice.pos += len(chunk)
                if voice.pos >= len(voice.samples):
                    finished.append(voice)
            for voice in finished:
                self._voices.remove(voice)
            self._frame += frames

        mixed = self.audio_processor.soft_limiter(buffer * self.master_gain)
        return mixed.astype(np.float32)

    def pending_frames(self):
        """Frames until every scheduled voice has finished."""
        with self._lock:
            if not self._voices:
                return 0
            return max(0, max(v.end_frame for v in self._voices) - self._frame)


class SoundDeviceTimeline(AudioTimeline):
    """Timeline played through a sounddevice output stream."""

    def __init__(self, sample_rate=SAMPLE_RATE, master_gain=MASTER_GAIN,
                 block_size=BLOCK_SIZE, device=None):
        super().__init__(sample_rate, master_gain)
        self.block_size = block_size
        self.device = device
        self._stream = None

    def open(self):
        """Create the output stream if it does not exist yet; it starts suspended."""
        super().open()
        if self._stream is not None:
            return
        try:
            import sounddevice as sd
        except (ImportError, OSError) as exc:
            raise AudioBackendError(f"sounddevice is unavailable: {exc}") from exc
        try:
            self._stream = sd.OutputStream(
                samplerate=self.sample_rate,
                blocksize=self.block_size,
                channels=1,
                dtype='float32',
                device=self.device,
                callback=self._callback,
            )
        except (sd.PortAudioError, ValueError) as exc:
            raise AudioBackendError(f"Could not open audio output: {exc}") from exc
        self.state = SUSPENDED
        _LOGGER.info("Opened audio output at %d Hz", self.sample_rate)

    def resume(self):
        self.open()
        if self.state == RUNNING:
            return
        try:
            self._stream.start()
        except Exception as exc:
            raise AudioBackendError(f"Could not start audio output: {exc}") from exc
        self.state = RUNNING

    def suspend(self):
        if self._stream is not None and self.state == RUNNING:
            self._stream.stop()
            self.state = SUSPENDED

    def close(self):
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        super().close()

    def _callback(self, outdata, frames, time_info, status):
        if status:
            _LOGGER.debug("Audio callback status: %s", status)
        outdata[:] = self.mix(frames).reshape(-1, 1)


class OfflineTimeline(AudioTimeline):
    """Timeline without a device; the caller drives the clock.

    Everything mixed is kept so it can be written out as a WAV file.
    """

    def __init__(self, sample_rate=SAMPLE_RATE, master_gain=MASTER_GAIN):
        super().__init__(sample_rate, master_gain)
        self.scheduled = []
        self._rendered = []

    def schedule(self, tone, samples):
        super().schedule(tone, samples)
        self.scheduled.append(tone)

    def advance(self, seconds):
        """Move the clock forward, mixing whatever sounds in that span."""
        frames = int(round(seconds * self.sample_rate))
        if frames <= 0:
            return np.zeros(0, dtype=np.float32)
        block = self.mix(frames)
        self._rendered.append(block)
        return block

    def render(self, tail=0.0):
        """Mix until every scheduled tone has ended and return the whole recording.

        Args:
            tail: Extra seconds of silence appended at the end

        Returns:
            Mono float32 array of everything mixed so far
        """
        frames = self.pending_frames() + int(round(tail * self.sample_rate))
        if frames > 0:
            self._rendered.append(self.mix(frames))
        if not self._rendered:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(self._rendered)

    def write_wav(self, path, tail=0.5):
        """Render and save the recording as 16-bit PCM.

        Returns:
            The output path
        """
        import soundfile as sf

        audio = self.render(tail)
        sf.write(path, audio, self.sample_rate, subtype='PCM_16')
        _LOGGER.info("Wrote %.2fs of audio to %s", len(audio) / self.sample_rate, path)
        return path
