"""
AudioProcessor - Signal processing helpers for tone rendering and mixing
"""
import numpy as np
from scipy.signal import butter, lfilter, sawtooth

# Exponential ramps cannot reach zero; values are clamped to this floor
EXPONENTIAL_FLOOR = 1e-4


class AudioProcessor:
    """Encapsulates oscillators, gain automation, filtering and limiting."""

    @staticmethod
    def oscillator(freq, samples, sr, wave_type='sine'):
        """Generate a unit-amplitude periodic waveform.

        Args:
            freq: Frequency in Hz
            samples: Number of samples
            sr: Sample rate
            wave_type: 'sine' or 'triangle'

        Returns:
            Waveform array
        """
        t = np.arange(samples) / sr
        phase = 2 * np.pi * freq * t
        if wave_type == 'sine':
            return np.sin(phase)
        elif wave_type == 'triangle':
            return sawtooth(phase, width=0.5)
        raise ValueError(f"Unknown wave_type: {wave_type}")

    @staticmethod
    def automation_envelope(total_samples, sr, events):
        """Build a gain curve from timed automation events.

        Each event is (kind, time_sec, value). 'set' holds the previous value
        until time_sec and then jumps to value; 'linear' and 'exponential'
        ramp from the previous value to value, ending at time_sec. The curve
        starts at 0 and holds the last value after the final event.

        Args:
            total_samples: Length of the curve in samples
            sr: Sample rate
            events: Automation events ordered by time

        Returns:
            Envelope array
        """
        envelope = np.zeros(total_samples, dtype=np.float64)
        pos = 0
        current = 0.0

        for kind, at, value in events:
            if kind not in ('set', 'linear', 'exponential'):
                raise ValueError(f"Unknown automation kind: {kind}")
            target = max(pos, int(round(at * sr)))
            span = target - pos
            if span > 0 and pos < total_samples:
                if kind == 'set':
                    segment = np.full(span, current)
                elif kind == 'linear':
                    segment = np.linspace(current, value, span, endpoint=False)
                else:
                    start = max(current, EXPONENTIAL_FLOOR)
                    stop = max(value, EXPONENTIAL_FLOOR)
                    segment = start * (stop / start) ** (np.arange(span) / span)
                # ramps running past the end are cut, not compressed
                n = min(span, total_samples - pos)
                envelope[pos:pos + n] = segment[:n]
            pos = target
            current = value

        if pos < total_samples:
            envelope[pos:] = current
        return envelope

    @staticmethod
    def bandpass_filter(signal, center, sr, q=10.0, order=2):
        """Band-pass signal around center; the band is clamped below Nyquist.

        Args:
            signal: Input signal
            center: Centre frequency in Hz
            sr: Sample rate
            q: Quality factor (centre / bandwidth)
            order: Butterworth order

        Returns:
            Filtered signal
        """
        nyquist = sr / 2
        center = min(center, 0.9 * nyquist)
        half_band = center / q / 2
        low = max(center - half_band, 1.0)
        high = min(center + half_band, 0.99 * nyquist)
        if low >= high:
            return signal
        b, a = butter(order, [low / nyquist, high / nyquist], btype='band')
        return lfilter(b, a, signal)

    @staticmethod
    def apply_fade_out(wave, sr, fade_sec=0.005):
        """Apply a short linear fade to the end of a waveform, in place.

        Args:
            wave: Input waveform
            sr: Sample rate
            fade_sec: Fade duration in seconds

        Returns:
            Waveform with fade out applied
        """
        fade_len = min(len(wave), int(sr * fade_sec))
        if fade_len > 0:
            wave[-fade_len:] *= np.linspace(1.0, 0.0, fade_len)
        return wave

    @staticmethod
    def soft_limiter(signal, threshold=0.9):
        """Apply soft limiting to prevent clipping.

        Args:
            signal: Input audio signal
            threshold: Threshold level for limiting (default 0.9)

        Returns:
            Limited signal
        """
        return np.tanh(signal / threshold) * threshold
