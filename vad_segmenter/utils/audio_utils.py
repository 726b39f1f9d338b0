"""
Audio utility functions
"""
from typing import Optional

import numpy as np
import scipy.signal as signal
import structlog

logger = structlog.get_logger(__name__)


class AudioUtils:
    """Collection of audio utility functions"""

    @staticmethod
    def to_float32(audio: np.ndarray) -> np.ndarray:
        """
        Convert integer or float samples to float32 in [-1, 1]

        Args:
            audio: int16, int32 or floating point samples

        Returns:
            float32 samples
        """
        if audio.dtype == np.int16:
            return audio.astype(np.float32) / 32768.0
        if audio.dtype == np.int32:
            return audio.astype(np.float32) / 2147483648.0
        return audio.astype(np.float32, copy=False)

    @staticmethod
    def to_mono(audio: np.ndarray, channels: int = 2) -> np.ndarray:
        """
        Convert multi-channel audio to mono

        Args:
            audio: 2D (frames, channels) or interleaved 1D samples
            channels: Channel count of interleaved input

        Returns:
            Mono audio
        """
        if audio.ndim == 1:
            if channels == 1:
                return audio
            audio = audio[:len(audio) - len(audio) % channels].reshape(-1, channels)

        if audio.shape[1] == 1:
            return audio[:, 0]
        return audio.mean(axis=1).astype(audio.dtype, copy=False)

    @staticmethod
    def resample(audio: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
        """Polyphase resampling to target_rate"""
        if source_rate == target_rate:
            return audio

        divisor = np.gcd(source_rate, target_rate)
        resampled = signal.resample_poly(audio, target_rate // divisor, source_rate // divisor)
        return resampled.astype(np.float32)

    @staticmethod
    def calculate_rms(audio: np.ndarray) -> float:
        """Calculate RMS energy"""
        if len(audio) == 0:
            return 0.0
        return float(np.sqrt(np.mean(np.square(audio, dtype=np.float64))))


class FrequencyAnalyser:
    """
    Byte-scaled magnitude spectrum of the most recent samples

    Mirrors a browser AnalyserNode: Blackman window, FFT magnitudes averaged
    over time with a smoothing constant, converted to dB and mapped from
    [min_db, max_db] onto 0..255.
    """

    def __init__(
        self,
        fft_size: int = 256,
        smoothing: float = 0.8,
        min_db: float = -100.0,
        max_db: float = -30.0
    ):
        if fft_size < 2 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two, got {fft_size}")
        if not 0.0 <= smoothing < 1.0:
            raise ValueError("smoothing must be in [0, 1)")
        if min_db >= max_db:
            raise ValueError("min_db must be below max_db")

        self.fft_size = fft_size
        self.smoothing = smoothing
        self.min_db = min_db
        self.max_db = max_db

        self._window = signal.get_window("blackman", fft_size, fftbins=False)
        self._smoothed = np.zeros(fft_size // 2)

    @property
    def bin_count(self) -> int:
        return self.fft_size // 2

    def analyse(self, samples: np.ndarray) -> np.ndarray:
        """
        Compute one snapshot

        Args:
            samples: Recent mono samples; the last fft_size are used and
                shorter input is zero-padded at the front

        Returns:
            uint8 array of bin_count magnitudes
        """
        frame = np.zeros(self.fft_size)
        tail = np.asarray(samples, dtype=np.float64)[-self.fft_size:]
        if len(tail):
            frame[-len(tail):] = tail

        spectrum = np.abs(np.fft.rfft(frame * self._window))[:self.bin_count] / self.fft_size
        self._smoothed = self.smoothing * self._smoothed + (1.0 - self.smoothing) * spectrum

        with np.errstate(divide="ignore"):
            db = 20.0 * np.log10(self._smoothed)

        scaled = (db - self.min_db) * (255.0 / (self.max_db - self.min_db))
        return np.clip(np.floor(scaled), 0, 255).astype(np.uint8)

    def reset(self):
        self._smoothed = np.zeros(self.bin_count)


def level_snapshot(level: float, bins: int = 128, low_bin_skip: int = 4, low_value: Optional[int] = None) -> np.ndarray:
    """
    Synthetic snapshot whose normalized energy above low_bin_skip equals level

    Handy for driving a session from a scripted energy envelope. The skipped
    low bins get low_value (default 255, so hum never influences the verdict).
    """
    snapshot = np.full(bins, float(np.clip(level, 0.0, 1.0)) * 255.0)
    snapshot[:low_bin_skip] = 255 if low_value is None else low_value
    return snapshot
