"""
Push-fed frame source for audio arriving from elsewhere
"""
from collections import deque
from typing import Optional

import numpy as np
import structlog

from .base_source import FrameSource
from ..utils.audio_utils import AudioUtils, FrequencyAnalyser

logger = structlog.get_logger(__name__)


class StreamSource(FrameSource):
    """
    Frame source fed by the application

    Accepts audio pushed from external producers (network bridges, replayed
    recordings, scripted tests).

    Features:
    - push_pcm() forwards blocks straight to the session's sink
    - push_magnitudes() queues explicit snapshots, one per read
    - Without queued snapshots, analyses the most recent PCM instead
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        fft_size: int = 256,
        smoothing: float = 0.8,
        analyse_pcm: bool = True
    ):
        super().__init__(sample_rate, channels)

        self.analyse_pcm = analyse_pcm
        self._analyser = FrequencyAnalyser(fft_size=fft_size, smoothing=smoothing)
        self._snapshots: deque = deque()
        self._last_snapshot: Optional[np.ndarray] = None
        self._recent = np.zeros(0, dtype=np.float32)
        self._total_samples_received = 0

    def open(self) -> None:
        if self._is_open:
            return

        self._is_open = True
        logger.info("StreamSource opened", sample_rate=self.sample_rate)

    def close(self) -> None:
        if not self._is_open:
            return

        self._is_open = False
        self._snapshots.clear()
        self._analyser.reset()
        self._recent = np.zeros(0, dtype=np.float32)

        logger.info("StreamSource closed", samples_received=self._total_samples_received)

    def push_pcm(self, audio_data: np.ndarray) -> bool:
        """
        Push captured samples

        Returns:
            False if the source is closed and the block was ignored
        """
        if not self._is_open:
            return False

        audio = AudioUtils.to_float32(np.asarray(audio_data))
        if self.channels > 1:
            audio = AudioUtils.to_mono(audio, self.channels)

        self._total_samples_received += len(audio)
        if self.analyse_pcm:
            self._recent = np.concatenate([self._recent, audio])[-self._analyser.fft_size:]

        self._deliver(audio)
        return True

    def push_bytes(self, audio_bytes: bytes, dtype=np.int16) -> bool:
        """Push raw little-endian sample bytes"""
        return self.push_pcm(np.frombuffer(audio_bytes, dtype=dtype))

    def push_magnitudes(self, magnitudes) -> None:
        """Queue a snapshot to be returned by a later read_magnitudes()"""
        self._snapshots.append(np.asarray(magnitudes, dtype=np.float64))

    def read_magnitudes(self) -> Optional[np.ndarray]:
        if not self._is_open:
            return None

        if self._snapshots:
            self._last_snapshot = self._snapshots.popleft()
            return self._last_snapshot

        if self.analyse_pcm and len(self._recent):
            return self._analyser.analyse(self._recent)

        return self._last_snapshot

    @property
    def pending_snapshots(self) -> int:
        return len(self._snapshots)

    @property
    def stats(self) -> dict:
        return {
            "samples_received": self._total_samples_received,
            "pending_snapshots": len(self._snapshots)
        }
