"""
Base class for frame sources
"""
from abc import ABC, abstractmethod
from typing import Callable, Optional

import numpy as np

PcmSink = Callable[[np.ndarray], object]


class FrameSource(ABC):
    """
    Abstract capture collaborator

    A frame source delivers two independent things: an energy snapshot each
    time the session asks for one (read_magnitudes), and raw PCM blocks pushed
    to the registered sink whenever the device produces them, possibly from
    another thread.
    """

    def __init__(self, sample_rate: int = 16000, channels: int = 1):
        self.sample_rate = sample_rate
        self.channels = channels
        self._pcm_sink: Optional[PcmSink] = None
        self._is_open = False

    def set_pcm_sink(self, sink: Optional[PcmSink]):
        """Register the callable receiving float32 PCM blocks"""
        self._pcm_sink = sink

    def _deliver(self, block: np.ndarray):
        sink = self._pcm_sink
        if sink is not None and self._is_open:
            sink(block)

    @abstractmethod
    def open(self) -> None:
        """
        Acquire the device

        Raises:
            AcquisitionError: the device is missing or access was denied
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the device; safe to call more than once"""
        pass

    @abstractmethod
    def read_magnitudes(self) -> Optional[np.ndarray]:
        """Current frequency-magnitude snapshot (0-255 per bin), or None if unavailable"""
        pass

    @property
    def is_open(self) -> bool:
        return self._is_open

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
