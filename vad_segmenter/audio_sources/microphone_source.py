"""
Microphone frame source for real-time segmentation
"""
import threading
from typing import Optional

import numpy as np
import sounddevice as sd
import structlog

from .base_source import FrameSource
from ..exceptions import AcquisitionError
from ..utils.audio_utils import AudioUtils, FrequencyAnalyser

logger = structlog.get_logger(__name__)


class MicrophoneSource(FrameSource):
    """
    Real-time microphone capture

    Features:
    - PortAudio callback delivers PCM blocks to the session sink
    - Analyser snapshot computed on demand from the latest fft_size samples
    - Device selection
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        block_duration_ms: int = 20,
        fft_size: int = 256,
        smoothing: float = 0.8,
        device: Optional[int] = None
    ):
        super().__init__(sample_rate, channels)

        self.block_duration_ms = block_duration_ms
        self.block_size = int(sample_rate * block_duration_ms / 1000)
        self.device = device

        self._analyser = FrequencyAnalyser(fft_size=fft_size, smoothing=smoothing)
        self._recent = np.zeros(fft_size, dtype=np.float32)
        self._recent_lock = threading.Lock()
        self._stream: Optional[sd.InputStream] = None
        self._overflows = 0

    @classmethod
    def from_settings(cls, audio_settings, device: Optional[int] = None) -> "MicrophoneSource":
        return cls(
            sample_rate=audio_settings.sample_rate,
            channels=audio_settings.channels,
            block_duration_ms=audio_settings.block_duration_ms,
            fft_size=audio_settings.fft_size,
            smoothing=audio_settings.analyser_smoothing,
            device=device
        )

    def _audio_callback(self, indata, frames, time_info, status):
        """PortAudio callback; runs on the audio thread"""
        if status:
            if status.input_overflow:
                self._overflows += 1
            logger.warning("Audio stream status", status=str(status))

        block = AudioUtils.to_mono(indata.copy(), self.channels)

        with self._recent_lock:
            self._recent = np.concatenate([self._recent, block])[-self._analyser.fft_size:]

        self._deliver(block)

    def open(self) -> None:
        if self._is_open:
            return

        try:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype=np.float32,
                blocksize=self.block_size,
                device=self.device,
                callback=self._audio_callback
            )
            self._stream.start()
        except (sd.PortAudioError, OSError, ValueError) as e:
            self._stream = None
            logger.error("Microphone unavailable", device=self.device, error=str(e))
            raise AcquisitionError(f"Cannot open input device {self.device!r}: {e}") from e

        self._is_open = True

        logger.info(
            "Microphone started",
            sample_rate=self.sample_rate,
            block_size=self.block_size,
            device=self.device
        )

    def close(self) -> None:
        self._is_open = False

        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            except sd.PortAudioError as e:
                logger.warning("Error closing input stream", error=str(e))
            self._stream = None

            logger.info("Microphone stopped", overflows=self._overflows)

        self._analyser.reset()

    def read_magnitudes(self) -> Optional[np.ndarray]:
        if not self._is_open:
            return None

        with self._recent_lock:
            recent = self._recent.copy()

        return self._analyser.analyse(recent)

    @staticmethod
    def list_devices():
        """List available audio devices"""
        return sd.query_devices()
