"""
File frame source replaying recordings tick by tick
"""
from pathlib import Path
from typing import Optional

import numpy as np
import soundfile as sf
import structlog

from .base_source import FrameSource
from ..exceptions import AcquisitionError
from ..utils.audio_utils import AudioUtils, FrequencyAnalyser

logger = structlog.get_logger(__name__)


class FileSource(FrameSource):
    """
    Replays an audio file as if it were being captured live

    Each read_magnitudes() call advances the file by one frame interval:
    that slice is delivered to the PCM sink and its tail is analysed for the
    snapshot. Once the file is exhausted, reads return None.

    Features:
    - Any format libsndfile reads (WAV, FLAC, OGG, ...)
    - Downmix to mono and resampling to the session rate
    """

    def __init__(
        self,
        file_path: str,
        frame_interval_ms: int = 100,
        target_sample_rate: int = 16000,
        fft_size: int = 256,
        smoothing: float = 0.8
    ):
        super().__init__(target_sample_rate, 1)

        self.file_path = Path(file_path)
        self.frame_interval_ms = frame_interval_ms
        self.chunk_size = int(target_sample_rate * frame_interval_ms / 1000)

        self._analyser = FrequencyAnalyser(fft_size=fft_size, smoothing=smoothing)
        self._audio: Optional[np.ndarray] = None
        self._position = 0
        self.source_sample_rate: Optional[int] = None
        self.duration_seconds = 0.0

    def open(self) -> None:
        if self._is_open:
            return

        try:
            audio, sr = sf.read(str(self.file_path), dtype='float32', always_2d=True)
        except (sf.SoundFileError, OSError) as e:
            raise AcquisitionError(f"Cannot read audio file {self.file_path}: {e}") from e

        mono = AudioUtils.to_mono(audio)
        self._audio = AudioUtils.resample(mono, sr, self.sample_rate)
        self._position = 0
        self.source_sample_rate = sr
        self.duration_seconds = len(mono) / sr
        self._is_open = True

        logger.info(
            "FileSource opened",
            file=str(self.file_path),
            sample_rate=sr,
            channels=audio.shape[1],
            duration=self.duration_seconds
        )

    def close(self) -> None:
        if not self._is_open:
            return

        self._is_open = False
        self._audio = None
        self._analyser.reset()

        logger.info("FileSource closed", file=str(self.file_path))

    def read_magnitudes(self) -> Optional[np.ndarray]:
        if not self._is_open or self.exhausted:
            return None

        chunk = self._audio[self._position:self._position + self.chunk_size]
        self._position += len(chunk)

        self._deliver(chunk)
        return self._analyser.analyse(chunk)

    @property
    def exhausted(self) -> bool:
        return self._audio is None or self._position >= len(self._audio)

    @property
    def total_ticks(self) -> int:
        if self._audio is None:
            return 0
        return -(-len(self._audio) // self.chunk_size)
