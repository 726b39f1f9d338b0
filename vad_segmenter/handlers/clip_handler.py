"""
Clip handler for consuming emitted utterances
"""
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import structlog

from ..core.wav_encoder import Clip, decode_wav_header

logger = structlog.get_logger(__name__)


@dataclass
class HandledClip:
    """A clip plus what the handler did with it"""
    clip: Clip
    saved_path: Optional[Path] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ClipHandler:
    """
    Downstream consumer for clips

    Features:
    - Persist clips as .wav files
    - Fan out to custom processors (upload, transcription, ...)
    - A failing processor never affects the others
    - Only the most recent keep_recent clips stay referenced
    """

    def __init__(
        self,
        output_dir: Optional[str] = None,
        filename_prefix: str = "utterance",
        keep_recent: int = 16
    ):
        self.output_dir = Path(output_dir) if output_dir else None
        self.filename_prefix = filename_prefix

        self._processors: List[Callable[[HandledClip], None]] = []
        self._recent: deque = deque(maxlen=keep_recent)
        self._clip_count = 0

        if self.output_dir:
            self.output_dir.mkdir(parents=True, exist_ok=True)

    def add_processor(self, processor: Callable[[HandledClip], None]):
        """Add a clip processor callback"""
        self._processors.append(processor)

    def attach(self, controller) -> "ClipHandler":
        """Subscribe to a SessionController's clips"""
        controller.on_clip_ready(self.handle)
        return self

    def handle(self, clip: Clip) -> HandledClip:
        """
        Handle one clip

        Args:
            clip: Emitted clip

        Returns:
            HandledClip with the saved path, if any
        """
        info = decode_wav_header(clip.audio_bytes)
        handled = HandledClip(
            clip=clip,
            metadata={
                "sequence": clip.sequence,
                "duration_ms": clip.duration_ms,
                "size_bytes": clip.size_bytes,
                "frames": info.frame_count,
                "split": clip.split
            }
        )

        if self.output_dir:
            handled.saved_path = self._save(clip)

        for processor in self._processors:
            try:
                processor(handled)
            except Exception as e:
                logger.error("Processor error", sequence=clip.sequence, error=str(e))

        self._recent.append(handled)
        self._clip_count += 1
        return handled

    def _save(self, clip: Clip) -> Path:
        stamp = time.strftime("%Y%m%d-%H%M%S", time.localtime(clip.closed_at))
        path = self.output_dir / f"{self.filename_prefix}_{clip.sequence:06d}_{stamp}.{clip.format}"
        path.write_bytes(clip.audio_bytes)

        logger.info("Clip saved", path=str(path), size_bytes=clip.size_bytes)
        return path

    @property
    def handled(self) -> List[HandledClip]:
        """Most recently handled clips, oldest first"""
        return list(self._recent)

    @property
    def clip_count(self) -> int:
        return self._clip_count
