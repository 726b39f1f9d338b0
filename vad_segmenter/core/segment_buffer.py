"""
PCM buffering for the utterance being captured
"""
from collections import deque
from queue import Empty, Full, Queue
from typing import List

import numpy as np
import structlog

logger = structlog.get_logger(__name__)

_EMPTY = np.zeros(0, dtype=np.float32)


class SegmentBuffer:
    """
    Holds the PCM of at most one open utterance

    Capture callbacks run on their own thread and only ever call push(); the
    tick thread drains those blocks with collect() and routes them to the
    pre-roll ring (while silent) or the open utterance (while speaking).

    Features:
    - Bounded single-producer/single-consumer hand-off queue
    - Tick-aligned pre-roll ring
    - Append-only utterance storage, drained on closure
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        pre_roll_frames: int = 3,
        max_pending_blocks: int = 256
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self.pre_roll_frames = pre_roll_frames

        self._pending: Queue = Queue(maxsize=max_pending_blocks)
        self._pre_roll: deque = deque(maxlen=pre_roll_frames or None)
        self._blocks: List[np.ndarray] = []
        self._sample_count = 0
        self._is_open = False
        self._dropped_blocks = 0

    # Capture side

    def push(self, block: np.ndarray) -> bool:
        """
        Queue a captured block for the next tick

        Returns:
            False if an older block had to be dropped to make room
        """
        samples = np.array(block, dtype=np.float32).reshape(-1)
        dropped = False

        while True:
            try:
                self._pending.put_nowait(samples)
                return not dropped
            except Full:
                try:
                    self._pending.get_nowait()
                    self._dropped_blocks += 1
                    dropped = True
                except Empty:
                    pass

    # Tick side

    def collect(self) -> np.ndarray:
        """Take every block captured since the last tick, as one array"""
        blocks = []
        while True:
            try:
                blocks.append(self._pending.get_nowait())
            except Empty:
                break

        if not blocks:
            return _EMPTY
        if len(blocks) == 1:
            return blocks[0]
        return np.concatenate(blocks)

    def discard_pending(self) -> int:
        """Drop queued blocks without looking at them"""
        count = 0
        while True:
            try:
                self._pending.get_nowait()
                count += 1
            except Empty:
                return count

    def hold(self, samples: np.ndarray):
        """Remember one tick of silence-state PCM as pre-roll"""
        if self.pre_roll_frames <= 0:
            return
        self._pre_roll.append(samples)

    def open(self):
        """Start an utterance seeded with the pre-roll"""
        if self._is_open:
            logger.warning("Utterance already open, discarding previous samples", samples=self._sample_count)
        self._blocks = [b for b in self._pre_roll if len(b)]
        self._sample_count = sum(len(b) for b in self._blocks)
        self._pre_roll.clear()
        self._is_open = True

    def append(self, samples: np.ndarray):
        """Add one tick of PCM to the open utterance"""
        if not self._is_open:
            return
        if len(samples):
            self._blocks.append(samples)
            self._sample_count += len(samples)

    def drain(self) -> np.ndarray:
        """
        Return and clear the open utterance

        The buffer is closed afterwards; the next open() starts a new utterance.
        """
        if not self._blocks:
            samples = _EMPTY
        elif len(self._blocks) == 1:
            samples = self._blocks[0]
        else:
            samples = np.concatenate(self._blocks)

        self._blocks = []
        self._sample_count = 0
        self._is_open = False
        return samples

    def clear(self):
        """Forget everything, including pending capture blocks"""
        self._blocks = []
        self._sample_count = 0
        self._is_open = False
        self._pre_roll.clear()
        self.discard_pending()

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def sample_count(self) -> int:
        return self._sample_count

    @property
    def duration_ms(self) -> float:
        return self._sample_count / (self.sample_rate * self.channels) * 1000

    @property
    def pre_roll_ticks(self) -> int:
        return len(self._pre_roll)

    @property
    def dropped_blocks(self) -> int:
        return self._dropped_blocks
