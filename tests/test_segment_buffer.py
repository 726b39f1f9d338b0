"""
Tests for SegmentBuffer
"""
import threading

import numpy as np
import pytest

from vad_segmenter.core.segment_buffer import SegmentBuffer


def block(value, size=160):
    return np.full(size, value, dtype=np.float32)


class TestSegmentBuffer:
    """Test cases for SegmentBuffer"""

    @pytest.fixture
    def buffer(self):
        return SegmentBuffer(sample_rate=16000, pre_roll_frames=2, max_pending_blocks=8)

    def test_collect_concatenates_pending(self, buffer):
        """Blocks pushed between ticks come back as one array in order"""
        buffer.push(block(0.1))
        buffer.push(block(0.2))

        samples = buffer.collect()

        assert len(samples) == 320
        assert samples[0] == pytest.approx(0.1)
        assert samples[-1] == pytest.approx(0.2)
        assert len(buffer.collect()) == 0

    def test_push_copies_input(self, buffer):
        """Capture buffers reused by the driver must not alias queued data"""
        data = block(0.5)
        buffer.push(data)
        data[:] = 0.0

        assert buffer.collect()[0] == pytest.approx(0.5)

    def test_push_converts_dtype_and_shape(self, buffer):
        buffer.push(np.ones((4, 1), dtype=np.float64))

        samples = buffer.collect()
        assert samples.dtype == np.float32
        assert samples.shape == (4,)

    def test_pending_overflow_drops_oldest(self, buffer):
        """A full hand-off queue keeps the newest blocks"""
        for i in range(10):
            buffer.push(block(i, size=1))

        samples = buffer.collect()

        assert list(samples) == [2, 3, 4, 5, 6, 7, 8, 9]
        assert buffer.dropped_blocks == 2

    def test_append_requires_open(self, buffer):
        """PCM is only kept while an utterance is open"""
        buffer.append(block(0.3))

        assert buffer.sample_count == 0
        assert len(buffer.drain()) == 0

    def test_open_seeds_pre_roll(self, buffer):
        """open() prepends the last pre_roll_frames ticks"""
        buffer.hold(block(0.1))
        buffer.hold(block(0.2))
        buffer.hold(block(0.3))
        buffer.open()
        buffer.append(block(0.4))

        samples = buffer.drain()

        assert len(samples) == 480
        assert samples[0] == pytest.approx(0.2)
        assert samples[-1] == pytest.approx(0.4)
        assert buffer.pre_roll_ticks == 0

    def test_pre_roll_disabled(self):
        buffer = SegmentBuffer(pre_roll_frames=0)
        buffer.hold(block(0.1))
        buffer.open()

        assert buffer.sample_count == 0

    def test_drain_closes_and_clears(self, buffer):
        """drain() hands over the utterance and resets"""
        buffer.open()
        buffer.append(block(0.5, size=1600))

        assert buffer.duration_ms == pytest.approx(100.0)

        samples = buffer.drain()

        assert len(samples) == 1600
        assert not buffer.is_open
        assert buffer.sample_count == 0
        assert buffer.duration_ms == 0.0

    def test_clear_drops_everything(self, buffer):
        buffer.push(block(0.1))
        buffer.hold(block(0.2))
        buffer.open()
        buffer.append(block(0.3))

        buffer.clear()

        assert not buffer.is_open
        assert buffer.pre_roll_ticks == 0
        assert len(buffer.collect()) == 0

    def test_concurrent_producer(self):
        """Blocks pushed from another thread all arrive, in order"""
        buffer = SegmentBuffer(max_pending_blocks=10000)
        count = 2000

        def produce():
            for i in range(count):
                buffer.push(np.array([i], dtype=np.float32))

        producer = threading.Thread(target=produce)
        producer.start()

        received = []
        while producer.is_alive():
            received.extend(buffer.collect().tolist())
        producer.join()
        received.extend(buffer.collect().tolist())

        assert received == list(range(count))
