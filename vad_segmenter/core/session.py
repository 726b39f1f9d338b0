"""
Session controller - wires capture, classification, boundaries and encoding
"""
import threading
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

import numpy as np
import structlog

from ..audio_sources.base_source import FrameSource
from ..config.settings import AudioSettings, SegmenterSettings, Settings
from ..exceptions import AcquisitionError, EncodingError
from .energy_classifier import EnergyClassifier
from .event_emitter import EventEmitter, EventType
from .segment_buffer import SegmentBuffer
from .state_machine import (
    BoundaryDetector,
    BoundaryEvent,
    BoundaryEventType,
    EngineState,
    SpeechState,
)
from .tick_driver import TickDriver
from .wav_encoder import Clip, ClipEncoder

logger = structlog.get_logger(__name__)


def monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass
class SessionMetrics:
    """Counters for one controller"""
    ticks: int = 0
    paused_ticks: int = 0
    tick_errors: int = 0
    utterances_started: int = 0
    utterances_discarded: int = 0
    clips_emitted: int = 0
    clip_bytes: int = 0
    speech_duration_ms: float = 0.0
    encoding_failures: int = 0


class SessionController:
    """
    One recording session

    Features:
    - start / pause / resume / stop lifecycle
    - Fixed-interval tick thread, or manual ticking with an injected clock
    - Pre-roll, minimum duration filter and length cap
    - Ordered consumer events: speech_start, speech_end, clip_ready
    - Failures inside a tick are reported, never raised across the tick
    """

    def __init__(
        self,
        source: FrameSource,
        settings: Optional[SegmenterSettings] = None,
        audio_settings: Optional[AudioSettings] = None,
        clock: Optional[Callable[[], float]] = None,
        auto_tick: bool = True,
        emitter: Optional[EventEmitter] = None
    ):
        self.source = source
        self.settings = settings or SegmenterSettings()
        self.audio_settings = audio_settings or AudioSettings()
        self.auto_tick = auto_tick

        self._clock = clock or monotonic_ms
        self._emitter = emitter or EventEmitter(source="session")

        self._classifier = EnergyClassifier(
            threshold=self.settings.energy_threshold,
            low_bin_skip=self.settings.low_bin_skip
        )
        self._detector = BoundaryDetector.from_settings(self.settings)
        self._buffer = SegmentBuffer(
            sample_rate=self.audio_settings.sample_rate,
            channels=1,
            pre_roll_frames=self.settings.pre_roll_frames,
            max_pending_blocks=self.settings.pcm_queue_blocks
        )
        # Sources downmix capture to mono before it reaches the buffer
        self._encoder = ClipEncoder(sample_rate=self.audio_settings.sample_rate, channels=1)

        self._state = EngineState()
        self._lock = threading.RLock()
        self._driver: Optional[TickDriver] = None
        self._paused = False
        self._paused_at_ms: Optional[float] = None
        self._sequence = 0
        self._metrics = SessionMetrics()
        self._last_error: Optional[Exception] = None

    @classmethod
    def from_settings(cls, source: FrameSource, settings: Settings, **kwargs) -> "SessionController":
        return cls(source, settings.segmenter, settings.audio, **kwargs)

    # Consumer registration

    def on_speech_start(self, callback: Callable[[], None]):
        """Register callback for a confirmed utterance start"""
        self._emitter.on(EventType.SPEECH_START, lambda event: callback())

    def on_speech_end(self, callback: Callable[[float], None]):
        """Register callback receiving the closed utterance's duration in ms"""
        self._emitter.on(EventType.SPEECH_END, lambda event: callback(event["duration_ms"]))

    def on_clip_ready(self, callback: Callable[[Clip], None]):
        """Register callback receiving each emitted clip"""
        self._emitter.on(EventType.CLIP_READY, lambda event: callback(event["clip"]))

    def on_error(self, callback: Callable[[str], None]):
        """Register callback receiving the error kind ("acquisition", "encoding", "tick")"""
        self._emitter.on(EventType.ERROR, lambda event: callback(event["kind"]))

    @property
    def events(self) -> EventEmitter:
        """Underlying emitter, for listeners that want the full Event"""
        return self._emitter

    # Lifecycle

    def start(self) -> bool:
        """
        Acquire the source and begin listening

        Returns:
            True once listening (or if already started), False if the source
            could not be acquired; the session then remains idle
        """
        with self._lock:
            if self._state.speech_state != SpeechState.IDLE:
                logger.warning("Session already started")
                return True

            self._buffer.clear()
            self.source.set_pcm_sink(self._on_pcm)

            try:
                self.source.open()
            except AcquisitionError as e:
                self.source.set_pcm_sink(None)
                self._last_error = e
                logger.error("Failed to start session", error=str(e))
                self._emit_error(e.kind, str(e))
                return False

            self._detector.begin(self._state)
            self._paused = False
            self._paused_at_ms = None
            self._last_error = None
            self._emit_state_change(SpeechState.IDLE)

            if self.auto_tick:
                self._driver = TickDriver(self.tick, self.settings.frame_interval_ms)
                self._driver.start()

        logger.info(
            "Session started",
            threshold=self.settings.energy_threshold,
            speech_start_frames=self.settings.speech_start_frames,
            silence_hold_frames=self.settings.silence_hold_frames,
            min_speech_ms=self.settings.min_speech_duration_ms
        )
        return True

    def pause(self):
        """Freeze detection; no-op if idle or already paused"""
        with self._lock:
            if self._paused or self._state.speech_state == SpeechState.IDLE:
                return

            self._paused = True
            self._paused_at_ms = self._clock()
            self._buffer.discard_pending()

        logger.info("Session paused", speaking=self._state.is_speaking)

    def resume(self):
        """Continue exactly where pause() left off; no-op if not paused"""
        with self._lock:
            if not self._paused:
                return

            paused_for_ms = self._clock() - self._paused_at_ms
            self._detector.shift(self._state, paused_for_ms)
            self._buffer.discard_pending()
            self._paused = False
            self._paused_at_ms = None

        logger.info("Session resumed", paused_for_ms=paused_for_ms)

    def stop(self) -> Optional[Clip]:
        """
        End the session

        An open utterance is closed as if silence had been confirmed, so it
        is emitted when long enough. The session always ends idle with its
        buffers cleared and the source released.

        Returns:
            The final clip, if one was emitted
        """
        driver, self._driver = self._driver, None
        if driver is not None:
            driver.stop()

        with self._lock:
            if self._state.speech_state == SpeechState.IDLE:
                return None

            previous = self._state.speech_state
            final_clip = None

            try:
                if self._paused:
                    now_ms = self._paused_at_ms
                else:
                    now_ms = self._clock()
                    if self._state.is_speaking:
                        self._buffer.append(self._buffer.collect())

                event = self._detector.force_close(self._state, now_ms)
                if event is not None:
                    final_clip = self._close_utterance(event)
            finally:
                self._state.reset(SpeechState.IDLE)
                self._buffer.clear()
                self._paused = False
                self._paused_at_ms = None
                try:
                    self.source.close()
                finally:
                    self.source.set_pcm_sink(None)

            self._emit_state_change(previous)

        logger.info("Session stopped", **asdict(self._metrics))
        return final_clip

    # Ticking

    def tick(self, now_ms: Optional[float] = None) -> Optional[BoundaryEvent]:
        """
        Run one classification step

        Args:
            now_ms: Tick time; defaults to the controller clock

        Returns:
            The boundary crossed on this tick, if any
        """
        with self._lock:
            if self._state.speech_state == SpeechState.IDLE:
                return None

            if self._paused:
                self._metrics.paused_ticks += 1
                self._buffer.discard_pending()
                return None

            if now_ms is None:
                now_ms = self._clock()

            try:
                return self._process_tick(now_ms)
            except Exception as e:
                self._metrics.tick_errors += 1
                logger.error("Tick failed", error=str(e), exc_info=True)
                self._emit_error("tick", str(e))
                return None

    def _process_tick(self, now_ms: float) -> Optional[BoundaryEvent]:
        magnitudes = self.source.read_magnitudes()
        samples = self._buffer.collect()
        self._metrics.ticks += 1

        if self._state.is_speaking:
            self._buffer.append(samples)
        else:
            self._buffer.hold(samples)

        if magnitudes is None:
            return None

        previous = self._state.speech_state
        event = self._detector.tick(self._state, self._classifier.is_silent(magnitudes), now_ms)

        if event is not None:
            self._handle_boundary(event)
            if self._state.speech_state != previous:
                self._emit_state_change(previous)

        return event

    def _handle_boundary(self, event: BoundaryEvent):
        if event.event_type == BoundaryEventType.SPEECH_STARTED:
            self._open_utterance(event)
            return

        self._close_utterance(event)

        if event.event_type == BoundaryEventType.SPEECH_SPLIT and self._state.is_speaking:
            self._open_utterance(event, continuation=True)

    def _open_utterance(self, event: BoundaryEvent, continuation: bool = False):
        self._buffer.open()
        self._metrics.utterances_started += 1

        logger.info(
            "Speech started",
            started_at_ms=self._state.speech_started_at_ms,
            continuation=continuation
        )
        self._emitter.emit(
            EventType.SPEECH_START,
            started_at_ms=self._state.speech_started_at_ms,
            timestamp_ms=event.timestamp_ms,
            continuation=continuation
        )

    def _close_utterance(self, event: BoundaryEvent) -> Optional[Clip]:
        samples = self._buffer.drain()
        split = event.event_type == BoundaryEventType.SPEECH_SPLIT

        if not event.accepted:
            self._metrics.utterances_discarded += 1
            logger.debug(
                "Utterance too short, discarded",
                duration_ms=event.duration_ms,
                samples=len(samples),
                min_speech_ms=self.settings.min_speech_duration_ms
            )
            self._emitter.emit(
                EventType.UTTERANCE_DISCARDED,
                duration_ms=event.duration_ms,
                started_at_ms=event.started_at_ms,
                timestamp_ms=event.timestamp_ms
            )
            return None

        logger.info(
            "Speech ended",
            duration_ms=event.duration_ms,
            samples=len(samples),
            split=split
        )
        self._emitter.emit(
            EventType.SPEECH_END,
            duration_ms=event.duration_ms,
            started_at_ms=event.started_at_ms,
            timestamp_ms=event.timestamp_ms,
            split=split
        )

        return self._emit_clip(samples, event.duration_ms, split)

    def _emit_clip(self, samples: np.ndarray, duration_ms: float, split: bool) -> Optional[Clip]:
        try:
            clip = self._encoder.encode(samples, duration_ms, sequence=self._sequence + 1, split=split)
        except EncodingError as e:
            self._metrics.encoding_failures += 1
            logger.warning("Utterance not encoded", error=str(e), duration_ms=duration_ms)
            self._emit_error(e.kind, str(e))
            return None

        self._sequence = clip.sequence
        self._metrics.clips_emitted += 1
        self._metrics.clip_bytes += clip.size_bytes
        self._metrics.speech_duration_ms += duration_ms

        logger.info(
            "Clip ready",
            sequence=clip.sequence,
            size_kb=round(clip.size_kb, 2),
            duration_ms=duration_ms
        )
        self._emitter.emit(EventType.CLIP_READY, clip=clip)
        return clip

    # Capture thread entry point

    def _on_pcm(self, block: np.ndarray):
        if self._paused or self._state.speech_state == SpeechState.IDLE:
            return
        self._buffer.push(block)

    # Helpers

    def _emit_error(self, kind: str, message: str):
        self._emitter.emit(EventType.ERROR, kind=kind, message=message)

    def _emit_state_change(self, previous: SpeechState):
        self._emitter.emit(
            EventType.STATE_CHANGE,
            from_state=previous.name,
            to_state=self._state.speech_state.name
        )

    @property
    def state(self) -> SpeechState:
        return self._state.speech_state

    @property
    def engine_state(self) -> EngineState:
        """Snapshot of the detection state"""
        with self._lock:
            return EngineState(**asdict(self._state))

    @property
    def is_running(self) -> bool:
        return self._state.speech_state != SpeechState.IDLE

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def is_speaking(self) -> bool:
        return self._state.is_speaking

    @property
    def last_error(self) -> Optional[Exception]:
        return self._last_error

    def get_metrics(self) -> Dict[str, Any]:
        """Session counters"""
        metrics = asdict(self._metrics)
        metrics.update({
            "dropped_pcm_blocks": self._buffer.dropped_blocks,
            "buffered_ms": self._buffer.duration_ms,
            "current_state": self._state.speech_state.name,
            "is_paused": self._paused
        })
        return metrics

    def __enter__(self):
        if not self.start():
            raise self._last_error or AcquisitionError("Frame source could not be acquired")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()


