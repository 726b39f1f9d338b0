"""
Hysteresis state machine turning per-frame silence verdicts into utterance boundaries
"""
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


class SpeechState(Enum):
    """Engine states"""
    IDLE = auto()
    LISTENING_SILENCE = auto()
    LISTENING_SPEECH = auto()


class BoundaryEventType(Enum):
    """Boundary events produced by a tick"""
    SPEECH_STARTED = "speech_started"
    SPEECH_ENDED = "speech_ended"
    # Length cap reached: the open utterance closes and a continuation opens
    SPEECH_SPLIT = "speech_split"


@dataclass
class EngineState:
    """
    Mutable per-session detection state

    Owned by the session controller and only mutated through BoundaryDetector.
    """
    speech_state: SpeechState = SpeechState.IDLE
    consecutive_silent_frames: int = 0
    consecutive_speech_frames: int = 0
    speech_started_at_ms: float = 0.0

    def reset(self, speech_state: SpeechState = SpeechState.IDLE):
        self.speech_state = speech_state
        self.consecutive_silent_frames = 0
        self.consecutive_speech_frames = 0
        self.speech_started_at_ms = 0.0

    @property
    def is_speaking(self) -> bool:
        return self.speech_state == SpeechState.LISTENING_SPEECH


@dataclass(frozen=True)
class BoundaryEvent:
    """A boundary detected on one tick"""
    event_type: BoundaryEventType
    timestamp_ms: float
    started_at_ms: float
    duration_ms: Optional[float] = None
    # For closing events: whether the utterance met the minimum duration
    accepted: bool = True

    def __repr__(self):
        return (
            f"BoundaryEvent({self.event_type.value}, t={self.timestamp_ms:.0f}ms, "
            f"duration={self.duration_ms}, accepted={self.accepted})"
        )


class BoundaryDetector:
    """
    Frame-counted hysteresis over silence verdicts

    Features:
    - speech_start_frames consecutive non-silent ticks open an utterance
    - silence_hold_frames consecutive silent ticks close it
    - Start time back-dated over the confirming window
    - Minimum duration judged on wall-clock time
    - Optional length cap with continuation
    """

    def __init__(
        self,
        speech_start_frames: int = 3,
        silence_hold_frames: int = 20,
        frame_interval_ms: int = 100,
        min_speech_duration_ms: int = 800,
        max_utterance_ms: int = 0
    ):
        if speech_start_frames < 1 or silence_hold_frames < 1:
            raise ValueError("frame counts must be >= 1")
        if frame_interval_ms <= 0:
            raise ValueError("frame_interval_ms must be > 0")
        if min_speech_duration_ms < 0 or max_utterance_ms < 0:
            raise ValueError("durations must be >= 0")

        self.speech_start_frames = speech_start_frames
        self.silence_hold_frames = silence_hold_frames
        self.frame_interval_ms = frame_interval_ms
        self.min_speech_duration_ms = min_speech_duration_ms
        self.max_utterance_ms = max_utterance_ms

    @classmethod
    def from_settings(cls, settings) -> "BoundaryDetector":
        return cls(
            speech_start_frames=settings.speech_start_frames,
            silence_hold_frames=settings.silence_hold_frames,
            frame_interval_ms=settings.frame_interval_ms,
            min_speech_duration_ms=settings.min_speech_duration_ms,
            max_utterance_ms=settings.max_utterance_ms
        )

    def begin(self, state: EngineState):
        """Arm a fresh session"""
        state.reset(SpeechState.LISTENING_SILENCE)

    def tick(
        self,
        state: EngineState,
        is_silent: bool,
        now_ms: float
    ) -> Optional[BoundaryEvent]:
        """
        Apply one verdict

        Args:
            state: Session state, mutated in place
            is_silent: Classifier verdict for this tick
            now_ms: Wall-clock time of this tick

        Returns:
            BoundaryEvent if a boundary was crossed, None otherwise
        """
        if state.speech_state == SpeechState.IDLE:
            return None

        if is_silent:
            state.consecutive_silent_frames += 1
            state.consecutive_speech_frames = 0
        else:
            state.consecutive_speech_frames += 1
            state.consecutive_silent_frames = 0

        if state.speech_state == SpeechState.LISTENING_SILENCE:
            if state.consecutive_speech_frames >= self.speech_start_frames:
                state.speech_state = SpeechState.LISTENING_SPEECH
                state.speech_started_at_ms = now_ms - self.speech_start_frames * self.frame_interval_ms

                logger.debug(
                    "Speech confirmed",
                    started_at_ms=state.speech_started_at_ms,
                    timestamp_ms=now_ms
                )
                return BoundaryEvent(
                    event_type=BoundaryEventType.SPEECH_STARTED,
                    timestamp_ms=now_ms,
                    started_at_ms=state.speech_started_at_ms
                )
            return None

        duration_ms = now_ms - state.speech_started_at_ms

        if state.consecutive_silent_frames >= self.silence_hold_frames:
            started_at_ms = state.speech_started_at_ms
            state.reset(SpeechState.LISTENING_SILENCE)

            logger.debug(
                "Silence confirmed",
                duration_ms=duration_ms,
                timestamp_ms=now_ms
            )
            return BoundaryEvent(
                event_type=BoundaryEventType.SPEECH_ENDED,
                timestamp_ms=now_ms,
                started_at_ms=started_at_ms,
                duration_ms=duration_ms,
                accepted=duration_ms >= self.min_speech_duration_ms
            )

        if self.max_utterance_ms and duration_ms >= self.max_utterance_ms:
            started_at_ms = state.speech_started_at_ms
            state.speech_started_at_ms = now_ms
            state.consecutive_silent_frames = 0

            logger.debug("Utterance length cap reached", duration_ms=duration_ms)
            return BoundaryEvent(
                event_type=BoundaryEventType.SPEECH_SPLIT,
                timestamp_ms=now_ms,
                started_at_ms=started_at_ms,
                duration_ms=duration_ms,
                accepted=True
            )

        return None

    def shift(self, state: EngineState, delta_ms: float):
        """Move an open utterance's start forward by a span that must not count"""
        if state.speech_state == SpeechState.LISTENING_SPEECH and delta_ms > 0:
            state.speech_started_at_ms += delta_ms

    def force_close(self, state: EngineState, now_ms: float) -> Optional[BoundaryEvent]:
        """
        Close whatever is open and go idle

        Returns:
            SPEECH_ENDED event when an utterance was open, None otherwise
        """
        event = None

        if state.speech_state == SpeechState.LISTENING_SPEECH:
            duration_ms = now_ms - state.speech_started_at_ms
            event = BoundaryEvent(
                event_type=BoundaryEventType.SPEECH_ENDED,
                timestamp_ms=now_ms,
                started_at_ms=state.speech_started_at_ms,
                duration_ms=duration_ms,
                accepted=duration_ms >= self.min_speech_duration_ms
            )

        state.reset(SpeechState.IDLE)
        return event
