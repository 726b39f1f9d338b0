"""
Segmentation engine configuration
"""
import math
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AudioSettings(BaseSettings):
    """Capture format and analyser configuration"""
    model_config = SettingsConfigDict(env_prefix="VAD_SEGMENTER_AUDIO_")

    sample_rate: int = Field(default=16000, ge=8000, le=48000)
    channels: int = Field(default=1, ge=1, le=2)
    # Analyser window; 256 gives 128 frequency bins
    fft_size: int = Field(default=256, ge=32, le=32768)
    # Time averaging applied to successive snapshots
    analyser_smoothing: float = Field(default=0.8, ge=0.0, lt=1.0)
    # Capture callback block size
    block_duration_ms: int = Field(default=20, ge=5, le=100)

    @model_validator(mode="after")
    def _check_fft_size(self) -> "AudioSettings":
        if self.fft_size & (self.fft_size - 1):
            raise ValueError(f"fft_size must be a power of two, got {self.fft_size}")
        return self

    @property
    def block_size(self) -> int:
        """Capture block size in samples"""
        return int(self.sample_rate * self.block_duration_ms / 1000)

    @property
    def bin_count(self) -> int:
        return self.fft_size // 2


class SegmenterSettings(BaseSettings):
    """Boundary detection configuration"""
    model_config = SettingsConfigDict(env_prefix="VAD_SEGMENTER_")

    # Normalized energy below which a frame counts as silent
    energy_threshold: float = Field(default=0.15, gt=0.0, lt=1.0)

    # Hysteresis, in ticks
    silence_hold_frames: int = Field(default=20, ge=1)
    speech_start_frames: int = Field(default=3, ge=1)

    # Alternative to silence_hold_frames, rounded up to whole ticks
    silence_duration_ms: Optional[int] = Field(default=None, gt=0)

    # Wall-clock minimum for an utterance to be emitted
    min_speech_duration_ms: int = Field(default=800, ge=0)

    frame_interval_ms: int = Field(default=100, gt=0)

    # Lowest frequency bins ignored by the energy measurement
    low_bin_skip: int = Field(default=4, ge=0)

    # Ticks of PCM kept ahead of a confirmed start; None follows speech_start_frames
    pre_roll_frames: Optional[int] = Field(default=None, ge=0)

    # Utterances reaching this length are closed and continued; 0 disables
    max_utterance_ms: int = Field(default=30000, ge=0)

    # Capacity of the capture -> tick hand-off queue, in PCM blocks
    pcm_queue_blocks: int = Field(default=256, ge=1)

    @model_validator(mode="after")
    def _derive_frame_counts(self) -> "SegmenterSettings":
        if self.silence_duration_ms is not None:
            self.silence_hold_frames = max(
                1, math.ceil(self.silence_duration_ms / self.frame_interval_ms)
            )
        if self.pre_roll_frames is None:
            self.pre_roll_frames = self.speech_start_frames
        if 0 < self.max_utterance_ms < self.frame_interval_ms:
            raise ValueError("max_utterance_ms must be 0 or at least one frame interval")
        if self.max_utterance_ms and self.min_speech_duration_ms > self.max_utterance_ms:
            raise ValueError("min_speech_duration_ms must not exceed max_utterance_ms")
        return self

    @property
    def silence_hold_ms(self) -> int:
        return self.silence_hold_frames * self.frame_interval_ms

    @property
    def speech_start_ms(self) -> int:
        return self.speech_start_frames * self.frame_interval_ms


class Settings(BaseSettings):
    """Main settings container"""
    model_config = SettingsConfigDict(
        env_prefix="VAD_SEGMENTER_",
        env_nested_delimiter="__",
    )

    audio: AudioSettings = Field(default_factory=AudioSettings)
    segmenter: SegmenterSettings = Field(default_factory=SegmenterSettings)

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    log_dir: Optional[str] = None

    # Where examples persist emitted clips
    clip_output_dir: Optional[str] = None
