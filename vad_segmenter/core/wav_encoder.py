"""
WAV (RIFF / PCM16) serialization of closed utterances
"""
import struct
import time
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import structlog

from ..exceptions import EncodingError

logger = structlog.get_logger(__name__)

WAV_HEADER_SIZE = 44
PCM_FORMAT_TAG = 1
BITS_PER_SAMPLE = 16

# "<4sI4s" RIFF chunk, "<4sIHHIIHH" fmt chunk, "<4sI" data chunk header
_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


@dataclass(frozen=True)
class WavInfo:
    """Header fields of a PCM WAV container"""
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int

    @property
    def sample_count(self) -> int:
        return self.data_size // (self.bits_per_sample // 8)

    @property
    def frame_count(self) -> int:
        return self.data_size // self.block_align


@dataclass(frozen=True)
class Clip:
    """An encoded, emitted utterance"""
    audio_bytes: bytes
    duration_ms: float
    sample_rate: int
    channels: int
    sample_count: int
    format: str = "wav"
    mime_type: str = "audio/wav"
    bits_per_sample: int = BITS_PER_SAMPLE
    closed_at: float = field(default_factory=time.time)
    sequence: int = 0
    split: bool = False

    @property
    def size_bytes(self) -> int:
        return len(self.audio_bytes)

    @property
    def size_kb(self) -> float:
        return self.size_bytes / 1024

    def __repr__(self):
        return (
            f"Clip(#{self.sequence}, {self.duration_ms:.0f}ms, {self.size_bytes}B, "
            f"{self.sample_rate}Hz x{self.channels}{', split' if self.split else ''})"
        )


def float_to_pcm16(samples: np.ndarray) -> np.ndarray:
    """
    Convert float samples to signed 16-bit PCM

    Samples are clamped to [-1, 1]; negatives scale by 32768, the rest by 32767.
    NaN maps to 0.
    """
    audio = np.nan_to_num(np.asarray(samples, dtype=np.float64), nan=0.0)
    audio = np.clip(audio, -1.0, 1.0)
    scaled = np.where(audio < 0, audio * 32768.0, audio * 32767.0)
    return np.rint(scaled).astype("<i2")


def pcm16_to_float(pcm: np.ndarray) -> np.ndarray:
    """Inverse of float_to_pcm16"""
    values = np.asarray(pcm, dtype=np.float64)
    return np.where(values < 0, values / 32768.0, values / 32767.0).astype(np.float32)


def encode_wav(samples: np.ndarray, sample_rate: int = 16000, channels: int = 1) -> bytes:
    """
    Serialize float samples as a RIFF/WAVE PCM16 container

    Args:
        samples: Interleaved float samples in [-1.0, 1.0]
        sample_rate: Samples per second per channel
        channels: Channel count

    Returns:
        44-byte header followed by little-endian int16 sample data
    """
    if sample_rate <= 0 or channels <= 0:
        raise ValueError("sample_rate and channels must be positive")

    data = float_to_pcm16(np.asarray(samples).reshape(-1)).tobytes()
    block_align = channels * BITS_PER_SAMPLE // 8
    byte_rate = sample_rate * block_align

    header = _HEADER.pack(
        b"RIFF", 36 + len(data), b"WAVE",
        b"fmt ", 16, PCM_FORMAT_TAG, channels, sample_rate,
        byte_rate, block_align, BITS_PER_SAMPLE,
        b"data", len(data)
    )
    return header + data


def decode_wav_header(payload: bytes) -> WavInfo:
    """Parse the canonical 44-byte header written by encode_wav"""
    if len(payload) < WAV_HEADER_SIZE:
        raise EncodingError(f"WAV payload too short: {len(payload)} bytes")

    (riff, _, wave, fmt, fmt_size, format_tag, channels, sample_rate,
     byte_rate, block_align, bits, data_id, data_size) = _HEADER.unpack_from(payload)

    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or data_id != b"data":
        raise EncodingError("Not a canonical RIFF/WAVE container")
    if fmt_size != 16 or format_tag != PCM_FORMAT_TAG:
        raise EncodingError(f"Unsupported WAV format tag {format_tag}")

    return WavInfo(
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits,
        data_size=data_size
    )


def decode_wav(payload: bytes) -> np.ndarray:
    """Decode an encode_wav payload back to float samples"""
    info = decode_wav_header(payload)
    pcm = np.frombuffer(payload, dtype="<i2", count=info.sample_count, offset=WAV_HEADER_SIZE)
    return pcm16_to_float(pcm)


class ClipEncoder:
    """Turns drained utterance samples into Clip objects"""

    def __init__(self, sample_rate: int = 16000, channels: int = 1):
        self.sample_rate = sample_rate
        self.channels = channels

    def encode(
        self,
        samples: Optional[np.ndarray],
        duration_ms: float,
        sequence: int = 0,
        split: bool = False
    ) -> Clip:
        """
        Encode one utterance

        Raises:
            EncodingError: no samples, or not a whole number of frames
        """
        if samples is None or len(samples) == 0:
            raise EncodingError("Utterance has no samples")
        if len(samples) % self.channels:
            raise EncodingError(
                f"{len(samples)} samples do not divide into {self.channels} channels"
            )

        payload = encode_wav(samples, self.sample_rate, self.channels)

        clip = Clip(
            audio_bytes=payload,
            duration_ms=duration_ms,
            sample_rate=self.sample_rate,
            channels=self.channels,
            sample_count=len(samples),
            sequence=sequence,
            split=split
        )

        logger.debug("Clip encoded", sequence=sequence, size_bytes=clip.size_bytes, duration_ms=duration_ms)
        return clip
