"""
Tests for the WAV clip encoder
"""
import io

import numpy as np
import pytest
import soundfile as sf

from vad_segmenter.core.wav_encoder import (
    WAV_HEADER_SIZE,
    ClipEncoder,
    decode_wav,
    decode_wav_header,
    encode_wav,
    float_to_pcm16,
)
from vad_segmenter.exceptions import EncodingError


class TestEncodeWav:
    """Byte layout of encode_wav"""

    def test_exact_bytes(self):
        """Header fields and sample scaling are byte-exact"""
        samples = np.array([0.0, 1.0, -1.0, 0.25, -0.25, 2.0, -3.0], dtype=np.float32)

        payload = encode_wav(samples, sample_rate=16000, channels=1)

        expected = bytes.fromhex(
            "52494646" "32000000" "57415645"          # RIFF, 36 + 14, WAVE
            "666d7420" "10000000" "0100" "0100"        # fmt , 16, PCM, mono
            "803e0000" "007d0000" "0200" "1000"        # 16000 Hz, 32000 B/s, align 2, 16 bit
            "64617461" "0e000000"                      # data, 14 bytes
            "0000" "ff7f" "0080" "0020" "00e0" "ff7f" "0080"
        )
        assert payload == expected

    def test_stereo_header(self):
        """Byte rate and block align follow the channel count"""
        info = decode_wav_header(encode_wav(np.zeros(8), sample_rate=44100, channels=2))

        assert info.channels == 2
        assert info.sample_rate == 44100
        assert info.byte_rate == 44100 * 2 * 2
        assert info.block_align == 4
        assert info.bits_per_sample == 16
        assert info.frame_count == 4

    def test_reproducible(self):
        """Identical input gives identical bytes"""
        samples = np.random.default_rng(3).uniform(-1, 1, 1000)

        assert encode_wav(samples) == encode_wav(samples.copy())

    def test_empty_input_is_header_only(self):
        payload = encode_wav(np.zeros(0))

        assert len(payload) == WAV_HEADER_SIZE
        assert decode_wav_header(payload).data_size == 0

    def test_asymmetric_scaling(self):
        """Negative samples scale by 32768, the rest by 32767"""
        pcm = float_to_pcm16(np.array([-1.0, -0.5, 0.5, 1.0, np.nan]))

        assert list(pcm) == [-32768, -16384, 16384, 32767, 0]

    def test_invalid_format(self):
        with pytest.raises(ValueError):
            encode_wav(np.zeros(4), sample_rate=0)


class TestRoundTrip:
    """Decoding what encode_wav produced"""

    @pytest.fixture
    def samples(self):
        return np.random.default_rng(11).uniform(-1.0, 1.0, 16000).astype(np.float32)

    def test_header_round_trip(self, samples):
        """Count, rate, channels and depth survive encoding"""
        info = decode_wav_header(encode_wav(samples, 16000, 1))

        assert info.sample_count == len(samples)
        assert info.sample_rate == 16000
        assert info.channels == 1
        assert info.bits_per_sample == 16

    def test_values_within_quantization(self, samples):
        """Decoded samples are within one 16-bit step of the input"""
        decoded = decode_wav(encode_wav(samples))

        assert np.max(np.abs(decoded - samples)) <= 1 / 32768

    def test_soundfile_reads_clip(self, samples):
        """An independent decoder agrees with the container"""
        payload = encode_wav(samples, 16000, 1)

        info = sf.info(io.BytesIO(payload))
        pcm, sr = sf.read(io.BytesIO(payload), dtype='int16')

        assert info.subtype == 'PCM_16'
        assert info.channels == 1
        assert sr == 16000
        np.testing.assert_array_equal(pcm, float_to_pcm16(samples))

    def test_rejects_foreign_payload(self):
        with pytest.raises(EncodingError):
            decode_wav_header(b"OggS" + bytes(60))
        with pytest.raises(EncodingError):
            decode_wav_header(b"RIFF")


class TestClipEncoder:
    """Test cases for ClipEncoder"""

    @pytest.fixture
    def encoder(self):
        return ClipEncoder(sample_rate=16000, channels=1)

    def test_encode_clip(self, encoder):
        """Clip metadata describes the payload"""
        clip = encoder.encode(np.zeros(1600, dtype=np.float32), duration_ms=100.0, sequence=3)

        assert clip.size_bytes == WAV_HEADER_SIZE + 3200
        assert clip.sample_count == 1600
        assert clip.duration_ms == 100.0
        assert clip.sequence == 3
        assert clip.format == "wav"
        assert clip.mime_type == "audio/wav"
        assert clip.closed_at > 0
        assert not clip.split

    def test_clip_is_immutable(self, encoder):
        clip = encoder.encode(np.zeros(10), duration_ms=1.0)

        with pytest.raises(AttributeError):
            clip.duration_ms = 5.0

    def test_empty_utterance(self, encoder):
        """Zero samples is an encoding error, not a clip"""
        with pytest.raises(EncodingError):
            encoder.encode(np.zeros(0), duration_ms=0.0)
        with pytest.raises(EncodingError):
            encoder.encode(None, duration_ms=0.0)

    def test_partial_frame(self):
        with pytest.raises(EncodingError):
            ClipEncoder(channels=2).encode(np.zeros(3), duration_ms=1.0)
