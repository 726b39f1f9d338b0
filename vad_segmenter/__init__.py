"""Real-time voice activity segmentation into WAV clips"""
from .config.settings import AudioSettings, SegmenterSettings, Settings
from .core import (
    BoundaryDetector,
    Clip,
    ClipEncoder,
    EnergyClassifier,
    EventType,
    SegmentBuffer,
    SessionController,
    SpeechState,
    encode_wav,
)
from .exceptions import AcquisitionError, EncodingError, SegmenterError

__version__ = "0.1.0"

__all__ = [
    'AudioSettings',
    'SegmenterSettings',
    'Settings',
    'BoundaryDetector',
    'Clip',
    'ClipEncoder',
    'EnergyClassifier',
    'EventType',
    'SegmentBuffer',
    'SessionController',
    'SpeechState',
    'encode_wav',
    'AcquisitionError',
    'EncodingError',
    'SegmenterError'
]
