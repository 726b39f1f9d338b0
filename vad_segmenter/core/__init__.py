"""Core segmentation components"""
from .energy_classifier import EnergyClassifier
from .event_emitter import Event, EventEmitter, EventType
from .segment_buffer import SegmentBuffer
from .session import SessionController, SessionMetrics
from .state_machine import BoundaryDetector, BoundaryEvent, BoundaryEventType, EngineState, SpeechState
from .tick_driver import TickDriver
from .wav_encoder import Clip, ClipEncoder, WavInfo, decode_wav, decode_wav_header, encode_wav

__all__ = [
    'EnergyClassifier',
    'Event',
    'EventEmitter',
    'EventType',
    'SegmentBuffer',
    'SessionController',
    'SessionMetrics',
    'BoundaryDetector',
    'BoundaryEvent',
    'BoundaryEventType',
    'EngineState',
    'SpeechState',
    'TickDriver',
    'Clip',
    'ClipEncoder',
    'WavInfo',
    'decode_wav',
    'decode_wav_header',
    'encode_wav'
]
