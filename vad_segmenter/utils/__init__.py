"""Utility modules"""
from .audio_utils import AudioUtils, FrequencyAnalyser, level_snapshot

__all__ = [
    'AudioUtils',
    'FrequencyAnalyser',
    'level_snapshot'
]
