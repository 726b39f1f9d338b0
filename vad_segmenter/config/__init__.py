"""Configuration module for the segmentation engine"""
from .settings import Settings, AudioSettings, SegmenterSettings
from .logging_config import setup_logging, get_logger

__all__ = ['Settings', 'AudioSettings', 'SegmenterSettings', 'setup_logging', 'get_logger']
