"""Frame source implementations

MicrophoneSource lives in .microphone_source and is imported from there
directly, since loading sounddevice requires the PortAudio library.
"""
from .base_source import FrameSource
from .file_source import FileSource
from .stream_source import StreamSource

__all__ = [
    'FrameSource',
    'FileSource',
    'StreamSource'
]
