"""Clip consumers"""
from .clip_handler import ClipHandler, HandledClip

__all__ = ['ClipHandler', 'HandledClip']
