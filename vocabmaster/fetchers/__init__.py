"""Fetchers module."""

from .base import BaseFetcher
from .transcript import (
    TranscriptFetcher,
    TranscriptResult,
    extract_video_id,
    parse_transcript_payload,
)

__all__ = [
    'BaseFetcher',
    'TranscriptFetcher',
    'TranscriptResult',
    'extract_video_id',
    'parse_transcript_payload',
]
