"""Data models."""

from .card import CardStatus, Flashcard, GroundingSource, VideoSet
from .extraction import (
    AttemptEvent,
    AttemptOutcome,
    ExtractionMode,
    ExtractionResult,
    VocabularyRecord,
)

__all__ = [
    'CardStatus',
    'Flashcard',
    'GroundingSource',
    'VideoSet',
    'AttemptEvent',
    'AttemptOutcome',
    'ExtractionMode',
    'ExtractionResult',
    'VocabularyRecord',
]
