"""VocabMaster - video vocabulary flashcards"""

__version__ = "1.0.0"
__author__ = "VocabMaster Team"

from .config import Config, SettingsManager
from .models import CardStatus, Flashcard, GroundingSource, VideoSet
from .services import (
    ExtractionOrchestrator,
    ReviewSession,
    VocabularyService,
    VocabularyStore,
)

__all__ = [
    'Config',
    'SettingsManager',
    'CardStatus',
    'Flashcard',
    'GroundingSource',
    'VideoSet',
    'ExtractionOrchestrator',
    'ReviewSession',
    'VocabularyService',
    'VocabularyStore',
]
