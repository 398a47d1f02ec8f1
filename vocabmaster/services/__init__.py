"""Services layer for business logic separation."""

from .ai_service import (
    AIConfig,
    AIProvider,
    BaseAIProvider,
    CompletionRequest,
    CompletionResponse,
    GeminiProvider,
    OpenAIProvider,
    config_from_settings,
    create_provider,
)
from .card_factory import create_card, create_cards, create_manual_card
from .extraction import ExtractionOrchestrator, classify_failure, extract_sources
from .review_session import ReviewMode, ReviewSession, SessionState
from .storage import BlobStorage, CredentialStore, FileBlobStorage, MemoryBlobStorage
from .vocabulary_store import VocabularyStore
from .vocabulary_service import VocabularyService

__all__ = [
    "AIConfig",
    "AIProvider",
    "BaseAIProvider",
    "CompletionRequest",
    "CompletionResponse",
    "GeminiProvider",
    "OpenAIProvider",
    "config_from_settings",
    "create_provider",
    "create_card",
    "create_cards",
    "create_manual_card",
    "ExtractionOrchestrator",
    "classify_failure",
    "extract_sources",
    "ReviewMode",
    "ReviewSession",
    "SessionState",
    "BlobStorage",
    "CredentialStore",
    "FileBlobStorage",
    "MemoryBlobStorage",
    "VocabularyStore",
    "VocabularyService",
]
