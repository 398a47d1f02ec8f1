"""
Vocabulary Service - application entry point for the ingestion pipeline.

Wires the transcript fetcher, the extraction orchestrator and the card
factory to the vocabulary store, so callers only deal with:
- process_video(url) -> VideoSet
- review sessions over stored sets
"""

from datetime import datetime
from typing import Optional

from ..config import Config, SettingsManager
from ..errors import TranscriptUnavailable
from ..fetchers import TranscriptFetcher
from ..models import VideoSet
from ..utils.helpers import now_ms
from ..utils.logger import setup_logger
from .ai_service import config_from_settings, create_provider
from .card_factory import create_cards
from .extraction import ExtractionOrchestrator
from .review_session import ReviewSession
from .storage import BlobStorage, CredentialStore, FileBlobStorage
from .vocabulary_store import VocabularyStore

logger = setup_logger(__name__)


class VocabularyService:
    """
    Service for turning videos into stored flashcard sets.

    Usage:
        service = VocabularyService.from_settings()
        video_set = await service.process_video("https://youtube.com/watch?v=...")
        session = service.new_review_session()
        await service.close()
    """

    def __init__(
        self,
        store: VocabularyStore,
        orchestrator: ExtractionOrchestrator,
        fetcher: Optional[TranscriptFetcher] = None,
        transcript_key: Optional[str] = None,
        clock=now_ms
    ):
        """
        Initialize vocabulary service.

        Args:
            store: Vocabulary store receiving new sets
            orchestrator: Extraction orchestrator
            fetcher: Transcript fetcher; None always uses search mode
            transcript_key: Default key for the transcript provider
            clock: Millisecond clock for set and card ids
        """
        self.store = store
        self.orchestrator = orchestrator
        self.fetcher = fetcher
        self.transcript_key = transcript_key
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Optional[SettingsManager] = None,
        storage: Optional[BlobStorage] = None
    ) -> "VocabularyService":
        """
        Factory method building the full pipeline from persisted settings.

        Stored credentials take precedence over settings/environment keys.
        """
        settings = settings or SettingsManager()
        storage = storage or FileBlobStorage(settings.get("DATA_DIR", Config.DATA_DIR))
        credentials = CredentialStore(storage)

        ai_config = config_from_settings(settings, api_key=credentials.api_key or None)
        orchestrator = ExtractionOrchestrator(
            create_provider(ai_config),
            max_attempts=int(settings.get("MAX_RETRIES", Config.MAX_RETRIES)),
            backoff_base=float(settings.get("BACKOFF_BASE", Config.BACKOFF_BASE)),
            max_transcript_chars=int(settings.get("MAX_TRANSCRIPT_CHARS", Config.MAX_TRANSCRIPT_CHARS)),
            target_language=settings.get("TARGET_LANGUAGE", Config.TARGET_LANGUAGE),
        )

        fetcher = TranscriptFetcher() if settings.get("USE_TRANSCRIPT", True) else None
        transcript_key = credentials.transcript_key or settings.get("SUPADATA_API_KEY") or None

        return cls(VocabularyStore(storage), orchestrator, fetcher, transcript_key)

    async def close(self) -> None:
        """Close network sessions."""
        await self.orchestrator.provider.close()
        if self.fetcher is not None:
            await self.fetcher.close()

    async def __aenter__(self) -> "VocabularyService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _new_set_id(self, created_at: int) -> str:
        set_id = f"set-{created_at}"
        suffix = 1
        while self.store.get_set(set_id) is not None:
            set_id = f"set-{created_at}-{suffix}"
            suffix += 1
        return set_id

    async def _lookup_transcript(self, url: str, transcript_key: Optional[str]):
        if self.fetcher is None:
            return None
        try:
            return await self.fetcher.fetch(url, api_key=transcript_key or self.transcript_key)
        except TranscriptUnavailable as e:
            logger.warning("Transcript unavailable, using search mode: %s", e)
            return None

    async def process_video(
        self,
        url: str,
        transcript: Optional[str] = None,
        transcript_key: Optional[str] = None
    ) -> VideoSet:
        """
        Extract vocabulary from a video and store it as a new set.

        Args:
            url: Video URL
            transcript: Transcript text supplied by the caller; fetched when None
            transcript_key: Override for the transcript provider key

        Returns:
            The stored VideoSet

        Raises:
            ExtractionError subclasses from the orchestrator
        """
        url = url.strip()
        fallback_title = ""

        if transcript is None:
            lookup = await self._lookup_transcript(url, transcript_key)
            if lookup is not None:
                transcript = lookup.transcript
                if lookup.available:
                    fallback_title = lookup.title

        result = await self.orchestrator.extract(url, transcript=transcript)

        created_at = self._clock()
        video_set = VideoSet(
            id=self._new_set_id(created_at),
            url=url,
            title=result.title or fallback_title
            or f"Vocabulary set - {datetime.fromtimestamp(created_at / 1000):%Y-%m-%d}",
            transcript=result.summary,
            cards=create_cards(result.vocabulary, created_at),
            sources=result.sources,
            created_at=created_at,
        )
        self.store.add_set(video_set)
        return video_set

    def new_review_session(self) -> ReviewSession:
        return ReviewSession(self.store)
