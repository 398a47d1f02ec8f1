"""
Extraction Orchestrator - video reference to validated vocabulary.

Builds the prompt (transcript-restricted or search-augmented), calls the
completion provider with exponential backoff on rate limits, then parses,
validates and collects citation sources.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set
from urllib.parse import urlparse

from ..config import Config
from ..errors import (
    CompletionError,
    ExtractionError,
    ExtractionInProgress,
    MissingCredential,
    RateLimited,
    UpstreamError,
    UpstreamRejected,
)
from ..fetchers.transcript import extract_video_id
from ..models import (
    AttemptEvent,
    AttemptOutcome,
    ExtractionMode,
    ExtractionResult,
    GroundingSource,
)
from ..utils.logger import setup_logger
from ..utils.parsing import ResponseParser
from .ai_service import BaseAIProvider, CompletionRequest, CompletionResponse

logger = setup_logger(__name__)

RetryListener = Callable[[AttemptEvent], None]

RATE_LIMIT_MARKERS = ("429", "resource_exhausted", "quota", "rate limit", "too many requests")
REJECTION_MARKERS = ("permission", "not found", "api key not valid", "api_key_invalid", "unauthenticated")
REJECTION_STATUSES = (401, 403, 404)


VOCABULARY_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "detectedTitle": {
            "type": "STRING",
            "description": "The full title of the analyzed video.",
        },
        "summary": {
            "type": "STRING",
            "description": "A detailed 150-word summary of the video content in English.",
        },
        "vocabulary": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "word": {"type": "STRING"},
                    "partOfSpeech": {"type": "STRING", "description": "n., v., adj., adv. or phr."},
                    "phonetic": {"type": "STRING", "description": "IPA pronunciation."},
                    "translation": {"type": "STRING"},
                    "example": {
                        "type": "STRING",
                        "description": "The sentence from the video containing this word.",
                    },
                },
                "required": ["word", "partOfSpeech", "translation", "example"],
            },
        },
    },
    "required": ["detectedTitle", "summary", "vocabulary"],
}


SYSTEM_PROMPT = """You are an English teacher building vocabulary flashcards from videos.
Rules:
- Pick advanced, useful words a learner would not already know
- Use the exact sentence from the video as the example whenever possible
- Translations must be short and natural
- Never invent content that is not in the video"""

JSON_ONLY_INSTRUCTION = """
Return ONLY a JSON object, no prose and no markdown, with this shape:
{"detectedTitle": "...", "summary": "...", "vocabulary": [{"word": "...", "partOfSpeech": "...", "phonetic": "...", "translation": "...", "example": "..."}]}"""


def classify_failure(error: CompletionError) -> ExtractionError:
    """
    Map a raw provider failure to the error taxonomy.

    Returns:
        RateLimited (retryable), UpstreamRejected or UpstreamError
    """
    message = str(error)
    lowered = message.lower()

    if error.status == 429 or any(marker in lowered for marker in RATE_LIMIT_MARKERS):
        return RateLimited(attempts=0, detail=message[:200])
    if error.status in REJECTION_STATUSES or any(marker in lowered for marker in REJECTION_MARKERS):
        return UpstreamRejected(error.status, message)
    return UpstreamError(f"AI request failed: {message[:300]}")


def extract_sources(chunks: Any) -> List[GroundingSource]:
    """
    Collect web citations from grounding metadata.

    Malformed entries are skipped and duplicate URLs collapsed.
    """
    sources: List[GroundingSource] = []
    seen: Set[str] = set()
    if not isinstance(chunks, list):
        return sources

    for chunk in chunks:
        if not isinstance(chunk, dict):
            continue
        web = chunk.get("web")
        if not isinstance(web, dict):
            continue
        uri = web.get("uri")
        if not isinstance(uri, str) or not uri.strip() or uri in seen:
            continue
        title = web.get("title")
        if not isinstance(title, str) or not title.strip():
            title = urlparse(uri).netloc or uri
        seen.add(uri)
        sources.append(GroundingSource(title=title.strip(), url=uri))

    return sources


class ExtractionOrchestrator:
    """
    Runs one extraction per call.

    Usage:
        provider = create_provider(AIConfig(api_key="..."))
        orchestrator = ExtractionOrchestrator(provider)
        orchestrator.on_retry(lambda event: print(event.attempt))
        result = await orchestrator.extract(url, transcript=text)
    """

    def __init__(
        self,
        provider: BaseAIProvider,
        max_attempts: int = Config.MAX_RETRIES,
        backoff_base: float = Config.BACKOFF_BASE,
        max_transcript_chars: int = Config.MAX_TRANSCRIPT_CHARS,
        target_language: str = Config.TARGET_LANGUAGE,
        vocab_count: str = Config.VOCAB_COUNT,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        """
        Initialize orchestrator.

        Args:
            provider: Completion provider client
            max_attempts: Total completion attempts before giving up on rate limits
            backoff_base: First backoff delay in seconds, doubled each retry
            max_transcript_chars: Transcript text beyond this is cut off
            target_language: Language of the translations
            vocab_count: Requested number of words, e.g. "10-12"
            sleep: Awaitable sleep, replaceable in tests
        """
        self.provider = provider
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self.max_transcript_chars = max_transcript_chars
        self.target_language = target_language
        self.vocab_count = vocab_count
        self._sleep = sleep
        self._retry_listeners: List[RetryListener] = []
        self._in_flight: Set[str] = set()

    def on_retry(self, listener: RetryListener) -> None:
        """Register a listener called with each rate-limited attempt before its backoff."""
        self._retry_listeners.append(listener)

    def _notify_retry(self, event: AttemptEvent) -> None:
        for listener in self._retry_listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Retry listener failed")

    def backoff_delay(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        return self.backoff_base * (2 ** (attempt - 1))

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    def build_transcript_prompt(self, url: str, transcript: str) -> str:
        text = transcript.strip()
        if len(text) > self.max_transcript_chars:
            logger.info("Transcript truncated from %d to %d chars", len(text), self.max_transcript_chars)
            text = text[:self.max_transcript_chars]

        return f"""Here is the transcript of the YouTube video {url}:

\"\"\"
{text}
\"\"\"

STEP 1: Read ONLY the transcript above. Do not use any other source.
STEP 2: Identify {self.vocab_count} advanced English vocabulary words that appear in the transcript.
STEP 3: For each word give its part of speech, a {self.target_language} translation and the transcript sentence that contains it.
STEP 4: Write the video title (detectedTitle) and a 150-word English summary of the transcript.
Respond in JSON."""

    def build_search_prompt(self, url: str) -> str:
        return f"""I need you to analyze this specific YouTube video: {url}

STEP 1: Use Google Search to find the EXACT content, transcript, or detailed summary of this video.
STEP 2: Based on the video content, identify {self.vocab_count} advanced English vocabulary words used in it.
STEP 3: For each word give its part of speech, a {self.target_language} translation and the sentence from the video containing it.
STEP 4: Return the results in a structured JSON format with the video title (detectedTitle) and a 150-word English summary."""

    def build_request(self, url: str, transcript: Optional[str]) -> CompletionRequest:
        """Select the extraction mode and build the provider request."""
        if transcript and transcript.strip():
            prompt = self.build_transcript_prompt(url, transcript)
            use_search = False
        else:
            prompt = self.build_search_prompt(url)
            use_search = True
            if not self.provider.supports_search:
                logger.warning("%s has no search tool; relying on model knowledge", type(self.provider).__name__)

        schema = None
        if self.provider.supports_schema and (not use_search or self.provider.supports_schema_with_search):
            schema = VOCABULARY_SCHEMA
        else:
            prompt = prompt + "\n" + JSON_ONLY_INSTRUCTION

        return CompletionRequest(
            prompt=prompt,
            system_prompt=SYSTEM_PROMPT,
            schema=schema,
            use_search=use_search and self.provider.supports_search,
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _complete_with_retry(
        self,
        request: CompletionRequest,
        attempts: List[AttemptEvent]
    ) -> CompletionResponse:
        """Call the provider, backing off on rate limits."""
        last_message = ""

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self.provider.complete(request)
            except CompletionError as e:
                failure = classify_failure(e)
                if not isinstance(failure, RateLimited):
                    attempts.append(AttemptEvent(attempt, AttemptOutcome.FAILED, error=str(e)[:200]))
                    logger.error("Extraction failed on attempt %d: %s", attempt, e)
                    raise failure from e

                last_message = str(e)[:200]
                if attempt == self.max_attempts:
                    attempts.append(AttemptEvent(attempt, AttemptOutcome.RATE_LIMITED, error=str(e)[:200]))
                    break

                delay = self.backoff_delay(attempt)
                event = AttemptEvent(attempt, AttemptOutcome.RATE_LIMITED, delay=delay, error=str(e)[:200])
                attempts.append(event)
                logger.warning("Rate limited (attempt %d/%d), retrying in %.1fs", attempt, self.max_attempts, delay)
                self._notify_retry(event)
                await self._sleep(delay)
                continue

            attempts.append(AttemptEvent(attempt, AttemptOutcome.SUCCESS))
            return response

        raise RateLimited(attempts=self.max_attempts, detail=last_message)

    async def extract(self, url: str, transcript: Optional[str] = None) -> ExtractionResult:
        """
        Extract vocabulary for a video.

        Args:
            url: Video URL
            transcript: Transcript text; when missing the search-augmented
                prompt is used instead

        Returns:
            Validated ExtractionResult

        Raises:
            MissingCredential, RateLimited, UpstreamRejected, UpstreamError,
            InvalidResponseFormat, ExtractionInProgress
        """
        if not self.provider.is_configured:
            raise MissingCredential()

        url = url.strip()
        # One guard entry per video, whatever the URL form
        key = extract_video_id(url)
        if key in self._in_flight:
            raise ExtractionInProgress(url)

        self._in_flight.add(key)
        try:
            request = self.build_request(url, transcript)
            mode = ExtractionMode.TRANSCRIPT if transcript and transcript.strip() else ExtractionMode.SEARCH
            logger.info("Extracting vocabulary from %s (%s mode)", url, mode.value)

            attempts: List[AttemptEvent] = []
            response = await self._complete_with_retry(request, attempts)

            parsed = ResponseParser.parse_extraction(response.text)
            sources = extract_sources(response.grounding_chunks)

            logger.info("Extracted %d words, %d sources", len(parsed["vocabulary"]), len(sources))
            return ExtractionResult(
                title=parsed["title"],
                summary=parsed["summary"],
                vocabulary=parsed["vocabulary"],
                sources=sources,
                attempts=attempts,
                mode=mode,
            )
        finally:
            self._in_flight.discard(key)
