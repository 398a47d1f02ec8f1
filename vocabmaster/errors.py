"""Exception types raised by the extraction pipeline, store and review session."""

from typing import Optional


class VocabMasterError(Exception):
    """Base class for all VocabMaster errors."""


class ExtractionError(VocabMasterError):
    """Extraction pipeline failed."""

    retryable: bool = False


class MissingCredential(ExtractionError):
    """No usable API key for the completion service."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "No API key configured. Set GEMINI_API_KEY (or OPENAI_API_KEY) "
               "in your .env file or settings before extracting."
        )


class RateLimited(ExtractionError):
    """Quota or rate limit still exceeded after the last retry."""

    retryable = True

    def __init__(self, attempts: int, detail: str = ""):
        self.attempts = attempts
        message = f"Rate limit exceeded after {attempts} attempt(s). Wait a minute and try again."
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class InvalidResponseFormat(ExtractionError):
    """Completion text could not be parsed or validated."""

    def __init__(self, detail: str = ""):
        message = "Could not parse vocabulary from the AI response."
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)


class UpstreamRejected(ExtractionError):
    """The service refused the request (permission, model access, invalid key)."""

    def __init__(self, status: int = 0, detail: str = ""):
        self.status = status
        super().__init__(
            "The AI service rejected the request. Check that:\n"
            "1. Your API key is valid and selected in settings.\n"
            "2. The key belongs to a project with billing enabled.\n"
            "3. Free-tier keys may not support search grounding.\n"
            f"(HTTP {status}: {detail[:200]})"
        )


class UpstreamError(ExtractionError):
    """Network fault or unexpected service error."""


class ExtractionInProgress(ExtractionError):
    """An extraction for the same video is already running."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Extraction already in progress for {url}")


class TranscriptUnavailable(VocabMasterError):
    """Transcript could not be fetched; callers fall back to search mode."""


class EmptyQueue(VocabMasterError):
    """Review session found no cards to review."""

    def __init__(self, set_id: str, mode: str):
        self.set_id = set_id
        self.mode = mode
        super().__init__(f"No cards to review in set {set_id} (mode: {mode})")


class SessionStateError(VocabMasterError):
    """Review session operation called in the wrong state."""


class ImportFormatInvalid(VocabMasterError):
    """Import payload is not a JSON array of video sets."""


class CompletionError(Exception):
    """
    Raw failure from a completion provider.

    Carries the HTTP status (0 for transport errors) so the orchestrator can
    classify it as retryable or terminal.
    """

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status
