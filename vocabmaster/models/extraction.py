"""Value objects produced by the extraction pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .card import GroundingSource


class ExtractionMode(str, Enum):
    """Prompt strategy used for one extraction."""
    TRANSCRIPT = "transcript"
    SEARCH = "search"


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass(frozen=True)
class AttemptEvent:
    """One completion attempt as observed by retry listeners."""
    attempt: int
    outcome: AttemptOutcome
    delay: float = 0.0
    error: str = ""


@dataclass(frozen=True)
class VocabularyRecord:
    """Validated vocabulary entry from the AI response."""
    word: str
    translation: str
    example: str
    part_of_speech: Optional[str] = None
    level: Optional[str] = None
    phonetic: Optional[str] = None


@dataclass
class ExtractionResult:
    """Validated output of one extraction run."""
    title: str
    summary: str
    vocabulary: List[VocabularyRecord] = field(default_factory=list)
    sources: List[GroundingSource] = field(default_factory=list)
    attempts: List[AttemptEvent] = field(default_factory=list)
    mode: ExtractionMode = ExtractionMode.SEARCH
