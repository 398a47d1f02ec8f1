"""Shared fixtures: in-memory storage, fake completion provider, sleep recorder."""

import json
from typing import List, Union

import pytest

from vocabmaster.errors import CompletionError
from vocabmaster.models import CardStatus, Flashcard, GroundingSource, VideoSet
from vocabmaster.services import (
    AIConfig,
    BaseAIProvider,
    CompletionRequest,
    CompletionResponse,
    MemoryBlobStorage,
    VocabularyStore,
)

VIDEO_URL = "https://youtube.com/watch?v=abc123"

VALID_PAYLOAD = {
    "detectedTitle": "T",
    "summary": "S",
    "vocabulary": [
        {
            "word": "ephemeral",
            "partOfSpeech": "adj.",
            "translation": "短暫的",
            "example": "It was an ephemeral moment.",
        }
    ],
}

VALID_RESPONSE_TEXT = json.dumps(VALID_PAYLOAD, ensure_ascii=False)


class FakeProvider(BaseAIProvider):
    """Completion provider returning scripted responses or raising scripted errors."""

    supports_search = True
    supports_schema = True

    def __init__(self, outcomes: List[Union[CompletionResponse, Exception, str]], api_key: str = "test-api-key-123"):
        super().__init__(AIConfig(api_key=api_key))
        self.outcomes = list(outcomes)
        self.requests: List[CompletionRequest] = []

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        self.requests.append(request)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, str):
            return CompletionResponse(text=outcome)
        return outcome


class SleepRecorder:
    """Stands in for asyncio.sleep and remembers the requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def rate_limit_error() -> CompletionError:
    return CompletionError("Gemini API error 429: RESOURCE_EXHAUSTED", 429)


def make_card(card_id: str, status: CardStatus = CardStatus.NEW, word: str = "word") -> Flashcard:
    return Flashcard(
        id=card_id,
        word=word,
        translation="translation",
        example="An example sentence.",
        part_of_speech="n.",
        status=status,
    )


def make_set(set_id: str, statuses=(CardStatus.NEW, CardStatus.NEW, CardStatus.NEW), created_at: int = 1) -> VideoSet:
    return VideoSet(
        id=set_id,
        url=f"https://youtube.com/watch?v={set_id}",
        title=f"Video {set_id}",
        transcript="Summary",
        cards=[make_card(f"{set_id}-card-{i}", status) for i, status in enumerate(statuses)],
        sources=[GroundingSource(title="Example", url="https://example.com")],
        created_at=created_at,
    )


@pytest.fixture
def storage():
    return MemoryBlobStorage()


@pytest.fixture
def store(storage):
    return VocabularyStore(storage, clock=lambda: 1700000000000)


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()
