"""Data models for VocabMaster."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class CardStatus(str, Enum):
    """Review status of a flashcard."""
    NEW = "new"
    LEARNING = "learning"
    LEARNED = "learned"


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ValueError(f"Field '{key}' must be a string, got {type(value).__name__}")
    return value


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    return str(value)


@dataclass
class Flashcard:
    """Single vocabulary item with review status."""

    # Core data
    id: str
    word: str
    translation: str
    example: str = ""

    # Descriptors (either may be missing depending on the prompt used)
    part_of_speech: Optional[str] = None
    level: Optional[str] = None
    phonetic: Optional[str] = None

    status: CardStatus = CardStatus.NEW
    manual: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "word": self.word,
            "translation": self.translation,
            "example": self.example,
            "status": self.status.value,
            "manual": self.manual,
        }
        if self.part_of_speech is not None:
            data["partOfSpeech"] = self.part_of_speech
        if self.level is not None:
            data["level"] = self.level
        if self.phonetic is not None:
            data["phonetic"] = self.phonetic
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Flashcard":
        """
        Build a card from its JSON form.

        Raises:
            ValueError: If required fields are missing or malformed
        """
        if not isinstance(data, dict):
            raise ValueError("Flashcard must be an object")

        card_id = _require_str(data, "id")
        manual = data.get("manual")
        if manual is None:
            # Older exports marked manual cards only through the id prefix
            manual = card_id.startswith("manual-")

        return cls(
            id=card_id,
            word=_require_str(data, "word"),
            translation=_require_str(data, "translation"),
            example=str(data.get("example") or ""),
            part_of_speech=_optional_str(data, "partOfSpeech"),
            level=_optional_str(data, "level"),
            phonetic=_optional_str(data, "phonetic"),
            status=CardStatus(data.get("status", CardStatus.NEW.value)),
            manual=bool(manual),
        )


@dataclass
class GroundingSource:
    """Citation reported by the completion service."""
    title: str
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "url": self.url}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GroundingSource":
        if not isinstance(data, dict):
            raise ValueError("GroundingSource must be an object")
        return cls(title=str(data.get("title") or ""), url=_require_str(data, "url"))


@dataclass
class VideoSet:
    """Result of one extraction run: title, summary, cards and citations."""

    id: str
    url: str
    title: str
    transcript: str
    cards: List[Flashcard] = field(default_factory=list)
    sources: List[GroundingSource] = field(default_factory=list)
    created_at: int = 0

    @property
    def learned_count(self) -> int:
        return sum(1 for card in self.cards if card.status == CardStatus.LEARNED)

    def find_card(self, card_id: str) -> Optional[Flashcard]:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "transcript": self.transcript,
            "cards": [card.to_dict() for card in self.cards],
            "sources": [source.to_dict() for source in self.sources],
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VideoSet":
        """
        Build a video set from its JSON form.

        Raises:
            ValueError: If required fields are missing or malformed
        """
        if not isinstance(data, dict):
            raise ValueError("VideoSet must be an object")

        cards = data.get("cards") or []
        sources = data.get("sources") or []
        if not isinstance(cards, list) or not isinstance(sources, list):
            raise ValueError("'cards' and 'sources' must be arrays")

        created_at = data.get("createdAt", 0)
        if isinstance(created_at, bool) or not isinstance(created_at, (int, float)):
            raise ValueError("'createdAt' must be a number")
        if isinstance(created_at, float) and not math.isfinite(created_at):
            raise ValueError("'createdAt' must be finite")

        parsed_cards = [Flashcard.from_dict(card) for card in cards]
        card_ids = [card.id for card in parsed_cards]
        if len(set(card_ids)) != len(card_ids):
            raise ValueError("Card ids must be unique within a set")

        return cls(
            id=_require_str(data, "id"),
            url=str(data.get("url") or ""),
            title=str(data.get("title") or ""),
            transcript=str(data.get("transcript") or ""),
            cards=parsed_cards,
            sources=[GroundingSource.from_dict(source) for source in sources],
            created_at=int(created_at),
        )
