"""Card Factory - build Flashcard entities from vocabulary records."""

from typing import Any, Dict, Iterable, List, Optional

from ..models import CardStatus, Flashcard, VocabularyRecord
from ..utils.helpers import now_ms
from ..utils.parsing import TextParser

MANUAL_EXAMPLE_PLACEHOLDER = "Manually added word"


def card_id(batch_time: int, index: int) -> str:
    """Id unique within one extraction batch."""
    return f"card-{batch_time}-{index}"


def create_card(record: VocabularyRecord, index: int, batch_time: int) -> Flashcard:
    """
    Build a new card from a validated vocabulary record.

    Args:
        record: Validated record from the AI response
        index: Position of the record within the batch
        batch_time: Batch creation time in epoch milliseconds

    Returns:
        Flashcard with status NEW
    """
    return Flashcard(
        id=card_id(batch_time, index),
        word=record.word,
        translation=record.translation,
        example=record.example,
        part_of_speech=record.part_of_speech,
        level=record.level,
        phonetic=record.phonetic,
        status=CardStatus.NEW,
        manual=False,
    )


def create_cards(
    records: Iterable[VocabularyRecord],
    batch_time: Optional[int] = None
) -> List[Flashcard]:
    """Build a batch of cards sharing one creation time."""
    batch_time = now_ms() if batch_time is None else batch_time
    return [create_card(record, index, batch_time) for index, record in enumerate(records)]


def create_manual_card(draft: Dict[str, Any], card_id_value: str) -> Optional[Flashcard]:
    """
    Build a manually added card.

    Args:
        draft: Dict with 'word', 'translation' and optional
               'partOfSpeech', 'level', 'example', 'phonetic'
        card_id_value: Fresh id chosen by the caller

    Returns:
        Flashcard, or None when word or translation is empty
    """
    word = TextParser.clean_field(draft.get("word"))
    translation = TextParser.clean_field(draft.get("translation"))
    if not word or not translation:
        return None

    return Flashcard(
        id=card_id_value,
        word=word,
        translation=translation,
        example=TextParser.clean_field(draft.get("example")) or MANUAL_EXAMPLE_PLACEHOLDER,
        part_of_speech=TextParser.clean_field(draft.get("partOfSpeech")) or None,
        level=TextParser.clean_field(draft.get("level")) or None,
        phonetic=TextParser.clean_field(draft.get("phonetic")) or None,
        status=CardStatus.NEW,
        manual=True,
    )
