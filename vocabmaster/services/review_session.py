"""Review Session - walks one set's cards and records swipe outcomes."""

from collections import Counter
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..errors import EmptyQueue, SessionStateError
from ..models import CardStatus, Flashcard
from ..utils.logger import setup_logger
from .vocabulary_store import VocabularyStore

logger = setup_logger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    REVIEWING = "reviewing"
    COMPLETED = "completed"


class ReviewMode(str, Enum):
    ALL = "all"
    LEARNING_ONLY = "learning_only"


# Swipe left / swipe right
OUTCOMES = (CardStatus.LEARNING, CardStatus.LEARNED)


class ReviewSession:
    """
    State machine: IDLE -> REVIEWING -> COMPLETED.

    The cursor only moves forward, one recorded outcome at a time. Starting
    again from COMPLETED (or mid-review) replaces the queue entirely.
    """

    def __init__(self, store: VocabularyStore):
        self.store = store
        self.state = SessionState.IDLE
        self.set_id: Optional[str] = None
        self.queue: List[Flashcard] = []
        self.index = 0
        self.outcomes: Counter = Counter()

    def start(self, set_id: str, mode: ReviewMode = ReviewMode.ALL) -> int:
        """
        Begin reviewing a set.

        Args:
            set_id: Set to review
            mode: ALL cards, or LEARNING_ONLY (skips learned cards)

        Returns:
            Number of cards in the queue

        Raises:
            EmptyQueue: Nothing to review; the session is left as it was
        """
        mode = ReviewMode(mode)
        video_set = self.store.get_set(set_id)
        cards = video_set.cards if video_set is not None else []
        if mode == ReviewMode.LEARNING_ONLY:
            cards = [card for card in cards if card.status != CardStatus.LEARNED]

        if not cards:
            raise EmptyQueue(set_id, mode.value)

        self.set_id = set_id
        self.queue = list(cards)
        self.index = 0
        self.outcomes = Counter()
        self.state = SessionState.REVIEWING
        logger.info("Review started for %s: %d cards (%s)", set_id, len(self.queue), mode.value)
        return len(self.queue)

    @property
    def current_card(self) -> Optional[Flashcard]:
        if self.state != SessionState.REVIEWING:
            return None
        return self.queue[self.index]

    @property
    def progress(self) -> Tuple[int, int]:
        """(1-based position, total) of the current card."""
        if self.state == SessionState.REVIEWING:
            return self.index + 1, len(self.queue)
        return len(self.queue), len(self.queue)

    def record_outcome(self, outcome: CardStatus) -> SessionState:
        """
        Record the swipe for the current card and advance.

        Raises:
            SessionStateError: If no review is running or outcome is not
                LEARNING/LEARNED
        """
        if self.state != SessionState.REVIEWING:
            raise SessionStateError(f"Cannot record an outcome while {self.state.value}")

        outcome = CardStatus(outcome)
        if outcome not in OUTCOMES:
            raise SessionStateError(f"Invalid review outcome: {outcome.value}")

        card = self.queue[self.index]
        self.store.update_card_status(self.set_id, card.id, outcome)
        self.outcomes[outcome.value] += 1

        if self.index == len(self.queue) - 1:
            self.state = SessionState.COMPLETED
            logger.info("Review of %s completed: %s", self.set_id, dict(self.outcomes))
        else:
            self.index += 1

        return self.state

    def summary(self) -> Dict[str, int]:
        return {
            "reviewed": sum(self.outcomes.values()),
            "total": len(self.queue),
            CardStatus.LEARNING.value: self.outcomes[CardStatus.LEARNING.value],
            CardStatus.LEARNED.value: self.outcomes[CardStatus.LEARNED.value],
        }

    def reset(self) -> None:
        """Cancel the session."""
        self.state = SessionState.IDLE
        self.set_id = None
        self.queue = []
        self.index = 0
        self.outcomes = Counter()
