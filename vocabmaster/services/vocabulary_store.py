"""
Vocabulary Store - owns the ordered collection of video sets.

All mutations go through this class and are written back to blob storage
right away. Operations on unknown ids are silent no-ops so that stale UI
references never raise.
"""

import copy
import json
from typing import Any, Callable, Dict, List, Optional

from ..config import Config
from ..errors import ImportFormatInvalid
from ..models import CardStatus, Flashcard, VideoSet
from ..utils.helpers import now_ms
from ..utils.logger import setup_logger
from .card_factory import create_manual_card
from .storage import BlobStorage

logger = setup_logger(__name__)


class VocabularyStore:
    """
    In-memory collection of VideoSets, newest first.

    Usage:
        store = VocabularyStore(FileBlobStorage())
        store.add_set(video_set)
        store.update_card_status(video_set.id, card.id, CardStatus.LEARNED)
    """

    def __init__(
        self,
        storage: BlobStorage,
        storage_key: str = Config.SETS_KEY,
        clock: Callable[[], int] = now_ms
    ):
        """
        Initialize the store and load persisted sets.

        Args:
            storage: Blob storage backend
            storage_key: Key of the serialized collection
            clock: Millisecond clock used for manual card ids
        """
        self.storage = storage
        self.storage_key = storage_key
        self._clock = clock
        self._sets: List[VideoSet] = []
        self._change_callbacks: List[Callable[[], None]] = []

        self.load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> bool:
        """
        Load sets from storage.

        Corrupt data is logged and replaced by an empty collection.

        Returns:
            True if persisted data was loaded
        """
        raw = self.storage.read(self.storage_key)
        if raw is None:
            self._sets = []
            return False

        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("stored value is not a list")
            self._sets = [VideoSet.from_dict(item) for item in data]
            return True
        except (ValueError, TypeError, OverflowError) as e:
            logger.warning("Stored vocabulary is corrupt, starting empty: %s", e)
            self._sets = []
            return False

    def save(self) -> bool:
        """Serialize the whole collection to storage."""
        payload = json.dumps(self.export_snapshot(), ensure_ascii=False)
        success = self.storage.write(self.storage_key, payload)
        if not success:
            logger.warning("Could not persist %d video sets", len(self._sets))
        return success

    def on_change(self, callback: Callable[[], None]) -> None:
        """Register a callback fired after every mutation."""
        self._change_callbacks.append(callback)

    def _commit(self) -> None:
        """Persist and notify listeners."""
        self.save()
        for callback in self._change_callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Change callback failed")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def sets(self) -> List[VideoSet]:
        """Shallow copy of the collection, newest first."""
        return list(self._sets)

    @property
    def count(self) -> int:
        return len(self._sets)

    def get_set(self, set_id: str) -> Optional[VideoSet]:
        for video_set in self._sets:
            if video_set.id == set_id:
                return video_set
        return None

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get vocabulary statistics.

        Returns:
            Dictionary with set count, card count and per-status counts
        """
        stats: Dict[str, Any] = {
            "total_sets": len(self._sets),
            "total_cards": 0,
            "manual_cards": 0,
        }
        for status in CardStatus:
            stats[status.value] = 0

        for video_set in self._sets:
            for card in video_set.cards:
                stats["total_cards"] += 1
                stats[card.status.value] += 1
                if card.manual:
                    stats["manual_cards"] += 1

        return stats

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_set(self, video_set: VideoSet) -> None:
        """Prepend a freshly extracted set. Ids are unique by construction."""
        self._sets.insert(0, video_set)
        logger.info("Added set %s (%d cards)", video_set.id, len(video_set.cards))
        self._commit()

    def delete_set(self, set_id: str) -> bool:
        """
        Remove a set.

        Returns:
            True if a set was removed
        """
        remaining = [s for s in self._sets if s.id != set_id]
        if len(remaining) == len(self._sets):
            return False
        self._sets = remaining
        self._commit()
        return True

    def update_card_status(self, set_id: str, card_id: str, status: CardStatus) -> bool:
        """
        Change the status of one card, leaving everything else untouched.

        Returns:
            True if the card was found
        """
        status = CardStatus(status)
        video_set = self.get_set(set_id)
        if video_set is None:
            return False
        card = video_set.find_card(card_id)
        if card is None:
            return False

        card.status = status
        self._commit()
        return True

    def _next_manual_id(self, video_set: VideoSet) -> str:
        base = f"manual-{self._clock()}"
        existing = {card.id for card in video_set.cards}
        candidate = base
        suffix = 1
        while candidate in existing:
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate

    def add_manual_card(self, set_id: str, draft: Dict[str, Any]) -> Optional[Flashcard]:
        """
        Append a user-entered card to a set.

        Args:
            set_id: Target set
            draft: Dict with 'word', 'translation' and optional descriptors

        Returns:
            The new card, or None if the set is unknown or the draft invalid
        """
        video_set = self.get_set(set_id)
        if video_set is None:
            return None

        card = create_manual_card(draft, self._next_manual_id(video_set))
        if card is None:
            return None

        video_set.cards.append(card)
        self._commit()
        return card

    def import_merge(self, incoming: List[VideoSet]) -> int:
        """
        Merge sets from an import, skipping ids already present.

        Incoming order is preserved and the new sets are placed in front of
        the existing ones. Existing sets are never replaced.

        Returns:
            Number of sets added
        """
        known_ids = {s.id for s in self._sets}
        fresh: List[VideoSet] = []
        for video_set in incoming:
            if video_set.id in known_ids:
                continue
            known_ids.add(video_set.id)
            fresh.append(video_set)

        if not fresh:
            return 0

        self._sets = fresh + self._sets
        logger.info("Imported %d new sets (%d skipped)", len(fresh), len(incoming) - len(fresh))
        self._commit()
        return len(fresh)

    def import_json(self, text: str) -> int:
        """
        Import a JSON backup.

        Raises:
            ImportFormatInvalid: If the payload is not an array of video sets.
                The store is not modified in that case.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ImportFormatInvalid(f"Import file is not valid JSON: {e.msg}") from e

        if not isinstance(data, list):
            raise ImportFormatInvalid("Import file must contain a JSON array of video sets")

        try:
            incoming = [VideoSet.from_dict(item) for item in data]
        except (ValueError, TypeError, OverflowError) as e:
            raise ImportFormatInvalid(f"Invalid video set in import: {e}") from e

        return self.import_merge(incoming)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_snapshot(self) -> List[Dict[str, Any]]:
        """Full serializable copy of the collection."""
        return copy.deepcopy([video_set.to_dict() for video_set in self._sets])

    def export_json(self) -> str:
        """Snapshot as indented JSON text, for backups."""
        return json.dumps(self.export_snapshot(), ensure_ascii=False, indent=2)
