"""In-memory transcript store for one realtime session."""

import logging
from typing import Optional

from schemas.transcript import Role, TranscriptItem

logger = logging.getLogger(__name__)


class TranscriptStore:
    """
    Holds transcript items most-recent-first.

    Every applied update moves the touched item to the front. Finalized
    items are terminal: later deltas for the same id are dropped.
    """

    def __init__(self):
        self._items: list[TranscriptItem] = []
        self._first_seen: dict[str, int] = {}

    def _index_of(self, item_id: str) -> Optional[int]:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index
        return None

    def _move_to_front(self, index: Optional[int], item: TranscriptItem):
        if index is not None:
            del self._items[index]
        self._items.insert(0, item)

    def apply_delta(self, item_id: str, role: Role, text: str) -> Optional[TranscriptItem]:
        """
        Append a fragment to the item with this id.

        Returns:
            The updated item, or None when the delta was ignored
        """
        if not item_id or not text:
            return None

        index = self._index_of(item_id)
        if index is None:
            item = TranscriptItem(id=item_id, role=role, text=text, is_final=False)
            self._first_seen[item_id] = len(self._first_seen)
        else:
            existing = self._items[index]
            if existing.is_final:
                logger.debug(f"Dropping delta for finalized item {item_id}")
                return None
            item = existing.model_copy(update={"text": existing.text + text})

        self._move_to_front(index, item)
        return item

    def apply_final(self, item_id: str, role_hint: Role, text: str) -> Optional[TranscriptItem]:
        """
        Replace the item's text with its final form.

        The role observed first is kept; ``role_hint`` only applies to ids
        not seen before.
        """
        text = (text or "").strip()
        if not item_id or not text:
            return None

        index = self._index_of(item_id)
        if index is None:
            item = TranscriptItem(id=item_id, role=role_hint, text=text, is_final=True)
            self._first_seen[item_id] = len(self._first_seen)
        else:
            item = self._items[index].model_copy(update={"text": text, "is_final": True})

        self._move_to_front(index, item)
        return item

    def get(self, item_id: str) -> Optional[TranscriptItem]:
        index = self._index_of(item_id)
        return self._items[index] if index is not None else None

    @property
    def items(self) -> list[TranscriptItem]:
        """Snapshot of items, most recent first."""
        return list(self._items)

    def chronological(self) -> list[TranscriptItem]:
        """Snapshot ordered by first observation."""
        return sorted(self._items, key=lambda item: self._first_seen[item.id])

    def clear(self):
        self._items.clear()
        self._first_seen.clear()

    def __len__(self) -> int:
        return len(self._items)
