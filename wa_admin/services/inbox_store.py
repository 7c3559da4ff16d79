# wa_admin/services/inbox_store.py
"""
In-memory inbox - the most-recent-first list of inbound, outbound and
status records seen by this process.

One instance is built at application start and shared through
``app.state``. It is not shared across processes: every worker keeps
its own inbox.
"""
from __future__ import annotations
import logging
import threading
from typing import List, Optional, Tuple

from wa_admin.schemas.message import InboxItem

log = logging.getLogger("wa_admin.inbox")

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 300


def normalize_since(since: Optional[int]) -> Optional[int]:
    """10-digit values are epoch seconds, anything else is milliseconds."""
    if since is None:
        return None
    return since * 1000 if len(str(abs(since))) == 10 else since


class InboxStore:
    """Thread-safe, newest-first sequence of :class:`InboxItem`."""

    def __init__(self, max_items: int = 0):
        # max_items <= 0 keeps everything
        self.max_items = max_items
        self._items: List[InboxItem] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._items)

    def push(self, item: InboxItem) -> None:
        """Insert ``item`` at the head of the inbox."""
        with self._lock:
            self._items.insert(0, item)
            if self.max_items > 0 and len(self._items) > self.max_items:
                del self._items[self.max_items:]
        log.info(
            f"[WA-INBOX] push direction={item.direction} type={item.type} "
            f"from={item.from_} to={item.to} id={item.id} ts={item.timestamp}"
        )

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
        log.info("[WA-INBOX] cleared")

    def items(self) -> List[InboxItem]:
        """Snapshot copy, newest first."""
        with self._lock:
            return list(self._items)

    def last_inbound(self, wa_id: str) -> Optional[InboxItem]:
        """Most recent inbound item sent by ``wa_id``, if any."""
        with self._lock:
            for item in self._items:
                if item.direction == "inbound" and item.from_ == wa_id:
                    return item
        return None

    def query(
        self,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
        q: Optional[str] = None,
        direction: Optional[str] = None,
        from_: Optional[str] = None,
        since: Optional[int] = None,
    ) -> Tuple[int, List[InboxItem]]:
        """
        Filter and paginate the inbox.

        Args:
            limit: page size, clamped to [1, 300]
            offset: items to skip, negative values count as 0
            q: case-insensitive search over text, type, sender and name
            direction: inbound / outbound / status
            from_: substring of the sender wa_id
            since: lower bound on timestamp (epoch seconds or ms)

        Returns:
            Tuple of (total matches, page of items)
        """
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        offset = max(offset, 0)

        items = self.items()

        since_ms = normalize_since(since)
        if since_ms is not None:
            items = [i for i in items if i.timestamp >= since_ms]
        if direction:
            items = [i for i in items if i.direction == direction]
        if from_:
            items = [i for i in items if from_ in (i.from_ or "")]
        if q:
            needle = q.lower()
            items = [
                i for i in items
                if needle in (i.text or "").lower()
                or needle in i.type.lower()
                or needle in (i.from_ or "").lower()
                or needle in (i.name or "").lower()
            ]

        return len(items), items[offset:offset + limit]
