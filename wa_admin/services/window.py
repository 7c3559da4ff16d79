# wa_admin/services/window.py
"""
24-hour customer service window.

WhatsApp only accepts free-form (non-template) messages within 24 hours
of the contact's last inbound message. The in-memory inbox is checked
first; the durable table covers contacts not seen since the last restart.
"""
from __future__ import annotations
import logging
import time
from typing import Callable, Optional

from wa_admin.services.inbox_store import InboxStore
from wa_admin.services.message_repository import MessageRepository

log = logging.getLogger("wa_admin.window")

SESSION_WINDOW_MS = 24 * 60 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


class WindowEvaluator:
    """Decides whether free text can be sent to a contact without a template"""

    def __init__(
        self,
        store: InboxStore,
        repository: Optional[MessageRepository] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.repository = repository
        self.clock = clock

    def is_in_24h_window(self, wa_id: str, now: Optional[int] = None) -> bool:
        """True when the last inbound message from ``wa_id`` is less than 24h old."""
        now = self.clock() if now is None else now

        item = self.store.last_inbound(wa_id)
        if item is not None:
            in_window = (now - item.timestamp) < SESSION_WINDOW_MS
            log.debug(f"🕒 Window for {wa_id} (memory): {in_window}")
            return in_window

        if self.repository is None:
            return False
        last_ts = self.repository.last_inbound_timestamp(wa_id)
        if last_ts is None:
            log.debug(f"🕒 No inbound record for {wa_id}, window closed")
            return False

        in_window = (now - last_ts) < SESSION_WINDOW_MS
        log.debug(f"🕒 Window for {wa_id} (database): {in_window}")
        return in_window
