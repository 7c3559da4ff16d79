# wa_admin/services/message_repository.py
"""
Durable message table access.

Every operation here is best-effort: database failures are logged and
turned into "no data" so messaging keeps working when the database is
unavailable.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from wa_admin.db.session import get_db_session
from wa_admin.models.message import WaMessage

log = logging.getLogger("wa_admin.message_repository")

HISTORY_LIMIT = 5000
MEDIA_KINDS = ("image", "video", "audio", "document")


class MessageRepository:
    """Reads and writes ``wa_messages`` through a session factory."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    # ────────────────────────────────────────────
    # Writes
    # ────────────────────────────────────────────

    def save_message(
        self,
        waid: str,
        direction: str,
        msg_type: str,
        ts_ms: int,
        meta_message_id: Optional[str] = None,
        name: Optional[str] = None,
        body: Optional[str] = None,
        media_id: Optional[str] = None,
        media_type: Optional[str] = None,
        file_name: Optional[str] = None,
        raw: Any = None,
    ) -> bool:
        """
        Insert a message row unless ``meta_message_id`` is already stored.

        Returns:
            True when a row was written, False for duplicates and failures.
        """
        try:
            with get_db_session(self.session_factory) as db:
                if meta_message_id:
                    exists = db.query(WaMessage.id).filter(
                        WaMessage.meta_message_id == meta_message_id
                    ).first()
                    if exists:
                        log.debug(f"⏭️ Message {meta_message_id} already stored")
                        return False

                db.add(WaMessage(
                    meta_message_id=meta_message_id,
                    waid=waid,
                    name=name,
                    direction=direction,
                    msg_type=msg_type,
                    body=body,
                    ts_ms=ts_ms,
                    media_id=media_id or None,
                    media_type=media_type or None,
                    file_name=file_name or None,
                    raw=raw,
                ))
            log.debug(f"💾 Stored {direction} {msg_type} for {waid} ({meta_message_id})")
            return True
        except SQLAlchemyError as e:
            log.error(f"❌ [WA][DB] Failed to save message {meta_message_id}: {e}")
            return False

    # ────────────────────────────────────────────
    # Reads
    # ────────────────────────────────────────────

    def last_inbound_timestamp(self, waid: str) -> Optional[int]:
        """
        Timestamp (ms) of the newest inbound row for ``waid``.

        Fails closed: query errors return None, which callers read as
        "no known inbound message".
        """
        try:
            with get_db_session(self.session_factory) as db:
                row = db.query(WaMessage.ts_ms).filter(
                    WaMessage.waid == waid,
                    WaMessage.direction == "inbound"
                ).order_by(desc(WaMessage.ts_ms)).first()
        except SQLAlchemyError as e:
            log.error(f"❌ [WA][DB] Last inbound lookup failed for {waid}: {e}")
            return None
        return int(row.ts_ms) if row else None

    def list_messages(self, limit: int = HISTORY_LIMIT) -> List[Dict[str, Any]]:
        """Newest-first history shaped like inbox items."""
        try:
            with get_db_session(self.session_factory) as db:
                rows = db.query(WaMessage).order_by(desc(WaMessage.ts_ms)).limit(limit).all()
                return [_row_to_item(r) for r in rows]
        except SQLAlchemyError as e:
            log.error(f"❌ [WA][DB] Failed to load history: {e}")
            return []


def _row_to_item(row: WaMessage) -> Dict[str, Any]:
    """Map a row to the inbox shape, recovering media fields from ``raw``."""
    raw = row.raw if isinstance(row.raw, dict) else {}
    media = next(
        (raw[kind] for kind in MEDIA_KINDS if isinstance(raw.get(kind), dict)),
        {}
    )
    document = raw["document"] if isinstance(raw.get("document"), dict) else {}
    msg_type = row.msg_type or next((kind for kind in MEDIA_KINDS if kind in raw), "text")

    item = {
        "id": row.meta_message_id or str(row.id),
        "from": row.waid if row.direction == "inbound" else None,
        "to": row.waid if row.direction == "outbound" else None,
        "name": row.name,
        "timestamp": row.ts_ms,
        "type": msg_type,
        "text": row.body,
        "direction": row.direction,
        "mediaId": row.media_id or media.get("id"),
        "mediaType": row.media_type or media.get("mime_type"),
        "fileName": row.file_name or document.get("filename"),
    }
    return {k: v for k, v in item.items() if v is not None}
