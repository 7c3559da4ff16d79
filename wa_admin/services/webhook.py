# wa_admin/services/webhook.py
"""
WhatsApp webhook handling.

Turns Meta's webhook envelope (entry[].changes[].value) into inbox items:
one inbound item per message and one status item per delivery update.
Missing or malformed fields never stop sibling messages from being
processed.
"""
from __future__ import annotations
import hmac
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from wa_admin.schemas.message import InboxItem
from wa_admin.services.inbox_store import InboxStore
from wa_admin.services.message_repository import MessageRepository
from wa_admin.services.window import now_ms

log = logging.getLogger("wa_admin.webhook")

_DIGITS = re.compile(r"^\d+$")

# type -> (default mime type, label used when there is no caption)
MEDIA_DEFAULTS = {
    "image": ("image/jpeg", "Image received"),
    "audio": ("audio/ogg", "Audio received"),
    "video": ("video/mp4", "Video received"),
    "document": ("application/octet-stream", None),
}


def to_ms(ts: Any, default: Optional[int] = None) -> int:
    """
    Normalize a webhook timestamp to epoch milliseconds.

    Meta sends epoch seconds as a string; 10-digit values are treated as
    seconds, other digit strings as milliseconds. Anything else falls back
    to the current time.
    """
    value = str(ts) if isinstance(ts, (str, int)) and not isinstance(ts, bool) else ""
    if _DIGITS.match(value):
        return int(value) * 1000 if len(value) == 10 else int(value)
    return now_ms() if default is None else default


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _str(value: Any) -> Optional[str]:
    return None if value is None or isinstance(value, (dict, list)) else str(value)


def verify_subscription(mode: Optional[str], token: Optional[str], verify_token: str) -> bool:
    """Meta's GET handshake. An unset verify token never matches."""
    if mode != "subscribe" or not verify_token or token is None:
        return False
    return hmac.compare_digest(token.encode("utf-8"), verify_token.encode("utf-8"))


def summarize_message(message: Dict[str, Any]) -> Tuple[str, Dict[str, str]]:
    """
    Human readable text for a message plus its media descriptors.

    Returns:
        Tuple of (text, media) where media may hold media_id, media_type, file_name
    """
    msg_type = message.get("type")
    media: Dict[str, str] = {}

    if msg_type == "text":
        return _dict(message.get("text")).get("body") or "", media

    if msg_type in MEDIA_DEFAULTS:
        content = _dict(message.get(msg_type))
        default_mime, default_label = MEDIA_DEFAULTS[msg_type]
        media["media_id"] = content.get("id") or ""
        media["media_type"] = content.get("mime_type") or default_mime
        if msg_type == "document":
            file_name = content.get("filename") or "document"
            media["file_name"] = file_name
            return content.get("caption") or f"Document: {file_name}", media
        if msg_type == "audio":
            return default_label, media
        return content.get("caption") or default_label, media

    if msg_type == "button":
        button = _dict(message.get("button"))
        return button.get("text") or button.get("payload") or "Button pressed", media

    if msg_type == "interactive":
        interactive = _dict(message.get("interactive"))
        button_reply = _dict(interactive.get("button_reply"))
        list_reply = _dict(interactive.get("list_reply"))
        if button_reply.get("title"):
            return f"Button: {button_reply['title']}", media
        if list_reply.get("title"):
            return f"List: {list_reply['title']}", media
        return "Interactive message", media

    return "Message received", media


def _contact_name(contacts: List[Any], wa_id: Optional[str]) -> Optional[str]:
    profiles = [_dict(c) for c in contacts]
    match = next((c for c in profiles if wa_id and c.get("wa_id") == wa_id), None)
    if match is None and profiles:
        match = profiles[0]
    return _dict(match.get("profile")).get("name") if match else None


class WebhookProcessor:
    """Pushes webhook events into the inbox and the durable table"""

    def __init__(self, store: InboxStore, repository: Optional[MessageRepository] = None):
        self.store = store
        self.repository = repository

    def process(self, body: Any) -> int:
        """
        Process a webhook envelope.

        Never raises: failures are logged so the endpoint can acknowledge
        the delivery regardless.

        Returns:
            Number of inbox items created
        """
        count = 0
        try:
            for entry in _list(_dict(body).get("entry")):
                for change in _list(_dict(entry).get("changes")):
                    value = _dict(_dict(change).get("value"))
                    contacts = _list(value.get("contacts"))

                    for message in _list(value.get("messages")):
                        if isinstance(message, dict) and self._safely(self._handle_message, message, contacts):
                            count += 1

                    for status in _list(value.get("statuses")):
                        if isinstance(status, dict) and self._safely(self._handle_status, status):
                            count += 1
        except Exception:
            log.exception("❌ [WA-WEBHOOK] Failed to process webhook payload")
        log.info(f"📨 [WA-WEBHOOK] Processed {count} event(s)")
        return count

    def _safely(self, handler, *args) -> bool:
        try:
            handler(*args)
            return True
        except Exception:
            log.exception(f"❌ [WA-WEBHOOK] Skipping malformed event: {args[0]}")
            return False

    def _handle_message(self, message: Dict[str, Any], contacts: List[Any]):
        ts_ms = to_ms(message.get("timestamp"))
        msg_type = _str(message.get("type")) or "unknown"
        sender = _str(message.get("from"))
        name = _contact_name(contacts, sender)
        text, media = summarize_message(message)

        self.store.push(InboxItem(
            id=_str(message.get("id")),
            direction="inbound",
            timestamp=ts_ms,
            from_=sender,
            name=name,
            type=msg_type,
            text=text,
            media_id=media.get("media_id") or None,
            media_type=media.get("media_type") or None,
            file_name=media.get("file_name") or None,
            raw=message,
        ))

        if self.repository is not None and sender:
            self.repository.save_message(
                meta_message_id=_str(message.get("id")),
                waid=sender,
                name=name,
                direction="inbound",
                msg_type=msg_type,
                body=text,
                ts_ms=ts_ms,
                media_id=media.get("media_id"),
                media_type=media.get("media_type"),
                file_name=media.get("file_name"),
                raw=message,
            )

    def _handle_status(self, status: Dict[str, Any]):
        ts_ms = to_ms(status.get("timestamp"))
        text = f"Status: {status.get('status') or 'unknown'}"
        recipient = _str(status.get("recipient_id"))

        self.store.push(InboxItem(
            id=_str(status.get("id")),
            direction="status",
            timestamp=ts_ms,
            to=recipient,
            type="status",
            text=text,
            raw=status,
        ))

        if self.repository is not None:
            self.repository.save_message(
                meta_message_id=_str(status.get("id")),
                waid=recipient or "unknown",
                direction="status",
                msg_type="status",
                body=text,
                ts_ms=ts_ms,
                raw=status,
            )
