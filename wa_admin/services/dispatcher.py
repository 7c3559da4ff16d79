# wa_admin/services/dispatcher.py
"""
Outbound message dispatcher.

Sends templates or free text to a contact and takes care of the 24h
session window: when the window is closed a session-opening template is
sent first. Template sends walk an ordered list of candidates, moving to
the next one whenever the Graph API rejects the current one.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from wa_admin.core.config import Settings
from wa_admin.schemas.message import InboxItem, SendMessageRequest, SendMessageResponse
from wa_admin.services.graph_client import GraphAPIError, GraphClient
from wa_admin.services.inbox_store import InboxStore
from wa_admin.services.message_repository import MessageRepository
from wa_admin.services.window import WindowEvaluator

log = logging.getLogger("wa_admin.dispatcher")

DEFAULT_LANGUAGE = "en_US"

# Steps reported back to the caller
STEP_TEMPLATE = "template"
STEP_TEMPLATE_EN_US = "template_fallback_en_US"
STEP_UNIVERSAL_FALLBACK = "hello_world_fallback"
STEP_SESSION_OPEN = "session_template"
STEP_TEMPLATE_THEN_TEXT = "template_then_text"
STEP_TEXT_ONLY = "text_only"
STEP_SESSION_TEMPLATE_ONLY = "session_template_only"
STEP_NO_CONTENT = "no_content"


@dataclass(frozen=True)
class TemplateCandidate:
    """One tier of a template fallback chain"""
    name: str
    language: str
    step: str
    variables: Sequence[str] = field(default_factory=tuple)

    def template(self) -> Dict[str, Any]:
        template: Dict[str, Any] = {"name": self.name, "language": {"code": self.language}}
        if self.variables:
            template["components"] = [{
                "type": "body",
                "parameters": [{"type": "text", "text": v} for v in self.variables],
            }]
        return template

    def payload(self, to: str) -> Dict[str, Any]:
        return {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "template",
            "template": self.template(),
        }

    def label(self) -> str:
        return f"[TPL] {self.name}/{self.language}" + "".join(f" | {v}" for v in self.variables)


def send_first_available(
    graph: GraphClient,
    to: str,
    candidates: Sequence[TemplateCandidate],
) -> Tuple[TemplateCandidate, Dict[str, Any]]:
    """
    Try each candidate in order and return the first one Meta accepts.

    Raises:
        GraphAPIError: the error of the last candidate when all of them fail
    """
    if not candidates:
        raise ValueError("No template candidates to send")

    last_error: Optional[GraphAPIError] = None
    for index, candidate in enumerate(candidates, start=1):
        note = f"TEMPLATE {candidate.name}/{candidate.language} (tier {index}/{len(candidates)})"
        try:
            return candidate, graph.send_message(candidate.payload(to), note=note)
        except GraphAPIError as e:
            log.warning(f"⚠️ {note} rejected: {e}")
            last_error = e
    raise last_error


def _message_id(response: Dict[str, Any]) -> Optional[str]:
    messages = response.get("messages")
    if isinstance(messages, list) and messages and isinstance(messages[0], dict):
        return messages[0].get("id")
    return None


class MessageDispatcher:
    """Service for outbound WhatsApp sends"""

    def __init__(
        self,
        graph: GraphClient,
        store: InboxStore,
        window: WindowEvaluator,
        settings: Settings,
        repository: Optional[MessageRepository] = None,
    ):
        self.graph = graph
        self.store = store
        self.window = window
        self.settings = settings
        self.repository = repository

    # ────────────────────────────────────────────
    # Fallback chains
    # ────────────────────────────────────────────

    def universal_fallback(self) -> TemplateCandidate:
        return TemplateCandidate(
            self.settings.FALLBACK_TEMPLATE,
            self.settings.FALLBACK_LANGUAGE,
            STEP_UNIVERSAL_FALLBACK,
        )

    def explicit_template_chain(self, data: SendMessageRequest) -> List[TemplateCandidate]:
        name = data.template_name or self.settings.FALLBACK_TEMPLATE
        variables = tuple(data.variables)
        return [
            TemplateCandidate(name, data.language_code or DEFAULT_LANGUAGE, STEP_TEMPLATE, variables),
            TemplateCandidate(name, DEFAULT_LANGUAGE, STEP_TEMPLATE_EN_US, variables),
            self.universal_fallback(),
        ]

    def session_chain(self, data: SendMessageRequest) -> List[TemplateCandidate]:
        return [
            TemplateCandidate(
                data.session_template or self.settings.SESSION_TEMPLATE,
                data.session_language or self.settings.SESSION_LANGUAGE,
                STEP_SESSION_OPEN,
            ),
            self.universal_fallback(),
        ]

    # ────────────────────────────────────────────
    # Send
    # ────────────────────────────────────────────

    def needs_session(self, data: SendMessageRequest) -> bool:
        """An explicit ensureSession wins; otherwise autoSession checks the 24h window."""
        if data.ensure_session is not None:
            return data.ensure_session
        auto_session = self.settings.AUTO_SESSION if data.auto_session is None else data.auto_session
        if auto_session:
            return not self.window.is_in_24h_window(data.to)
        return False

    def send(self, data: SendMessageRequest) -> SendMessageResponse:
        """
        Send a template or a text message to ``data.to``.

        Raises:
            ValueError: when no destination is given
            GraphAPIError: when every tier of a fallback chain failed
        """
        if not data.to:
            raise ValueError('Missing "to" parameter')

        if data.uses_explicit_template:
            return self._send_explicit_template(data)

        need_session = self.needs_session(data)
        template_opened = None
        if need_session:
            log.info(f"🔓 Window closed for {data.to}, opening session with a template")
            _, template_opened = send_first_available(self.graph, data.to, self.session_chain(data))

        if not data.text:
            return SendMessageResponse(
                step=STEP_SESSION_TEMPLATE_ONLY if need_session else STEP_NO_CONTENT,
                template_opened=template_opened,
            )

        text_response = self._send_text(data)
        return SendMessageResponse(
            step=STEP_TEMPLATE_THEN_TEXT if need_session else STEP_TEXT_ONLY,
            template_opened=template_opened,
            text_message=text_response,
        )

    def _send_explicit_template(self, data: SendMessageRequest) -> SendMessageResponse:
        candidate, response = send_first_available(
            self.graph, data.to, self.explicit_template_chain(data)
        )
        log.info(f"✅ Template {candidate.name}/{candidate.language} sent to {data.to} ({candidate.step})")

        self.store.push(InboxItem(
            id=_message_id(response),
            direction="outbound",
            timestamp=self.window.clock(),
            to=data.to,
            type="template",
            text=candidate.label(),
            raw=response,
        ))
        return SendMessageResponse(step=candidate.step, used=candidate.template(), data=response)

    def _send_text(self, data: SendMessageRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "messaging_product": "whatsapp",
            "to": data.to,
            "type": "text",
            "text": {"body": data.text},
        }
        if data.reply_to:
            payload["context"] = {"message_id": data.reply_to}

        response = self.graph.send_message(payload, note="TEXT")
        message_id = _message_id(response)
        sent_at = self.window.clock()
        log.info(f"✅ Text sent to {data.to}: {message_id}")

        self.store.push(InboxItem(
            id=message_id,
            direction="outbound",
            timestamp=sent_at,
            to=data.to,
            type="text",
            text=data.text,
            raw=response,
        ))

        if self.repository is not None:
            saved = self.repository.save_message(
                meta_message_id=message_id,
                waid=data.to,
                direction="outbound",
                msg_type="text",
                body=data.text,
                ts_ms=sent_at,
                raw=response,
            )
            if not saved:
                log.warning(f"⚠️ Outbound text {message_id} not persisted")
        return response
