# wa_admin/api/v1/webhooks.py
"""
Meta webhook endpoints plus the in-memory inbox views.
"""
import json
import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from wa_admin.api.deps import get_inbox_store, get_settings, get_webhook_processor
from wa_admin.core.config import Settings
from wa_admin.schemas.message import DebugPushRequest, InboxItem, InboxPage
from wa_admin.services import InboxStore, WebhookProcessor
from wa_admin.services.inbox_store import DEFAULT_PAGE_SIZE
from wa_admin.services.webhook import verify_subscription
from wa_admin.services.window import now_ms

log = logging.getLogger("wa_admin.api.webhooks")

router = APIRouter()

NO_STORE = {"Cache-Control": "no-store"}


# ────────────────────────────────────────────
# Meta webhook
# ────────────────────────────────────────────

@router.get("")
def verify_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
    settings: Settings = Depends(get_settings)
):
    """Meta verification handshake: echo the challenge when the token matches."""
    log.info(f"[WA-WEBHOOK][GET] verify mode={mode} token_set={bool(token)}")
    if verify_subscription(mode, token, settings.VERIFY_TOKEN):
        log.info("✅ Webhook verified")
        return PlainTextResponse(challenge or "", status_code=200)
    log.warning(f"❌ Webhook verification failed (mode={mode})")
    return JSONResponse({"error": "verification failed"}, status_code=403)


@router.post("")
async def receive_webhook(
    request: Request,
    processor: WebhookProcessor = Depends(get_webhook_processor)
):
    """
    Ingest a webhook delivery.

    Always answers 200 so Meta does not retry deliveries we failed to process.
    """
    raw_body = await request.body()
    try:
        body: Any = json.loads(raw_body) if raw_body else {}
    except ValueError:
        log.warning("⚠️ [WA-WEBHOOK][POST] Body is not valid JSON, ignoring")
        body = {}

    log.debug(f"[WA-WEBHOOK][POST] raw body: {body}")
    try:
        await run_in_threadpool(processor.process, body)
    except Exception:
        log.exception("❌ [WA-WEBHOOK][ERROR]")
    return JSONResponse({"ok": True}, status_code=200)


@router.delete("")
def clear_inbox(store: InboxStore = Depends(get_inbox_store)):
    store.clear()
    log.info("🗑️ [WA-WEBHOOK] Inbox cleared")
    return {"ok": True}


# ────────────────────────────────────────────
# Inbox views
# ────────────────────────────────────────────

@router.get("/logs")
def get_inbox_logs(
    limit: int = Query(DEFAULT_PAGE_SIZE),
    offset: int = Query(0),
    q: Optional[str] = None,
    direction: Optional[str] = None,
    from_: Optional[str] = Query(None, alias="from"),
    since: Optional[int] = None,
    store: InboxStore = Depends(get_inbox_store)
):
    """Filtered, paginated view of the in-memory inbox (newest first)."""
    log.debug(f"[WA-LOGS] GET limit={limit} offset={offset} q={q} direction={direction} from={from_} since={since}")
    total, items = store.query(
        limit=limit,
        offset=offset,
        q=q,
        direction=direction,
        from_=from_,
        since=since,
    )
    page = InboxPage(total=total, items=[i.to_json() for i in items])
    return JSONResponse(page.model_dump(), headers=NO_STORE)


@router.delete("/logs")
def delete_inbox_logs(store: InboxStore = Depends(get_inbox_store)):
    store.clear()
    log.info("🗑️ [WA-LOGS] Inbox cleared")
    return {"ok": True}


@router.post("/debug")
def debug_push(
    payload: Optional[Dict[str, Any]] = Body(None),
    settings: Settings = Depends(get_settings),
    store: InboxStore = Depends(get_inbox_store)
):
    """Inject a synthetic inbound message. Development only."""
    if not settings.is_development:
        return JSONResponse({"error": "Debug push is only available in development"}, status_code=403)

    payload = payload or {}
    try:
        data = DebugPushRequest.model_validate(payload)
    except ValidationError as e:
        return JSONResponse({"error": str(e)}, status_code=400)

    item = InboxItem(
        id=f"debug-{uuid.uuid4().hex}",
        direction="inbound",
        timestamp=data.timestamp if data.timestamp is not None else now_ms(),
        from_=data.from_,
        name=data.name,
        type="text",
        text=data.text,
        raw={"debug": True, **payload},
    )
    store.push(item)
    return {"ok": True, "item": item.to_json()}
