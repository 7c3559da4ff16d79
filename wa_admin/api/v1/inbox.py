# wa_admin/api/v1/inbox.py
"""
Durable history and media proxy endpoints.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from wa_admin.api.deps import get_graph_client, get_repository, get_settings
from wa_admin.core.config import Settings
from wa_admin.services import GraphAPIError, GraphClient, MessageRepository

log = logging.getLogger("wa_admin.api.inbox")

router = APIRouter()

MEDIA_ACTIONS = ("stream", "url", "download")


@router.get("/inbox")
def get_history(repository: MessageRepository = Depends(get_repository)):
    """Message history from the database, newest first."""
    items = repository.list_messages()
    log.debug(f"📚 History loaded: {len(items)} item(s)")
    return {"items": items}


@router.get("/media")
def get_media(
    id: Optional[str] = Query(None, description="WhatsApp media ID"),
    action: str = Query("stream", description="stream, url or download"),
    settings: Settings = Depends(get_settings),
    graph: GraphClient = Depends(get_graph_client)
):
    """
    Proxy a WhatsApp media file.

    Media URLs returned by Meta need the bearer token, so the browser
    cannot load them directly.
    """
    if not id:
        return JSONResponse({"error": "Media ID is required"}, status_code=400)
    if action not in MEDIA_ACTIONS:
        return JSONResponse({"error": f"action must be one of {list(MEDIA_ACTIONS)}"}, status_code=400)
    if not settings.TOKEN:
        return JSONResponse({"error": "Missing WhatsApp Graph token"}, status_code=500)

    try:
        meta = graph.get_media(id)
    except GraphAPIError as e:
        log.warning(f"⚠️ Media info failed for {id}: {e}")
        return Response(e.details or e.message, status_code=e.status_code or 502)

    if action == "url":
        return JSONResponse(meta)

    media_url = meta.get("url") if isinstance(meta, dict) else None
    if not media_url:
        return JSONResponse({"error": "Media URL missing in Graph response"}, status_code=502)

    try:
        upstream = graph.open_media_stream(media_url)
    except GraphAPIError as e:
        log.warning(f"⚠️ Media download failed for {id}: {e}")
        return Response(e.details or e.message, status_code=e.status_code or 502)

    content_type = (
        upstream.headers.get("content-type")
        or meta.get("mime_type")
        or "application/octet-stream"
    )
    headers = {"Cache-Control": "private, max-age=0, no-store"}
    if action == "download":
        headers["Content-Disposition"] = f'attachment; filename="whatsapp-media-{id}"'

    return StreamingResponse(
        upstream.iter_bytes(),
        media_type=content_type,
        headers=headers,
        background=BackgroundTask(upstream.close)
    )
