# wa_admin/api/v1/messages.py
"""
Outbound send and template listing endpoints.
"""
import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from wa_admin.api.deps import get_dispatcher, get_graph_client
from wa_admin.schemas.message import SendMessageRequest
from wa_admin.schemas.template import TemplateListResponse
from wa_admin.services import GraphAPIError, GraphClient, MessageDispatcher
from wa_admin.services.templates import list_ui_templates

log = logging.getLogger("wa_admin.api.messages")

router = APIRouter()


@router.post("")
def send_message(
    data: SendMessageRequest,
    dispatcher: MessageDispatcher = Depends(get_dispatcher)
):
    """
    Send a WhatsApp message.

    - `templateName` / `forceTemplate`: send a template, falling back to the
      same template in en_US and then to the universal fallback template
    - `text`: send free text; when the 24h window is closed a session
      template is sent first (`autoSession`, overridable with `ensureSession`)
    """
    if not data.to:
        return JSONResponse({"error": 'Missing "to" parameter'}, status_code=400)

    log.info(f"📤 Send request to {data.to} (template={data.uses_explicit_template}, text={bool(data.text)})")
    try:
        result = dispatcher.send(data)
    except GraphAPIError as e:
        log.error(f"❌ WhatsApp send failed for {data.to}: {e}")
        return JSONResponse({"error": e.message}, status_code=500)
    except Exception as e:
        log.exception(f"❌ Unexpected error sending to {data.to}")
        return JSONResponse({"error": str(e) or "Unknown error"}, status_code=500)

    log.info(f"✅ Send to {data.to} finished with step {result.step}")
    return JSONResponse(result.to_json())


@router.get("/templates")
def list_templates(graph: GraphClient = Depends(get_graph_client)):
    """List the business account's message templates."""
    try:
        templates = list_ui_templates(graph)
    except GraphAPIError as e:
        log.error(f"❌ [WA][GET] Template listing rejected: {e}")
        return JSONResponse(
            {"error": e.message or "Error fetching templates", "details": e.details},
            status_code=400
        )
    except Exception as e:
        log.exception("❌ [WA][GET] Template listing failed")
        return JSONResponse({"error": str(e) or "Unknown error"}, status_code=500)

    return TemplateListResponse(templates=templates).model_dump(by_alias=True)
