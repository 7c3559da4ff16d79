# wa_admin/services/templates.py
"""
Template listing for the admin send form.
"""
import logging
from typing import Any, Dict, List, Optional

from wa_admin.schemas.template import UiTemplate
from wa_admin.services.graph_client import GraphClient

log = logging.getLogger("wa_admin.templates")


def _is_template_item(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and isinstance(value.get("name"), str)
        and isinstance(value.get("language"), str)
        and isinstance(value.get("status"), str)
    )


def _body_component(components: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(components, list):
        return None
    return next(
        (c for c in components if isinstance(c, dict) and str(c.get("type", "")).upper() == "BODY"),
        None
    )


def to_ui_template(item: Dict[str, Any]) -> UiTemplate:
    body = _body_component(item.get("components")) or {}
    examples = (body.get("example") or {}).get("body_text") or []
    return UiTemplate(
        name=item["name"],
        label=item["name"].replace("_", " "),
        language="es" if item["language"].startswith("es") else "en",
        lang_code=item["language"],
        body=body.get("text") or "",
        example=[str(v) for v in examples[0]] if examples and isinstance(examples[0], list) else [],
        status=item["status"],
    )


def list_ui_templates(graph: GraphClient) -> List[UiTemplate]:
    """
    Fetch templates from Meta and map them for the UI.

    Raises:
        GraphAPIError: when Meta rejects the listing
    """
    mapped = [to_ui_template(t) for t in graph.list_templates() if _is_template_item(t)]
    approved = sum(1 for t in mapped if t.status == "APPROVED")
    log.info(f"✅ Templates mapped: {len(mapped)} (approved: {approved})")
    return mapped
