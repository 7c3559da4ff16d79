# wa_admin/services/graph_client.py
"""
Thin client for the WhatsApp Cloud (Meta Graph) API.

Only the calls this service needs: send a message, list templates and
resolve/download media. Every non-2xx answer becomes a GraphAPIError
carrying Meta's error code and message.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

import httpx

from wa_admin.core.config import Settings
from wa_admin.core.logging_config import get_graph_logger, log_api_request, log_api_response

log = logging.getLogger("wa_admin.graph_client")
graph_log = get_graph_logger()

TEMPLATE_FIELDS = "name,language,status,components"
TEMPLATE_PAGE_SIZE = 200


class GraphAPIError(Exception):
    """Error answer (or transport failure) from the Graph API"""

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        status_code: Optional[int] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details

    def __str__(self):
        return f"{self.message} (code={self.code})" if self.code is not None else self.message


def _error_from_response(response: httpx.Response, default_message: str) -> GraphAPIError:
    try:
        body = response.json()
    except ValueError:
        body = {"raw": response.text}
    err = body.get("error") if isinstance(body, dict) else None
    err = err if isinstance(err, dict) else {}
    return GraphAPIError(
        err.get("message") or default_message,
        code=err.get("code"),
        status_code=response.status_code,
        details=body,
    )


class GraphClient:
    """Synchronous Graph API client backed by ``httpx.Client``."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.Client] = None):
        self.settings = settings
        self.base_url = f"{settings.GRAPH_API_BASE_URL.rstrip('/')}/{settings.GRAPH_API_VERSION}"
        self._http = http_client or httpx.Client(timeout=settings.GRAPH_TIMEOUT)

    @property
    def configured(self) -> bool:
        return bool(self.settings.TOKEN and self.settings.PHONE_ID)

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.settings.TOKEN}"}

    def close(self):
        self._http.close()

    # ────────────────────────────────────────────
    # Messages
    # ────────────────────────────────────────────

    def send_message(self, payload: Dict[str, Any], note: str = "") -> Dict[str, Any]:
        """
        POST a message payload to ``/{phone_id}/messages``.

        Raises:
            GraphAPIError: on non-2xx answers and transport failures
        """
        url = f"{self.base_url}/{self.settings.PHONE_ID}/messages"
        log_api_request(graph_log, "POST", url, payload, note=note)

        try:
            response = self._http.post(url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            log_api_response(graph_log, 0, None, error=e)
            raise GraphAPIError(f"WhatsApp request failed: {e}") from e

        if response.is_error:
            error = _error_from_response(response, "Error sending WhatsApp message")
            log_api_response(graph_log, response.status_code, error.details, error=error)
            raise error

        try:
            data = response.json()
        except ValueError:
            data = {}
        log_api_response(graph_log, response.status_code, data)
        return data if isinstance(data, dict) else {"data": data}

    # ────────────────────────────────────────────
    # Templates
    # ────────────────────────────────────────────

    def list_templates(self) -> List[Dict[str, Any]]:
        """Fetch all message templates of the business account, following paging."""
        url: Optional[str] = f"{self.base_url}/{self.settings.BUSINESS_ACCOUNT_ID}/message_templates"
        params: Optional[Dict[str, Any]] = {"fields": TEMPLATE_FIELDS, "limit": TEMPLATE_PAGE_SIZE}
        templates: List[Dict[str, Any]] = []
        page = 1

        while url:
            log_api_request(graph_log, "GET", url, params, note=f"templates page {page}")
            try:
                response = self._http.get(url, params=params, headers=self._headers())
            except httpx.HTTPError as e:
                raise GraphAPIError(f"Template listing failed: {e}") from e

            if response.is_error:
                error = _error_from_response(response, "Error fetching templates")
                log_api_response(graph_log, response.status_code, error.details, error=error)
                raise error

            body = response.json()
            page_items = body.get("data") if isinstance(body, dict) else None
            if not isinstance(page_items, list):
                log.warning("⚠️ Unexpected template response format from Meta API")
                break
            templates.extend(page_items)
            log.info(f"📄 Templates page {page}: {len(page_items)} (total {len(templates)})")

            # The "next" link already carries the query string
            url = (body.get("paging") or {}).get("next")
            params = None
            page += 1

        return templates

    # ────────────────────────────────────────────
    # Media
    # ────────────────────────────────────────────

    def get_media(self, media_id: str) -> Dict[str, Any]:
        """Resolve a media id to its signed download URL and mime type."""
        url = f"{self.base_url}/{media_id}"
        log_api_request(graph_log, "GET", url, note="media info")
        try:
            response = self._http.get(url, headers=self._headers())
        except httpx.HTTPError as e:
            raise GraphAPIError(f"Media lookup failed: {e}") from e
        if response.is_error:
            raise GraphAPIError(
                response.text or "Error getting media info",
                status_code=response.status_code,
                details=response.text,
            )
        return response.json()

    def open_media_stream(self, url: str) -> httpx.Response:
        """
        Start downloading a media file. The caller must close the response.
        """
        request = self._http.build_request("GET", url, headers=self._headers())
        try:
            response = self._http.send(request, stream=True)
        except httpx.HTTPError as e:
            raise GraphAPIError(f"Media download failed: {e}") from e
        if response.is_error:
            body = response.read().decode("utf-8", errors="replace")
            response.close()
            raise GraphAPIError(
                body or "Error downloading media",
                status_code=response.status_code,
                details=body,
            )
        return response
