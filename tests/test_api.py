"""HTTP tests for the WhatsApp API routes."""

import time

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import webhook_envelope
from wa_admin.main import create_app

WA_ID = "573001112233"
BASE = "/api/whatsapp"


def inbound(msg_id="wamid.in1", sender=WA_ID, body="Hola", ts=None):
    return {
        "id": msg_id,
        "from": sender,
        "timestamp": ts or str(int(time.time())),
        "type": "text",
        "text": {"body": body},
    }


# ────────────────────────────────────────────
# Webhook
# ────────────────────────────────────────────

class TestWebhookVerification:

    def test_valid_token_echoes_challenge(self, client):
        response = client.get(f"{BASE}/webhook", params={
            "hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "12345",
        })

        assert response.status_code == 200
        assert response.text == "12345"

    def test_wrong_token_is_forbidden(self, client):
        response = client.get(f"{BASE}/webhook", params={
            "hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "12345",
        })

        assert response.status_code == 403

    @pytest.mark.parametrize("token", ["contraseña", "verify-me-ñ", "🔑"])
    def test_non_ascii_token_is_forbidden(self, client, token):
        response = client.get(f"{BASE}/webhook", params={
            "hub.mode": "subscribe", "hub.verify_token": token, "hub.challenge": "42",
        })

        assert response.status_code == 403
        assert response.json() == {"error": "verification failed"}

    def test_unset_verify_token_never_verifies(self, settings, store, graph, session_factory):
        settings.VERIFY_TOKEN = ""
        client = TestClient(create_app(settings=settings, store=store, graph=graph, session_factory=session_factory))

        response = client.get(f"{BASE}/webhook", params={
            "hub.mode": "subscribe", "hub.verify_token": "", "hub.challenge": "12345",
        })

        assert response.status_code == 403


class TestWebhookDelivery:

    def test_messages_land_in_the_inbox(self, client, store):
        response = client.post(f"{BASE}/webhook", json=webhook_envelope(
            messages=[inbound()],
            contacts=[{"wa_id": WA_ID, "profile": {"name": "Ana"}}],
        ))

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert store.last_inbound(WA_ID).name == "Ana"

    @pytest.mark.parametrize("content", [b"not json", b"", b"[1, 2, 3]", b'{"entry": 5}'])
    def test_always_acknowledges(self, client, store, content):
        response = client.post(f"{BASE}/webhook", content=content, headers={"content-type": "application/json"})

        assert response.status_code == 200
        assert len(store) == 0

    def test_delete_clears_inbox(self, client, store):
        client.post(f"{BASE}/webhook", json=webhook_envelope(messages=[inbound()]))

        assert client.delete(f"{BASE}/webhook").status_code == 200
        assert len(store) == 0


# ────────────────────────────────────────────
# Inbox logs
# ────────────────────────────────────────────

class TestInboxLogs:

    def _seed(self, client):
        client.post(f"{BASE}/webhook", json=webhook_envelope(
            messages=[
                inbound("wamid.a", WA_ID, "Quiero inscribirme", ts="1700000000"),
                inbound("wamid.b", "573009998877", "Hola", ts="1700000100"),
            ],
            statuses=[{"id": "wamid.out", "status": "read", "timestamp": "1700000200", "recipient_id": WA_ID}],
        ))

    def test_returns_total_and_items(self, client):
        self._seed(client)

        response = client.get(f"{BASE}/webhook/logs")

        assert response.status_code == 200
        assert response.headers["cache-control"] == "no-store"
        body = response.json()
        assert body["total"] == 3
        assert body["items"][0]["direction"] == "status"
        assert "from" in body["items"][1]

    def test_filters(self, client):
        self._seed(client)

        assert client.get(f"{BASE}/webhook/logs", params={"direction": "inbound"}).json()["total"] == 2
        assert client.get(f"{BASE}/webhook/logs", params={"from": "9998"}).json()["total"] == 1
        assert client.get(f"{BASE}/webhook/logs", params={"q": "inscrib"}).json()["total"] == 1
        assert client.get(f"{BASE}/webhook/logs", params={"since": 1700000100}).json()["total"] == 2

    def test_pagination(self, client):
        self._seed(client)

        body = client.get(f"{BASE}/webhook/logs", params={"limit": 1, "offset": 1}).json()

        assert body["total"] == 3
        assert [i["id"] for i in body["items"]] == ["wamid.b"]

    def test_invalid_limit_is_rejected(self, client):
        response = client.get(f"{BASE}/webhook/logs", params={"limit": "many"})

        assert response.status_code == 400
        assert "error" in response.json()

    def test_delete_logs(self, client, store):
        self._seed(client)

        assert client.delete(f"{BASE}/webhook/logs").json() == {"ok": True}
        assert client.get(f"{BASE}/webhook/logs").json() == {"total": 0, "items": []}


class TestDebugPush:

    def test_forbidden_outside_development(self, client, store):
        response = client.post(f"{BASE}/webhook/debug", json={"from": WA_ID})

        assert response.status_code == 403
        assert len(store) == 0

    def test_pushes_synthetic_inbound(self, settings, store, graph, session_factory):
        settings.APP_ENV = "development"
        client = TestClient(create_app(settings=settings, store=store, graph=graph, session_factory=session_factory))

        response = client.post(f"{BASE}/webhook/debug", json={"from": WA_ID, "name": "Ana"})

        assert response.status_code == 200
        item = response.json()["item"]
        assert item["id"].startswith("debug-")
        assert item["text"] == "Test message"
        assert store.last_inbound(WA_ID).name == "Ana"

    def test_requires_sender(self, settings, store, graph, session_factory):
        settings.APP_ENV = "development"
        client = TestClient(create_app(settings=settings, store=store, graph=graph, session_factory=session_factory))

        assert client.post(f"{BASE}/webhook/debug", json={"text": "hola"}).status_code == 400


# ────────────────────────────────────────────
# Send
# ────────────────────────────────────────────

class TestSend:

    def test_missing_to(self, client, graph_api):
        response = client.post(BASE, json={"text": "Hola"})

        assert response.status_code == 400
        assert response.json() == {"error": 'Missing "to" parameter'}
        assert graph_api.requests == []

    def test_invalid_json(self, client):
        response = client.post(BASE, content=b"{nope", headers={"content-type": "application/json"})

        assert response.status_code == 400
        assert "error" in response.json()

    def test_template_send(self, client, graph_api):
        response = client.post(BASE, json={
            "to": "+57 300-111-2233",
            "templateName": "curso_nuevo",
            "languageCode": "es_ES",
            "variables": ["Ana"],
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["step"] == "template"
        assert body["used"]["name"] == "curso_nuevo"
        assert graph_api.message_payloads[0]["to"] == WA_ID

    def test_exhausted_chain_is_a_server_error(self, client, graph_api):
        graph_api.fail().fail().fail(message="Template paused")

        response = client.post(BASE, json={"to": WA_ID, "templateName": "curso_nuevo"})

        assert response.status_code == 500
        assert response.json() == {"error": "Template paused"}

    def test_text_after_inbound_skips_session_template(self, client, graph_api):
        client.post(f"{BASE}/webhook", json=webhook_envelope(messages=[inbound()]))

        response = client.post(BASE, json={"to": WA_ID, "text": "Te respondo"})

        assert response.json()["step"] == "text_only"
        assert [p["type"] for p in graph_api.message_payloads] == ["text"]

    def test_text_to_new_contact_opens_session(self, client, graph_api):
        response = client.post(BASE, json={"to": WA_ID, "text": "Hola"})

        body = response.json()
        assert body["step"] == "template_then_text"
        assert "templateOpened" in body and "textMessage" in body

    def test_sent_text_shows_in_inbox_and_history(self, client):
        client.post(BASE, json={"to": WA_ID, "text": "Hola", "ensureSession": False})

        logs = client.get(f"{BASE}/webhook/logs", params={"direction": "outbound"}).json()
        history = client.get(f"{BASE}/inbox").json()

        assert logs["items"][0]["to"] == WA_ID
        assert history["items"][0]["text"] == "Hola"


# ────────────────────────────────────────────
# Templates
# ────────────────────────────────────────────

class TestTemplates:

    def test_lists_all_pages_mapped_for_ui(self, client, graph_api):
        graph_api.reply(200, {
            "data": [{
                "name": "curso_nuevo",
                "language": "es_ES",
                "status": "APPROVED",
                "components": [
                    {"type": "HEADER", "format": "TEXT", "text": "Nuevo curso"},
                    {"type": "BODY", "text": "Hola {{1}}, empieza {{2}}",
                     "example": {"body_text": [["Ana", "Python"]]}},
                ],
            }],
            "paging": {"next": "https://graph.test/v22.0/999888777/message_templates?after=abc"},
        })
        graph_api.reply(200, {
            "data": [
                {"name": "hello_world", "language": "en_US", "status": "APPROVED"},
                {"name": "broken"},
            ],
        })

        response = client.get(f"{BASE}/templates")

        assert response.status_code == 200
        templates = response.json()["templates"]
        assert templates == [
            {
                "name": "curso_nuevo",
                "label": "curso nuevo",
                "language": "es",
                "langCode": "es_ES",
                "body": "Hola {{1}}, empieza {{2}}",
                "example": ["Ana", "Python"],
                "status": "APPROVED",
            },
            {
                "name": "hello_world",
                "label": "hello world",
                "language": "en",
                "langCode": "en_US",
                "body": "",
                "example": [],
                "status": "APPROVED",
            },
        ]
        assert len(graph_api.requests) == 2
        assert graph_api.requests[0].url.params["fields"] == "name,language,status,components"
        assert graph_api.requests[1].url.params["after"] == "abc"
        assert graph_api.requests[0].headers["authorization"] == "Bearer test-token"

    def test_graph_error_is_a_bad_request(self, client, graph_api):
        graph_api.fail(message="Invalid OAuth access token", code=190, status_code=401)

        response = client.get(f"{BASE}/templates")

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid OAuth access token"
        assert body["details"]["error"]["code"] == 190


# ────────────────────────────────────────────
# History and media
# ────────────────────────────────────────────

class TestHistory:

    def test_inbox_history_from_database(self, client, store):
        client.post(f"{BASE}/webhook", json=webhook_envelope(messages=[inbound()]))
        store.clear()

        items = client.get(f"{BASE}/inbox").json()["items"]

        assert [i["id"] for i in items] == ["wamid.in1"]
        assert items[0]["from"] == WA_ID


class TestMedia:

    def _media_info(self, graph_api):
        graph_api.reply(200, {
            "url": "https://lookaside.test/media/abc",
            "mime_type": "application/pdf",
            "id": "media-1",
        })

    def test_requires_id(self, client):
        assert client.get(f"{BASE}/media").status_code == 400

    def test_rejects_unknown_action(self, client):
        assert client.get(f"{BASE}/media", params={"id": "media-1", "action": "delete"}).status_code == 400

    def test_url_action_returns_metadata(self, client, graph_api):
        self._media_info(graph_api)

        response = client.get(f"{BASE}/media", params={"id": "media-1", "action": "url"})

        assert response.status_code == 200
        assert response.json()["mime_type"] == "application/pdf"
        assert graph_api.requests[0].url.path == "/v22.0/media-1"

    def test_streams_file(self, client, graph_api):
        self._media_info(graph_api)
        graph_api.raw(httpx.Response(200, content=b"%PDF-1.4", headers={"content-type": "application/pdf"}))

        response = client.get(f"{BASE}/media", params={"id": "media-1"})

        assert response.status_code == 200
        assert response.content == b"%PDF-1.4"
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["cache-control"] == "private, max-age=0, no-store"
        assert "content-disposition" not in response.headers
        assert graph_api.requests[1].headers["authorization"] == "Bearer test-token"

    def test_download_sets_attachment(self, client, graph_api):
        self._media_info(graph_api)
        graph_api.raw(httpx.Response(200, content=b"data"))

        response = client.get(f"{BASE}/media", params={"id": "media-1", "action": "download"})

        assert response.headers["content-disposition"] == 'attachment; filename="whatsapp-media-media-1"'
        assert response.headers["content-type"] == "application/pdf"

    def test_graph_error_passes_through(self, client, graph_api):
        graph_api.reply(404, {"error": {"message": "Unsupported get request", "code": 100}})

        response = client.get(f"{BASE}/media", params={"id": "gone"})

        assert response.status_code == 404
        assert "Unsupported get request" in response.text

    def test_missing_url(self, client, graph_api):
        graph_api.reply(200, {"id": "media-1"})

        assert client.get(f"{BASE}/media", params={"id": "media-1"}).status_code == 502

    def test_missing_token(self, settings, store, graph, session_factory):
        settings.TOKEN = ""
        client = TestClient(create_app(settings=settings, store=store, graph=graph, session_factory=session_factory))

        assert client.get(f"{BASE}/media", params={"id": "media-1"}).status_code == 500


def test_healthz(client, store):
    client.post(f"{BASE}/webhook", json=webhook_envelope(messages=[inbound()]))

    body = client.get("/healthz").json()

    assert body["status"] == "ok"
    assert body["database_ok"] is True
    assert body["token_ok"] is True
    assert body["inbox_size"] == 1
