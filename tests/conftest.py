"""Pytest configuration and fixtures."""

import json
import os
import tempfile

# Must be set before wa_admin.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "wa_admin-test-logs"))

import httpx
import pytest
from fastapi.testclient import TestClient

from wa_admin.core.config import Settings
from wa_admin.db.base import Base
from wa_admin.db.session import build_engine, build_session_factory
from wa_admin.main import create_app
from wa_admin.services import (
    GraphClient, InboxStore, MessageDispatcher, MessageRepository, WebhookProcessor, WindowEvaluator
)

GRAPH_BASE = "https://graph.test/v22.0"


class FakeClock:
    """Manually driven millisecond clock"""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


class GraphRecorder:
    """
    Scripted Graph API behind ``httpx.MockTransport``.

    Queued answers are consumed in order; once the queue is empty every
    request succeeds with a fresh wamid.
    """

    def __init__(self):
        self.requests = []
        self.queue = []

    def reply(self, status_code=200, body=None):
        self.queue.append(httpx.Response(status_code, json=body if body is not None else {}))
        return self

    def fail(self, message="Template name does not exist in the translation", code=132001, status_code=404):
        return self.reply(status_code, {"error": {"message": message, "code": code, "type": "OAuthException"}})

    def raw(self, response: httpx.Response):
        self.queue.append(response)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.queue:
            return self.queue.pop(0)
        return httpx.Response(200, json={
            "messaging_product": "whatsapp",
            "contacts": [{"input": "x", "wa_id": "x"}],
            "messages": [{"id": f"wamid.auto{len(self.requests)}"}],
        })

    @property
    def payloads(self):
        return [json.loads(r.content) if r.content else None for r in self.requests]

    @property
    def message_payloads(self):
        return [json.loads(r.content) for r in self.requests if r.url.path.endswith("/messages")]


@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite://",
        TOKEN="test-token",
        PHONE_ID="111222333",
        BUSINESS_ACCOUNT_ID="999888777",
        VERIFY_TOKEN="verify-me",
        GRAPH_API_BASE_URL="https://graph.test",
        GRAPH_API_VERSION="v22.0",
        SESSION_TEMPLATE="hello_world",
        SESSION_LANGUAGE="en_US",
        FALLBACK_TEMPLATE="hello_world",
        FALLBACK_LANGUAGE="en_US",
        AUTO_SESSION=True,
        INBOX_MAX_ITEMS=0,
        APP_ENV="production",
    )


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def repository(session_factory):
    return MessageRepository(session_factory)


@pytest.fixture
def store():
    return InboxStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def graph_api():
    return GraphRecorder()


@pytest.fixture
def graph(settings, graph_api):
    client = GraphClient(settings, http_client=httpx.Client(transport=httpx.MockTransport(graph_api.handler)))
    yield client
    client.close()


@pytest.fixture
def window(store, repository, clock):
    return WindowEvaluator(store, repository, clock=clock)


@pytest.fixture
def dispatcher(graph, store, window, settings, repository):
    return MessageDispatcher(graph, store, window, settings, repository)


@pytest.fixture
def processor(store, repository):
    return WebhookProcessor(store, repository)


@pytest.fixture
def app(settings, store, graph, session_factory):
    return create_app(settings=settings, store=store, graph=graph, session_factory=session_factory)


@pytest.fixture
def client(app):
    return TestClient(app)


def webhook_envelope(messages=None, statuses=None, contacts=None):
    """Build a Meta webhook body with a single entry/change."""
    value = {"messaging_product": "whatsapp", "metadata": {"phone_number_id": "111222333"}}
    if contacts is not None:
        value["contacts"] = contacts
    if messages is not None:
        value["messages"] = messages
    if statuses is not None:
        value["statuses"] = statuses
    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "999888777", "changes": [{"field": "messages", "value": value}]}],
    }
