# wa_admin/api/deps.py
"""
FastAPI dependencies exposing the services built by ``create_app``.
"""
from fastapi import Request

from wa_admin.core.config import Settings
from wa_admin.services import (
    GraphClient, InboxStore, MessageDispatcher, MessageRepository, WebhookProcessor
)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_inbox_store(request: Request) -> InboxStore:
    return request.app.state.inbox_store


def get_repository(request: Request) -> MessageRepository:
    return request.app.state.repository


def get_graph_client(request: Request) -> GraphClient:
    return request.app.state.graph


def get_dispatcher(request: Request) -> MessageDispatcher:
    return request.app.state.dispatcher


def get_webhook_processor(request: Request) -> WebhookProcessor:
    return request.app.state.webhook_processor
