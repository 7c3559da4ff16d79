# wa_admin/services/__init__.py
"""
Service layer. Instances are built once by ``create_app`` and shared
through ``app.state``.
"""
from wa_admin.services.dispatcher import MessageDispatcher
from wa_admin.services.graph_client import GraphAPIError, GraphClient
from wa_admin.services.inbox_store import InboxStore
from wa_admin.services.message_repository import MessageRepository
from wa_admin.services.webhook import WebhookProcessor
from wa_admin.services.window import WindowEvaluator

__all__ = [
    'GraphAPIError',
    'GraphClient',
    'InboxStore',
    'MessageDispatcher',
    'MessageRepository',
    'WebhookProcessor',
    'WindowEvaluator',
]
