# wa_admin/api/v1/router.py
"""Main API router combining all v1 endpoints"""
from fastapi import APIRouter

from wa_admin.api.v1 import messages, webhooks, inbox

api_router = APIRouter()

# Include all routers
api_router.include_router(messages.router, prefix="/whatsapp", tags=["Messages"])
api_router.include_router(webhooks.router, prefix="/whatsapp/webhook", tags=["Webhooks"])
api_router.include_router(inbox.router, prefix="/whatsapp", tags=["Inbox"])
