# wa_admin/main.py
"""
FastAPI application for the WhatsApp side of the education admin platform.

Services (inbox, repository, Graph client, dispatcher) are built once in
``create_app`` and shared through ``app.state``; tests build their own
app with injected fakes.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from wa_admin.api.v1.router import api_router
from wa_admin.core.config import Settings, settings as default_settings
from wa_admin.core.logging_config import setup_logging
from wa_admin.db.session import build_engine, build_session_factory, init_db, test_db_connection
from wa_admin.services import (
    GraphClient, InboxStore, MessageDispatcher, MessageRepository, WebhookProcessor, WindowEvaluator
)

log = logging.getLogger("wa_admin")


def _format_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[InboxStore] = None,
    graph: Optional[GraphClient] = None,
    session_factory: Optional[sessionmaker] = None,
) -> FastAPI:
    """
    Build the FastAPI application and its services.

    Args:
        settings: runtime settings (environment defaults when omitted)
        store: in-memory inbox shared by every request
        graph: Graph API client
        session_factory: SQLAlchemy session factory for the durable table
    """
    settings = settings or default_settings

    engine = None
    if session_factory is None:
        engine = build_engine(settings.DATABASE_URL)
        session_factory = build_session_factory(engine)

    store = store if store is not None else InboxStore(max_items=settings.INBOX_MAX_ITEMS)
    graph = graph or GraphClient(settings)
    repository = MessageRepository(session_factory)
    window = WindowEvaluator(store, repository)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine is not None:
            try:
                init_db(engine)
            except Exception as e:
                log.error(f"❌ Database error: {e}")
        if not graph.configured:
            log.warning("⚠️  WhatsApp not configured (WHATSAPP_TOKEN / WHATSAPP_PHONE_ID missing)")
        yield
        graph.close()

    app = FastAPI(
        title="WhatsApp Admin API",
        description="WhatsApp Business messaging for the education admin platform",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.inbox_store = store
    app.state.repository = repository
    app.state.graph = graph
    app.state.dispatcher = MessageDispatcher(graph, store, window, settings, repository)
    app.state.webhook_processor = WebhookProcessor(store, repository)

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        max_age=86400,
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message = _format_validation_error(exc)
        log.warning(f"⚠️ Invalid request to {request.url.path}: {message}")
        return JSONResponse({"error": message}, status_code=400)

    app.include_router(api_router, prefix="/api")

    @app.get("/healthz", tags=["System"])
    def health():
        """Health check endpoint"""
        db_ok = test_db_connection(session_factory)
        return {
            "status": "ok" if db_ok else "degraded",
            "database_ok": db_ok,
            "phone_id_ok": bool(settings.PHONE_ID),
            "token_ok": bool(settings.TOKEN),
            "verify_token_ok": bool(settings.VERIFY_TOKEN),
            "inbox_size": len(store),
        }

    return app


setup_logging("wa_admin", default_settings.LOG_LEVEL, default_settings.LOG_DIR)
app = create_app()
