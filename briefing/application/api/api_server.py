from contextlib import asynccontextmanager, suppress
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional
import asyncio
import structlog

from briefing.application.api.route import sessions
from briefing.application.websocket import ws_server
from briefing.application.websocket.connection_manager import ConnectionManager
from briefing.domain.context.state.state_manager import StateManager
from briefing.domain.models.briefing_state import utc_now
from briefing.domain.tool.action_ledger import EmailProvider
from briefing.domain.tool.tool_registry import ToolRegistry
from briefing.infrastructure.config import BriefingSettings, build_engagement_profile, build_item_store
from briefing.infrastructure.observability.logging import setup_logging

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[BriefingSettings] = None,
    state_manager: Optional[StateManager] = None,
    email_provider: Optional[EmailProvider] = None,
) -> FastAPI:
    """Build the briefing API with its websocket surface"""

    settings = settings or BriefingSettings.from_env()
    setup_logging(settings.log_level, settings.log_format, settings.service_name)

    if state_manager is None:
        state_manager = StateManager(
            store=build_item_store(settings),
            engagement=build_engagement_profile(settings),
            ledger_size=settings.action_history_size,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        health_task = asyncio.create_task(app.state.connection_manager.health_check())
        app.state.health_task = health_task
        logger.info("Briefing server started", service=settings.service_name)
        try:
            yield
        finally:
            health_task.cancel()
            with suppress(asyncio.CancelledError):
                await health_task
            await app.state.state_manager.end_all_sessions()
            if app.state.state_manager.store is not None:
                await app.state.state_manager.store.close()
            logger.info("Briefing server shutdown")

    app = FastAPI(title="Briefing Session Server", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.state_manager = state_manager
    app.state.connection_manager = ConnectionManager()
    app.state.email_provider = email_provider
    app.state.tool_registry = ToolRegistry()

    app.include_router(sessions.router)
    app.include_router(ws_server.router)

    @app.get("/api/v1/briefing/tools")
    async def list_tools(category: Optional[str] = None):
        """Function-calling definitions for the reasoning loop"""
        return {"tools": app.state.tool_registry.get_function_schemas(category)}

    @app.get("/health")
    async def health_check():
        active = await app.state.state_manager.get_all_active_sessions()
        return {
            "status": "healthy",
            "active_sessions": len(active),
            "active_connections": len(app.state.connection_manager.active_connections),
            "timestamp": utc_now().isoformat()
        }

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
