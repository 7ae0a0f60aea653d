"""FastAPI application for the SQLTemple database agent.

This is the main entry point for the agent API server.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .agent.api import create_agent_dependencies, reset_agent_dependencies
from .agent.api import router as agent_router
from .agent.assistant import QueryAssistant
from .agent.memory import AgentHistoryStore, InMemoryAgentStorage, PostgresAgentStorage
from .agent.orchestrator import (
    AgentConfig,
    AgentController,
    AgentOrchestrator,
    BroadcastEventChannel,
    ControllerConfig,
)
from .agent.providers import create_provider
from .agent.tools import ToolRegistry
from .config import Settings, load_settings
from .database import DatabaseManager, create_pool

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application.

    Settings are loaded from the environment when not supplied.
    """
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager.

        - Startup: history storage, LLM provider, agent controller
        - Shutdown: stop runs, close the active connection, provider and pool
        """
        logger.info("Starting SQLTemple agent API...")

        pool = None
        if settings.history_database_url:
            try:
                pool = await create_pool(settings.history_database_url)
                storage = PostgresAgentStorage(pool)
                await storage.ensure_schema()
                logger.info("Session history stored in PostgreSQL")
            except Exception as e:
                logger.error(f"Failed to initialize history database: {e}")
                if pool is not None:
                    await pool.close()
                raise
        else:
            storage = InMemoryAgentStorage()
            logger.warning(
                "HISTORY_DATABASE_URL not configured - session history is kept in memory"
            )

        try:
            provider = create_provider(settings)
        except Exception as e:
            logger.error(f"Failed to initialize LLM provider: {e}")
            if pool is not None:
                await pool.close()
            raise

        history = AgentHistoryStore(storage)
        database = DatabaseManager()
        orchestrator = AgentOrchestrator(
            llm_provider=provider,
            tool_registry=ToolRegistry(),
            config=AgentConfig.from_settings(settings),
        )
        controller = AgentController(
            orchestrator=orchestrator,
            history=history,
            database=database,
            config=ControllerConfig.from_settings(settings),
        )
        create_agent_dependencies(
            controller=controller,
            database=database,
            history=history,
            broadcast=BroadcastEventChannel(),
            channel_max_size=settings.channel_max_size,
            assistant=QueryAssistant(provider),
        )
        logger.info("Agent controller initialized")

        yield

        # Shutdown (reverse order of initialization)
        logger.info("Shutting down SQLTemple agent API...")

        await controller.shutdown()
        reset_agent_dependencies()
        await database.disconnect()
        await provider.close()

        if pool is not None:
            await pool.close()
            logger.info("History database pool closed")

    app = FastAPI(
        title="SQLTemple Agent API",
        description="""
        Autonomous database agent for PostgreSQL.

        ## Workflow

        1. Connect a database with `POST /api/agent/connection`
        2. Open the WebSocket at `/api/agent/ws`
        3. Start a session and watch thoughts, tool calls and the answer stream in
        """,
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept"],
    )

    app.include_router(agent_router)

    @app.get("/health")
    async def health():
        """Global health check."""
        return {"status": "healthy"}

    return app


app = create_app()


# Entry point for running with uvicorn
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.sqltemple.app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
