"""Main FastAPI application."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from concierge import __version__
from concierge.api.endpoints import router
from concierge.clients.anthropic import AnthropicClient, AnthropicConfig
from concierge.clients.wordpress import StoreConfig, WordPressClient
from concierge.config import Settings
from concierge.services.agent import AgentLoop
from concierge.services.conversation import ConversationService
from concierge.services.prompts import load_knowledge
from concierge.services.store import InMemoryStore
from concierge.tools.registry import ToolsRegistry
from concierge.utils.logging import LogConfig, get_logger, setup_logging

logger = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the application.

    Shared clients are built in the lifespan handler and closed on shutdown;
    request handlers reach them through ``app.state``.
    """
    settings = settings or Settings.from_env()
    setup_logging(LogConfig(level=settings.log_level))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        anthropic_config = AnthropicConfig()
        if settings.anthropic_model:
            anthropic_config.model = settings.anthropic_model
        completion_client = AnthropicClient(api_key=settings.anthropic_api_key, config=anthropic_config)

        store: WordPressClient | InMemoryStore
        if settings.store_api_key:
            store = WordPressClient(StoreConfig(store_url=settings.store_url, api_key=settings.store_api_key))
        else:
            logger.warning("STORE_API_KEY not set, using in-memory store with sample inventory")
            store = InMemoryStore()

        registry = ToolsRegistry(catalog=store, availability=store, orders=store, store_url=settings.store_url)
        app.state.conversation_service = ConversationService(
            agent=AgentLoop(completion_client, registry),
            knowledge=load_knowledge(settings.knowledge_file),
        )
        app.state.service_status = {
            "chat": "ready" if settings.anthropic_api_key else "unconfigured",
            "store": "wordpress" if isinstance(store, WordPressClient) else "in_memory",
        }
        logger.info(f"Concierge {__version__} started with model {anthropic_config.model}")

        try:
            yield
        finally:
            await completion_client.aclose()
            if isinstance(store, WordPressClient):
                await store.aclose()

    app = FastAPI(
        title="Rentagun Concierge",
        description="Streaming chat concierge for firearm rentals: product search, availability and order status.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Chat", "description": "Stream concierge replies as server-sent events."},
            {"name": "Health", "description": "Service health monitoring and status checks."},
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Session-Id"],
        expose_headers=["X-Session-Id"],
    )

    app.include_router(router)
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("concierge.main:create_app", factory=True, host="0.0.0.0", port=8000, reload=True, log_level="info")
