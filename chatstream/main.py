import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from chatstream.config import settings
from chatstream.routes import chat, health
from chatstream.providers.registry import provider_registry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle events"""
    logger.info(f"Registered models: {', '.join(provider_registry.get_model_ids())}")

    yield

    # Shutdown: Cleanup resources
    await provider_registry.cleanup()


app = FastAPI(
    title="chatstream",
    description="Streaming chat API with reasoning and structured recommendations",
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan,
)

# CORS middleware (useful for dev)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(chat.router, prefix="/api", tags=["chat"])


def run():
    """Console entry point."""
    import uvicorn

    uvicorn.run("chatstream.main:app", host=settings.host, port=settings.port)
