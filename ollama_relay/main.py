import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from ollama_relay.config import settings

logger = logging.getLogger(__name__)
from ollama_relay.routes import chat, health
from ollama_relay.providers.ollama import OllamaProvider
from ollama_relay.relay.errors import AuthenticationFailure
from ollama_relay.relay.translator import OLLAMA_API_PATH
from ollama_relay.utils.exceptions import unauthorized_response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle events"""
    # Startup: one pooled backend client for all exchanges
    app.state.ollama = OllamaProvider(
        base_url=settings.ollama_url,
        api_key=settings.ollama_api_key,
        timeout=settings.request_timeout,
    )
    if settings.access_code:
        logger.info("Access code required for relay endpoints")

    yield

    # Shutdown: Cleanup resources
    await app.state.ollama.cleanup()


app = FastAPI(
    title="Ollama Relay",
    description="OpenAI-compatible chat API relayed to Ollama",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware (browser clients call the relay directly)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuthenticationFailure)
async def authentication_failure_handler(request: Request, exc: AuthenticationFailure):
    return unauthorized_response(str(exc))


# Include routers
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(chat.router, prefix=OLLAMA_API_PATH, tags=["ollama"])
