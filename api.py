import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config import Settings, get_settings
from errors import RelayError, ValidationError
from llm import LLMClient
from relay import ChatRelay
from storage import FileMemoryStore, InMemoryStore, MemoryStore

logger = logging.getLogger(__name__)

SERVICE_NAME = "AI Coach Backend"
DEFAULT_USER_ID = "default_user"
INTERNAL_ERROR_MESSAGE = "The coach is taking a break, please try again later."
INVALID_BODY_MESSAGE = "Invalid request body: message and userId must be strings."


# Pydantic models
class ChatRequest(BaseModel):
    message: str = ""
    userId: str = DEFAULT_USER_ID


class ChatResponse(BaseModel):
    success: bool = True
    reply: str
    userId: str
    usage: Optional[Dict[str, Any]] = None


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
    )


def build_relay(settings: Settings) -> ChatRelay:
    store: MemoryStore
    if settings.memory_backend == "memory":
        store = InMemoryStore(history_limit=settings.history_limit)
    else:
        store = FileMemoryStore(settings.memory_dir, history_limit=settings.history_limit)
    return ChatRelay(settings, LLMClient(settings), store)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app(settings: Optional[Settings] = None, relay: Optional[ChatRelay] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if app.state.relay is not None:
            await app.state.relay.provider.close()

    app = FastAPI(title=SERVICE_NAME, version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.relay = relay

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        logger.info("Rejected malformed body on %s: %s", request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"error": INVALID_BODY_MESSAGE})

    def get_relay() -> ChatRelay:
        """Lazy initialization of the chat relay."""
        if app.state.relay is None:
            app.state.relay = build_relay(settings)
        return app.state.relay

    @app.post("/api/chat", response_model=ChatResponse, response_model_exclude_none=True)
    async def chat(request: ChatRequest):
        """Relay one user message to the coach and return the reply."""
        user_id = request.userId or DEFAULT_USER_ID

        try:
            result = await get_relay().handle_message(user_id, request.message)
        except ValidationError as e:
            return JSONResponse(status_code=e.status_code, content={"error": e.message})
        except RelayError as e:
            return JSONResponse(status_code=e.status_code, content={"success": False, "error": e.message})
        except Exception:
            logger.exception("Chat processing failed for %s", user_id)
            return JSONResponse(status_code=500, content={"success": False, "error": INTERNAL_ERROR_MESSAGE})

        return ChatResponse(reply=result.reply, userId=user_id, usage=result.usage)

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "online",
            "service": SERVICE_NAME,
            "model": settings.model,
            "timestamp": _now(),
        }

    @app.get("/")
    async def root():
        return {
            "message": f"{SERVICE_NAME} is up and running!",
            "endpoints": {
                "chat": "POST /api/chat",
                "health": "GET /api/health",
                "status": "GET /",
            },
            "timestamp": _now(),
            "deployed_on": settings.deployed_on,
        }

    return app


# ASGI entry point for uvicorn and managed hosts
app = create_app()
