# ============================================================
# Ollama Gateway FastAPI App
# ------------------------------------------------------------
# This app wires everything together:
#   - JSON generate / chat routes over the synchronous client
#   - Event-stream relay of incremental generation
#   - Model listing and backend health
#   - Static front-end from public/
# ============================================================

import logging
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

# --- Local imports ---
from ollama_gateway.errors import GatewayError, ModelNotFound
from ollama_gateway.generate import Message, OllamaClient, TextGenerator
from ollama_gateway.logging_config import setup_logging
from ollama_gateway.relay import RelayController, build_stream_client
from ollama_gateway.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


# ------------------------------------------------------------
# 📦 Pydantic models
# ------------------------------------------------------------
class GenerateBody(BaseModel):
    # checked by GenerationRequest.create (400 on failure)
    prompt: Any = None
    model: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)


class ChatTurn(BaseModel):
    role: str
    content: str


class ChatBody(BaseModel):
    messages: Optional[List[ChatTurn]] = None
    model: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, **extra})


# ------------------------------------------------------------
# 💬 LLM routes
# ------------------------------------------------------------
router = APIRouter(prefix="/api/llm")


@router.get("/models")
def list_models(request: Request):
    models = request.app.state.model_client.list_models()
    return {"success": True, "data": models, "count": len(models)}


@router.get("/models/{model:path}")
def model_info(model: str, request: Request):
    info = request.app.state.model_client.get_model_info(model)
    if info is None:
        raise ModelNotFound(f"Model '{model}' not found")
    return {"success": True, "data": info}


@router.post("/generate")
def generate(body: GenerateBody, request: Request):
    result = request.app.state.generator.generate(body.prompt, body.model, body.options)
    return {"success": True, "data": {"text": result.text, "model": result.model}}


@router.post("/stream")
async def stream(body: GenerateBody, request: Request):
    relay: RelayController = request.app.state.relay
    # Validation happens here, before any event-stream bytes are committed.
    gen_request = relay.new_request(body.prompt, body.model, body.options)
    return StreamingResponse(
        relay.event_stream(gen_request),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/health")
def backend_health(request: Request):
    cfg: Settings = request.app.state.settings
    if request.app.state.model_client.check_health():
        return {"success": True, "message": "Connected to Ollama service", "ollamaUrl": cfg.OLLAMA_URL}
    return _error(503, "Cannot connect to Ollama service", ollamaUrl=cfg.OLLAMA_URL)


@router.post("/chat")
def chat(body: ChatBody, request: Request):
    messages = [Message(**m.model_dump()) for m in (body.messages or [])]
    result = request.app.state.generator.chat(messages, body.model, body.options)
    return {
        "success": True,
        "data": {"role": "assistant", "content": result.text, "model": result.model},
    }


# ------------------------------------------------------------
# 🚀 FastAPI init
# ------------------------------------------------------------
def create_app(
    cfg: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    model_client: Optional[OllamaClient] = None,
) -> FastAPI:
    """Build the gateway app.

    ``transport`` and ``model_client`` replace the network-facing pieces
    (the streaming transport and the synchronous backend client); both are
    meant for tests.
    """
    cfg = cfg or default_settings
    relay_cfg = cfg.relay_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(cfg.LOG_LEVEL)
        client = model_client or OllamaClient(relay_cfg, timeout=cfg.REQUEST_TIMEOUT)
        stream_client = build_stream_client(relay_cfg, cfg.MAX_BACKEND_CONNECTIONS, transport=transport)
        app.state.model_client = client
        app.state.generator = TextGenerator(client, relay_cfg)
        app.state.relay = RelayController(relay_cfg, stream_client, sink_max_pending=cfg.SINK_MAX_PENDING)
        logger.info("%s running against %s (default model %s)", cfg.APP_NAME, cfg.OLLAMA_URL, cfg.DEFAULT_MODEL)
        try:
            yield
        finally:
            await stream_client.aclose()
            if model_client is None:
                client.close()

    app = FastAPI(title=cfg.APP_NAME, version="0.3", lifespan=lifespan)
    app.state.settings = cfg

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.CORS_ORIGINS,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # ------------------------------------------------------------
    # 🧯 Error envelopes
    # ------------------------------------------------------------
    @app.exception_handler(GatewayError)
    async def gateway_error(request: Request, exc: GatewayError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def body_error(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = first.get("msg", "Invalid request body")
        return _error(400, f"{where}: {message}" if where else message)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Server error on %s %s", request.method, request.url.path)
        extra = {}
        if cfg.DEBUG:
            extra["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return _error(500, str(exc) or "Internal server error", **extra)

    # ------------------------------------------------------------
    # 🧭 Health checks
    # ------------------------------------------------------------
    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "message": f"{cfg.APP_NAME} is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    app.include_router(router)

    # Static front-end last so API routes take precedence.
    if cfg.STATIC_DIR.is_dir():
        app.mount("/", StaticFiles(directory=cfg.STATIC_DIR, html=True), name="static")

    return app


app = create_app()
