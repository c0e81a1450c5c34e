"""
HTTP API
========

    POST /chat     {"prompt", "contextId"?, "withRefs"?, "model"?}
    GET  /health
    GET  /models

The FastAPI app is built around an ``AutomationService`` instance; the app's
lifespan launches it and shuts it down.
"""

import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional, Dict, Any

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from . import __version__
from .config import BridgeConfig
from .errors import InvalidRequest, NavigationFailed
from .models import AVAILABLE_MODELS, DEFAULT_MODEL

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = None
    context_id: Optional[str] = Field(default=None, alias="contextId")
    with_refs: bool = Field(default=False, alias="withRefs")
    model: str = DEFAULT_MODEL


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chat_id: str = Field(alias="chatId")
    response: str
    references: Optional[str] = None


def _describe_validation_errors(errors) -> str:
    parts = []
    for error in errors:
        # Drop the leading "body"/"query" location
        field = ".".join(str(p) for p in error.get("loc", ())[1:])
        parts.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return "Invalid request: " + "; ".join(parts)


def _error_response(error: str, exc: Exception, expose_stack: bool) -> JSONResponse:
    content: Dict[str, Any] = {"error": error}
    if str(exc) and str(exc) != error:
        content["details"] = str(exc)
    if expose_stack:
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=500, content=content)


def create_app(service, config: Optional[BridgeConfig] = None) -> FastAPI:
    """
    Build the FastAPI app for ``service``.

    Startup fails (and the server never starts listening) if the service
    cannot launch or sign in.
    """
    config = config or service.config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting browser...")
        await service.launch()
        logger.info(f"Bridge ready on http://{config.host}:{config.port}")

        yield

        await service.shutdown_and_close_all()

    app = FastAPI(
        title="Venice Bridge API",
        description="Local API bridge to Venice AI via browser automation",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return service.describe()

    @app.get("/models")
    async def list_models():
        """List available models for selection."""
        return {
            "models": list(AVAILABLE_MODELS.keys()),
            "descriptions": AVAILABLE_MODELS,
        }

    @app.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
    async def chat(request: ChatRequest):
        """
        Send a prompt to a Venice conversation.

        Without ``contextId`` a new conversation is started; the reply's
        ``chatId`` identifies it for follow-up prompts.
        """
        if not request.prompt:
            raise HTTPException(status_code=400, detail="No prompt provided")

        try:
            chat_id, result = await service.chat(
                request.prompt,
                context_id=request.context_id,
                model=request.model,
            )
        except InvalidRequest as e:
            raise HTTPException(status_code=400, detail=str(e))
        except NavigationFailed as e:
            logger.error(f"Error finding or creating chat session: {e}", exc_info=True)
            return _error_response("Failed to find or create chat session", e, config.expose_stack)
        except Exception as e:
            logger.error(f"Error in /chat endpoint: {e}", exc_info=True)
            return _error_response(str(e) or type(e).__name__, e, config.expose_stack)

        return ChatResponse(
            chat_id=chat_id,
            response=result.response,
            references=result.references_markdown if request.with_refs else None,
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request, exc):
        return JSONResponse(status_code=400, content={"error": _describe_validation_errors(exc.errors())})

    return app


async def run_server(service, config: BridgeConfig):
    """Run the HTTP API server until interrupted."""
    import uvicorn

    app = create_app(service, config)
    server_config = uvicorn.Config(app, host=config.host, port=config.port, log_level=config.log_level.lower())
    server = uvicorn.Server(server_config)
    await server.serve()
