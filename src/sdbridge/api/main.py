"""sdbridge FastAPI application.

This module is the single entry point for the web application. It defines
the FastAPI ``app`` instance, all REST API routes, the JSON-RPC endpoint,
and the ``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The front door is a thin marshalling layer over
:class:`~sdbridge.core.service.SDBridgeService`:

- **The service** is created in the lifespan handler and stored on
  ``app.state``. Its HTTP client is closed on shutdown.
- **Typed errors** raised by the core are translated into JSON error
  responses carrying the message (``detail``) and a suggested ``remedy``.
- **JSON-RPC** requests on ``/api/mcp`` run the complete text-to-image flow
  and answer with a Markdown rendering of the result.

Endpoints
---------
========  ================================  ================================
Method    Path                              Purpose
========  ================================  ================================
GET       ``/health``                       Liveness check
POST      ``/api/prompt/optimize``          Optimise a description
POST      ``/api/parameters/recommend``     Recommend generation parameters
POST      ``/api/generate``                 Run a txt2img generation
GET       ``/api/progress``                 Current generation progress
POST      ``/api/cancel``                   Interrupt the current generation
GET       ``/api/models``                   Models offered by the WebUI
GET       ``/api/samplers``                 Samplers offered by the WebUI
POST      ``/api/mcp``                      JSON-RPC 2.0 (initialize, generate)
========  ================================  ================================

Error mapping
-------------
=========================  ======
Error                      Status
=========================  ======
ValidationError            422
RejectedRequestError       502
DecodeError                502
TransportError             503
ServiceError               503
=========================  ======

Usage
-----
CLI (installed entry point)::

    sdbridge

Direct invocation::

    python -m sdbridge.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from sdbridge import __version__
from sdbridge.api.formatting import format_generation_markdown
from sdbridge.api.models import GenerateRequest, JsonRpcRequest, OptimizeRequest, RecommendRequest
from sdbridge.core.config import config
from sdbridge.core.errors import (
    DecodeError,
    RejectedRequestError,
    SDBridgeError,
    ServiceError,
    TransportError,
    ValidationError,
)
from sdbridge.core.service import SDBridgeService

logger = logging.getLogger(__name__)

# JSON-RPC 2.0 error codes.
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

_ERROR_STATUS: list[tuple[type[SDBridgeError], int]] = [
    (ValidationError, 422),
    (RejectedRequestError, 502),
    (DecodeError, 502),
    (TransportError, 503),
    (ServiceError, 503),
]


def build_service() -> SDBridgeService:
    """Create the service used by the application."""
    return SDBridgeService(config)


# ---------------------------------------------------------------------------
# Application lifecycle: service setup and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Creates the :class:`SDBridgeService` and stores it on ``app.state``.
        Nothing is sent to the WebUI at this point.

    On shutdown:
        Closes the service's HTTP client.
    """
    app.state.service = build_service()
    logger.info(f"sdbridge {__version__} targeting {config.sd_base_url}")

    yield

    await app.state.service.aclose()
    logger.info("Generation client closed on shutdown.")


app = FastAPI(
    title="sdbridge",
    description="Prompt optimisation and resilient generation for Stable Diffusion WebUI.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _service(request: Request) -> SDBridgeService:
    return request.app.state.service


def _status_for(error: SDBridgeError) -> int:
    for error_type, status in _ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


@app.exception_handler(SDBridgeError)
async def handle_sdbridge_error(request: Request, exc: SDBridgeError) -> JSONResponse:
    """Render typed core errors as JSON with a remedy."""
    status = _status_for(exc)
    body: dict[str, Any] = {
        "detail": exc.message,
        "remedy": exc.remedy,
        "error": type(exc).__name__,
    }
    if isinstance(exc, RejectedRequestError):
        body["category"] = exc.category
        body["upstream_status"] = exc.status_code
    elif exc.status_code is not None:
        body["upstream_status"] = exc.status_code

    logger.warning(f"{request.method} {request.url.path} -> {status}: {exc.message}")
    return JSONResponse(status_code=status, content=body)


# ---------------------------------------------------------------------------
# REST routes.
# ---------------------------------------------------------------------------


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "version": __version__}


@app.post("/api/prompt/optimize")
async def optimize(req: OptimizeRequest, request: Request) -> dict:
    """Optimise a free-form description into a weighted prompt.

    Returns:
        The optimisation result: optimised and negative prompts, the
        structured prompt, keyword weights and a confidence score.
    """
    result = await _service(request).optimize_prompt(
        req.text, model_name=req.model_name, max_length=req.max_length
    )
    return result.to_dict()


@app.post("/api/parameters/recommend")
async def recommend(req: RecommendRequest, request: Request) -> dict:
    return _service(request).recommend_parameters(req.prompt, req.model_name)


@app.post("/api/generate")
async def generate(req: GenerateRequest, request: Request) -> dict:
    """Run a txt2img generation with retries and progress polling.

    Raises:
        HTTPException: 409 if a generation is already running, 504 if the
            deadline passed.
    """
    try:
        result = await _service(request).generate(
            req.to_generation_request(), timeout=req.timeout
        )
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except TimeoutError as e:
        raise HTTPException(status_code=504, detail=str(e)) from e
    return result.model_dump()


@app.get("/api/progress")
async def progress(request: Request) -> dict:
    snapshot = await _service(request).get_progress()
    return snapshot.model_dump()


@app.post("/api/cancel")
async def cancel(request: Request) -> dict:
    interrupted = await _service(request).cancel()
    return {"interrupted": interrupted}


@app.get("/api/models")
async def models(request: Request) -> list[dict]:
    return [m.model_dump() for m in await _service(request).client.list_models()]


@app.get("/api/samplers")
async def samplers(request: Request) -> list[dict]:
    return [s.model_dump() for s in await _service(request).client.list_samplers()]


# ---------------------------------------------------------------------------
# JSON-RPC endpoint.
# ---------------------------------------------------------------------------


def _rpc_error(request_id: Any, code: int, message: str, data: Any = None) -> dict:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": request_id, "error": error}


def _rpc_result(request_id: Any, result: Any) -> dict:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


@app.post("/api/mcp")
async def mcp(request: Request) -> dict:
    """Handle a JSON-RPC 2.0 call.

    Supported methods:

    - ``initialize``: returns the server capabilities
    - ``generate``: runs the text-to-image flow for ``params.input`` and
      returns ``{"content": <markdown>}``

    Errors are always answered with HTTP 200 and a JSON-RPC error object.
    """
    try:
        payload = await request.json()
        rpc = JsonRpcRequest.model_validate(payload)
    except (ValueError, PydanticValidationError):
        return _rpc_error(None, INVALID_REQUEST, "Invalid JSON-RPC request")

    if rpc.jsonrpc != "2.0":
        return _rpc_error(rpc.id, INVALID_REQUEST, "Invalid JSON-RPC request")

    if rpc.method == "initialize":
        return _rpc_result(
            rpc.id,
            {
                "serverInfo": {"name": "sdbridge", "version": __version__},
                "capabilities": {"generate": True},
            },
        )

    if rpc.method != "generate":
        return _rpc_error(rpc.id, METHOD_NOT_FOUND, f"Method '{rpc.method}' is not supported")

    text = (rpc.params or {}).get("input")
    if not isinstance(text, str) or not text.strip():
        return _rpc_error(rpc.id, INVALID_PARAMS, "params.input must be a non-empty string")

    try:
        outcome = await _service(request).text_to_image(text)
    except (RuntimeError, TimeoutError) as e:
        logger.exception("JSON-RPC generate failed")
        return _rpc_error(rpc.id, INTERNAL_ERROR, f"Server error: {e}")

    if not outcome["success"]:
        return _rpc_error(
            rpc.id, INTERNAL_ERROR, outcome["error"], data={"details": outcome["details"]}
        )

    return _rpc_result(rpc.id, {"content": format_generation_markdown(outcome)})


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~sdbridge.core.config.config` (which
    loads from ``SDBRIDGE_SERVER_HOST`` and ``SDBRIDGE_SERVER_PORT``
    environment variables). Defaults to ``0.0.0.0:3003``.

    This function is registered as the ``sdbridge`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "sdbridge.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
