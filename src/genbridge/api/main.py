"""genbridge - FastAPI Application.

This module defines the application factory, all REST API routes, and the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The application is a stateless proxy:

- **Configuration** is a single frozen :class:`~genbridge.core.config.GenbridgeConfig`
  built by :func:`create_app` and passed to every component.
- **Image generation** is forwarded to an Automatic1111-style API by
  :class:`~genbridge.clients.text_to_image.TextToImageClient`.
- **3D generation** is forwarded to a TripoSR-style API by
  :class:`~genbridge.clients.image_to_3d.ImageTo3DClient`.
- **Pipelines** are sequenced by
  :class:`~genbridge.core.orchestrator.GenerationOrchestrator`, which owns
  the partial-failure contract of the text-to-3D route.
- **Generated images** are written to a local directory by
  :class:`~genbridge.core.image_store.ImageStore` and served back by
  ``GET /api/images/{filename}``.

Endpoints
---------
========  ========================================  ================================
Method    Path                                      Purpose
========  ========================================  ================================
POST      ``/api/generate``                         Generate one image
GET       ``/api/health``                           Liveness string
GET       ``/api/models``                           Model catalog
GET       ``/api/images/{filename}``                Serve a generated image
POST      ``/api/3d/generate-from-text``            Text → image → 3D pipeline
POST      ``/api/3d/generate``                      Uploaded image → 3D passthrough
GET       ``/api/3d/download/{request_id}/{name}``  Proxy a 3D asset download
GET       ``/api/3d/models``                        3D service model listing
GET       ``/api/3d/health``                        3D service health
========  ========================================  ================================

Error Bodies
------------
Every error response is a JSON object with an ``error`` key.  Route-level
:class:`HTTPException` errors keep their status; malformed request bodies
(not JSON, wrong field types) answer 400 instead of FastAPI's default 422.

Usage
-----
CLI (installed entry point)::

    genbridge

Direct invocation::

    python -m genbridge.api.main
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from genbridge import __version__
from genbridge.api.models import GenerateRequest, GenerateResponse, TextTo3DRequest
from genbridge.clients.image_to_3d import ImageTo3DClient, content_type_for
from genbridge.clients.text_to_image import TextToImageClient
from genbridge.core.catalog import ModelCatalog, list_models
from genbridge.core.config import GenbridgeConfig
from genbridge.core.errors import GenbridgeError
from genbridge.core.image_store import ImageStore
from genbridge.core.orchestrator import GenerationOrchestrator, parse_vendor_json

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    """Build a JSON error response ``{"error": message, **extra}``."""
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _require_prompt(prompt: str | None) -> str:
    if prompt is None or not prompt.strip():
        raise HTTPException(status_code=400, detail="No prompt provided")
    return prompt


# ---------------------------------------------------------------------------
# Image routes.
# ---------------------------------------------------------------------------


@router.post(
    "/generate",
    response_model=GenerateResponse,
    response_model_exclude_none=True,
)
async def generate_image(req: GenerateRequest, request: Request):
    """Generate one image for a text prompt.

    The prompt is enhanced with framing text and rendered by the local
    text-to-image service.  If that fails, the orchestrator may substitute a
    placeholder image URL (see ``placeholder_fallback``).

    Returns:
        :class:`GenerateResponse` with ``status="success"``, or the same
        shape with ``status="error"`` and HTTP 500.

    Raises:
        HTTPException: 400 if the prompt is missing or blank.
    """
    prompt = _require_prompt(req.prompt)
    orchestrator: GenerationOrchestrator = request.app.state.orchestrator

    try:
        image_url = await orchestrator.generate_image(prompt)
    except GenbridgeError as exc:
        logger.error(f"Image generation failed: {exc}")
        body = GenerateResponse(
            status="error",
            error=f"Failed to generate image: {exc}",
            timestamp=_now_millis(),
        )
        return JSONResponse(
            status_code=500,
            content=body.model_dump(by_alias=True, exclude_none=True),
        )

    return GenerateResponse(
        image_url=image_url,
        prompt=prompt,
        status="success",
        timestamp=_now_millis(),
    )


@router.get("/health", response_class=PlainTextResponse)
async def health() -> str:
    """Liveness check for this service."""
    return "AI Backend is running!"


@router.get("/models", response_model=ModelCatalog)
async def get_models(request: Request) -> ModelCatalog:
    """Return the model catalog, probing the local text-to-image service."""
    return await list_models(request.app.state.text_to_image)


@router.get("/images/{filename}")
async def get_image(filename: str, request: Request) -> Response:
    """Serve a previously generated image.

    Raises:
        HTTPException: 404 if no image with that name exists.
    """
    store: ImageStore = request.app.state.image_store
    try:
        path = store.resolve(filename)
    except FileNotFoundError:
        logger.warning(f"Image file not found: {filename}")
        raise HTTPException(status_code=404, detail="Image not found")

    try:
        data = await run_in_threadpool(path.read_bytes)
    except OSError as exc:
        logger.error(f"Error serving image {filename}: {exc}")
        return _error(500, "Failed to read image")

    logger.info(f"Serving image: {filename}")
    return Response(content=data, media_type="image/png")


# ---------------------------------------------------------------------------
# 3D routes.
# ---------------------------------------------------------------------------


@router.post("/3d/generate-from-text")
async def generate_3d_from_text(req: TextTo3DRequest, request: Request) -> JSONResponse:
    """Generate an image from text, then convert it to a 3D model.

    Status codes:

    - 200: both stages succeeded; body is the vendor payload with
      ``generated_image_url`` and ``prompt`` merged in.
    - 206: the image was generated but 3D conversion failed; body carries
      ``error``, ``generated_image_url`` and ``prompt``.
    - 400: missing or blank prompt.
    - 500: no image could be produced.
    """
    prompt = _require_prompt(req.prompt)
    orchestrator: GenerationOrchestrator = request.app.state.orchestrator

    result = await orchestrator.generate_3d_from_text(prompt)
    return JSONResponse(status_code=result.status_code, content=result.to_payload())


@router.post("/3d/generate")
async def generate_3d(request: Request, image: UploadFile | None = File(default=None)) -> Response:
    """Convert an uploaded image to a 3D model.

    The vendor response is passed through unchanged.

    Raises:
        HTTPException: 400 if no file was sent, the file is empty, or it is
            not an image.
    """
    if image is None:
        raise HTTPException(status_code=400, detail="No image file provided")

    content_type = image.content_type
    if not content_type or not content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image")

    try:
        data = await image.read()
    except OSError as exc:
        return _error(500, f"Failed to process image: {exc}")

    if not data:
        raise HTTPException(status_code=400, detail="No image file provided")

    client: ImageTo3DClient = request.app.state.image_to_3d
    try:
        body = await client.convert(data, image.filename or "upload.png", content_type)
    except GenbridgeError as exc:
        logger.error(f"3D generation from upload failed: {exc}")
        return _error(500, f"Failed to generate 3D model: {exc}")

    return Response(content=body, media_type="application/json")


@router.get("/3d/download/{request_id}/{filename}")
async def download_model(request_id: str, filename: str, request: Request) -> Response:
    """Proxy a generated 3D asset from the 3D service."""
    client: ImageTo3DClient = request.app.state.image_to_3d
    try:
        data = await client.download(request_id, filename)
    except GenbridgeError as exc:
        logger.error(f"Download of {request_id}/{filename} failed: {exc}")
        return Response(status_code=500)

    if data is None:
        return Response(status_code=404)

    return Response(
        content=data,
        media_type=content_type_for(filename),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/3d/models")
async def list_3d_models(request: Request) -> Response:
    """Pass through the 3D service's model listing."""
    client: ImageTo3DClient = request.app.state.image_to_3d
    try:
        body = await client.list_models()
    except GenbridgeError as exc:
        return _error(500, f"Failed to fetch models: {exc}")
    return Response(content=body, media_type="application/json")


@router.get("/3d/health")
async def health_3d(request: Request) -> JSONResponse:
    """Report this service's and the 3D service's health.

    Returns 200 with the upstream health body under ``response`` when the
    3D service answers, 503 otherwise.
    """
    client: ImageTo3DClient = request.app.state.image_to_3d
    try:
        body = await client.health()
    except GenbridgeError as exc:
        return _error(503, str(exc), api="healthy", triposr_api="unhealthy")

    try:
        upstream: Any = parse_vendor_json(body)
    except ValueError:
        upstream = body

    return JSONResponse(content={"api": "healthy", "triposr_api": "healthy", "response": upstream})


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    logger.warning(f"Rejected request to {request.url.path}: {message}")
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {message}"})


def create_app(
    config: GenbridgeConfig | None = None,
    *,
    text_to_image: TextToImageClient | None = None,
    image_to_3d: ImageTo3DClient | None = None,
    image_store: ImageStore | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Components not supplied are constructed from *config*.  Tests pass stub
    clients to keep the upstream services out of the picture.

    Args:
        config: Application configuration.  Loaded from the environment when
            omitted.
        text_to_image: Text-to-image client override.
        image_to_3d: Image-to-3D client override.
        image_store: Image store override.

    Returns:
        The configured :class:`FastAPI` instance.
    """
    if config is None:
        config = GenbridgeConfig()
    if text_to_image is None:
        text_to_image = TextToImageClient(config)
    if image_to_3d is None:
        image_to_3d = ImageTo3DClient(config)
    if image_store is None:
        image_store = ImageStore(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        image_store.directory.mkdir(parents=True, exist_ok=True)
        logger.info(f"Image storage directory: {image_store.directory}")
        logger.info(
            f"Upstreams: text-to-image={config.image_model_url}, image-to-3d={config.triposr_url}"
        )
        yield

    app = FastAPI(
        title="genbridge",
        description="Proxy API for text-to-image and image-to-3D generation services.",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.text_to_image = text_to_image
    app.state.image_to_3d = image_to_3d
    app.state.image_store = image_store
    app.state.orchestrator = GenerationOrchestrator(
        config, text_to_image, image_store, image_to_3d
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.include_router(router)
    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :class:`GenbridgeConfig` (which
    loads ``GENBRIDGE_SERVER_HOST``, ``GENBRIDGE_SERVER_PORT`` and
    ``GENBRIDGE_LOG_LEVEL``).  Defaults to ``0.0.0.0:8080``.

    This function is registered as the ``genbridge`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    config = GenbridgeConfig()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        create_app(config),
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
