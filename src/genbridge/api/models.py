"""Pydantic request and response models for the genbridge API.

FastAPI uses these models for request validation, serialisation and the
OpenAPI documentation.

Models
------
GenerateRequest
    Payload for ``POST /api/generate``.
GenerateResponse
    Response of ``POST /api/generate``, success and error alike.
TextTo3DRequest
    Payload for ``POST /api/3d/generate-from-text``.

The model catalog models live in :mod:`genbridge.core.catalog`.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class GenerateRequest(BaseModel):
    """Request body for the ``POST /api/generate`` endpoint.

    Only ``prompt`` influences generation.  ``style``, ``width``, ``height``
    and ``model`` are accepted for client compatibility but are not passed
    to the text-to-image service, which always renders 512x512.

    Attributes:
        prompt: Text prompt.  A missing or blank prompt is rejected with 400
            by the route handler.
        style: Requested style name.
        width: Requested image width in pixels.
        height: Requested image height in pixels.
        model: Requested model identifier.
    """

    prompt: str | None = Field(
        default=None,
        description="Text prompt describing the image.",
    )
    style: str = Field(
        default="realistic",
        description="Style name (accepted, currently unused).",
    )
    width: int = Field(
        default=512,
        description="Image width in pixels (accepted, currently unused).",
    )
    height: int = Field(
        default=512,
        description="Image height in pixels (accepted, currently unused).",
    )
    model: str = Field(
        default="default",
        description="Model identifier (accepted, currently unused).",
    )


class GenerateResponse(BaseModel):
    """Response body for ``POST /api/generate``.

    Serialised with camelCase keys (``imageUrl``) to match the frontend.

    Attributes:
        image_url: URL of the generated (or placeholder) image.
        prompt: The prompt the image was generated for.
        status: ``"success"`` or ``"error"``.
        error: Error description when ``status`` is ``"error"``.
        timestamp: Milliseconds since the epoch when the response was built.
    """

    model_config = ConfigDict(populate_by_name=True)

    image_url: str | None = Field(default=None, alias="imageUrl")
    prompt: str | None = None
    status: Literal["success", "error"]
    error: str | None = None
    timestamp: int


class TextTo3DRequest(BaseModel):
    """Request body for ``POST /api/3d/generate-from-text``.

    Attributes:
        prompt: Text prompt.  Surrounding whitespace is stripped before use;
            a missing or blank prompt is rejected with 400.
    """

    prompt: str | None = Field(
        default=None,
        description="Text prompt describing the object to model.",
    )
