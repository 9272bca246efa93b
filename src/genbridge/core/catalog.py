"""Model catalog reported by ``GET /api/models``.

The catalog is rebuilt on every request by probing the text-to-image
service.  A failed probe degrades the local entry to ``offline`` instead of
raising, and the placeholder provider is always listed as ``ready`` because
``POST /api/generate`` can fall back to it at any time.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from genbridge.clients.text_to_image import TextToImageClient

LOCAL_PROVIDER = "local"
PLACEHOLDER_PROVIDER = "placeholder"


class ModelCatalogEntry(BaseModel):
    """One generation backend and its current status."""

    name: str
    description: str
    provider: str
    status: Literal["ready", "offline"]


class ModelCatalog(BaseModel):
    """Response body of ``GET /api/models``."""

    model_config = ConfigDict(populate_by_name=True)

    models: list[ModelCatalogEntry]
    total: int
    active_provider: str = Field(default=LOCAL_PROVIDER, alias="activeProvider")


PLACEHOLDER_ENTRY = ModelCatalogEntry(
    name="Placeholder",
    description="Fallback images",
    provider=PLACEHOLDER_PROVIDER,
    status="ready",
)


async def list_models(text_to_image: TextToImageClient) -> ModelCatalog:
    """Build the catalog, probing the local text-to-image service."""
    if await text_to_image.probe():
        local = ModelCatalogEntry(
            name="Local Stable Diffusion",
            description="Unlimited local image generation",
            provider=LOCAL_PROVIDER,
            status="ready",
        )
    else:
        local = ModelCatalogEntry(
            name="Local Stable Diffusion",
            description="Start the Stable Diffusion web UI to enable",
            provider=LOCAL_PROVIDER,
            status="offline",
        )

    models = [local, PLACEHOLDER_ENTRY]
    return ModelCatalog(models=models, total=len(models), active_provider=LOCAL_PROVIDER)
