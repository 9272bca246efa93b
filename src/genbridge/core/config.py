"""Configuration management for genbridge.

This module provides the settings object shared by the HTTP clients, the
image store and the FastAPI application.  Values are loaded with Pydantic
Settings from environment variables carrying the ``GENBRIDGE_`` prefix,
allowing deployments to point the proxy at different upstream services
without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:

1. Keyword arguments passed to :class:`GenbridgeConfig`
2. Environment variables (``GENBRIDGE_*`` prefix)
3. ``.env`` file in the working directory
4. Default values defined in :class:`GenbridgeConfig`

Example .env file::

    GENBRIDGE_IMAGE_MODEL_URL=http://gpu-box:7860
    GENBRIDGE_TRIPOSR_URL=http://gpu-box:5000
    GENBRIDGE_PUBLIC_BASE_URL=http://localhost:8080
    GENBRIDGE_IMAGES_DIR=generated-images

Explicit Configuration
----------------------
There is no module-level configuration instance.  The application factory
(:func:`genbridge.api.main.create_app`) builds one :class:`GenbridgeConfig`
and hands it to every component at construction time.  Instances are frozen,
so a component can never observe a setting changing underneath it.

Usage Example
-------------
::

    from genbridge.core.config import GenbridgeConfig

    config = GenbridgeConfig(image_model_url="http://gpu-box:7860")
    print(config.txt2img_endpoint)
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GenbridgeConfig(BaseSettings):
    """Main configuration for genbridge.

    Attributes
    ----------
    Upstream Services:
        image_model_url : str
            Base URL of the Automatic1111-style text-to-image API.
        triposr_url : str
            Base URL of the TripoSR-style image-to-3D API.
        request_timeout : float | None
            Timeout in seconds applied to every upstream call.  ``None``
            waits indefinitely, which suits slow diffusion backends.

    Image Storage:
        images_dir : Path
            Directory that receives generated images.
        public_base_url : str
            Own externally reachable URL, embedded in returned image URLs.
            Not derived from the incoming request.

    Fallback:
        placeholder_fallback : bool
            Whether ``POST /api/generate`` answers with a placeholder image
            URL when the local model fails.
        placeholder_url : str
            Base of the placeholder image URL.

    Server:
        server_host : str
            Bind address for uvicorn.
        server_port : int
            Port for uvicorn (1024-65535).
        cors_origins : list[str]
            Origins allowed to call the API from a browser.
        log_level : str
            Root logging level used by the CLI entry point.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GENBRIDGE_",
        case_sensitive=False,
        frozen=True,
    )

    # Upstream services
    image_model_url: str = Field(
        default="http://localhost:7860",
        description="Base URL of the text-to-image (Automatic1111) API",
    )
    triposr_url: str = Field(
        default="http://localhost:5000",
        description="Base URL of the image-to-3D (TripoSR) API",
    )
    request_timeout: float | None = Field(
        default=None,
        description="Upstream timeout in seconds (None disables the timeout)",
        gt=0,
    )

    # Image storage
    images_dir: Path = Field(
        default=Path("generated-images"),
        description="Directory to save generated images",
    )
    public_base_url: str = Field(
        default="http://localhost:8080",
        description="Own URL used when building returned image URLs",
    )

    # Fallback
    placeholder_fallback: bool = Field(
        default=True,
        description="Answer /api/generate with a placeholder image when the local model fails",
    )
    placeholder_url: str = Field(
        default="https://picsum.photos/512/512",
        description="Base URL of the placeholder image service",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=8080,
        description="Server port",
        ge=1024,
        le=65535,
    )
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:3001"],
        description="Origins allowed by the CORS middleware",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level for the CLI entry point",
    )

    @field_validator("image_model_url", "triposr_url", "public_base_url", "placeholder_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def txt2img_endpoint(self) -> str:
        """Full URL of the ``txt2img`` route of the text-to-image API."""
        return f"{self.image_model_url}/sdapi/v1/txt2img"

    @property
    def options_endpoint(self) -> str:
        """Full URL of the options route, used as a liveness probe."""
        return f"{self.image_model_url}/sdapi/v1/options"
