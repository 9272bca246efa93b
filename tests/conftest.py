"""Shared pytest fixtures for genbridge tests."""

from __future__ import annotations

import io
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from genbridge.api.main import create_app
from genbridge.core.config import GenbridgeConfig
from genbridge.core.errors import UpstreamUnavailableError
from genbridge.core.image_store import ImageStore


def make_png(color: str = "red", size: tuple[int, int] = (8, 8)) -> bytes:
    """Return the bytes of a small PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class StubTextToImage:
    """Stands in for :class:`TextToImageClient`.

    Args:
        image: Bytes returned by ``generate``.
        error: Exception raised by ``generate`` instead of returning.
        available: Result of ``probe``.
    """

    def __init__(self, image: bytes | None = None, error: Exception | None = None, available=True):
        self.image = image if image is not None else make_png()
        self.error = error
        self.available = available
        self.calls: list[tuple] = []

    async def generate(self, positive, negative, params=None):
        self.calls.append((positive, negative, params))
        if self.error is not None:
            raise self.error
        return self.image

    async def probe(self) -> bool:
        return self.available


class StubImageTo3D:
    """Stands in for :class:`ImageTo3DClient`."""

    def __init__(
        self,
        body: str = '{"request_id": "req-1", "files": ["mesh.obj"]}',
        error: Exception | None = None,
        files: dict[tuple[str, str], bytes] | None = None,
        models: str = '{"models": ["triposr"]}',
        health: str = '{"status": "ok"}',
        unavailable: bool = False,
    ):
        self.body = body
        self.error = error
        self.files = files or {}
        self.models = models
        self.health_body = health
        self.unavailable = unavailable
        self.converted: list[tuple[bytes, str]] = []

    def _check(self) -> None:
        if self.unavailable:
            raise UpstreamUnavailableError("image-to-3d", "Connection refused")

    async def convert(self, image_bytes, filename, content_type="image/png"):
        self.converted.append((image_bytes, filename))
        if self.error is not None:
            raise self.error
        return self.body

    async def download(self, request_id, filename):
        self._check()
        return self.files.get((request_id, filename))

    async def list_models(self):
        self._check()
        return self.models

    async def health(self):
        self._check()
        return self.health_body


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> GenbridgeConfig:
    """Create a test configuration storing images in a temporary directory."""
    return GenbridgeConfig(
        images_dir=str(temp_dir / "images"),
        image_model_url="http://sd.test",
        triposr_url="http://triposr.test",
        public_base_url="http://localhost:8080",
        _env_file=None,
    )


@pytest.fixture
def image_store(test_config: GenbridgeConfig) -> ImageStore:
    return ImageStore(test_config)


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def png_factory():
    """Return the PNG builder so tests can make several distinct images."""
    return make_png


@pytest.fixture
def text_to_image() -> StubTextToImage:
    return StubTextToImage()


@pytest.fixture
def image_to_3d() -> StubImageTo3D:
    return StubImageTo3D()


@pytest.fixture
def test_client(
    test_config: GenbridgeConfig,
    text_to_image: StubTextToImage,
    image_to_3d: StubImageTo3D,
    image_store: ImageStore,
) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to stub upstream clients.

    Tests customise upstream behaviour by mutating the ``text_to_image`` and
    ``image_to_3d`` fixtures before issuing requests.
    """
    app = create_app(
        test_config,
        text_to_image=text_to_image,
        image_to_3d=image_to_3d,
        image_store=image_store,
    )
    with TestClient(app) as client:
        yield client
