"""Client for a TripoSR-style image-to-3D API.

The upstream service owns its response schema.  The conversion route answers
with vendor-defined metadata (request id, asset file names, timings) that
this client returns as text without interpretation; the orchestrator decides
how to wrap it.

Upstream Routes
---------------
========  ====================================  =============================
Method    Path                                  Used by
========  ====================================  =============================
POST      ``/generate-3d``                      :meth:`ImageTo3DClient.convert`
GET       ``/download/{request_id}/{filename}`` :meth:`ImageTo3DClient.download`
GET       ``/list-models``                      :meth:`ImageTo3DClient.list_models`
GET       ``/health``                           :meth:`ImageTo3DClient.health`
========  ====================================  =============================
"""

from __future__ import annotations

import logging

import httpx

from genbridge.core.config import GenbridgeConfig
from genbridge.core.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

SERVICE_NAME = "image-to-3d"

# Field name the upstream expects the uploaded image under.
IMAGE_FIELD = "image"

_MODEL_CONTENT_TYPES = {
    "obj": "model/obj",
    "ply": "model/ply",
    "glb": "model/gltf-binary",
    "fbx": "model/fbx",
}


def content_type_for(filename: str | None) -> str:
    """Map a 3D asset filename to its content type.

    Unknown or missing extensions map to ``application/octet-stream``.
    """
    if not filename or "." not in filename:
        return "application/octet-stream"
    extension = filename.rsplit(".", 1)[1].lower()
    return _MODEL_CONTENT_TYPES.get(extension, "application/octet-stream")


class ImageTo3DClient:
    """Calls the image-to-3D service.

    Args:
        config: Application configuration (base URL and timeout).
        transport: Optional ``httpx`` transport, used by tests to stub the
            upstream.
    """

    def __init__(
        self,
        config: GenbridgeConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = config.triposr_url
        self._timeout = config.request_timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _get(self, path: str) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            async with self._client() as client:
                return await client.get(url)
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(SERVICE_NAME, str(exc)) from exc

    async def convert(
        self,
        image_bytes: bytes,
        filename: str,
        content_type: str = "image/png",
    ) -> str:
        """Upload an image for 3D conversion and return the raw response body.

        Args:
            image_bytes: The image to convert.
            filename: File name reported in the multipart part.
            content_type: Content type of the multipart part.

        Returns:
            The upstream response body as text.

        Raises:
            UpstreamUnavailableError: Transport failure or non-success status.
        """
        url = f"{self._base_url}/generate-3d"
        files = {IMAGE_FIELD: (filename, image_bytes, content_type)}

        logger.info(f"Sending {len(image_bytes)} byte image '{filename}' to {url}")
        try:
            async with self._client() as client:
                response = await client.post(url, files=files)
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(
                SERVICE_NAME, f"Failed to generate 3D model from image: {exc}"
            ) from exc

        if not response.is_success:
            raise UpstreamUnavailableError(
                SERVICE_NAME,
                f"Failed to generate 3D model from image: upstream status {response.status_code}",
                status_code=response.status_code,
            )
        return response.text

    async def download(self, request_id: str, filename: str) -> bytes | None:
        """Fetch a generated asset file.

        Returns:
            The file bytes, or ``None`` when the upstream does not answer
            with 200.

        Raises:
            UpstreamUnavailableError: Transport failure.
        """
        response = await self._get(f"/download/{request_id}/{filename}")
        if response.status_code != httpx.codes.OK:
            logger.warning(
                f"Download of {request_id}/{filename} failed with status {response.status_code}"
            )
            return None
        return response.content

    async def list_models(self) -> str:
        """Return the upstream model listing body unchanged."""
        response = await self._get("/list-models")
        if not response.is_success:
            raise UpstreamUnavailableError(
                SERVICE_NAME,
                f"upstream status {response.status_code}",
                status_code=response.status_code,
            )
        return response.text

    async def health(self) -> str:
        """Return the upstream health body unchanged."""
        response = await self._get("/health")
        if not response.is_success:
            raise UpstreamUnavailableError(
                SERVICE_NAME,
                f"upstream status {response.status_code}",
                status_code=response.status_code,
            )
        return response.text
