"""Client for an Automatic1111-style text-to-image API.

The upstream exposes a synchronous ``POST /sdapi/v1/txt2img`` route that
blocks until the image is rendered and answers with JSON of the form::

    {"images": ["<base64 png>", ...], "parameters": {...}, "info": "..."}

Only the first image is used.  The client makes exactly one attempt per
call; whether to fall back to something else is the caller's decision.

Failure Modes
-------------
- Transport failure or non-200 status → :class:`UpstreamUnavailableError`.
- Body that is not JSON, a missing or empty ``images`` list, undecodable
  base64, or bytes Pillow does not recognise as an image →
  :class:`ImageDecodeError`.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import asdict, dataclass

import httpx
from fastapi.concurrency import run_in_threadpool
from PIL import Image

from genbridge.core.config import GenbridgeConfig
from genbridge.core.errors import ImageDecodeError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

SERVICE_NAME = "text-to-image"


@dataclass(frozen=True)
class SamplingParams:
    """Sampling parameters sent alongside the prompt.

    Field names match the ``txt2img`` request body.
    """

    steps: int = 10
    width: int = 512
    height: int = 512
    cfg_scale: float = 7
    sampler_name: str = "DPM++ 2M"


# Plain image generation.
GENERIC_SAMPLING = SamplingParams()

# Images feeding the 3D stage: slightly stronger prompt adherence and a
# sampler that produces cleaner backgrounds.
SAMPLING_3D = SamplingParams(cfg_scale=7.5, sampler_name="DPM++ 2M Karras")


def decode_image(encoded: str) -> bytes:
    """Decode one base64 entry of the ``images`` list into raw image bytes.

    A ``data:`` URI prefix, which some forks of the web UI emit, is
    tolerated.

    Raises:
        ImageDecodeError: If the entry is not valid base64 or the decoded
            bytes are not a readable image.
    """
    if encoded.startswith("data:"):
        encoded = encoded.partition(",")[2]

    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageDecodeError(f"Malformed base64 image: {exc}") from exc

    try:
        with Image.open(io.BytesIO(data)) as image:
            image.verify()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageDecodeError(f"Decoded bytes are not an image: {exc}") from exc

    return data


class TextToImageClient:
    """Calls the text-to-image service.

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
        self._config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._config.request_timeout, transport=self._transport)

    async def generate(
        self,
        positive: str,
        negative: str,
        params: SamplingParams = GENERIC_SAMPLING,
    ) -> bytes:
        """Render one image and return its raw bytes.

        Args:
            positive: The (enhanced) prompt.
            negative: The negative prompt.
            params: Sampling parameters, normally one of
                :data:`GENERIC_SAMPLING` or :data:`SAMPLING_3D`.

        Returns:
            Raw bytes of the first returned image.

        Raises:
            UpstreamUnavailableError: Transport failure or non-OK status.
            ImageDecodeError: No usable image in the response.
        """
        payload = {"prompt": positive, "negative_prompt": negative, **asdict(params)}
        url = self._config.txt2img_endpoint

        logger.info(f"Sending txt2img request to {url}, waiting for completion...")
        try:
            async with self._client() as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            logger.error(f"Local model error: {exc}")
            raise UpstreamUnavailableError(SERVICE_NAME, f"Local model failed: {exc}") from exc

        if response.status_code != httpx.codes.OK:
            logger.error(f"Local model answered with status {response.status_code}")
            raise UpstreamUnavailableError(
                SERVICE_NAME,
                f"Local model answered with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ImageDecodeError("Local model response is not JSON") from exc

        images = body.get("images") if isinstance(body, dict) else None
        if not isinstance(images, list) or not images:
            logger.warning("No images in response or wrong format")
            raise ImageDecodeError("No images in local model response")

        first = images[0]
        if not isinstance(first, str) or not first:
            raise ImageDecodeError("First image entry is empty")

        logger.info(f"Received {len(images)} image(s), base64 length {len(first)}")
        return await run_in_threadpool(decode_image, first)

    async def probe(self) -> bool:
        """Return ``True`` if the service answers its options route.

        Never raises; any transport error or non-OK status counts as
        unavailable.
        """
        try:
            async with self._client() as client:
                response = await client.get(self._config.options_endpoint)
        except httpx.HTTPError as exc:
            logger.warning(f"Local model not available: {exc}")
            return False

        if not response.is_success:
            logger.warning(f"Local model not available: status {response.status_code}")
            return False
        return True
