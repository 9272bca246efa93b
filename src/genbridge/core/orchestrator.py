"""Generation pipelines: text → image, and text → image → 3D.

:class:`GenerationOrchestrator` is the only component that talks to more
than one upstream.  It sequences the stages and decides what each failure
means for the caller.

Text-to-3D State Machine
------------------------
::

    Start ──enhance + txt2img──▶ ImageRequested ──save──▶ ImageSaved
      │                              │                        │
      ▼ (fail)                       ▼ (fail)                 ▼ convert
    Failure                        Failure             ConversionRequested
    (no image URL)                 (no image URL)        │              │
                                                         ▼              ▼
                                                      Success   PartialSuccess
                                                       (200)        (206)

Once the image is saved, every later problem produces a
:class:`PartialSuccess` that still carries the image URL; no artifact is
silently dropped.

Vendor Payload Merging
----------------------
The 3D service's response is parsed as JSON.  A JSON object gets the
``generated_image_url`` and ``prompt`` fields added (overwriting same-named
vendor fields).  Anything else, including text that is not JSON at all, is
kept under a ``response`` key next to those two fields, so the vendor data
always reaches the caller.  Bodies using the non-standard ``NaN`` and
``Infinity`` tokens cannot be re-encoded as JSON and are kept as raw text.  A body that is empty after removing ``<EOL>``
markers and newlines counts as a failed conversion.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Union

from fastapi.concurrency import run_in_threadpool

from genbridge.clients.image_to_3d import ImageTo3DClient
from genbridge.clients.text_to_image import GENERIC_SAMPLING, SAMPLING_3D, TextToImageClient
from genbridge.core.config import GenbridgeConfig
from genbridge.core.errors import GenbridgeError
from genbridge.core.image_store import ImageStore
from genbridge.core.prompt_enhancer import PromptMode, enhance

logger = logging.getLogger(__name__)

# File name under which generated images are uploaded to the 3D service.
UPLOAD_FILENAME = "generated_image.png"


# ---------------------------------------------------------------------------
# Result variants.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Success:
    """Both stages succeeded; *payload* is the merged vendor response."""

    image_url: str
    prompt: str
    payload: dict[str, Any]

    status_code = 200

    def to_payload(self) -> dict[str, Any]:
        return self.payload


@dataclass(frozen=True)
class PartialSuccess:
    """The image exists but the 3D conversion failed."""

    image_url: str
    prompt: str
    error: str

    status_code = 206

    def to_payload(self) -> dict[str, Any]:
        return {
            "error": self.error,
            "generated_image_url": self.image_url,
            "prompt": self.prompt,
        }


@dataclass(frozen=True)
class Failure:
    """The pipeline produced nothing usable, or failed unexpectedly."""

    error: str
    image_url: str | None = None

    status_code = 500

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error}
        if self.image_url is not None:
            payload["generated_image_url"] = self.image_url
        return payload


GenerationResult = Union[Success, PartialSuccess, Failure]


# ---------------------------------------------------------------------------
# Vendor payload handling.
# ---------------------------------------------------------------------------


def clean_vendor_body(body: str | None) -> str:
    """Remove ``<EOL>`` markers and line breaks some 3D servers emit."""
    if body is None:
        return ""
    return body.replace("<EOL>", "").replace("\r", "").replace("\n", "").strip()


def _reject_constant(token: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {token}")


def parse_vendor_json(text: str) -> Any:
    """Parse strict JSON from an upstream service.

    Raises:
        ValueError: If *text* is not JSON or uses ``NaN``, ``Infinity`` or
            ``-Infinity``, which cannot be sent back to clients.
    """
    return json.loads(text, parse_constant=_reject_constant)


def merge_vendor_payload(body: str, image_url: str, prompt: str) -> dict[str, Any]:
    """Merge the image URL and prompt into a vendor response body.

    Args:
        body: Cleaned, non-empty vendor response text.
        image_url: URL of the generated source image.
        prompt: The original user prompt.

    Returns:
        A JSON-serialisable dictionary.  For a JSON object body this is the
        object plus ``generated_image_url`` and ``prompt``; otherwise the
        parsed value (or raw text) is wrapped under ``response``.
    """
    try:
        parsed: Any = parse_vendor_json(body)
    except ValueError:
        logger.warning("3D response is not JSON, wrapping raw text")
        parsed = body

    if isinstance(parsed, dict):
        merged = dict(parsed)
        merged["generated_image_url"] = image_url
        merged["prompt"] = prompt
        return merged

    return {"generated_image_url": image_url, "prompt": prompt, "response": parsed}


# ---------------------------------------------------------------------------
# Orchestrator.
# ---------------------------------------------------------------------------


class GenerationOrchestrator:
    """Runs the image and text-to-3D pipelines.

    Args:
        config: Application configuration (placeholder fallback settings).
        text_to_image: Client for the text-to-image service.
        image_store: Where generated images are persisted.
        image_to_3d: Client for the image-to-3D service.
    """

    def __init__(
        self,
        config: GenbridgeConfig,
        text_to_image: TextToImageClient,
        image_store: ImageStore,
        image_to_3d: ImageTo3DClient,
    ) -> None:
        self._config = config
        self._text_to_image = text_to_image
        self._image_store = image_store
        self._image_to_3d = image_to_3d

    def placeholder_url(self) -> str:
        return f"{self._config.placeholder_url}?random={time.time_ns() // 1_000_000}"

    async def generate_image(self, prompt: str) -> str:
        """Generate and store one image, returning its URL.

        When the local model fails and ``placeholder_fallback`` is enabled a
        placeholder image URL is returned instead; this is the only fallback
        in the system.

        Raises:
            GenbridgeError: If generation or storage fails and the
                placeholder fallback is disabled.
        """
        logger.info(f"Generating image for prompt: {prompt}")
        enhanced = enhance(prompt, PromptMode.GENERIC)

        try:
            data = await self._text_to_image.generate(
                enhanced.positive, enhanced.negative, GENERIC_SAMPLING
            )
            artifact = await run_in_threadpool(self._image_store.save, data, prefix="local")
        except GenbridgeError as exc:
            if not self._config.placeholder_fallback:
                raise
            logger.warning(f"Local model failed, using placeholder: {exc}")
            return self.placeholder_url()

        logger.info("Successfully generated image with local model")
        return artifact.url

    async def generate_3d_from_text(self, prompt: str) -> GenerationResult:
        """Run text → image → 3D and report the outcome.

        Args:
            prompt: The user prompt, already validated as non-blank.  It is
                trimmed for generation and echoed back unchanged.

        Returns:
            :class:`Success`, :class:`PartialSuccess` or :class:`Failure`.
        """
        # Start → ImageRequested
        enhanced = enhance(prompt.strip(), PromptMode.FOR_3D)
        try:
            data = await self._text_to_image.generate(
                enhanced.positive, enhanced.negative, SAMPLING_3D
            )
        except GenbridgeError as exc:
            logger.error(f"Error generating image with local model: {exc}")
            return Failure("Failed to generate image from text")

        # ImageRequested → ImageSaved
        try:
            artifact = await run_in_threadpool(self._image_store.save, data, prefix="3d")
        except GenbridgeError as exc:
            logger.error(f"Failed to save 3D source image: {exc}")
            return Failure(f"Failed to generate 3D model: {exc}")
        logger.info(f"Generated image URL: {artifact.url}")

        # ImageSaved → ConversionRequested
        try:
            body = await self._image_to_3d.convert(artifact.data, UPLOAD_FILENAME)
        except GenbridgeError as exc:
            logger.error(f"3D generation failed: {exc}")
            return PartialSuccess(artifact.url, prompt, f"3D generation failed: {exc}")

        cleaned = clean_vendor_body(body)
        if not cleaned:
            logger.error("3D generation returned an empty response")
            return PartialSuccess(
                artifact.url, prompt, "3D generation failed: empty response from 3D service"
            )

        logger.info(f"Original 3D response: {cleaned}")
        payload = merge_vendor_payload(cleaned, artifact.url, prompt)
        return Success(artifact.url, prompt, payload)
