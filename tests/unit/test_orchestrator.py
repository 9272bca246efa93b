"""Tests for genbridge.core.orchestrator - generation pipelines.

Upstream clients are replaced with the stubs from ``conftest.py``.  Tests
cover:

- Text-to-3D success with vendor payload merging.
- Partial success when the 3D stage fails or answers empty.
- Total failure when no image is produced or it cannot be stored.
- Payload merging for objects, arrays, scalars, non-JSON text and bodies
  using NaN or Infinity.
- Single-stage image generation with and without the placeholder fallback.
"""

from __future__ import annotations

import asyncio
import json

import pytest

from genbridge.clients.text_to_image import GENERIC_SAMPLING, SAMPLING_3D
from genbridge.core.config import GenbridgeConfig
from genbridge.core.errors import (
    ImageDecodeError,
    StorageError,
    UpstreamUnavailableError,
)
from genbridge.core.image_store import ImageStore
from genbridge.core.orchestrator import (
    UPLOAD_FILENAME,
    Failure,
    GenerationOrchestrator,
    PartialSuccess,
    Success,
    clean_vendor_body,
    merge_vendor_payload,
    parse_vendor_json,
)
from genbridge.core.prompt_enhancer import BASE_3D_SUFFIX, FRAMING_SUFFIX


class FailingStore(ImageStore):
    def save(self, data, prefix="local"):
        raise StorageError("disk full")


@pytest.fixture
def orchestrator(test_config, text_to_image, image_store, image_to_3d):
    return GenerationOrchestrator(test_config, text_to_image, image_store, image_to_3d)


class TestGenerate3DFromText:
    """Test GenerationOrchestrator.generate_3d_from_text."""

    def test_success_merges_payload(self, orchestrator, image_to_3d, image_store):
        result = asyncio.run(orchestrator.generate_3d_from_text("a red car"))

        assert isinstance(result, Success)
        assert result.status_code == 200
        payload = result.to_payload()
        assert payload["request_id"] == "req-1"
        assert payload["files"] == ["mesh.obj"]
        assert payload["generated_image_url"] == result.image_url
        assert payload["prompt"] == "a red car"

        filename = result.image_url.rsplit("/", 1)[1]
        assert filename.startswith("3d_")
        assert image_store.resolve(filename).exists()

    def test_uses_3d_prompt_and_sampling(self, orchestrator, text_to_image):
        asyncio.run(orchestrator.generate_3d_from_text("a teapot"))

        positive, _negative, params = text_to_image.calls[0]
        assert positive.startswith("a teapot" + BASE_3D_SUFFIX)
        assert params == SAMPLING_3D

    def test_converts_stored_image_bytes(self, orchestrator, text_to_image, image_to_3d):
        asyncio.run(orchestrator.generate_3d_from_text("a teapot"))
        assert image_to_3d.converted == [(text_to_image.image, UPLOAD_FILENAME)]

    def test_conversion_error_is_partial_success(self, orchestrator, image_to_3d, image_store):
        image_to_3d.error = UpstreamUnavailableError("image-to-3d", "Connection refused")

        result = asyncio.run(orchestrator.generate_3d_from_text("a boat"))

        assert isinstance(result, PartialSuccess)
        assert result.status_code == 206
        assert result.error.startswith("3D generation failed")
        assert "Connection refused" in result.error
        payload = result.to_payload()
        assert payload["generated_image_url"] == result.image_url
        assert payload["prompt"] == "a boat"
        assert image_store.resolve(result.image_url.rsplit("/", 1)[1]).exists()

    @pytest.mark.parametrize("body", ["", "   ", "<EOL>\n<EOL>"])
    def test_empty_vendor_body_is_partial_success(self, orchestrator, image_to_3d, body):
        image_to_3d.body = body
        result = asyncio.run(orchestrator.generate_3d_from_text("a boat"))
        assert isinstance(result, PartialSuccess)
        assert result.error

    def test_no_images_is_failure_without_url(self, orchestrator, text_to_image, image_to_3d):
        text_to_image.error = ImageDecodeError("No images in local model response")

        result = asyncio.run(orchestrator.generate_3d_from_text("a car"))

        assert isinstance(result, Failure)
        assert result.status_code == 500
        assert result.image_url is None
        assert "generated_image_url" not in result.to_payload()
        assert image_to_3d.converted == []

    def test_upstream_down_is_failure(self, orchestrator, text_to_image):
        text_to_image.error = UpstreamUnavailableError("text-to-image", "Connection refused")
        result = asyncio.run(orchestrator.generate_3d_from_text("a car"))
        assert isinstance(result, Failure)
        assert result.to_payload() == {"error": "Failed to generate image from text"}

    def test_storage_error_is_failure(self, test_config, text_to_image, image_to_3d):
        orchestrator = GenerationOrchestrator(
            test_config, text_to_image, FailingStore(test_config), image_to_3d
        )
        result = asyncio.run(orchestrator.generate_3d_from_text("a car"))

        assert isinstance(result, Failure)
        assert result.image_url is None
        assert "disk full" in result.error
        assert image_to_3d.converted == []

    def test_non_json_vendor_body_is_kept(self, orchestrator, image_to_3d):
        image_to_3d.body = "mesh ready"
        result = asyncio.run(orchestrator.generate_3d_from_text("a chair"))

        assert isinstance(result, Success)
        assert result.to_payload()["response"] == "mesh ready"

    def test_non_standard_constants_keep_image_url(self, orchestrator, image_to_3d):
        image_to_3d.body = '{"request_id": "r", "time": NaN}'
        result = asyncio.run(orchestrator.generate_3d_from_text("a car"))

        assert isinstance(result, Success)
        payload = result.to_payload()
        assert payload["response"] == '{"request_id": "r", "time": NaN}'
        assert payload["generated_image_url"] == result.image_url
        json.dumps(payload, allow_nan=False)

    def test_prompt_trimmed_for_generation_only(self, orchestrator, text_to_image):
        result = asyncio.run(orchestrator.generate_3d_from_text("  a teapot  "))

        positive, _negative, _params = text_to_image.calls[0]
        assert positive.startswith("a teapot,")
        assert result.to_payload()["prompt"] == "  a teapot  "


class TestMergeVendorPayload:
    """Test merge_vendor_payload and clean_vendor_body."""

    def test_object_gets_fields(self):
        merged = merge_vendor_payload('{"id": 1}', "http://img", "a cat")
        assert merged == {"id": 1, "generated_image_url": "http://img", "prompt": "a cat"}

    def test_object_fields_are_overwritten(self):
        merged = merge_vendor_payload('{"prompt": "vendor"}', "http://img", "a cat")
        assert merged["prompt"] == "a cat"

    def test_array_is_wrapped(self):
        merged = merge_vendor_payload("[1, 2]", "http://img", "a cat")
        assert merged == {"generated_image_url": "http://img", "prompt": "a cat", "response": [1, 2]}

    def test_text_is_wrapped(self):
        merged = merge_vendor_payload("not json {", "http://img", "a cat")
        assert merged["response"] == "not json {"

    def test_special_characters_survive_encoding(self):
        """Quotes and backslashes in the prompt produce valid JSON."""
        prompt = 'a "quoted" \\ prompt\twith tab'
        merged = merge_vendor_payload("{}", "http://img", prompt)
        assert json.loads(json.dumps(merged))["prompt"] == prompt

    def test_clean_strips_markers_and_newlines(self):
        assert clean_vendor_body('{"a":\n 1}<EOL>\r\n') == '{"a": 1}'
        assert clean_vendor_body(None) == ""

    @pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity"])
    def test_non_standard_constants_are_wrapped(self, constant):
        body = f'{{"t": {constant}}}'
        merged = merge_vendor_payload(body, "http://img", "a cat")
        assert merged["response"] == body
        assert "t" not in merged

    def test_parse_vendor_json_rejects_constants(self):
        assert parse_vendor_json('{"t": 1.5}') == {"t": 1.5}
        with pytest.raises(ValueError):
            parse_vendor_json('[Infinity]')


class TestGenerateImage:
    """Test GenerationOrchestrator.generate_image."""

    def test_returns_stored_image_url(self, orchestrator, text_to_image, image_store):
        url = asyncio.run(orchestrator.generate_image("a lighthouse"))

        filename = url.rsplit("/", 1)[1]
        assert url.startswith("http://localhost:8080/api/images/local_")
        assert image_store.resolve(filename).read_bytes() == text_to_image.image

        positive, _negative, params = text_to_image.calls[0]
        assert positive == "a lighthouse" + FRAMING_SUFFIX
        assert params == GENERIC_SAMPLING

    def test_falls_back_to_placeholder(self, orchestrator, text_to_image):
        text_to_image.error = UpstreamUnavailableError("text-to-image", "down")
        url = asyncio.run(orchestrator.generate_image("a lighthouse"))
        assert url.startswith("https://picsum.photos/512/512?random=")

    def test_fallback_disabled_raises(self, temp_dir, text_to_image, image_to_3d):
        config = GenbridgeConfig(
            images_dir=str(temp_dir / "images"), placeholder_fallback=False, _env_file=None
        )
        orchestrator = GenerationOrchestrator(
            config, text_to_image, ImageStore(config), image_to_3d
        )
        text_to_image.error = ImageDecodeError("No images in local model response")

        with pytest.raises(ImageDecodeError):
            asyncio.run(orchestrator.generate_image("a lighthouse"))
