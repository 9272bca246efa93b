"""Core functionality for genbridge.

- **config.py**: Environment-based configuration using Pydantic Settings
  (``GENBRIDGE_`` prefix).
- **errors.py**: Exception hierarchy for failed pipeline stages.
- **prompt_enhancer.py**: Framing and 3D prompt enhancement with ordered
  category dispatch.
- **image_store.py**: Append-only local storage for generated images.
- **orchestrator.py**: Text-to-image and text-to-3D pipelines with
  partial-failure results.
- **catalog.py**: Model catalog built by probing the text-to-image service.
"""

from genbridge.core.config import GenbridgeConfig
from genbridge.core.errors import (
    GenbridgeError,
    ImageDecodeError,
    StorageError,
    UpstreamUnavailableError,
)

__all__ = [
    "GenbridgeConfig",
    "GenbridgeError",
    "ImageDecodeError",
    "StorageError",
    "UpstreamUnavailableError",
]
