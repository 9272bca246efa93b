"""genbridge - proxy API chaining text-to-image and image-to-3D services."""

__version__ = "0.1.0"

from genbridge.core.config import GenbridgeConfig

__all__ = [
    "GenbridgeConfig",
]
