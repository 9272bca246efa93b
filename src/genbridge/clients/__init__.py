"""HTTP clients for the external generative services.

Modules
-------
text_to_image
    Automatic1111-style ``txt2img`` client and liveness probe.
image_to_3d
    TripoSR-style image-to-3D client, asset download and passthrough routes.
"""

from genbridge.clients.image_to_3d import ImageTo3DClient
from genbridge.clients.text_to_image import (
    GENERIC_SAMPLING,
    SAMPLING_3D,
    SamplingParams,
    TextToImageClient,
)

__all__ = [
    "GENERIC_SAMPLING",
    "SAMPLING_3D",
    "ImageTo3DClient",
    "SamplingParams",
    "TextToImageClient",
]
