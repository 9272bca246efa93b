"""Exception hierarchy for genbridge.

Request validation problems (a blank prompt, a non-image upload) are not
represented here; route handlers reject those with FastAPI's
``HTTPException(400)`` before any upstream call is made.  The exceptions
below describe failures of the essential pipeline stages and are caught at
the route boundary, where they become structured JSON error bodies.
"""

from __future__ import annotations


class GenbridgeError(Exception):
    """Base class for all genbridge errors."""


class UpstreamUnavailableError(GenbridgeError):
    """An external service could not be reached or answered with a non-OK status.

    Attributes:
        service: Short name of the upstream service (``"text-to-image"`` or
            ``"image-to-3d"``).
        status_code: HTTP status returned by the upstream, or ``None`` when
            the failure happened at the transport level.
    """

    def __init__(self, service: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class ImageDecodeError(UpstreamUnavailableError):
    """The text-to-image service answered, but no usable image could be decoded."""

    def __init__(self, message: str) -> None:
        super().__init__("text-to-image", message)


class StorageError(GenbridgeError):
    """Generated image bytes could not be written to the image directory."""
