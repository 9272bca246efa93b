"""File-backed storage for generated images.

Images produced by the text-to-image stage are written to a single local
directory and served back by ``GET /api/images/{filename}``.  The store is
append-only: every save targets a freshly generated filename, so concurrent
requests never write to the same file and no locking is needed.

Filename Scheme
---------------
``<prefix>_<milliseconds>_<random hex>.png``

The prefix tags the producer (``local`` for ``POST /api/generate``, ``3d``
for the text-to-3D pipeline).  The millisecond token keeps names roughly
sortable by creation time; the random suffix makes two saves within the
same millisecond distinct.

Write Semantics
---------------
Bytes are written with a single ``write`` to a file opened in exclusive
create mode.  A failed write raises :class:`~genbridge.core.errors.StorageError`
and may leave a truncated file behind; no cleanup is attempted.  A URL is
only handed out after the write returned.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path

from genbridge.core.config import GenbridgeConfig
from genbridge.core.errors import StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageArtifact:
    """A generated image that has been persisted.

    Attributes:
        filename: Name of the file inside the image directory.
        path: Absolute-or-relative on-disk path of the file.
        url: Public URL under which the image is served.
        data: The raw image bytes.
    """

    filename: str
    path: Path
    url: str
    data: bytes = field(repr=False)


class ImageStore:
    """Saves image bytes and resolves saved filenames back to paths."""

    def __init__(self, config: GenbridgeConfig) -> None:
        self._directory = Path(config.images_dir)
        self._public_base_url = config.public_base_url

    @property
    def directory(self) -> Path:
        return self._directory

    def url_for(self, filename: str) -> str:
        """Return the public URL of *filename*."""
        return f"{self._public_base_url}/api/images/{filename}"

    def _new_filename(self, prefix: str) -> str:
        millis = time.time_ns() // 1_000_000
        return f"{prefix}_{millis}_{uuid.uuid4().hex[:8]}.png"

    def save(self, data: bytes, prefix: str = "local") -> ImageArtifact:
        """Persist *data* under a new filename.

        Args:
            data: Raw image bytes.
            prefix: Source tag placed at the start of the filename.

        Returns:
            The persisted :class:`ImageArtifact`.

        Raises:
            StorageError: If the directory cannot be created or the file
                cannot be written.
        """
        filename = self._new_filename(prefix)
        path = self._directory / filename

        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            with open(path, "xb") as handle:
                handle.write(data)
        except OSError as exc:
            logger.error(f"Failed to save image to {path}: {exc}")
            raise StorageError(f"Failed to save image: {exc}") from exc

        logger.info(f"Saved image to: {path}")
        return ImageArtifact(filename=filename, path=path, url=self.url_for(filename), data=data)

    def resolve(self, filename: str) -> Path:
        """Return the on-disk path of a previously saved image.

        Names that are not plain file names (path separators, ``..``,
        hidden files) are treated as unknown so the image route can never
        read outside the image directory.

        Raises:
            FileNotFoundError: If no such image exists.
        """
        if not filename or Path(filename).name != filename or filename.startswith("."):
            raise FileNotFoundError(filename)

        path = self._directory / filename
        if not path.is_file():
            raise FileNotFoundError(filename)
        return path
