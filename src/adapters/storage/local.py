"""
Local object storage adapter - Implements ObjectStorage protocol.

This module provides a filesystem-backed implementation of the domain's
object storage port. Files land under a root directory and are served
from a public base URL, mirroring a bucket with public read access.
"""

import asyncio
import logging
from pathlib import Path, PurePosixPath

from src.domain.exceptions import DependencyError

logger = logging.getLogger(__name__)


class LocalObjectStorage:
    """
    Implements ObjectStorage protocol on the local filesystem.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Writes run in a worker thread so uploads do not block the event loop.
    """

    def __init__(self, root: Path, public_url: str) -> None:
        """
        Args:
            root: Directory that stands in for the bucket
            public_url: Base URL the root directory is served from
        """
        self._root = root
        self._public_url = public_url.rstrip("/")

    async def upload(self, content: bytes, destination: str, content_type: str) -> str:
        """
        Write ``content`` to ``destination`` below the storage root.

        Args:
            content: Raw file bytes
            destination: Relative POSIX path, e.g. ``avatars/<identity>/<name>.png``
            content_type: MIME type, recorded in the log only

        Returns:
            Public URL of the stored file

        Raises:
            DependencyError: destination escapes the root or the write failed
        """
        relative = PurePosixPath(destination)
        if relative.is_absolute() or ".." in relative.parts:
            raise DependencyError(f"Refusing to store outside the storage root: {destination}")

        target = self._root.joinpath(*relative.parts)
        try:
            await asyncio.to_thread(self._write, target, content)
        except OSError as exc:
            logger.error("Upload to %s failed: %s", target, exc)
            raise DependencyError(f"Could not store {destination}") from exc

        logger.info("[STORAGE] Stored %s (%s, %d bytes)", destination, content_type, len(content))
        return f"{self._public_url}/{relative.as_posix()}"

    @staticmethod
    def _write(target: Path, content: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
