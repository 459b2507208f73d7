"""
Image Sources for the image resizer

Fetches the bytes behind a decoded request path:

- "/http:..." and "/https:..." paths are remote URLs (leading slash removed)
- anything else is a file under the configured base directory

Blocking reads run in a worker thread so the event loop stays free.
No retries; any failure surfaces as SourceUnavailable.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol, Union

import requests

from .errors import SourceUnavailable

logger = logging.getLogger(__name__)

REMOTE_PREFIXES = ("/http:", "/https:")


class ByteSource(Protocol):
    """Provides the raw bytes for a request path."""

    async def fetch(self, path: str) -> bytes: ...


def is_remote_path(path: str) -> bool:
    """True if the decoded path addresses a remote image."""
    return path.startswith(REMOTE_PREFIXES)


class ImageSource:
    """
    Local-or-remote byte source.

    Local paths are confined to base_dir.
    """

    def __init__(self, base_dir: Union[str, Path], timeout: Optional[float] = 30):
        """
        Initialize the source.

        Args:
            base_dir: Directory local paths are resolved against
            timeout: Seconds to wait for remote images (None = no timeout)
        """
        self.base_dir = Path(base_dir)
        self.timeout = timeout

    async def fetch(self, path: str) -> bytes:
        if is_remote_path(path):
            return await asyncio.to_thread(self._fetch_remote, path[1:])
        return await asyncio.to_thread(self._read_local, path)

    def _fetch_remote(self, url: str) -> bytes:
        logger.info("Fetching remote image %s", url)
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            raise SourceUnavailable(f"Cannot fetch {url}: {exc}") from exc
        return response.content

    def local_path(self, path: str) -> Path:
        """Resolve a request path to a file under base_dir."""
        base = self.base_dir.resolve()
        try:
            candidate = (base / path.lstrip("/")).resolve()
        except (OSError, ValueError) as exc:
            raise SourceUnavailable(f"Invalid image path {path!r}: {exc}") from exc

        if candidate != base and base not in candidate.parents:
            raise SourceUnavailable(f"Path escapes the image directory: {path}")

        return candidate

    def _read_local(self, path: str) -> bytes:
        file_path = self.local_path(path)
        logger.debug("Reading local image %s", file_path)
        try:
            return file_path.read_bytes()
        except (OSError, ValueError) as exc:
            raise SourceUnavailable(f"Cannot read {path}: {exc}") from exc
