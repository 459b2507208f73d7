"""
Result Cache for the image resizer

Caches processed images keyed by the raw request URL (path + query string,
verbatim). Entries are never expired or evicted here.

Components:
- CacheEntry: encoded bytes + the options that produced them
- MemoryCache: in-process dict store
- FilesystemCache: one .bin/.json pair per key in a directory
- CacheFrontend: get-or-compute with single-flight, so concurrent
  requests for the same key share one computation
"""

import asyncio
import hashlib
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Protocol, Union

from .errors import ResizerError
from .options import ImageRequestOptions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A processed image and the options used to produce it"""
    image_data: bytes
    options: ImageRequestOptions

    @property
    def media_type(self) -> str:
        return self.options.media_type


class KeyValueCache(Protocol):
    """String-keyed store of cache entries."""

    def get(self, key: str) -> Optional[CacheEntry]: ...

    def put(self, key: str, entry: CacheEntry) -> None: ...


class MemoryCache:
    """Unbounded in-memory cache."""

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def put(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry

    def __len__(self) -> int:
        return len(self._entries)


class FilesystemCache:
    """
    Unbounded on-disk cache.

    Each key is stored as <sha1>.bin (image bytes) and <sha1>.json
    (key and options). Files are written to a temporary name first and
    moved into place, so readers never see a partial entry.
    """

    def __init__(self, cache_dir: Union[str, Path]):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _paths(self, key: str):
        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()
        return self.cache_dir / f"{digest}.bin", self.cache_dir / f"{digest}.json"

    def get(self, key: str) -> Optional[CacheEntry]:
        data_path, meta_path = self._paths(key)
        if not (data_path.exists() and meta_path.exists()):
            return None

        meta = json.loads(meta_path.read_text(encoding="utf-8"))
        return CacheEntry(
            image_data=data_path.read_bytes(),
            options=ImageRequestOptions.from_dict(meta["options"]),
        )

    def put(self, key: str, entry: CacheEntry) -> None:
        data_path, meta_path = self._paths(key)
        meta = {"key": key, "options": entry.options.to_dict()}

        # Data first: an entry only counts once its metadata exists
        self._write(data_path, entry.image_data)
        self._write(meta_path, json.dumps(meta).encode("utf-8"))

    def _write(self, path: Path, data: bytes) -> None:
        tmp_path = path.with_name(f"{path.name}.{os.getpid()}.{id(data)}.tmp")
        tmp_path.write_bytes(data)
        os.replace(tmp_path, path)


class CacheFrontend:
    """
    Get-or-compute policy over a KeyValueCache.

    A hit returns the stored entry without re-validating it. A miss runs
    compute(key) and stores the result. Failures are never cached. While
    a key is being looked up or computed, other callers for the same key
    wait for that result instead of starting their own. If the caller
    doing the work is cancelled, the waiters get a ResizerError rather
    than a cancellation of their own.
    """

    def __init__(self, cache: KeyValueCache, compute: Callable[[str], Awaitable[CacheEntry]]):
        self.cache = cache
        self.compute = compute
        self._in_flight: Dict[str, asyncio.Future] = {}

    async def get_or_compute(self, key: str) -> CacheEntry:
        pending = self._in_flight.get(key)
        if pending is not None:
            logger.debug("Waiting for in-flight result of %s", key)
            return await asyncio.shield(pending)

        future = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        try:
            entry = await self._lookup_or_compute(key)
        except asyncio.CancelledError:
            future.set_exception(ResizerError(f"Computation for {key} was cancelled"))
            future.exception()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved: there may be no waiters
            future.exception()
            raise
        else:
            future.set_result(entry)
            return entry
        finally:
            del self._in_flight[key]

    async def _lookup_or_compute(self, key: str) -> CacheEntry:
        entry = await asyncio.to_thread(self.cache.get, key)
        if entry is not None:
            logger.debug("Cache hit for %s", key)
            return entry

        logger.info("Cache miss for %s", key)
        entry = await self.compute(key)
        await asyncio.to_thread(self.cache.put, key, entry)
        return entry
