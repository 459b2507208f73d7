"""
Image Resizer Pipeline

Combines:
1. Source fetch (local file or remote URL)
2. Option parsing (request URL + source metadata -> options)
3. Crop strategy dispatch and optimization (options -> encoded image)
4. Result caching keyed by the raw request URL

This is the main entry point for the resizer.
"""

import asyncio
import logging
from typing import Optional, Tuple

from .cache import CacheEntry, CacheFrontend, FilesystemCache, KeyValueCache, MemoryCache
from .config import Settings, get_settings
from .options import ImageRequestOptions, parse_options, split_request_url
from .processor import ImageProcessor
from .sources import ByteSource, ImageSource

logger = logging.getLogger(__name__)


class ImagePipeline:
    """
    Main pipeline for on-demand image transformation.

    Takes a request URL ("<path>?<directives>") and returns the encoded
    image together with the options that produced it.
    """

    def __init__(
        self,
        source: ByteSource,
        processor: Optional[ImageProcessor] = None,
        cache: Optional[KeyValueCache] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            source: Where source bytes come from
            processor: Crop/encode processor (default: Pillow + OpenCV)
            cache: Result store (default: in-memory)
        """
        logger.info("Initializing image pipeline...")
        self.source = source
        self.processor = processor or ImageProcessor()
        self.cache = cache if cache is not None else MemoryCache()
        self.frontend = CacheFrontend(self.cache, self.process)
        logger.info("Pipeline ready.")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ImagePipeline":
        """Build a pipeline from configuration."""
        source = ImageSource(settings.base_dir, timeout=settings.fetch_timeout)

        if settings.cache_backend == "memory":
            cache: KeyValueCache = MemoryCache()
        else:
            cache = FilesystemCache(settings.cache_dir)

        return cls(source, cache=cache)

    async def _load(self, request_url: str) -> Tuple[bytes, ImageRequestOptions]:
        path, _ = split_request_url(request_url)
        image_data = await self.source.fetch(path)

        metadata = await asyncio.to_thread(self.processor.codec.metadata, image_data)
        options = parse_options(request_url, metadata)

        return image_data, options

    async def inspect(self, request_url: str) -> ImageRequestOptions:
        """Resolve the options for a request without transforming anything."""
        _, options = await self._load(request_url)
        return options

    async def process(self, request_url: str) -> CacheEntry:
        """
        Run the full transformation, bypassing the cache.

        Args:
            request_url: Request target, e.g. "/photo.jpg?width=300&format=webp"

        Returns:
            CacheEntry with the output bytes and the options used
        """
        image_data, options = await self._load(request_url)
        result = await asyncio.to_thread(self.processor.process, image_data, options)
        return CacheEntry(image_data=result.image_data, options=result.options)

    async def process_with_cache(self, request_url: str) -> CacheEntry:
        """Return the cached result for the request, computing it on a miss."""
        return await self.frontend.get_or_compute(request_url)


# Singleton instance
_pipeline_instance: Optional[ImagePipeline] = None


def get_pipeline(settings: Optional[Settings] = None) -> ImagePipeline:
    """Get or create the singleton pipeline instance."""
    global _pipeline_instance
    if _pipeline_instance is None:
        _pipeline_instance = ImagePipeline.from_settings(settings or get_settings())
    return _pipeline_instance


def reset_pipeline() -> None:
    """Drop the singleton so the next get_pipeline() rereads settings."""
    global _pipeline_instance
    _pipeline_instance = None


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Transform one image request")
    parser.add_argument("request", help="Request URL, e.g. '/photo.jpg?width=300'")
    parser.add_argument("output", help="Where to write the resulting image")
    parser.add_argument("--no-cache", action="store_true", help="Bypass the result cache")
    args = parser.parse_args()

    logging.basicConfig(level=get_settings().log_level)

    pipeline = get_pipeline()
    run = pipeline.process if args.no_cache else pipeline.process_with_cache
    entry = asyncio.run(run(args.request))

    with open(args.output, "wb") as f:
        f.write(entry.image_data)

    options = entry.options
    print(f"Path:     {options.path}")
    if options.original:
        print("Mode:     original (passthrough)")
    else:
        print(f"Size:     {options.width}x{options.height}")
        print(f"Crop:     {options.crop.value}")
        print(f"Format:   {options.format.value} ({options.quality.value})")
    print(f"Output:   {args.output} ({len(entry.image_data):,} bytes)")
