"""
Image Resizer Module

Components:
- options: Directive parsing and dimension resolution
- codec: Pillow-backed decode/resize/encode primitives
- cropper: Saliency-based smart crop window search
- processor: Crop strategy dispatch
- optimizer: Sharpening and encoder settings
- sources: Local/remote byte fetching
- cache: Result cache with single-flight get-or-compute
- pipeline: Full request pipeline
"""

from .errors import ResizerError, SourceUnavailable, DecodeFailure, CropFailure
from .options import (
    ImageFormat,
    CropStrategy,
    Quality,
    BoostRegion,
    SourceMetadata,
    ImageRequestOptions,
    parse_options,
    resolve_dimensions,
)
from .codec import PillowCodec, CropRect, ResizeSpec, EncodeParams
from .cropper import SmartCropper, smart_crop
from .processor import ImageProcessor, ProcessingResult, process_image
from .cache import CacheEntry, CacheFrontend, MemoryCache, FilesystemCache
from .pipeline import ImagePipeline, get_pipeline

__all__ = [
    # Errors
    "ResizerError",
    "SourceUnavailable",
    "DecodeFailure",
    "CropFailure",
    # Options
    "ImageFormat",
    "CropStrategy",
    "Quality",
    "BoostRegion",
    "SourceMetadata",
    "ImageRequestOptions",
    "parse_options",
    "resolve_dimensions",
    # Codec
    "PillowCodec",
    "CropRect",
    "ResizeSpec",
    "EncodeParams",
    # Cropper
    "SmartCropper",
    "smart_crop",
    # Processor
    "ImageProcessor",
    "ProcessingResult",
    "process_image",
    # Cache
    "CacheEntry",
    "CacheFrontend",
    "MemoryCache",
    "FilesystemCache",
    # Pipeline
    "ImagePipeline",
    "get_pipeline",
]
