"""
Output Optimizer for the image resizer

Runs after cropping/resizing and before the final encode:
1. A fixed unsharp mask pass to compensate for resize softening
2. Format-specific encoder settings

Only JPEG varies by quality tier; PNG and WebP always use the encoder's
default settings.
"""

from typing import Dict

from PIL import Image

from .codec import Codec, EncodeParams
from .options import ImageFormat, ImageRequestOptions, Quality


SHARPEN_SIGMA = 0.5

JPEG_QUALITY: Dict[Quality, int] = {
    Quality.OPTIMIZED: 70,
    Quality.BALANCED: 80,
    Quality.HIGH: 88,
}


def encode_params(image_format: ImageFormat, quality: Quality) -> EncodeParams:
    """
    Encoder settings for an output format and quality tier.

    The optimized JPEG tier also turns on the aggressive encoder mode
    (optimized Huffman tables, progressive scan).
    """
    if image_format is ImageFormat.JPEG:
        aggressive = quality is Quality.OPTIMIZED
        return EncodeParams(
            quality=JPEG_QUALITY[quality],
            optimize=aggressive,
            progressive=aggressive,
        )
    return EncodeParams()


def optimize(codec: Codec, image: Image.Image, options: ImageRequestOptions) -> bytes:
    """Sharpen and encode a transformed image."""
    image = codec.sharpen(image, SHARPEN_SIGMA)
    return codec.encode(image, options.format, encode_params(options.format, options.quality))
