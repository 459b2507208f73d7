"""
Image Processor for the image resizer

Applies one crop strategy to a source image, chosen once per request:

- original: source bytes returned untouched (no decode, no encode)
- smart: saliency window search, extract, resize to the exact target
- none: contain fit, border padded with the source's mean colour
- positional: cover fit anchored at a named position, or chosen by the
  codec's entropy/attention heuristic

Every branch except original ends in the optimizer (sharpen + encode).
Codec and cropper failures propagate unchanged.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from .codec import Codec, PillowCodec, ResizeSpec
from .cropper import SaliencyCropper, SmartCropper
from .optimizer import optimize
from .options import CropStrategy, ImageRequestOptions

logger = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    """Result of image processing"""
    # Encoded output
    image_data: bytes

    # Options that produced it
    options: ImageRequestOptions


class ImageProcessor:
    """
    Dispatches a request to its crop strategy.

    The codec and saliency cropper are capabilities; any implementation
    of their interfaces can be plugged in.
    """

    def __init__(
        self,
        codec: Optional[Codec] = None,
        cropper: Optional[SaliencyCropper] = None,
    ):
        self.codec = codec or PillowCodec()
        self.cropper = cropper or SmartCropper()

    def process(self, image_data: bytes, options: ImageRequestOptions) -> ProcessingResult:
        """
        Process source bytes according to the options.

        Args:
            image_data: Encoded source image
            options: Fully resolved request options

        Returns:
            ProcessingResult with the output bytes and the options used
        """
        if options.original:
            return self._original(image_data, options)

        logger.debug(
            "Processing %s: crop=%s size=%dx%d format=%s quality=%s",
            options.path, options.crop.value, options.width, options.height,
            options.format.value, options.quality.value,
        )

        if options.crop is CropStrategy.SMART:
            return self._crop_smart(image_data, options)
        if options.crop is CropStrategy.NONE:
            return self._crop_none(image_data, options)
        return self._crop_positional(image_data, options)

    def _original(self, image_data: bytes, options: ImageRequestOptions) -> ProcessingResult:
        return ProcessingResult(image_data=image_data, options=options)

    def _crop_smart(self, image_data: bytes, options: ImageRequestOptions) -> ProcessingResult:
        image = self.codec.decode(image_data)
        rect = self.cropper.crop(image, options.width, options.height, options.crop_smart_boost)

        cropped = self.codec.extract(image, rect)
        resized = self.codec.resize(cropped, ResizeSpec(options.width, options.height))

        return self._finalize(resized, options)

    def _crop_none(self, image_data: bytes, options: ImageRequestOptions) -> ProcessingResult:
        image = self.codec.decode(image_data)
        background = self.codec.channel_means(image)

        resized = self.codec.resize(
            image,
            ResizeSpec(options.width, options.height, fit="contain", background=background),
        )

        return self._finalize(resized, options)

    def _crop_positional(self, image_data: bytes, options: ImageRequestOptions) -> ProcessingResult:
        image = self.codec.decode(image_data)
        resized = self.codec.resize(
            image,
            ResizeSpec(options.width, options.height, position=options.crop),
        )

        return self._finalize(resized, options)

    def _finalize(self, image: Image.Image, options: ImageRequestOptions) -> ProcessingResult:
        return ProcessingResult(image_data=optimize(self.codec, image, options), options=options)


def process_image(image_data: bytes, options: ImageRequestOptions) -> ProcessingResult:
    """
    Convenience function to process an image.

    Args:
        image_data: Encoded source image
        options: Resolved request options

    Returns:
        ProcessingResult
    """
    processor = ImageProcessor()
    return processor.process(image_data, options)
