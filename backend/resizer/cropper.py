"""
Smart Cropping for the image resizer

Uses OpenCV to find the window of highest visual salience that matches the
target aspect ratio. The window is as large as the source allows; the
processor cuts it out and then resizes it to the exact target size.

Approach:
1. Downscale the source for analysis
2. Build a saliency map (edges + saturation + skin tones)
3. Add the caller's boost region, if any
4. Slide the window over the map (integral image) and keep the best one,
   with a mild preference for central windows
"""

import io
from typing import Optional, Protocol, Union

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from .codec import CropRect
from .errors import CropFailure, DecodeFailure
from .options import BoostRegion


# Longest side of the analysis image
ANALYSIS_SIZE = 256

# Number of window positions tried along each axis
SEARCH_STEPS = 32

# Score weights
EDGE_WEIGHT = 1.0
SATURATION_WEIGHT = 0.3
SKIN_WEIGHT = 0.8
BOOST_WEIGHT = 2.0
CENTER_BIAS = 0.15


class SaliencyCropper(Protocol):
    """Finds the best crop window for a target size."""

    def crop(
        self,
        image: Union[Image.Image, bytes],
        width: int,
        height: int,
        boost: Optional[BoostRegion] = None,
    ) -> CropRect: ...


def window_size(source_width: int, source_height: int, width: int, height: int):
    """
    Largest window with the target aspect ratio that fits in the source.

    Returns:
        (window width, window height) in source pixels
    """
    scale = min(source_width / width, source_height / height)
    crop_width = max(1, min(source_width, int(width * scale + 1e-9)))
    crop_height = max(1, min(source_height, int(height * scale + 1e-9)))
    return crop_width, crop_height


def saliency_map(bgr: np.ndarray) -> np.ndarray:
    """
    Score every pixel of a BGR image for visual interest.

    Args:
        bgr: Image as a uint8 BGR array

    Returns:
        float32 array of the same height/width
    """
    gray = cv2.cvtColor(bgr, cv2.COLOR_BGR2GRAY)
    edges = cv2.Canny(gray, 50, 150).astype(np.float32) / 255.0
    edges = cv2.GaussianBlur(edges, (5, 5), 0)

    hsv = cv2.cvtColor(bgr, cv2.COLOR_BGR2HSV)
    saturation = hsv[:, :, 1].astype(np.float32) / 255.0

    # Skin tones in YCrCb space
    ycrcb = cv2.cvtColor(bgr, cv2.COLOR_BGR2YCrCb)
    skin = cv2.inRange(ycrcb, (0, 133, 77), (255, 173, 127)).astype(np.float32) / 255.0

    return EDGE_WEIGHT * edges + SATURATION_WEIGHT * saturation + SKIN_WEIGHT * skin


class SmartCropper:
    """
    Saliency-based crop window search.

    The returned rectangle always lies inside the source bounds and has
    the target aspect ratio (up to integer rounding).
    """

    def crop(
        self,
        image: Union[Image.Image, bytes],
        width: int,
        height: int,
        boost: Optional[BoostRegion] = None,
    ) -> CropRect:
        """
        Find the best crop window.

        Args:
            image: PIL Image or encoded image bytes
            width: Target width
            height: Target height
            boost: Optional region that attracts the window

        Returns:
            CropRect in source pixel coordinates
        """
        if isinstance(image, bytes):
            try:
                image = Image.open(io.BytesIO(image))
                image.load()
            except (UnidentifiedImageError, OSError) as exc:
                raise DecodeFailure(f"Cannot decode image data: {exc}") from exc

        if width <= 0 or height <= 0:
            raise CropFailure(f"Invalid target size {width}x{height}")

        source_width, source_height = image.size
        crop_width, crop_height = window_size(source_width, source_height, width, height)

        # Nothing to search when the window covers the whole source
        if crop_width == source_width and crop_height == source_height:
            return CropRect(0, 0, crop_width, crop_height)

        try:
            return self._search(image, crop_width, crop_height, boost)
        except cv2.error as exc:
            raise CropFailure(f"Smart crop failed: {exc}") from exc

    def _search(
        self,
        image: Image.Image,
        crop_width: int,
        crop_height: int,
        boost: Optional[BoostRegion],
    ) -> CropRect:
        source_width, source_height = image.size

        # Analyse a downscaled copy
        ratio = min(1.0, ANALYSIS_SIZE / max(source_width, source_height))
        small_width = max(1, int(round(source_width * ratio)))
        small_height = max(1, int(round(source_height * ratio)))

        bgr = cv2.cvtColor(np.array(image.convert("RGB")), cv2.COLOR_RGB2BGR)
        small = cv2.resize(bgr, (small_width, small_height), interpolation=cv2.INTER_AREA)

        scores = saliency_map(small)

        if boost is not None and boost.width > 0 and boost.height > 0:
            x0 = int(np.clip(boost.x * ratio, 0, small_width))
            y0 = int(np.clip(boost.y * ratio, 0, small_height))
            x1 = int(np.clip((boost.x + boost.width) * ratio, 0, small_width))
            y1 = int(np.clip((boost.y + boost.height) * ratio, 0, small_height))
            scores[y0:y1, x0:x1] += BOOST_WEIGHT * boost.weight

        # Integral image for O(1) window sums
        integral = cv2.integral(scores.astype(np.float64))

        win_w = max(1, min(small_width, int(round(crop_width * ratio))))
        win_h = max(1, min(small_height, int(round(crop_height * ratio))))
        area = float(win_w * win_h)

        max_x = small_width - win_w
        max_y = small_height - win_h
        xs = np.unique(np.linspace(0, max_x, num=min(max_x + 1, SEARCH_STEPS)).astype(int))
        ys = np.unique(np.linspace(0, max_y, num=min(max_y + 1, SEARCH_STEPS)).astype(int))

        best_score = -np.inf
        best_x, best_y = 0, 0
        for y in ys:
            for x in xs:
                total = (
                    integral[y + win_h, x + win_w] - integral[y, x + win_w]
                    - integral[y + win_h, x] + integral[y, x]
                )
                score = total / area

                # Penalise distance of the window centre from the image centre
                dx = (x + win_w / 2) / small_width - 0.5
                dy = (y + win_h / 2) / small_height - 0.5
                score -= CENTER_BIAS * (abs(dx) + abs(dy))

                if score > best_score:
                    best_score = score
                    best_x, best_y = int(x), int(y)

        # Back to source coordinates
        x = int(np.clip(round(best_x / ratio), 0, source_width - crop_width))
        y = int(np.clip(round(best_y / ratio), 0, source_height - crop_height))

        return CropRect(x, y, crop_width, crop_height)


def smart_crop(
    image: Union[Image.Image, bytes],
    width: int,
    height: int,
    boost: Optional[BoostRegion] = None,
) -> CropRect:
    """Convenience function to find a smart crop window."""
    return SmartCropper().crop(image, width, height, boost)
