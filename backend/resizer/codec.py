"""
Image Codec for the image resizer

Wraps the pixel-level primitives the pipeline needs behind a small
capability interface, implemented with Pillow:

- metadata: read width/height/format without decoding pixels
- decode: bytes -> image (RGB, or RGBA when the source has alpha)
- resize: cover fit anchored at a position or chosen by a saliency
  heuristic (entropy, attention), or contain fit padded with a colour
- extract: cut a rectangle out of the image
- sharpen: unsharp mask
- channel_means: per-channel mean colour
- encode: image -> bytes in the requested container
"""

import io
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple

import numpy as np
from PIL import Image, ImageFilter, ImageOps, ImageStat, UnidentifiedImageError

from .errors import CropFailure, DecodeFailure
from .options import CropStrategy, ImageFormat, SourceMetadata


# Anchor (x, y) of the kept window for positional crops, 0 = left/top
ANCHORS: Dict[CropStrategy, Tuple[float, float]] = {
    CropStrategy.CENTER: (0.5, 0.5),
    CropStrategy.TOP: (0.5, 0.0),
    CropStrategy.RIGHT_TOP: (1.0, 0.0),
    CropStrategy.RIGHT: (1.0, 0.5),
    CropStrategy.RIGHT_BOTTOM: (1.0, 1.0),
    CropStrategy.BOTTOM: (0.5, 1.0),
    CropStrategy.LEFT_BOTTOM: (0.0, 1.0),
    CropStrategy.LEFT: (0.0, 0.5),
    CropStrategy.LEFT_TOP: (0.0, 0.0),
}

# Max candidate windows scored along an overflowing axis
SALIENCY_STEPS = 25


@dataclass(frozen=True)
class CropRect:
    """Rectangle in source pixel coordinates"""
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class ResizeSpec:
    """Target of a resize operation"""
    width: int
    height: int
    fit: str = "cover"  # "cover" or "contain"
    position: CropStrategy = CropStrategy.CENTER
    background: Optional[Tuple[int, int, int]] = None


@dataclass(frozen=True)
class EncodeParams:
    """Encoder settings; None/False means encoder default"""
    quality: Optional[int] = None
    optimize: bool = False
    progressive: bool = False

    def save_kwargs(self) -> Dict:
        kwargs: Dict = {}
        if self.quality is not None:
            kwargs["quality"] = self.quality
        if self.optimize:
            kwargs["optimize"] = True
        if self.progressive:
            kwargs["progressive"] = True
        return kwargs


class Codec(Protocol):
    """Pixel-level capability consumed by the processor."""

    def metadata(self, data: bytes) -> SourceMetadata: ...

    def decode(self, data: bytes) -> Image.Image: ...

    def resize(self, image: Image.Image, spec: ResizeSpec) -> Image.Image: ...

    def extract(self, image: Image.Image, rect: CropRect) -> Image.Image: ...

    def sharpen(self, image: Image.Image, sigma: float) -> Image.Image: ...

    def channel_means(self, image: Image.Image) -> Tuple[int, int, int]: ...

    def encode(self, image: Image.Image, image_format: ImageFormat, params: EncodeParams) -> bytes: ...


def _open(data: bytes) -> Image.Image:
    try:
        return Image.open(io.BytesIO(data))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise DecodeFailure(f"Cannot identify image data: {exc}") from exc


def _offsets(overflow: int) -> List[int]:
    """Candidate window offsets along one axis."""
    if overflow <= 0:
        return [0]
    steps = min(overflow + 1, SALIENCY_STEPS)
    return sorted({int(round(overflow * i / (steps - 1))) for i in range(steps)})


def attention_map(image: Image.Image) -> np.ndarray:
    """
    Per-pixel interest score: edges + saturation + skin tones.

    Returns:
        float32 array of shape (height, width)
    """
    rgb_image = image.convert("RGB")
    rgb = np.asarray(rgb_image, dtype=np.float32) / 255.0
    edges = np.asarray(rgb_image.convert("L").filter(ImageFilter.FIND_EDGES), dtype=np.float32) / 255.0
    saturation = np.asarray(rgb_image.convert("HSV"), dtype=np.float32)[..., 1] / 255.0

    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    skin = (
        (r > 0.37) & (g > 0.15) & (b > 0.08)
        & (r > g) & (r > b)
        & (r - np.minimum(g, b) > 0.06)
    ).astype(np.float32)

    return edges + 0.5 * saturation + skin


class PillowCodec:
    """
    Codec capability backed by Pillow.

    Images are kept as RGB, or RGBA when the source carries transparency.
    """

    resample = Image.LANCZOS

    def metadata(self, data: bytes) -> SourceMetadata:
        """Read dimensions and format from the header only."""
        image = _open(data)
        image_format = (image.format or "").lower()

        # Multi-picture JPEGs from cameras are still JPEG files
        if image_format == "mpo":
            image_format = "jpeg"

        return SourceMetadata(width=image.width, height=image.height, format=image_format)

    def decode(self, data: bytes) -> Image.Image:
        image = _open(data)
        try:
            image.load()
        except OSError as exc:
            raise DecodeFailure(f"Cannot decode image data: {exc}") from exc

        if image.mode not in ("RGB", "RGBA"):
            has_alpha = image.mode in ("LA", "PA", "RGBa") or "transparency" in image.info
            image = image.convert("RGBA" if has_alpha else "RGB")

        return image

    def resize(self, image: Image.Image, spec: ResizeSpec) -> Image.Image:
        """
        Resize to exactly spec.width x spec.height.

        Cover fit scales the image to fill the target and crops the
        overflow; contain fit scales it to fit inside and pads the border
        with spec.background at full opacity.
        """
        if spec.width <= 0 or spec.height <= 0:
            raise CropFailure(f"Invalid target size {spec.width}x{spec.height}")

        size = (spec.width, spec.height)

        if spec.fit == "contain":
            r, g, b = spec.background or (0, 0, 0)
            color = (r, g, b, 255) if image.mode == "RGBA" else (r, g, b)
            return ImageOps.pad(image, size, method=self.resample, color=color, centering=(0.5, 0.5))

        if spec.position in (CropStrategy.ENTROPY, CropStrategy.ATTENTION):
            return self._saliency_cover(image, spec.width, spec.height, spec.position)

        centering = ANCHORS.get(spec.position, ANCHORS[CropStrategy.CENTER])
        return ImageOps.fit(image, size, method=self.resample, centering=centering)

    def _saliency_cover(
        self,
        image: Image.Image,
        width: int,
        height: int,
        strategy: CropStrategy,
    ) -> Image.Image:
        """Cover fit keeping the window that scores highest under a heuristic."""
        scale = max(width / image.width, height / image.height)
        scaled_width = max(width, int(round(image.width * scale)))
        scaled_height = max(height, int(round(image.height * scale)))
        scaled = image.resize((scaled_width, scaled_height), self.resample)

        overflow_x = scaled_width - width
        overflow_y = scaled_height - height
        if overflow_x == 0 and overflow_y == 0:
            return scaled

        if strategy is CropStrategy.ATTENTION:
            weights = attention_map(scaled)

            def score(x: int, y: int) -> float:
                return float(weights[y:y + height, x:x + width].sum())
        else:
            def score(x: int, y: int) -> float:
                return scaled.crop((x, y, x + width, y + height)).convert("L").entropy()

        # Ties go to the window closest to the centre
        def rank(offset: Tuple[int, int]) -> Tuple[float, float]:
            x, y = offset
            distance = abs(x - overflow_x / 2) + abs(y - overflow_y / 2)
            return score(x, y), -distance

        candidates = [(x, y) for x in _offsets(overflow_x) for y in _offsets(overflow_y)]
        best_x, best_y = max(candidates, key=rank)

        return scaled.crop((best_x, best_y, best_x + width, best_y + height))

    def extract(self, image: Image.Image, rect: CropRect) -> Image.Image:
        if (
            rect.width <= 0 or rect.height <= 0
            or rect.x < 0 or rect.y < 0
            or rect.x + rect.width > image.width
            or rect.y + rect.height > image.height
        ):
            raise CropFailure(
                f"Bad extract area {rect.width}x{rect.height}+{rect.x}+{rect.y} "
                f"for {image.width}x{image.height} image"
            )
        return image.crop((rect.x, rect.y, rect.x + rect.width, rect.y + rect.height))

    def sharpen(self, image: Image.Image, sigma: float) -> Image.Image:
        return image.filter(ImageFilter.UnsharpMask(radius=sigma, percent=100, threshold=0))

    def channel_means(self, image: Image.Image) -> Tuple[int, int, int]:
        """Mean of the R, G and B channels, rounded."""
        means = ImageStat.Stat(image.convert("RGB")).mean
        return int(round(means[0])), int(round(means[1])), int(round(means[2]))

    def encode(self, image: Image.Image, image_format: ImageFormat, params: EncodeParams) -> bytes:
        """Convert the image to bytes in the given container."""
        buffer = io.BytesIO()

        # JPEG has no alpha channel
        if image_format is ImageFormat.JPEG and image.mode != "RGB":
            image = image.convert("RGB")

        image.save(buffer, format=image_format.value.upper(), **params.save_kwargs())
        return buffer.getvalue()
