"""
Request Options for the image resizer

Turns a request URL (path + directives) and the source image's metadata
into a normalized, validated ImageRequestOptions record.

Directive parsing is fail-open: an unknown key, an out-of-range number or
a value outside an allow-list is silently dropped and the default kept.

Dimension resolution (priority order):
1. shortSide binds to the source's shorter side
2. longSide binds to the source's longer side
3. No dimension at all -> source width/height
4. Only one of width/height -> the other follows the source aspect ratio
5. Everything is multiplied by density last
"""

import re
from dataclasses import dataclass, replace, asdict
from enum import Enum
from typing import Dict, Optional, Tuple, Type
from urllib.parse import unquote


# Numeric directives must be strictly inside (0, MAX_DIMENSION)
MAX_DIMENSION = 5000

MIN_DENSITY = 1.0
MAX_DENSITY = 3.0

_LEADING_INT = re.compile(r"^\s*[+-]?\d+")
_LEADING_FLOAT = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

# Escapes of reserved characters stay encoded when decoding a path
_RESERVED_ESCAPE = re.compile(r"(%(?:2[346BbCcFf]|3[AaBbDdFf]|40))")

# Directive key -> ImageRequestOptions field
_DIMENSION_KEYS = {
    "width": "width",
    "height": "height",
    "shortSide": "short_side",
    "longSide": "long_side",
}


class ImageFormat(str, Enum):
    """Output container formats"""
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"

    @property
    def media_type(self) -> str:
        return f"image/{self.value}"

    @classmethod
    def from_source(cls, source_format: str) -> "ImageFormat":
        """Default output format for a source; unknown formats encode as JPEG."""
        try:
            return cls(source_format.lower())
        except ValueError:
            return cls.JPEG


class CropStrategy(str, Enum):
    """Crop strategies accepted by the crop directive"""
    SMART = "smart"
    ENTROPY = "entropy"
    ATTENTION = "attention"
    CENTER = "center"
    TOP = "top"
    RIGHT_TOP = "rightTop"
    RIGHT = "right"
    RIGHT_BOTTOM = "rightBottom"
    BOTTOM = "bottom"
    LEFT_BOTTOM = "leftBottom"
    LEFT = "left"
    LEFT_TOP = "leftTop"
    NONE = "none"

    @property
    def is_positional(self) -> bool:
        """True for anchors and codec-native saliency heuristics."""
        return self not in (CropStrategy.SMART, CropStrategy.NONE)


class Quality(str, Enum):
    """Encode quality tiers"""
    OPTIMIZED = "optimized"
    BALANCED = "balanced"
    HIGH = "high"


@dataclass(frozen=True)
class BoostRegion:
    """Region of interest that biases the smart crop search"""
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0
    weight: float = 1.0


@dataclass(frozen=True)
class SourceMetadata:
    """Intrinsic properties of a source image"""
    width: int
    height: int
    format: str  # lowercase codec name, e.g. "jpeg", "png", "gif"


@dataclass(frozen=True)
class ImageRequestOptions:
    """Normalized options for one request"""
    path: str

    # Target dimensions (0 = not set / derive)
    width: int = 0
    height: int = 0
    short_side: int = 0
    long_side: int = 0

    format: ImageFormat = ImageFormat.JPEG
    crop: CropStrategy = CropStrategy.SMART
    crop_smart_boost: Optional[BoostRegion] = None
    quality: Quality = Quality.OPTIMIZED
    density: float = 1.0

    # True only when the request carries no directives at all
    original: bool = False

    # Format reported by the codec for the source bytes
    source_format: str = ""

    @property
    def media_type(self) -> str:
        """Content type of the bytes produced for these options."""
        if self.original:
            if self.source_format:
                return f"image/{self.source_format}"
            return "application/octet-stream"
        return self.format.media_type

    def to_dict(self) -> Dict:
        """Plain JSON-friendly representation."""
        data = asdict(self)
        data["format"] = self.format.value
        data["crop"] = self.crop.value
        data["quality"] = self.quality.value
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "ImageRequestOptions":
        boost = data.get("crop_smart_boost")
        return cls(
            path=data["path"],
            width=data.get("width", 0),
            height=data.get("height", 0),
            short_side=data.get("short_side", 0),
            long_side=data.get("long_side", 0),
            format=ImageFormat(data.get("format", ImageFormat.JPEG.value)),
            crop=CropStrategy(data.get("crop", CropStrategy.SMART.value)),
            crop_smart_boost=BoostRegion(**boost) if boost else None,
            quality=Quality(data.get("quality", Quality.OPTIMIZED.value)),
            density=data.get("density", 1.0),
            original=data.get("original", False),
            source_format=data.get("source_format", ""),
        )


def decode_path(path: str) -> str:
    """
    Percent-decode a path, leaving reserved characters (/ ? # & = ...) escaped.
    """
    pieces = _RESERVED_ESCAPE.split(path)
    return "".join(piece if i % 2 else unquote(piece) for i, piece in enumerate(pieces))


def split_request_url(request_url: str) -> Tuple[str, str]:
    """
    Split a request URL into its decoded path and raw query string.

    Args:
        request_url: Request target, e.g. "/photos/a%20b.jpg?width=300"

    Returns:
        (decoded path, query string); the query string is "" when absent
    """
    target = request_url.split("#", 1)[0]
    path, _, query = target.partition("?")
    return decode_path(path), query


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    match = _LEADING_INT.match(value)
    return int(match.group()) if match else None


def _parse_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    match = _LEADING_FLOAT.match(value)
    return float(match.group()) if match else None


def _parse_enum(enum_cls: Type[Enum], value: Optional[str]):
    try:
        return enum_cls(value)
    except ValueError:
        return None


def _parse_boost(value: Optional[str]) -> Optional[BoostRegion]:
    """Parse "x,y,width,height"; missing or garbled components are 0."""
    if value is None:
        return None
    parts = value.split(",")
    numbers = [(_parse_int(parts[i]) if i < len(parts) else None) or 0 for i in range(4)]
    return BoostRegion(*numbers, weight=1.0)


def parse_directives(query: str) -> Dict:
    """
    Parse a query string into option field values.

    Only recognized keys with valid values make it into the result;
    everything else is dropped.
    """
    values: Dict = {}

    for arg in query.split("&"):
        pieces = arg.split("=")
        name = pieces[0]
        value = pieces[1] if len(pieces) > 1 else None

        if name in _DIMENSION_KEYS:
            number = _parse_int(value)
            if number is not None and 0 < number < MAX_DIMENSION:
                values[_DIMENSION_KEYS[name]] = number
        elif name == "format":
            image_format = _parse_enum(ImageFormat, value)
            if image_format is not None:
                values["format"] = image_format
        elif name == "crop":
            crop = _parse_enum(CropStrategy, value)
            if crop is not None:
                values["crop"] = crop
        elif name == "cropSmartBoost":
            boost = _parse_boost(value)
            if boost is not None:
                values["crop_smart_boost"] = boost
        elif name == "quality":
            quality = _parse_enum(Quality, value)
            if quality is not None:
                values["quality"] = quality
        elif name == "density":
            density = _parse_float(value)
            if density is not None and MIN_DENSITY <= density <= MAX_DENSITY:
                values["density"] = density

    return values


def _scale(value: int, density: float) -> int:
    return int(value * density)


def resolve_dimensions(
    options: ImageRequestOptions,
    source_width: int,
    source_height: int,
) -> ImageRequestOptions:
    """
    Derive the final target dimensions from directives and source size.

    Args:
        options: Parsed (unresolved) options
        source_width: Intrinsic width of the source image
        source_height: Intrinsic height of the source image

    Returns:
        New options with width/height resolved and every dimension
        multiplied by density
    """
    width, height = options.width, options.height

    # Step 1-2: side shorthands bind to the source geometry
    if options.short_side > 0:
        if source_width < source_height:
            width = options.short_side
        else:
            height = options.short_side
    elif options.long_side > 0:
        if source_width > source_height:
            width = options.long_side
        else:
            height = options.long_side

    # Step 3-5: fill in whatever is missing from the source aspect ratio
    if width == 0 and height == 0:
        width, height = source_width, source_height
    elif height == 0:
        height = width * source_height // source_width
    elif width == 0:
        width = height * source_width // source_height

    # Step 6: density last, or the aspect ratio math above breaks
    density = options.density
    return replace(
        options,
        width=_scale(width, density),
        height=_scale(height, density),
        short_side=_scale(options.short_side, density),
        long_side=_scale(options.long_side, density),
    )


def parse_options(request_url: str, metadata: SourceMetadata) -> ImageRequestOptions:
    """
    Build the options record for a request.

    Args:
        request_url: Request target (path + optional query string)
        metadata: Metadata of the source image

    Returns:
        Fully constructed ImageRequestOptions. Without a query string the
        record is in original-passthrough mode and dimensions stay unset.
    """
    path, query = split_request_url(request_url)

    options = ImageRequestOptions(
        path=path,
        format=ImageFormat.from_source(metadata.format),
        source_format=metadata.format,
    )

    if not query:
        return replace(options, original=True)

    options = replace(options, **parse_directives(query))
    return resolve_dimensions(options, metadata.width, metadata.height)
