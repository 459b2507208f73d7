"""Tests for directive parsing and dimension resolution."""

import pytest

from resizer.options import (
    BoostRegion,
    CropStrategy,
    ImageFormat,
    ImageRequestOptions,
    Quality,
    SourceMetadata,
    parse_directives,
    parse_options,
    resolve_dimensions,
    split_request_url,
)

LANDSCAPE = SourceMetadata(width=1000, height=500, format="jpeg")
PORTRAIT = SourceMetadata(width=500, height=1000, format="jpeg")
SQUARE = SourceMetadata(width=600, height=600, format="png")


def dimensions(options: ImageRequestOptions):
    return options.width, options.height


# Request URL splitting

def test_split_decodes_path_and_keeps_raw_query():
    path, query = split_request_url("/my%20photo.jpg?cropSmartBoost=1%2C2&width=10")
    assert path == "/my photo.jpg"
    assert query == "cropSmartBoost=1%2C2&width=10"


def test_split_remote_path():
    path, query = split_request_url("/https://example.com/cat.jpg?width=300")
    assert path == "/https://example.com/cat.jpg"
    assert query == "width=300"


def test_split_keeps_double_slash_path():
    assert split_request_url("//albums/2024/cover.png?width=10") == ("//albums/2024/cover.png", "width=10")


def test_split_drops_fragment():
    assert split_request_url("/a.jpg?width=10#top") == ("/a.jpg", "width=10")
    assert split_request_url("/a.jpg#top") == ("/a.jpg", "")


def test_split_keeps_reserved_escapes_in_path():
    path, query = split_request_url("/https://x.com/a%20b.jpg%3Fv%3D1?width=10")
    assert path == "/https://x.com/a b.jpg%3Fv%3D1"
    assert query == "width=10"


# Original passthrough

@pytest.mark.parametrize("url", ["/a.jpg", "/a.jpg?"])
def test_no_query_is_original(url):
    options = parse_options(url, LANDSCAPE)

    assert options.original is True
    assert options.path == "/a.jpg"
    assert dimensions(options) == (0, 0)
    assert options.crop is CropStrategy.SMART
    assert options.quality is Quality.OPTIMIZED
    assert options.format is ImageFormat.JPEG
    assert options.media_type == "image/jpeg"


def test_any_query_disables_original():
    options = parse_options("/a.jpg?unknown=1", LANDSCAPE)
    assert options.original is False
    assert dimensions(options) == (1000, 500)


# Dimension resolution

def test_width_only_keeps_aspect_ratio():
    assert dimensions(parse_options("/a.jpg?width=300", LANDSCAPE)) == (300, 150)


def test_height_only_keeps_aspect_ratio():
    assert dimensions(parse_options("/a.jpg?height=300", LANDSCAPE)) == (600, 300)


@pytest.mark.parametrize("source_width,source_height,width", [
    (1000, 500, 300),
    (640, 427, 333),
    (3, 7, 5),
    (4000, 3000, 4999),
    (1920, 1080, 1),
])
def test_width_only_truncates_derived_height(source_width, source_height, width):
    metadata = SourceMetadata(source_width, source_height, "jpeg")
    options = parse_options(f"/a.jpg?width={width}", metadata)
    assert dimensions(options) == (width, (width * source_height) // source_width)


@pytest.mark.parametrize("source_width,source_height,height", [
    (1000, 500, 300),
    (427, 640, 333),
    (7, 3, 5),
])
def test_height_only_truncates_derived_width(source_width, source_height, height):
    metadata = SourceMetadata(source_width, source_height, "jpeg")
    options = parse_options(f"/a.jpg?height={height}", metadata)
    assert dimensions(options) == ((height * source_width) // source_height, height)


def test_width_and_height_are_kept_as_given():
    assert dimensions(parse_options("/a.jpg?width=200&height=200", LANDSCAPE)) == (200, 200)


def test_short_side_on_portrait_binds_width():
    options = parse_options("/a.jpg?shortSide=200", PORTRAIT)
    assert dimensions(options) == (200, 400)
    assert options.short_side == 200


def test_short_side_on_landscape_binds_height():
    assert dimensions(parse_options("/a.jpg?shortSide=200", LANDSCAPE)) == (400, 200)


def test_short_side_on_square_binds_height():
    assert dimensions(parse_options("/a.jpg?shortSide=200", SQUARE)) == (200, 200)


def test_long_side_on_landscape_binds_width():
    assert dimensions(parse_options("/a.jpg?longSide=800", LANDSCAPE)) == (800, 400)


def test_long_side_on_portrait_binds_height():
    assert dimensions(parse_options("/a.jpg?longSide=800", PORTRAIT)) == (400, 800)


def test_short_side_wins_over_long_side():
    assert dimensions(parse_options("/a.jpg?longSide=900&shortSide=100", LANDSCAPE)) == (200, 100)


def test_short_side_overrides_explicit_height_but_keeps_width():
    options = parse_options("/a.jpg?width=300&height=300&shortSide=100", LANDSCAPE)
    assert dimensions(options) == (300, 100)


def test_density_scales_after_derivation():
    options = parse_options("/a.jpg?density=2.0&width=300", LANDSCAPE)
    assert dimensions(options) == (600, 300)
    assert options.density == 2.0


def test_density_scales_side_shorthands():
    options = parse_options("/a.jpg?shortSide=150&density=1.5", PORTRAIT)
    assert dimensions(options) == (225, 450)
    assert options.short_side == 225
    assert options.long_side == 0


@pytest.mark.parametrize("density", ["1.0", "1.25", "2", "2.75", "3.0"])
def test_density_truncates(density):
    options = parse_options(f"/a.jpg?width=333&density={density}", LANDSCAPE)
    assert options.width == int(333 * float(density))
    assert options.height == int(166 * float(density))


def test_density_without_dimensions_scales_source_size():
    assert dimensions(parse_options("/a.jpg?density=2", LANDSCAPE)) == (2000, 1000)


def test_resolve_dimensions_directly():
    options = ImageRequestOptions(path="/a.jpg", height=100)
    resolved = resolve_dimensions(options, 300, 200)
    assert dimensions(resolved) == (150, 100)
    assert options.width == 0  # input is left untouched


# Fail-open directive parsing

@pytest.mark.parametrize("bad", ["0", "5000", "6000", "-10", "abc", ""])
def test_out_of_range_dimension_equals_omitted(bad):
    malformed = parse_options(f"/a.jpg?width={bad}&height=100", LANDSCAPE)
    omitted = parse_options("/a.jpg?height=100", LANDSCAPE)
    assert dimensions(malformed) == dimensions(omitted)


def test_dimension_without_value_is_ignored():
    assert dimensions(parse_options("/a.jpg?width&height=100", LANDSCAPE)) == (200, 100)


def test_dimension_uses_leading_integer():
    assert parse_directives("width=300px") == {"width": 300}
    assert parse_directives("height=12.9") == {"height": 12}


def test_only_second_segment_of_pair_is_value():
    assert parse_directives("width=300=400") == {"width": 300}


def test_boundary_dimensions_accepted():
    assert parse_directives("width=1&height=4999") == {"width": 1, "height": 4999}


@pytest.mark.parametrize("value,expected", [
    ("jpeg", ImageFormat.JPEG),
    ("png", ImageFormat.PNG),
    ("webp", ImageFormat.WEBP),
])
def test_format_allow_list(value, expected):
    assert parse_options(f"/a.jpg?format={value}", LANDSCAPE).format is expected


@pytest.mark.parametrize("value", ["gif", "JPEG", "jpg", ""])
def test_unknown_format_keeps_source_format(value):
    assert parse_options(f"/a.png?format={value}", SQUARE).format is ImageFormat.PNG


def test_unsupported_source_format_defaults_to_jpeg():
    options = parse_options("/a.gif?width=10", SourceMetadata(20, 10, "gif"))
    assert options.format is ImageFormat.JPEG
    assert options.source_format == "gif"


def test_original_media_type_follows_source():
    options = parse_options("/a.gif", SourceMetadata(20, 10, "gif"))
    assert options.media_type == "image/gif"


@pytest.mark.parametrize("crop", [c.value for c in CropStrategy])
def test_every_crop_strategy_is_accepted(crop):
    assert parse_options(f"/a.jpg?crop={crop}", LANDSCAPE).crop.value == crop


@pytest.mark.parametrize("crop", ["righttop", "RightTop", "middle", ""])
def test_unknown_crop_keeps_smart(crop):
    assert parse_options(f"/a.jpg?crop={crop}", LANDSCAPE).crop is CropStrategy.SMART


def test_quality_allow_list():
    assert parse_options("/a.jpg?quality=high", LANDSCAPE).quality is Quality.HIGH
    assert parse_options("/a.jpg?quality=balanced", LANDSCAPE).quality is Quality.BALANCED
    assert parse_options("/a.jpg?quality=max", LANDSCAPE).quality is Quality.OPTIMIZED


@pytest.mark.parametrize("value", ["0.5", "0.99", "3.01", "10", "x"])
def test_density_out_of_range_is_ignored(value):
    assert parse_options(f"/a.jpg?density={value}", LANDSCAPE).density == 1.0


def test_crop_smart_boost_full():
    options = parse_options("/a.jpg?cropSmartBoost=10,20,300,400", LANDSCAPE)
    assert options.crop_smart_boost == BoostRegion(10, 20, 300, 400, weight=1.0)


def test_crop_smart_boost_missing_components_default_to_zero():
    options = parse_options("/a.jpg?cropSmartBoost=10,20", LANDSCAPE)
    assert options.crop_smart_boost == BoostRegion(10, 20, 0, 0, weight=1.0)


def test_crop_smart_boost_garbled_components_default_to_zero():
    assert parse_directives("cropSmartBoost=a,5,,7")["crop_smart_boost"] == BoostRegion(0, 5, 0, 7)


def test_crop_smart_boost_without_value_is_ignored():
    assert parse_options("/a.jpg?cropSmartBoost", LANDSCAPE).crop_smart_boost is None


def test_unknown_keys_are_ignored():
    assert parse_directives("foo=bar&&=&width=10") == {"width": 10}


def test_later_directive_wins():
    assert parse_options("/a.jpg?width=100&width=200", LANDSCAPE).width == 200
