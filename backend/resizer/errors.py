"""
Error types for the image resizer.

Hard failures propagate unchanged from the seam that detects them to the
HTTP boundary. Invalid directives are never errors: the option parser
drops them and keeps the default.
"""


class ResizerError(Exception):
    """Base class for all pipeline failures."""


class SourceUnavailable(ResizerError):
    """Local file missing/unreadable, or the remote fetch failed."""


class DecodeFailure(ResizerError):
    """The source bytes could not be parsed as an image."""


class CropFailure(ResizerError):
    """Cropping or resizing failed on the requested geometry."""
