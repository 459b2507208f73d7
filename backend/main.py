"""
Image Resizer FastAPI Backend

Serves transformed images: GET /<path>?<directives>
"""

import logging
import os
import sys
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel

# Ensure backend is in path for proper imports
backend_path = os.path.dirname(os.path.abspath(__file__))
if backend_path not in sys.path:
    sys.path.insert(0, backend_path)

from resizer.config import get_settings
from resizer.errors import CropFailure, DecodeFailure, SourceUnavailable
from resizer.pipeline import get_pipeline

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize app
app = FastAPI(
    title="Image Resizer API",
    description="On-demand image resizing, cropping and re-encoding",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

INSPECT_PREFIX = "/inspect"


# Response models
class HealthResponse(BaseModel):
    status: str


class OptionsResponse(BaseModel):
    path: str
    width: int
    height: int
    short_side: int
    long_side: int
    format: str
    crop: str
    crop_smart_boost: Optional[dict]
    quality: str
    density: float
    original: bool
    source_format: str


def raw_request_target(request: Request) -> str:
    """
    The request path and query string exactly as sent.

    This is the cache key, so it is not decoded or normalized.
    """
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path

    query = request.scope.get("query_string", b"").decode("latin-1")
    return f"{path}?{query}" if query else path


def to_http_error(exc: Exception) -> HTTPException:
    """Map a pipeline failure to an HTTP error."""
    if isinstance(exc, SourceUnavailable):
        status_code = 404
    elif isinstance(exc, DecodeFailure):
        status_code = 415
    elif isinstance(exc, CropFailure):
        status_code = 422
    else:
        status_code = 500

    logger.warning("Request failed (%d): %s", status_code, exc)
    return HTTPException(status_code=status_code, detail=str(exc))


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    return HealthResponse(status="ok")


@app.get(INSPECT_PREFIX + "/{image_path:path}", response_model=OptionsResponse)
async def inspect_image(image_path: str, request: Request):
    """
    Show the options a request resolves to.

    Fetches the source to read its metadata but does not transform it.
    """
    request_url = raw_request_target(request)[len(INSPECT_PREFIX):]

    try:
        options = await get_pipeline().inspect(request_url)
    except Exception as e:
        raise to_http_error(e)

    return OptionsResponse(**options.to_dict())


@app.get("/{image_path:path}")
async def get_image(image_path: str, request: Request):
    """
    Return the transformed image for a request.

    Without a query string the source bytes are returned unchanged.
    Results are cached by the raw request URL.
    """
    request_url = raw_request_target(request)

    try:
        entry = await get_pipeline().process_with_cache(request_url)
    except Exception as e:
        raise to_http_error(e)

    return Response(content=entry.image_data, media_type=entry.media_type)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=3003)
