"""
Runtime configuration for the image resizer.

Values come from environment variables, optionally loaded from a .env
file at the repository root.

Environment variables:
    IMAGE_BASE_DIR: Directory that local image paths are resolved against
        (default './images').
    IMAGE_CACHE_DIR: Directory used by the filesystem cache (default './cache').
    IMAGE_CACHE_BACKEND: 'filesystem' (default) or 'memory'.
    IMAGE_FETCH_TIMEOUT: Seconds to wait for a remote image (default 30,
        0 disables the timeout).
    LOG_LEVEL: Log level of the HTTP service (default 'INFO').
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


@dataclass(frozen=True)
class Settings:
    """Resolved configuration"""
    base_dir: str
    cache_dir: str
    cache_backend: str
    fetch_timeout: Optional[float]
    log_level: str


def get_settings() -> Settings:
    """Read the current settings from the environment."""
    timeout = float(os.environ.get("IMAGE_FETCH_TIMEOUT", "30"))

    return Settings(
        base_dir=os.environ.get("IMAGE_BASE_DIR", "./images"),
        cache_dir=os.environ.get("IMAGE_CACHE_DIR", "./cache"),
        cache_backend=os.environ.get("IMAGE_CACHE_BACKEND", "filesystem").lower(),
        fetch_timeout=timeout if timeout > 0 else None,
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    )
