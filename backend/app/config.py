"""
Service configuration.

Values come from the process environment (optionally seeded from a .env file
via python-dotenv) and are collected into a single Settings model. Handlers
receive it through ``Depends(get_settings)`` so tests can swap it out with
``app.dependency_overrides``.
"""

import logging
import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_SENDER = "noreply@noreply.capitalflasher.com"


def _env_float(name: str, default: float) -> float:
    """Read a numeric env var, falling back to the default when it won't parse."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}; using {default}")
        return default


class Settings(BaseModel):
    """Everything the dispatcher needs to know about its deployment."""

    # Email provider (Resend)
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com"
    email_from: str = DEFAULT_SENDER
    email_timeout_seconds: float = 10.0
    admin_email: str = ""

    # PDF rendering
    render_engine: str = "local"
    chromium_executable_path: Optional[str] = None
    chromium_pack_url: str = ""
    chromium_install_dir: str = "/tmp/chromium"
    chromium_executable_name: str = "chromium"
    render_load_timeout_seconds: float = 30.0
    render_export_timeout_seconds: float = 60.0

    # HTTP surface
    cors_allow_origin: str = "*"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            resend_api_key=os.getenv("RESEND_API_KEY", "").strip(),
            resend_api_url=os.getenv("RESEND_API_URL", "https://api.resend.com").rstrip("/"),
            email_from=os.getenv("EMAIL_FROM", DEFAULT_SENDER).strip() or DEFAULT_SENDER,
            email_timeout_seconds=_env_float("EMAIL_TIMEOUT_SECONDS", 10.0),
            admin_email=os.getenv("ADMIN_EMAIL", "").strip(),
            render_engine=os.getenv("RENDER_ENGINE", "local").strip().lower() or "local",
            chromium_executable_path=os.getenv("CHROMIUM_EXECUTABLE_PATH") or None,
            chromium_pack_url=os.getenv("CHROMIUM_PACK_URL", "").strip(),
            chromium_install_dir=os.getenv("CHROMIUM_INSTALL_DIR", "/tmp/chromium"),
            chromium_executable_name=os.getenv("CHROMIUM_EXECUTABLE_NAME", "chromium"),
            render_load_timeout_seconds=_env_float("RENDER_LOAD_TIMEOUT_SECONDS", 30.0),
            render_export_timeout_seconds=_env_float("RENDER_EXPORT_TIMEOUT_SECONDS", 60.0),
            cors_allow_origin=os.getenv("CORS_ALLOW_ORIGIN", "*").strip() or "*",
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
