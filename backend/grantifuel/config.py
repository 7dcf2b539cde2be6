"""Runtime configuration for the GrantiFuel client.

Values come from the process environment (a ``.env`` file is loaded on
import) and are exposed both as module constants and as a frozen
:class:`Settings` snapshot that can be handed to :func:`create_app_state`.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# API connection
# ---------------------------------------------------------------------------
API_URL = os.getenv("GRANTIFUEL_API_URL", "http://localhost:5000")
REQUEST_TIMEOUT = float(os.getenv("GRANTIFUEL_REQUEST_TIMEOUT", "30"))

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
LOCAL_STORAGE_PATH = os.getenv("GRANTIFUEL_LOCAL_STORAGE_PATH", "")

# ---------------------------------------------------------------------------
# Query retry policy
# ---------------------------------------------------------------------------
QUERY_RETRIES = int(os.getenv("GRANTIFUEL_QUERY_RETRIES", "3"))
RETRY_BASE_DELAY = float(os.getenv("GRANTIFUEL_RETRY_BASE_DELAY", "1.0"))
RETRY_MAX_DELAY = float(os.getenv("GRANTIFUEL_RETRY_MAX_DELAY", "30.0"))

# ---------------------------------------------------------------------------
# UI state
# ---------------------------------------------------------------------------
TOAST_DURATION = float(os.getenv("GRANTIFUEL_TOAST_DURATION", "5.0"))
GRANT_FALLBACK_TO_FIRST = (
    os.getenv("GRANTIFUEL_GRANT_FALLBACK_TO_FIRST", "true").lower() == "true"
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ---------------------------------------------------------------------------
# Query freshness per key prefix: (stale_time, gc_time) in seconds
# ---------------------------------------------------------------------------
MINUTE = 60.0
HOUR = 60 * MINUTE

DEFAULT_QUERY_TIMES: Tuple[float, float] = (3 * MINUTE, 30 * MINUTE)

QUERY_DEFAULTS: Dict[str, Tuple[float, float]] = {
    "/api/user": (1 * MINUTE, 30 * MINUTE),
    "/api/applications": (5 * MINUTE, 1 * HOUR),
    "/api/grants": (5 * MINUTE, 1 * HOUR),
    "/api/documents": (2 * MINUTE, 30 * MINUTE),
    "/api/ai/grant-recommendations": (30 * MINUTE, 24 * HOUR),
}


@dataclass(frozen=True)
class Settings:
    """Immutable settings snapshot used to build an application state."""

    api_url: str = API_URL
    request_timeout: float = REQUEST_TIMEOUT
    local_storage_path: Optional[str] = LOCAL_STORAGE_PATH or None
    query_retries: int = QUERY_RETRIES
    retry_base_delay: float = RETRY_BASE_DELAY
    retry_max_delay: float = RETRY_MAX_DELAY
    toast_duration: float = TOAST_DURATION
    grant_fallback_to_first: bool = GRANT_FALLBACK_TO_FIRST
    query_defaults: Dict[str, Tuple[float, float]] = field(
        default_factory=lambda: dict(QUERY_DEFAULTS)
    )


def get_settings() -> Settings:
    """Build a settings snapshot from the current module configuration."""
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging the same way for every entry point."""
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.debug("Logging configured at %s", level or LOG_LEVEL)
