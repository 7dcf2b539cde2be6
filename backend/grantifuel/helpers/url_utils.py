"""URL helpers used when matching AI recommendations to requested grant ids."""

import logging
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


def strip_www(hostname: str) -> str:
    return hostname[4:] if hostname.startswith("www.") else hostname


def normalize_hostname(url: Optional[str]) -> Optional[str]:
    """Extract the lowercase hostname from a URL, without ``www.``.

    ``"https://www.arts.gov/grants"`` -> ``"arts.gov"``. A missing scheme
    is treated as https. Returns ``None`` when there is no URL or no host
    can be parsed out of it.
    """
    if not url or not url.strip():
        return None

    candidate = url.strip()
    if not candidate.startswith("http"):
        candidate = "https://" + candidate

    try:
        hostname = (urlparse(candidate).hostname or "").lower().strip()
    except ValueError:
        logger.warning("Could not parse URL %r", url)
        return None

    if not hostname:
        logger.debug("No hostname in URL %r", url)
        return None
    return strip_www(hostname)


def hostnames_match(hostname: str, target: str) -> bool:
    """Exact match, or either one contained in the other."""
    hostname = strip_www(hostname.lower())
    target = strip_www(target.lower())
    if not hostname or not target:
        return False
    return hostname == target or target in hostname or hostname in target
