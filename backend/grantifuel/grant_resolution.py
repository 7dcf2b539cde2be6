"""
Match a requested grant id against AI recommendations kept in session storage.

Recommendation ids look like ``doc-based-<host>-<n>``. Matching is tried:

1. by trailing index ``<n>`` into the recommendation list
2. by hostname ``<host>`` against each recommendation's URL (exact, or
   containment in either direction, ``www.`` ignored)
3. first recommendation, only when ``fallback_to_first`` is set

Without a match and without the fallback, ``GrantNotFoundError`` is raised.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from grantifuel.errors import GrantNotFoundError
from grantifuel.helpers.url_utils import hostnames_match, normalize_hostname, strip_www
from grantifuel.models.ai_helpers import GrantRecommendation

logger = logging.getLogger(__name__)

DOC_BASED_PREFIX = "doc-based-"

_INDEX_RE = re.compile(r"(\d+)$")
_HOST_RE = re.compile(r"doc-based-(.*?)-")

MATCHED_BY_INDEX = "index"
MATCHED_BY_HOSTNAME = "hostname"
MATCHED_BY_FALLBACK = "fallback"


@dataclass(frozen=True)
class GrantResolution:
    grant: GrantRecommendation
    matched_by: str

    @property
    def is_fallback(self) -> bool:
        return self.matched_by == MATCHED_BY_FALLBACK


def is_doc_based_id(grant_id: Optional[str]) -> bool:
    return bool(grant_id) and str(grant_id).startswith(DOC_BASED_PREFIX)


def _index_from_id(grant_id: str) -> Optional[int]:
    m = _INDEX_RE.search(grant_id)
    return int(m.group(1)) if m else None


def _hostname_from_id(grant_id: str) -> Optional[str]:
    m = _HOST_RE.search(grant_id)
    if not m or not m.group(1) or m.group(1) == "recommendation":
        return None
    return strip_www(m.group(1).lower())


def resolve_recommendation(
    recommendations: Sequence[GrantRecommendation],
    grant_id: str,
    *,
    fallback_to_first: bool = False,
) -> GrantResolution:
    """Pick the recommendation ``grant_id`` refers to.

    Raises:
        GrantNotFoundError: Nothing matched and the fallback is off (or the
            list is empty).
    """
    if not recommendations:
        raise GrantNotFoundError(grant_id)

    index = _index_from_id(grant_id)
    if index is not None and 0 <= index < len(recommendations):
        logger.debug("Resolved %s by index %d", grant_id, index)
        return GrantResolution(recommendations[index], MATCHED_BY_INDEX)

    target = _hostname_from_id(grant_id)
    if target:
        for rec in recommendations:
            hostname = normalize_hostname(rec.url)
            if hostname and hostnames_match(hostname, target):
                logger.debug("Resolved %s by hostname %s", grant_id, hostname)
                return GrantResolution(rec, MATCHED_BY_HOSTNAME)

    if fallback_to_first:
        logger.warning(
            f"No recommendation matches {grant_id}, using first: {recommendations[0].name}"
        )
        return GrantResolution(recommendations[0], MATCHED_BY_FALLBACK)

    raise GrantNotFoundError(grant_id)
