"""Client-side route table, matching, and auth/role guards."""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, urlsplit

from grantifuel.storage import AUTH_REDIRECT_KEY, AUTH_REDIRECT_PATH_KEY, MemoryStorage

logger = logging.getLogger(__name__)

PUBLIC = "public"
PROTECTED = "protected"


@dataclass(frozen=True)
class Route:
    """A path pattern such as ``/grants/:id`` and who may see it."""

    pattern: str
    name: str
    access: str = PROTECTED
    allowed_roles: Tuple[str, ...] = ()

    @property
    def regex(self) -> "re.Pattern[str]":
        if self.pattern == "*":
            return re.compile(r"^.*$")
        parts = []
        for segment in self.pattern.strip("/").split("/"):
            if segment.startswith(":"):
                parts.append(f"(?P<{segment[1:]}>[^/]+)")
            else:
                parts.append(re.escape(segment))
        body = "/".join(parts)
        return re.compile(rf"^/{body}/?$" if body else r"^/$")


# Order matters: literal segments before parameters, catch-all last.
ROUTES: List[Route] = [
    Route("/", "landing", PUBLIC),
    Route("/auth", "auth", PUBLIC),
    Route("/pricing", "pricing", PUBLIC),
    Route("/unauthorized", "unauthorized", PUBLIC),
    Route("/dashboard", "dashboard"),
    Route("/grants", "grants"),
    Route("/grants/:id", "grant_detail"),
    Route("/applications", "applications"),
    Route("/applications/new", "new_application"),
    Route("/applications/:id", "application_detail"),
    Route("/artists/:id", "artist_detail"),
    Route("/profile", "profile"),
    Route("/templates", "templates"),
    Route("/templates/:id", "template_detail"),
    Route("/checkout/:planName", "checkout"),
    Route("/documents", "documents"),
    Route("/ai-assistant", "ai_assistant"),
    Route("/admin", "admin_dashboard", PROTECTED, ("admin",)),
    Route("/admin/users", "user_management", PROTECTED, ("admin",)),
    Route("*", "not_found", PUBLIC),
]


@dataclass
class RouteMatch:
    route: Route
    params: Dict[str, str] = field(default_factory=dict)
    query: str = ""

    @property
    def is_not_found(self) -> bool:
        return self.route.name == "not_found"


def match_route(location: str, routes: Optional[List[Route]] = None) -> RouteMatch:
    """Find the first route matching the path part of ``location``."""
    parts = urlsplit(location)
    path = parts.path or "/"
    for route in routes or ROUTES:
        m = route.regex.match(path)
        if m:
            return RouteMatch(route=route, params=m.groupdict(), query=parts.query)
    # unreachable with the catch-all in place
    return RouteMatch(route=ROUTES[-1], query=parts.query)


class Navigator:
    """Current location plus history, with guards applied on navigation."""

    def __init__(self, session_storage: MemoryStorage, initial: str = "/"):
        self.session_storage = session_storage
        self.history: List[str] = [initial]
        self.reload_count = 0

    @property
    def location(self) -> str:
        return self.history[-1]

    @property
    def current(self) -> RouteMatch:
        return match_route(self.location)

    def guard(self, location: str, user: Any = None) -> str:
        """Return where ``location`` actually lands for ``user``."""
        matched = match_route(location)
        route = matched.route
        if route.access == PUBLIC:
            return location

        if user is None:
            # remember where the user was headed so login can send them back
            self.session_storage.set_item(AUTH_REDIRECT_KEY, location)
            self.session_storage.set_item(AUTH_REDIRECT_PATH_KEY, route.pattern)
            return f"/auth?redirect={quote(location, safe='')}&ts={int(time.time() * 1000)}"

        if route.allowed_roles:
            role = getattr(user, "role", None)
            role = getattr(role, "value", role)
            if role not in route.allowed_roles:
                logger.info("Role %s may not open %s", role, route.pattern)
                return "/unauthorized"

        return location

    def navigate(self, location: str, user: Any = None, *, guarded: bool = True) -> str:
        target = self.guard(location, user) if guarded else location
        if target != location:
            logger.debug("Redirecting %s -> %s", location, target)
        self.history.append(target)
        return target

    def back(self) -> str:
        if len(self.history) > 1:
            self.history.pop()
        return self.location

    def reload(self, location: str) -> str:
        """Hard reload: history starts over at ``location``."""
        self.reload_count += 1
        self.history = [location]
        logger.info("Reloading at %s", location)
        return location
