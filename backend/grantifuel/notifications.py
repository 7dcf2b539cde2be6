"""Transient user notifications (toasts) with timed auto-dismiss."""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

VARIANTS = {"default", "destructive", "success"}


@dataclass
class Toast:
    """A single notification shown to the user."""

    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    variant: str = "default"
    duration: float = 5.0
    created_at: float = field(default_factory=time.monotonic)

    @property
    def expires_at(self) -> float:
        return self.created_at + self.duration


class Notifier:
    """Collects toasts; expired ones disappear from ``toasts`` on their own."""

    def __init__(
        self,
        default_duration: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_duration = default_duration
        self._clock = clock
        self._toasts: List[Toast] = []
        # everything ever shown, for audit and tests
        self.history: List[Toast] = []

    def toast(
        self,
        title: Optional[str] = None,
        description: Optional[str] = None,
        variant: str = "default",
        duration: Optional[float] = None,
    ) -> str:
        if variant not in VARIANTS:
            variant = "default"
        toast_id = uuid.uuid4().hex[:7]
        entry = Toast(
            id=toast_id,
            title=title,
            description=description,
            variant=variant,
            duration=self.default_duration if duration is None else duration,
            created_at=self._clock(),
        )
        self._toasts.append(entry)
        self.history.append(entry)
        log = logger.warning if variant == "destructive" else logger.info
        log("Toast [%s] %s: %s", variant, title, description)
        return toast_id

    def dismiss(self, toast_id: Optional[str] = None) -> None:
        if toast_id is None:
            self._toasts.clear()
        else:
            self._toasts = [t for t in self._toasts if t.id != toast_id]

    @property
    def toasts(self) -> List[Toast]:
        now = self._clock()
        self._toasts = [t for t in self._toasts if t.expires_at > now]
        return list(self._toasts)

    def latest(self) -> Optional[Toast]:
        current = self.toasts
        return current[-1] if current else None
