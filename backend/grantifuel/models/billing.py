"""Subscription plans, user subscriptions and checkout state."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field, validator

from grantifuel.models.base import ApiModel


class PlanTier(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"


class SubscriptionPlan(ApiModel):
    """A purchasable plan. ``price`` is in cents."""

    id: int
    name: str
    tier: PlanTier = PlanTier.FREE
    price: int = 0
    description: Optional[str] = None
    max_applications: Optional[int] = None
    max_artists: Optional[int] = None
    features: List[str] = Field(default_factory=list)
    stripe_price_id: Optional[str] = None
    active: bool = True

    @validator("features", pre=True)
    def none_features_to_empty(cls, v):
        return v or []

    @property
    def display_price(self) -> str:
        return f"${self.price / 100:.2f}"


class Subscription(ApiModel):
    id: int
    user_id: Optional[int] = None
    plan_id: int
    status: str = "active"
    stripe_subscription_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    canceled_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in ("active", "trialing") and self.canceled_at is None


class CheckoutSession(ApiModel):
    """What the payment form needs once a subscription has been opened."""

    client_secret: str
    plan_id: int
    plan_name: Optional[str] = None
    plan_price: Optional[int] = None
