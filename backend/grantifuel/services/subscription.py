"""Subscription plans and the checkout hand-off to the payment processor."""

import logging
from typing import List, Optional

from grantifuel.errors import GrantiFuelError, user_message
from grantifuel.models.billing import CheckoutSession, PlanTier, Subscription, SubscriptionPlan
from grantifuel.services.base import StateService

logger = logging.getLogger(__name__)

PLANS_KEY = ("/api/subscription-plans",)
USER_SUBSCRIPTION_KEY = ("/api/user/subscription",)
CHECKOUT_SUCCESS_PATH = "/dashboard?subscription=success"

# marketing names used on the pricing page
PLAN_ALIASES = {
    "pro": PlanTier.BASIC,
    "teams": PlanTier.PREMIUM,
}


class SubscriptionService(StateService):
    async def list_plans(self) -> List[SubscriptionPlan]:
        return await self._fetch_list(PLANS_KEY, SubscriptionPlan)

    async def get_plan_by_name(self, plan_name: str) -> Optional[SubscriptionPlan]:
        """Find a plan by tier, name (case-insensitive) or pricing-page alias.

        Unknown names notify and send the user back to the pricing page.
        """
        wanted = plan_name.lower()
        for plan in await self.list_plans():
            if (
                plan.tier.value == wanted
                or plan.name.lower() == wanted
                or PLAN_ALIASES.get(wanted) == plan.tier
            ):
                return plan

        self.state.toast(
            "Plan Not Found",
            "The subscription plan you selected does not exist.",
            variant="destructive",
        )
        self.state.navigate("/pricing")
        return None

    async def current_subscription(self) -> Optional[Subscription]:
        data = await self.queries.fetch_query(USER_SUBSCRIPTION_KEY)
        return Subscription.model_validate(data) if data else None

    async def start_checkout(self, plan: SubscriptionPlan) -> Optional[CheckoutSession]:
        """Create the customer and a subscription payment intent.

        Returns ``None`` (after notifying) if either step fails or the server
        does not hand back a client secret.
        """
        try:
            await self.api.request_json("POST", "/api/create-customer")
            data = await self.api.request_json(
                "POST", "/api/create-subscription", {"planId": plan.id}
            )
            if not data or not data.get("clientSecret"):
                raise GrantiFuelError("No client secret returned from server")
        except GrantiFuelError as e:
            logger.error(f"Checkout setup failed for plan {plan.id}: {e}")
            self.state.toast(
                "Error Setting Up Payment",
                user_message(e, "An unexpected error occurred"),
                variant="destructive",
            )
            return None

        session = CheckoutSession(
            client_secret=data["clientSecret"],
            plan_id=plan.id,
            plan_name=data.get("planName"),
            plan_price=data.get("planPrice"),
        )
        logger.info(f"Payment intent created for plan {session.plan_name} ({session.plan_price})")
        return session

    async def record_payment(self, payment_intent_id: str, plan: SubscriptionPlan) -> str:
        """Record a confirmed payment. The payment already succeeded, so a
        recording failure is only logged and the user still lands on success."""
        try:
            await self.api.request_json(
                "POST",
                "/api/record-subscription-payment",
                {"paymentIntentId": payment_intent_id, "planId": plan.id},
            )
        except GrantiFuelError as e:
            logger.error(f"Error recording subscription: {e}")
        else:
            self.state.toast("Payment Successful", "Thank you for your subscription!")
        self.queries.invalidate_queries(USER_SUBSCRIPTION_KEY)
        return self.state.navigate(CHECKOUT_SUCCESS_PATH)

    async def cancel(self) -> Optional[Subscription]:
        try:
            data = await self.api.request_json("POST", "/api/cancel-subscription")
        except GrantiFuelError as e:
            self.state.toast("Cancellation failed", user_message(e), variant="destructive")
            return None
        self.queries.invalidate_queries(USER_SUBSCRIPTION_KEY)
        self.state.toast("Subscription canceled", "Your subscription has been canceled.")
        return Subscription.model_validate(data) if isinstance(data, dict) and data.get("id") else None
