"""Subscription plan catalogue.

Single source of truth for plan names, prices and the price → plan ladder
applied when a subscription becomes active.
"""

from dataclasses import dataclass
from enum import StrEnum


class PlanName(StrEnum):
    NONE = "none"
    STARTER = "starter"
    GROWTH = "growth"
    UNLIMITED = "unlimited"


class SubscriptionStatus(StrEnum):
    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    FROZEN = "FROZEN"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


# Statuses after which a subscription can never become active again.
TERMINAL_STATUSES = frozenset({SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED})


@dataclass(frozen=True)
class BillingPlan:
    display_name: str
    price: float  # USD every 30 days
    monthly_views: int | None  # None = unlimited


BILLING_PLANS: dict[PlanName, BillingPlan] = {
    PlanName.STARTER:   BillingPlan("Starter",   19.00,  5_000),
    PlanName.GROWTH:    BillingPlan("Growth",    49.00, 50_000),
    PlanName.UNLIMITED: BillingPlan("Unlimited", 99.00,   None),
}


def plan_from_price(price: float | None) -> PlanName:
    """Derive the plan from the recurring price of an active subscription."""
    amount = price or 0
    if amount >= 99:
        return PlanName.UNLIMITED
    if amount >= 49:
        return PlanName.GROWTH
    return PlanName.STARTER


def price_for_plan_name(name: str | None) -> float:
    """Catalogue price for a subscription display name, 0 if unknown."""
    if not name:
        return 0.0
    wanted = name.strip().lower()
    for plan in BILLING_PLANS.values():
        if plan.display_name.lower() == wanted:
            return plan.price
    return 0.0
