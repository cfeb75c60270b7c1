"""Free-tier quota policy.

Pure functions only: the lock / warning decision is recomputed from the
tenant's counters on every request and never stored.
"""

from dataclasses import dataclass

FREE_VIEW_LIMIT = 1000

# Views left before the lock at which the dashboard and widget start warning.
WARNING_WINDOW = 100


@dataclass(frozen=True)
class QuotaDecision:
    locked: bool
    views_used: int
    views_remaining: int
    warning: bool


def evaluate(
    view_count: int | None,
    is_paid: bool,
    *,
    limit: int = FREE_VIEW_LIMIT,
    warning_window: int = WARNING_WINDOW,
) -> QuotaDecision:
    """Map raw counters to a lock / warning decision.

    Paid tenants are never locked; the plan only matters for display.
    """
    used = view_count if view_count and view_count > 0 else 0
    locked = used >= limit and not is_paid
    return QuotaDecision(
        locked=locked,
        views_used=used,
        views_remaining=max(0, limit - used),
        warning=not locked and (limit - used) <= warning_window,
    )
