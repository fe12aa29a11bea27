"""
Revision and auto-approval rules

Pure queries over an Order and a point in time. Acting on a due
auto-approval is the job of the sweep in OrderService, which goes through
the transition engine like every other change.
"""

import math
from datetime import datetime, timedelta
from typing import Optional

from ...config import AUTO_APPROVAL_DAYS
from .aggregate import Order
from .status import OrderStatus

DEFAULT_AUTO_APPROVAL_WINDOW = timedelta(days=AUTO_APPROVAL_DAYS)

# Statuses from which the transition table allows a move into in_revision
REVISION_ELIGIBLE_STATUSES = frozenset(
    {OrderStatus.PROCESSING, OrderStatus.IN_PROGRESS, OrderStatus.HUMAN_CHECK}
)


def can_request_revision(order: Order, now: datetime) -> bool:
    """True when the order may be sent back for another revision round"""
    return (
        order.status in REVISION_ELIGIBLE_STATUSES
        and order.revision_rounds.used < order.revision_rounds.max
    )


def is_auto_approval_due(order: Order, now: datetime) -> bool:
    """True when an order in revision has reached its auto-approval deadline"""
    return (
        order.status == OrderStatus.IN_REVISION
        and order.auto_approval_deadline is not None
        and now >= order.auto_approval_deadline
    )


def days_until_auto_approval(order: Order, now: datetime) -> Optional[int]:
    """Whole days left before auto-approval, rounded up; None without a deadline"""
    if order.auto_approval_deadline is None:
        return None
    remaining = order.auto_approval_deadline - now
    return math.ceil(remaining.total_seconds() / 86400)


def revision_status(order: Order) -> dict:
    rounds = order.revision_rounds
    return {
        "max_rounds": rounds.max,
        "used_rounds": rounds.used,
        "remaining_rounds": rounds.remaining,
    }
