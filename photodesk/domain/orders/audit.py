"""Order audit trail - transition history and activity titles"""

from typing import Tuple

from .aggregate import Order, Transition
from .engine import SYSTEM_ACTOR
from .status import OrderStatus

_TITLES = {
    OrderStatus.PROCESSING: "Order accepted",
    OrderStatus.IN_PROGRESS: "Editing started",
    OrderStatus.IN_REVISION: "Revision requested",
    OrderStatus.HUMAN_CHECK: "Quality check started",
    OrderStatus.COMPLETED: "Order completed",
    OrderStatus.CANCELLED: "Order cancelled",
}


def history_of(order: Order) -> Tuple[Transition, ...]:
    """The order's transitions, oldest first"""
    return order.history


def describe_transition(transition: Transition) -> str:
    """Human-readable activity title for one transition"""
    if transition.to_status == OrderStatus.COMPLETED and transition.actor == SYSTEM_ACTOR:
        return "Order auto-approved"
    if (
        transition.to_status == OrderStatus.IN_PROGRESS
        and transition.from_status == OrderStatus.IN_REVISION
    ):
        return "Revision work started"
    return _TITLES.get(transition.to_status, f"Status changed to {transition.to_status.value}")
