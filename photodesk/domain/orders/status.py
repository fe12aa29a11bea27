"""
Order status vocabulary and kanban stage mapping

Canonical statuses: pending → processing | in_progress → in_revision
→ human_check → completed, plus cancelled from any non-completed state.

Stages are presentation-only groupings of statuses for the kanban board.
"""

from enum import Enum

from .errors import UnknownStatus


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    IN_PROGRESS = "in_progress"
    IN_REVISION = "in_revision"
    HUMAN_CHECK = "human_check"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DisplayStage(str, Enum):
    # Declaration order is the column order on the board
    NEW_ORDER = "new_order"
    WORK_IN_PROGRESS = "work_in_progress"
    REVISIONS = "revisions"
    HUMAN_CHECK = "human_check"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


STAGE_BY_STATUS = {
    OrderStatus.PENDING: DisplayStage.NEW_ORDER,
    OrderStatus.PROCESSING: DisplayStage.WORK_IN_PROGRESS,
    OrderStatus.IN_PROGRESS: DisplayStage.WORK_IN_PROGRESS,
    OrderStatus.IN_REVISION: DisplayStage.REVISIONS,
    OrderStatus.HUMAN_CHECK: DisplayStage.HUMAN_CHECK,
    OrderStatus.COMPLETED: DisplayStage.COMPLETE,
    OrderStatus.CANCELLED: DisplayStage.CANCELLED,
}

STAGE_LABELS = {
    DisplayStage.NEW_ORDER: "New Order",
    DisplayStage.WORK_IN_PROGRESS: "Work in Progress",
    DisplayStage.REVISIONS: "Revisions",
    DisplayStage.HUMAN_CHECK: "Human Check",
    DisplayStage.COMPLETE: "Complete",
    DisplayStage.CANCELLED: "Cancelled",
}

TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

# Statuses that count as "work in progress" and therefore need an editor
WORKING_STATUSES = frozenset({OrderStatus.PROCESSING, OrderStatus.IN_PROGRESS})


def parse_status(value) -> OrderStatus:
    """Convert a raw value into an OrderStatus, rejecting anything unknown"""
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except (ValueError, TypeError) as e:
        raise UnknownStatus(value) from e


def stage_of(status) -> DisplayStage:
    """Kanban stage for a status. Unknown input raises UnknownStatus."""
    return STAGE_BY_STATUS[parse_status(status)]


def is_terminal(status) -> bool:
    return parse_status(status) in TERMINAL_STATUSES
