"""
Order transition engine

The only code allowed to change an order's status. Every call either
returns a new Order with one more history entry, or an error with the
input untouched.

Allowed transitions:
    pending      → processing, cancelled
    processing   → in_progress, in_revision, cancelled
    in_progress  → human_check, in_revision, cancelled
    in_revision  → in_progress, human_check, cancelled
    human_check  → completed, in_revision, cancelled
    completed    → (terminal)
    cancelled    → (terminal)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ...shared.clock import utcnow
from .aggregate import Order, Transition
from .errors import (
    EditorNotAssigned,
    InvalidTransition,
    MissingActor,
    MissingReasonRequired,
    OrderError,
    RevisionBudgetExhausted,
)
from .policy import DEFAULT_AUTO_APPROVAL_WINDOW, is_auto_approval_due
from .status import WORKING_STATUSES, OrderStatus, parse_status

logger = logging.getLogger(__name__)

S = OrderStatus

ALLOWED_TRANSITIONS = {
    S.PENDING: frozenset({S.PROCESSING, S.CANCELLED}),
    S.PROCESSING: frozenset({S.IN_PROGRESS, S.IN_REVISION, S.CANCELLED}),
    S.IN_PROGRESS: frozenset({S.HUMAN_CHECK, S.IN_REVISION, S.CANCELLED}),
    S.IN_REVISION: frozenset({S.IN_PROGRESS, S.HUMAN_CHECK, S.CANCELLED}),
    S.HUMAN_CHECK: frozenset({S.COMPLETED, S.IN_REVISION, S.CANCELLED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
}

REASON_REQUIRED = frozenset({S.IN_REVISION, S.CANCELLED})

SYSTEM_ACTOR = "system:auto-approval"
AUTO_APPROVAL_REASON = "auto-approved after revision window elapsed"


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a transition attempt: the new order or the reason it failed"""

    order: Optional[Order] = None
    error: Optional[OrderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Order:
        if self.error is not None:
            raise self.error
        return self.order

    @classmethod
    def success(cls, order: Order) -> "TransitionResult":
        return cls(order=order)

    @classmethod
    def failure(cls, error: OrderError) -> "TransitionResult":
        return cls(error=error)


def allowed_targets(status) -> frozenset:
    return ALLOWED_TRANSITIONS[parse_status(status)]


def _validate(order: Order, to_status, actor: Optional[str], reason: Optional[str]) -> S:
    """Run every check in order; raises the first OrderError found"""
    if not actor or not str(actor).strip():
        raise MissingActor()

    target = parse_status(to_status)

    if target == S.IN_REVISION and order.revision_rounds.exhausted:
        raise RevisionBudgetExhausted(order.revision_rounds.used, order.revision_rounds.max)

    if target not in ALLOWED_TRANSITIONS[order.status]:
        raise InvalidTransition(order.status.value, target.value)

    if target in REASON_REQUIRED and not (reason and reason.strip()):
        raise MissingReasonRequired(target.value)

    if target in WORKING_STATUSES and not order.assigned_editor:
        raise EditorNotAssigned(target.value)

    return target


def _commit(
    order: Order,
    target: S,
    actor: str,
    reason: Optional[str],
    now: datetime,
    window: timedelta,
) -> Order:
    """Build the successor order for an already validated transition"""
    rounds = order.revision_rounds
    deadline = None
    approved_by = order.approved_by

    if target == S.IN_REVISION:
        rounds = rounds.consume()
        deadline = now + window

    if target == S.COMPLETED:
        approved_by = actor

    record = Transition(
        from_status=order.status,
        to_status=target,
        actor=actor,
        timestamp=now,
        reason=reason.strip() if reason else None,
    )

    return order.with_changes(
        status=target,
        revision_rounds=rounds,
        auto_approval_deadline=deadline,
        approved_by=approved_by,
        version=order.version + 1,
        history=order.history + (record,),
    )


def apply_transition(
    order: Order,
    to_status,
    actor: Optional[str],
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
    auto_approval_window: timedelta = DEFAULT_AUTO_APPROVAL_WINDOW,
) -> TransitionResult:
    """
    Validate and apply a status change.

    Args:
        order: Current order state
        to_status: Target status (OrderStatus or its string value)
        actor: Identity of whoever performs the change
        reason: Free text; required when moving to in_revision or cancelled
        now: Timestamp for the history entry and the auto-approval deadline
        auto_approval_window: Time an order may stay in revision

    Returns:
        TransitionResult with the new order, or with the error that
        prevented the change
    """
    now = now or utcnow()
    try:
        target = _validate(order, to_status, actor, reason)
    except OrderError as e:
        logger.warning(f"⚠️ Order {order.order_id} transition rejected: {e.message}")
        return TransitionResult.failure(e)

    updated = _commit(order, target, str(actor).strip(), reason, now, auto_approval_window)
    logger.info(
        f"✅ Order {order.order_id} transitioned: {order.status.value} → {target.value} by {actor}"
    )
    return TransitionResult.success(updated)


def auto_approve(order: Order, now: Optional[datetime] = None, actor: str = SYSTEM_ACTOR) -> TransitionResult:
    """
    Complete an order whose revision window has elapsed.

    This is the single path from in_revision straight to completed and is
    only open once the auto-approval deadline has passed.
    """
    now = now or utcnow()
    if not is_auto_approval_due(order, now):
        error = InvalidTransition(
            order.status.value,
            S.COMPLETED.value,
            f"Order {order.order_id} is not due for auto-approval",
        )
        return TransitionResult.failure(error)

    updated = _commit(order, S.COMPLETED, actor, AUTO_APPROVAL_REASON, now, timedelta(0))
    logger.info(f"✅ Order {order.order_id} auto-approved after revision deadline")
    return TransitionResult.success(updated)
