"""Order service - Business logic for the editing order lifecycle"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from ...config import DEFAULT_MAX_REVISION_ROUNDS
from ...models_order import OrderRecord
from ...shared.clock import utcnow
from . import audit, engine, policy, projections
from .aggregate import Order, Transition
from .engine import TransitionResult
from .errors import (
    ConcurrentModification,
    InvalidTransition,
    MissingActor,
    OrderNotFound,
)
from .repository import OrderRepository, to_domain
from .status import DisplayStage, OrderStatus, is_terminal

logger = logging.getLogger(__name__)


class OrderService:
    """Service layer for order lifecycle operations"""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        auto_approval_window: timedelta = policy.DEFAULT_AUTO_APPROVAL_WINDOW,
    ):
        self.db = db
        self.clock = clock
        self.auto_approval_window = auto_approval_window
        self.repo = OrderRepository()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_record(self, order_id: str) -> OrderRecord:
        record = self.repo.get_record(self.db, order_id)
        if not record:
            raise OrderNotFound(order_id)
        return record

    def get_order(self, order_id: str) -> Order:
        return self.repo.load_order(self.db, order_id)

    def history_of(self, order_id: str) -> tuple[Transition, ...]:
        return audit.history_of(self.get_order(order_id))

    def list_orders(
        self,
        partner_id: Optional[str] = None,
        assigned_editor: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[tuple[OrderRecord, Order]]:
        records = self.repo.list_orders(
            self.db,
            partner_id=partner_id,
            assigned_editor=assigned_editor,
            statuses=[status] if status else None,
        )
        return [(record, to_domain(record, record.transitions)) for record in records]

    def kanban(
        self, partner_id: Optional[str] = None, assigned_editor: Optional[str] = None
    ) -> Dict[DisplayStage, List[tuple[OrderRecord, Order]]]:
        """Orders grouped into kanban columns, each paired with its row"""
        pairs = self.list_orders(partner_id=partner_id, assigned_editor=assigned_editor)
        records = {order.order_id: record for record, order in pairs}
        grouped = projections.group_by_stage(order for _, order in pairs)
        return {
            stage: [(records[order.order_id], order) for order in orders]
            for stage, orders in grouped.items()
        }

    def revision_status(self, order_id: str) -> dict:
        order = self.get_order(order_id)
        now = self.clock()
        status = policy.revision_status(order)
        status["can_request_revision"] = policy.can_request_revision(order, now)
        status["auto_approval_deadline"] = order.auto_approval_deadline
        status["days_until_auto_approval"] = policy.days_until_auto_approval(order, now)
        return status

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_order(
        self,
        partner_id: str,
        created_by: Optional[str],
        job_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        max_revision_rounds: Optional[int] = None,
        assigned_editor: Optional[str] = None,
    ) -> OrderRecord:
        """Dispatch a new order in pending status"""
        max_rounds = DEFAULT_MAX_REVISION_ROUNDS if max_revision_rounds is None else max_revision_rounds
        if max_rounds < 1:
            raise ValueError("max_revision_rounds must be at least 1")

        record = self.repo.create_order(
            self.db,
            partner_id=partner_id,
            created_by=created_by,
            max_revision_rounds=max_rounds,
            job_id=job_id,
            customer_id=customer_id,
            assigned_editor=assigned_editor,
        )
        logger.info(f"🆕 Order {record.order_number} created for partner {partner_id}")
        return record

    def apply_transition(
        self,
        order_id: str,
        to_status,
        actor: Optional[str],
        reason: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> TransitionResult:
        """
        Load, validate, apply and store one transition.

        Every failure, including an unknown order and a lost race with
        another writer, comes back as the result's error.
        """
        try:
            current = self.repo.load_order(self.db, order_id)
        except OrderNotFound as e:
            return TransitionResult.failure(e)

        return self._transition(current, current, to_status, actor, reason, metadata)

    def _transition(self, current: Order, candidate: Order, to_status, actor, reason, metadata) -> TransitionResult:
        """Run the engine on candidate and store it against current's version"""
        result = engine.apply_transition(
            candidate,
            to_status,
            actor,
            reason=reason,
            now=self.clock(),
            auto_approval_window=self.auto_approval_window,
        )
        if not result.ok:
            return result

        return self._store(result.order, current.version, metadata)

    def assign_editor(self, order_id: str, editor_uid: str, actor: Optional[str]) -> TransitionResult:
        """Assign (or reassign) the editor of a non-terminal order"""
        if not actor:
            return TransitionResult.failure(MissingActor())

        try:
            current = self.repo.load_order(self.db, order_id)
        except OrderNotFound as e:
            return TransitionResult.failure(e)

        if is_terminal(current.status):
            error = InvalidTransition(
                current.status.value,
                current.status.value,
                f"Cannot assign an editor to a {current.status.value} order",
            )
            return TransitionResult.failure(error)

        updated = current.with_changes(assigned_editor=editor_uid, version=current.version + 1)
        result = self._store(updated, current.version)
        if result.ok:
            logger.info(f"👤 Order {order_id} assigned to editor {editor_uid} by {actor}")
        return result

    def _store(self, order: Order, expected_version: int, metadata: Optional[dict] = None) -> TransitionResult:
        try:
            self.repo.save_order(self.db, order, expected_version, metadata)
        except (ConcurrentModification, OrderNotFound) as e:
            logger.warning(f"⚠️ Order {order.order_id} not saved: {e.message}")
            return TransitionResult.failure(e)
        return TransitionResult.success(order)

    # ------------------------------------------------------------------
    # Kanban actions
    # ------------------------------------------------------------------

    def accept_order(self, order_id: str, editor_uid: str, metadata: Optional[dict] = None) -> TransitionResult:
        """Editor accepts a pending order; they become its editor if none is set"""
        try:
            current = self.repo.load_order(self.db, order_id)
        except OrderNotFound as e:
            return TransitionResult.failure(e)

        candidate = current
        if not current.assigned_editor and editor_uid:
            candidate = current.with_changes(assigned_editor=editor_uid)

        return self._transition(current, candidate, OrderStatus.PROCESSING, editor_uid, None, metadata)

    def decline_order(self, order_id: str, actor: str, reason: str, metadata: Optional[dict] = None) -> TransitionResult:
        return self.apply_transition(order_id, OrderStatus.CANCELLED, actor, reason, metadata)

    def start_work(self, order_id: str, actor: str, metadata: Optional[dict] = None) -> TransitionResult:
        return self.apply_transition(order_id, OrderStatus.IN_PROGRESS, actor, metadata=metadata)

    def request_revision(self, order_id: str, actor: str, feedback: str, metadata: Optional[dict] = None) -> TransitionResult:
        return self.apply_transition(order_id, OrderStatus.IN_REVISION, actor, feedback, metadata)

    def start_qc(self, order_id: str, actor: str, metadata: Optional[dict] = None) -> TransitionResult:
        return self.apply_transition(order_id, OrderStatus.HUMAN_CHECK, actor, metadata=metadata)

    def mark_complete(self, order_id: str, actor: str, metadata: Optional[dict] = None) -> TransitionResult:
        return self.apply_transition(order_id, OrderStatus.COMPLETED, actor, metadata=metadata)

    # ------------------------------------------------------------------
    # Automation
    # ------------------------------------------------------------------

    def run_auto_approval_sweep(self, now: Optional[datetime] = None) -> dict:
        """
        Complete every in-revision order whose auto-approval deadline passed.
        Should be run as a scheduled job.

        Orders that moved on or were changed concurrently since the query
        are skipped; they are not errors.

        Returns:
            dict: Summary of the sweep
        """
        now = now or self.clock()
        summary = {"checked": 0, "approved": 0, "skipped": 0}

        due = self.repo.find_due_for_auto_approval(self.db, now)
        for record in due:
            summary["checked"] += 1
            try:
                current = self.repo.load_order(self.db, record.id)
            except OrderNotFound:
                summary["skipped"] += 1
                continue

            result = engine.auto_approve(current, now)
            if result.ok:
                result = self._store(result.order, current.version)

            if result.ok:
                summary["approved"] += 1
            elif isinstance(result.error, (InvalidTransition, ConcurrentModification, OrderNotFound)):
                summary["skipped"] += 1
                logger.debug(f"ℹ️ Auto-approval skipped for order {record.id}: {result.error.message}")
            else:
                raise result.error

        if summary["approved"]:
            logger.info(f"📊 Auto-approval sweep summary: {summary}")
        else:
            logger.debug("ℹ️ No orders due for auto-approval")
        return summary


def describe_history(history: tuple[Transition, ...]) -> List[dict]:
    """History entries with activity titles, oldest first"""
    return [
        {
            "from_status": t.from_status.value,
            "to_status": t.to_status.value,
            "actor": t.actor,
            "timestamp": t.timestamp,
            "reason": t.reason,
            "title": audit.describe_transition(t),
        }
        for t in history
    ]
