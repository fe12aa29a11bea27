"""Order repository - Database operations for orders and their history"""

import logging
import secrets
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ...models_order import OrderRecord, OrderTransitionRecord
from .aggregate import Order, RevisionRounds, Transition
from .errors import ConcurrentModification, OrderError, OrderNotFound
from .status import OrderStatus

logger = logging.getLogger(__name__)


def generate_order_number() -> str:
    return f"ORD-{secrets.token_hex(3).upper()}"


def to_domain(record: OrderRecord, transitions: Iterable[OrderTransitionRecord]) -> Order:
    """Build the Order aggregate from its row and its history rows"""
    history = tuple(
        Transition(
            from_status=OrderStatus(t.from_status),
            to_status=OrderStatus(t.to_status),
            actor=t.actor,
            timestamp=t.occurred_at,
            reason=t.reason,
        )
        for t in sorted(transitions, key=lambda t: t.sequence)
    )
    return Order(
        order_id=record.id,
        status=record.status,
        revision_rounds=RevisionRounds(
            used=record.revision_rounds_used, max=record.max_revision_rounds
        ),
        version=record.version,
        auto_approval_deadline=record.auto_approval_deadline,
        approved_by=record.approved_by,
        assigned_editor=record.assigned_editor,
        history=history,
    )


class OrderRepository:
    """Repository for order database operations"""

    @staticmethod
    def get_record(db: Session, order_id: str) -> Optional[OrderRecord]:
        return (
            db.query(OrderRecord)
            .filter(OrderRecord.id == order_id)
            .populate_existing()
            .first()
        )

    @staticmethod
    def load_order(db: Session, order_id: str) -> Order:
        """Load the current state of an order. Raises OrderNotFound."""
        record = OrderRepository.get_record(db, order_id)
        if not record:
            raise OrderNotFound(order_id)

        transitions = (
            db.query(OrderTransitionRecord)
            .filter(OrderTransitionRecord.order_id == order_id)
            .order_by(OrderTransitionRecord.sequence)
            .all()
        )
        return to_domain(record, transitions)

    @staticmethod
    def create_order(
        db: Session,
        partner_id: str,
        created_by: Optional[str],
        max_revision_rounds: int,
        job_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        assigned_editor: Optional[str] = None,
    ) -> OrderRecord:
        """Create a new order in pending status"""
        record = OrderRecord(
            partner_id=partner_id,
            order_number=generate_order_number(),
            job_id=job_id,
            customer_id=customer_id,
            status=OrderStatus.PENDING.value,
            revision_rounds_used=0,
            max_revision_rounds=max_revision_rounds,
            assigned_editor=assigned_editor,
            created_by=created_by,
            version=0,
        )
        db.add(record)
        try:
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Failed to create order for partner {partner_id}: {e}")
            raise
        db.refresh(record)
        return record

    @staticmethod
    def save_order(
        db: Session,
        order: Order,
        expected_version: int,
        metadata: Optional[dict] = None,
    ) -> None:
        """
        Persist an order if nobody else changed it since it was loaded.

        The row is updated only when its stored version still equals
        expected_version; history entries not yet stored are appended in
        the same transaction.

        Raises:
            ConcurrentModification: The stored version moved on
            OrderNotFound: The order row does not exist
        """
        metadata = metadata or {}
        try:
            updated = (
                db.query(OrderRecord)
                .filter(
                    OrderRecord.id == order.order_id,
                    OrderRecord.version == expected_version,
                )
                .update(
                    {
                        OrderRecord.status: order.status.value,
                        OrderRecord.revision_rounds_used: order.revision_rounds.used,
                        OrderRecord.max_revision_rounds: order.revision_rounds.max,
                        OrderRecord.auto_approval_deadline: order.auto_approval_deadline,
                        OrderRecord.approved_by: order.approved_by,
                        OrderRecord.assigned_editor: order.assigned_editor,
                        OrderRecord.version: order.version,
                    },
                    synchronize_session=False,
                )
            )

            if updated == 0:
                exists = db.query(OrderRecord.id).filter(OrderRecord.id == order.order_id).first()
                db.rollback()
                if exists is None:
                    raise OrderNotFound(order.order_id)
                raise ConcurrentModification(order.order_id, expected_version)

            stored = (
                db.query(func.count(OrderTransitionRecord.id))
                .filter(OrderTransitionRecord.order_id == order.order_id)
                .scalar()
            )
            for sequence, transition in enumerate(order.history[stored:], start=stored + 1):
                db.add(
                    OrderTransitionRecord(
                        order_id=order.order_id,
                        sequence=sequence,
                        from_status=transition.from_status.value,
                        to_status=transition.to_status.value,
                        actor=transition.actor,
                        reason=transition.reason,
                        occurred_at=transition.timestamp,
                        ip_address=metadata.get("ip_address"),
                        user_agent=metadata.get("user_agent"),
                    )
                )

            db.commit()
        except OrderError:
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Failed to save order {order.order_id}: {e}")
            raise

    @staticmethod
    def list_orders(
        db: Session,
        partner_id: Optional[str] = None,
        assigned_editor: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> list[OrderRecord]:
        """
        List orders for a partner and/or editor, oldest first.

        Raises:
            ValueError: Neither a partner nor an editor scope was given
        """
        if not partner_id and not assigned_editor:
            raise ValueError("list_orders needs a partner_id or assigned_editor scope")

        query = db.query(OrderRecord).options(selectinload(OrderRecord.transitions))

        if partner_id:
            query = query.filter(OrderRecord.partner_id == partner_id)
        if assigned_editor:
            query = query.filter(OrderRecord.assigned_editor == assigned_editor)
        if statuses:
            query = query.filter(OrderRecord.status.in_(list(statuses)))

        return query.order_by(OrderRecord.created_at.asc(), OrderRecord.order_number.asc()).all()

    @staticmethod
    def find_due_for_auto_approval(db: Session, now) -> list[OrderRecord]:
        """In-revision orders whose auto-approval deadline has passed"""
        return (
            db.query(OrderRecord)
            .filter(
                OrderRecord.status == OrderStatus.IN_REVISION.value,
                OrderRecord.auto_approval_deadline.isnot(None),
                OrderRecord.auto_approval_deadline <= now,
            )
            .order_by(OrderRecord.auto_approval_deadline.asc())
            .all()
        )
