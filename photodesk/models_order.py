"""
Editing order models
"""

import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .domain.orders.status import OrderStatus

_STATUS_LIST = ", ".join(f"'{s.value}'" for s in OrderStatus)


def generate_order_id():
    return str(uuid.uuid4())


class OrderRecord(Base):
    """One unit of editing work dispatched to an editor for a job"""

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_LIST})", name="ck_orders_status"),
        CheckConstraint(
            "revision_rounds_used >= 0 AND revision_rounds_used <= max_revision_rounds",
            name="ck_orders_revision_rounds",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_order_id)
    partner_id = Column(String(255), nullable=False, index=True)  # Multi-tenant identifier
    order_number = Column(String(50), unique=True, nullable=False, index=True)
    job_id = Column(String(255), nullable=True, index=True)
    customer_id = Column(String(255), nullable=True)

    # Lifecycle: only written through the transition engine
    status = Column(String(50), default="pending", nullable=False, index=True)
    revision_rounds_used = Column(Integer, default=0, nullable=False)
    max_revision_rounds = Column(Integer, default=2, nullable=False)
    auto_approval_deadline = Column(DateTime, nullable=True, index=True)
    approved_by = Column(String(255), nullable=True)
    assigned_editor = Column(String(255), nullable=True, index=True)  # Firebase UID of editor
    created_by = Column(String(255), nullable=True)

    # Optimistic concurrency: bumped on every committed change
    version = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    transitions = relationship(
        "OrderTransitionRecord",
        back_populates="order",
        order_by="OrderTransitionRecord.sequence",
        cascade="all, delete-orphan",
    )


class OrderTransitionRecord(Base):
    """Append-only history row for one status change"""

    __tablename__ = "order_transitions"
    __table_args__ = (UniqueConstraint("order_id", "sequence", name="uq_order_transitions_sequence"),)

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)  # 1-based position in the order's history
    from_status = Column(String(50), nullable=False)
    to_status = Column(String(50), nullable=False)
    actor = Column(String(255), nullable=False)
    reason = Column(Text, nullable=True)
    occurred_at = Column(DateTime, nullable=False)

    # Request metadata for security audit
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)

    order = relationship("OrderRecord", back_populates="transitions")
