"""
Order aggregate - immutable value objects for one unit of editing work

An Order is never modified in place. The transition engine builds a new
Order for every accepted change, so a rejected change leaves the caller's
copy exactly as it was.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Tuple

from .status import OrderStatus, parse_status


@dataclass(frozen=True)
class RevisionRounds:
    """Revision budget of an order: rounds used against the maximum"""

    used: int = 0
    max: int = 2

    def __post_init__(self):
        if self.max < 1:
            raise ValueError("max revision rounds must be at least 1")
        if self.used < 0 or self.used > self.max:
            raise ValueError(f"used revision rounds must be between 0 and {self.max}")

    @property
    def remaining(self) -> int:
        return self.max - self.used

    @property
    def exhausted(self) -> bool:
        return self.used >= self.max

    def consume(self) -> "RevisionRounds":
        return RevisionRounds(used=self.used + 1, max=self.max)


@dataclass(frozen=True)
class Transition:
    """One recorded status change"""

    from_status: OrderStatus
    to_status: OrderStatus
    actor: str
    timestamp: datetime
    reason: Optional[str] = None


@dataclass(frozen=True)
class Order:
    order_id: str
    status: OrderStatus = OrderStatus.PENDING
    revision_rounds: RevisionRounds = field(default_factory=RevisionRounds)
    version: int = 0
    auto_approval_deadline: Optional[datetime] = None
    approved_by: Optional[str] = None
    assigned_editor: Optional[str] = None
    history: Tuple[Transition, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "status", parse_status(self.status))
        object.__setattr__(self, "history", tuple(self.history))

    @classmethod
    def new(
        cls,
        order_id: str,
        max_revision_rounds: int = 2,
        assigned_editor: Optional[str] = None,
    ) -> "Order":
        """A freshly dispatched order in pending status"""
        return cls(
            order_id=order_id,
            status=OrderStatus.PENDING,
            revision_rounds=RevisionRounds(used=0, max=max_revision_rounds),
            assigned_editor=assigned_editor,
        )

    def with_changes(self, **changes) -> "Order":
        return replace(self, **changes)
