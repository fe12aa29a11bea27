"""Order domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import normalize_reason


class OrderCreate(BaseModel):
    """Schema for dispatching a new order"""

    job_id: Optional[str] = None
    customer_id: Optional[str] = None
    max_revision_rounds: Optional[int] = Field(None, ge=1, le=20)
    assigned_editor: Optional[str] = None


class ReasonRequest(BaseModel):
    """Body for actions that carry free-text feedback"""

    reason: Optional[str] = None

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v):
        return normalize_reason(v)


class TransitionRequest(ReasonRequest):
    to_status: str


class AssignEditorRequest(BaseModel):
    editor_uid: str = Field(..., min_length=1, max_length=255)


class OrderResponse(BaseModel):
    id: str
    order_number: str
    partner_id: str
    job_id: Optional[str] = None
    customer_id: Optional[str] = None
    status: str
    stage: str
    revision_rounds_used: int
    max_revision_rounds: int
    auto_approval_deadline: Optional[datetime] = None
    approved_by: Optional[str] = None
    assigned_editor: Optional[str] = None
    version: int
    created_at: Optional[datetime] = None


class TransitionResponse(BaseModel):
    from_status: str
    to_status: str
    actor: str
    timestamp: datetime
    reason: Optional[str] = None
    title: str


class RevisionStatusResponse(BaseModel):
    max_rounds: int
    used_rounds: int
    remaining_rounds: int
    can_request_revision: bool
    auto_approval_deadline: Optional[datetime] = None
    days_until_auto_approval: Optional[int] = None
    allowed_transitions: List[str]


class KanbanCard(OrderResponse):
    days_until_auto_approval: Optional[int] = None
    revision_notes: Optional[str] = None


class KanbanColumn(BaseModel):
    id: str
    label: str
    count: int
    orders: List[KanbanCard]


class KanbanResponse(BaseModel):
    stages: List[KanbanColumn]


class AutoApprovalResult(BaseModel):
    checked: int
    approved: int
    skipped: int
