"""Order router - FastAPI endpoints for the editing order lifecycle"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...models_order import OrderRecord
from . import engine, policy, projections
from .aggregate import Order
from .engine import TransitionResult
from .errors import OrderNotFound
from .schemas import (
    AssignEditorRequest,
    AutoApprovalResult,
    KanbanCard,
    KanbanColumn,
    KanbanResponse,
    OrderCreate,
    OrderResponse,
    ReasonRequest,
    RevisionStatusResponse,
    TransitionRequest,
    TransitionResponse,
)
from .service import OrderService, describe_history
from .status import STAGE_LABELS, OrderStatus, parse_status, stage_of

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])

# Targets only the owning partner may move an order to
PARTNER_ONLY_TARGETS = frozenset({OrderStatus.IN_REVISION, OrderStatus.COMPLETED})


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    """Dependency injection for OrderService"""
    return OrderService(db)


def _request_metadata(request: Request) -> dict:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": (request.headers.get("user-agent") or "")[:500] or None,
    }


def _can_access(record: OrderRecord, user: User) -> bool:
    """Partners see their own orders; editors see orders assigned to them"""
    if user.partner_id and record.partner_id == user.partner_id:
        return True
    return record.assigned_editor == user.firebase_uid


def _list_scope(user: User) -> dict:
    """Listing filter for the current user: their assignments or their tenant"""
    if user.role == "editor":
        return {"assigned_editor": user.firebase_uid}
    if not user.partner_id:
        raise HTTPException(status_code=403, detail="Account is not linked to a partner")
    return {"partner_id": user.partner_id}


def _require_owning_partner(record: OrderRecord, user: User, action: str) -> None:
    if user.role == "editor" or not user.partner_id or record.partner_id != user.partner_id:
        raise HTTPException(status_code=403, detail=f"Only the owning partner can {action}")


def _get_accessible_record(service: OrderService, order_id: str, user: User) -> OrderRecord:
    record = service.get_record(order_id)
    if not _can_access(record, user):
        # Same answer as a missing order so ids of other tenants don't leak
        raise OrderNotFound(order_id)
    return record


def _order_response(record: OrderRecord, order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.order_id,
        order_number=record.order_number,
        partner_id=record.partner_id,
        job_id=record.job_id,
        customer_id=record.customer_id,
        status=order.status.value,
        stage=stage_of(order.status).value,
        revision_rounds_used=order.revision_rounds.used,
        max_revision_rounds=order.revision_rounds.max,
        auto_approval_deadline=order.auto_approval_deadline,
        approved_by=order.approved_by,
        assigned_editor=order.assigned_editor,
        version=order.version,
        created_at=record.created_at,
    )


def _latest_revision_notes(order: Order) -> Optional[str]:
    if order.status not in (OrderStatus.IN_REVISION, OrderStatus.HUMAN_CHECK):
        return None
    for transition in reversed(order.history):
        if transition.to_status == OrderStatus.IN_REVISION:
            return transition.reason
    return None


def _finish(service: OrderService, order_id: str, result: TransitionResult) -> OrderResponse:
    """Raise the carried error or answer with the updated order"""
    order = result.unwrap()
    record = service.get_record(order_id)
    return _order_response(record, order)


# ============================================================================
# READS
# ============================================================================


@router.get("", response_model=list[OrderResponse])
async def list_orders(
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """List orders visible to the current user"""
    if status:
        status = parse_status(status).value

    pairs = service.list_orders(status=status, **_list_scope(current_user))
    return [_order_response(record, order) for record, order in pairs]


@router.get("/kanban", response_model=KanbanResponse)
async def get_kanban(
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Orders grouped into kanban stages"""
    grouped = service.kanban(**_list_scope(current_user))
    counts = projections.count_by_stage(order for pairs in grouped.values() for _, order in pairs)

    now = service.clock()
    columns = []
    for stage, pairs in grouped.items():
        cards = [
            KanbanCard(
                **_order_response(record, order).model_dump(),
                days_until_auto_approval=policy.days_until_auto_approval(order, now),
                revision_notes=_latest_revision_notes(order),
            )
            for record, order in pairs
        ]
        columns.append(
            KanbanColumn(id=stage.value, label=STAGE_LABELS[stage], count=counts[stage], orders=cards)
        )
    return KanbanResponse(stages=columns)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    record = _get_accessible_record(service, order_id, current_user)
    return _order_response(record, service.get_order(order_id))


@router.get("/{order_id}/history", response_model=list[TransitionResponse])
async def get_order_history(
    order_id: str,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Transition history of an order, oldest first"""
    _get_accessible_record(service, order_id, current_user)
    return [TransitionResponse(**entry) for entry in describe_history(service.history_of(order_id))]


@router.get("/{order_id}/revision-status", response_model=RevisionStatusResponse)
async def get_revision_status(
    order_id: str,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    _get_accessible_record(service, order_id, current_user)
    order = service.get_order(order_id)
    status = service.revision_status(order_id)
    allowed = sorted(s.value for s in engine.allowed_targets(order.status))
    return RevisionStatusResponse(**status, allowed_transitions=allowed)


# ============================================================================
# WRITES
# ============================================================================


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    data: OrderCreate,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Dispatch a new editing order for the current partner"""
    if not current_user.partner_id:
        raise HTTPException(status_code=403, detail="Only partner accounts can create orders")

    record = service.create_order(
        partner_id=current_user.partner_id,
        created_by=current_user.firebase_uid,
        job_id=data.job_id,
        customer_id=data.customer_id,
        max_revision_rounds=data.max_revision_rounds,
        assigned_editor=data.assigned_editor,
    )
    return _order_response(record, service.get_order(record.id))


@router.post("/{order_id}/transitions", response_model=OrderResponse)
async def transition_order(
    order_id: str,
    data: TransitionRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Move an order to another status"""
    record = _get_accessible_record(service, order_id, current_user)
    if parse_status(data.to_status) in PARTNER_ONLY_TARGETS:
        _require_owning_partner(record, current_user, f"move an order to {data.to_status}")
    result = service.apply_transition(
        order_id,
        data.to_status,
        current_user.firebase_uid,
        data.reason,
        _request_metadata(request),
    )
    return _finish(service, order_id, result)


@router.post("/{order_id}/assign", response_model=OrderResponse)
async def assign_editor(
    order_id: str,
    data: AssignEditorRequest,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    record = _get_accessible_record(service, order_id, current_user)
    _require_owning_partner(record, current_user, "assign editors")

    result = service.assign_editor(order_id, data.editor_uid, current_user.firebase_uid)
    return _finish(service, order_id, result)


@router.post("/{order_id}/accept", response_model=OrderResponse)
async def accept_order(
    order_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Editor accepts a new order"""
    record = service.get_record(order_id)
    if current_user.role != "editor":
        if _can_access(record, current_user):
            raise HTTPException(status_code=403, detail="Only editors can accept orders")
        raise OrderNotFound(order_id)
    # Unassigned orders are offered to editors; once assigned, only that editor may accept
    if record.assigned_editor and record.assigned_editor != current_user.firebase_uid:
        raise OrderNotFound(order_id)

    result = service.accept_order(order_id, current_user.firebase_uid, _request_metadata(request))
    return _finish(service, order_id, result)


@router.post("/{order_id}/decline", response_model=OrderResponse)
async def decline_order(
    order_id: str,
    data: ReasonRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    _get_accessible_record(service, order_id, current_user)
    result = service.decline_order(
        order_id, current_user.firebase_uid, data.reason, _request_metadata(request)
    )
    return _finish(service, order_id, result)


@router.post("/{order_id}/start", response_model=OrderResponse)
async def start_work(
    order_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    _get_accessible_record(service, order_id, current_user)
    result = service.start_work(order_id, current_user.firebase_uid, _request_metadata(request))
    return _finish(service, order_id, result)


@router.post("/{order_id}/revisions", response_model=OrderResponse)
async def request_revision(
    order_id: str,
    data: ReasonRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Send an order back to the editor with revision feedback"""
    record = _get_accessible_record(service, order_id, current_user)
    _require_owning_partner(record, current_user, "request revisions")
    result = service.request_revision(
        order_id, current_user.firebase_uid, data.reason, _request_metadata(request)
    )
    return _finish(service, order_id, result)


@router.post("/{order_id}/start-qc", response_model=OrderResponse)
async def start_qc(
    order_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    _get_accessible_record(service, order_id, current_user)
    result = service.start_qc(order_id, current_user.firebase_uid, _request_metadata(request))
    return _finish(service, order_id, result)


@router.post("/{order_id}/complete", response_model=OrderResponse)
async def mark_complete(
    order_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Approve the delivered work"""
    record = _get_accessible_record(service, order_id, current_user)
    _require_owning_partner(record, current_user, "approve orders")
    result = service.mark_complete(order_id, current_user.firebase_uid, _request_metadata(request))
    return _finish(service, order_id, result)


@router.post("/automation/auto-approve", response_model=AutoApprovalResult)
async def run_auto_approval(
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """
    Manually trigger the auto-approval sweep
    (In production this runs as a worker cron job)
    """
    if current_user.role == "editor":
        raise HTTPException(status_code=403, detail="Not authorized")

    return AutoApprovalResult(**service.run_auto_approval_sweep())
