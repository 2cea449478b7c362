"""POST /v1/schedules/{source_type}/{instance_id}/... - settle or void a schedule instance"""

from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from treasury_engine.api.dependencies import enforce_rate_limit, get_workspace_id
from treasury_engine.api.v1.schemas import MovementSchema, ScheduleInstanceSchema, SettleRequest
from treasury_engine.api.v1.serializers import movement_schema
from treasury_engine.domain.models import SourceType
from treasury_engine.infrastructure.database.session import get_db
from treasury_engine.services import planning, settlement

router = APIRouter(dependencies=[Depends(enforce_rate_limit)])


@router.post(
    "/schedules/{source_type}/{instance_id}/settle",
    response_model=MovementSchema,
    status_code=201,
)
def settle_instance(
    source_type: SourceType,
    instance_id: str,
    request_body: Optional[SettleRequest] = Body(None),
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    """
    Realize a schedule instance into a ledger movement.

    A retry for an instance that is already settled answers 409 with
    ``idempotent: true``; exactly one movement exists either way.
    """
    body = request_body or SettleRequest()
    movement = settlement.settle(
        db,
        workspace_id,
        source_type,
        instance_id,
        account_id=body.account_id,
        settled_on=body.settled_on,
        description=body.description,
        movement_id=body.movement_id,
    )
    return movement_schema(movement)


@router.post("/schedules/{source_type}/{instance_id}/cancel", response_model=ScheduleInstanceSchema)
def cancel_instance(
    source_type: SourceType,
    instance_id: str,
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    row = planning.cancel_instance(db, workspace_id, source_type, instance_id)
    return ScheduleInstanceSchema(
        id=row.id,
        due_date=row.due_date,
        amount_cents=row.amount_cents,
        status=row.status,
        linked_movement_id=row.linked_movement_id,
    )
