"""
/v1/commitments and /v1/contracts - declare obligations and govern their lifecycle
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from treasury_engine.api.dependencies import enforce_rate_limit, get_workspace_id
from treasury_engine.api.v1.schemas import (
    CancelResponse,
    CommitmentRequest,
    ContractRequest,
    ParentResponse,
    ParentUpdateRequest,
)
from treasury_engine.api.v1.serializers import parent_response
from treasury_engine.domain.models import OriginKind
from treasury_engine.infrastructure.database.session import get_db
from treasury_engine.services import planning

router = APIRouter()


def _cancel(db: Session, workspace_id: str, kind: OriginKind, parent_id: str, hard_delete: bool) -> CancelResponse:
    result = planning.cancel_parent(db, workspace_id, kind, parent_id, hard_delete=hard_delete)
    return CancelResponse(
        parent_id=result.parent_id,
        status=result.status.value if result.status else None,
        cancelled_instance_ids=result.cancelled_instance_ids,
        deleted=result.deleted,
    )


def _update(
    db: Session,
    workspace_id: str,
    kind: OriginKind,
    parent_id: str,
    body: ParentUpdateRequest,
) -> ParentResponse:
    changes = body.model_dump(exclude_unset=True)
    status = changes.pop("status", None)
    parent = None
    if changes:
        parent = planning.update_parent(db, workspace_id, kind, parent_id, changes)
    if status is not None:
        parent = planning.transition_parent(db, workspace_id, kind, parent_id, status)
    if parent is None:
        parent = planning.get_parent(db, workspace_id, kind, parent_id)
    return parent_response(parent)


@router.post(
    "/commitments",
    response_model=ParentResponse,
    status_code=201,
    dependencies=[Depends(enforce_rate_limit)],
)
def create_commitment(
    request_body: CommitmentRequest,
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    """
    Declare a commitment and generate its schedule.

    The commitment and every instance are written in one transaction.
    """
    commitment = planning.create_commitment(
        db,
        workspace_id,
        entity_id=request_body.entity_id,
        commitment_type=request_body.type,
        description=request_body.description,
        plan=request_body.plan.to_plan(),
        category=request_body.category,
        account_id=request_body.account_id,
        currency=request_body.currency,
    )
    return parent_response(commitment)


@router.patch("/commitments/{commitment_id}", response_model=ParentResponse, dependencies=[Depends(enforce_rate_limit)])
def update_commitment(
    commitment_id: str,
    request_body: ParentUpdateRequest,
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    return _update(db, workspace_id, OriginKind.COMMITMENT, commitment_id, request_body)


@router.post("/commitments/{commitment_id}/cancel", response_model=CancelResponse, dependencies=[Depends(enforce_rate_limit)])
def cancel_commitment(
    commitment_id: str,
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    """Soft-cancel; realized instances are left untouched"""
    return _cancel(db, workspace_id, OriginKind.COMMITMENT, commitment_id, hard_delete=False)


@router.delete("/commitments/{commitment_id}", response_model=CancelResponse, dependencies=[Depends(enforce_rate_limit)])
def delete_commitment(
    commitment_id: str,
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    """Hard-delete; refused with 409 once any instance is realized"""
    return _cancel(db, workspace_id, OriginKind.COMMITMENT, commitment_id, hard_delete=True)


@router.post(
    "/contracts",
    response_model=ParentResponse,
    status_code=201,
    dependencies=[Depends(enforce_rate_limit)],
)
def create_contract(
    request_body: ContractRequest,
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    """Declare a payable or receivable contract and generate its schedule"""
    contract = planning.create_contract(
        db,
        workspace_id,
        entity_id=request_body.entity_id,
        contract_type=request_body.type,
        counterparty=request_body.counterparty,
        description=request_body.description,
        plan=request_body.plan.to_plan(),
        category=request_body.category,
        account_id=request_body.account_id,
        currency=request_body.currency,
    )
    return parent_response(contract)


@router.patch("/contracts/{contract_id}", response_model=ParentResponse, dependencies=[Depends(enforce_rate_limit)])
def update_contract(
    contract_id: str,
    request_body: ParentUpdateRequest,
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    return _update(db, workspace_id, OriginKind.CONTRACT, contract_id, request_body)


@router.post("/contracts/{contract_id}/cancel", response_model=CancelResponse, dependencies=[Depends(enforce_rate_limit)])
def cancel_contract(
    contract_id: str,
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    return _cancel(db, workspace_id, OriginKind.CONTRACT, contract_id, hard_delete=False)


@router.delete("/contracts/{contract_id}", response_model=CancelResponse, dependencies=[Depends(enforce_rate_limit)])
def delete_contract(
    contract_id: str,
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    return _cancel(db, workspace_id, OriginKind.CONTRACT, contract_id, hard_delete=True)
