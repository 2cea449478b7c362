"""
Planning service - declare commitments, contracts and card purchases, and
govern their lifecycle.

Each operation runs in a single unit of work: a parent and its full
instance set are written together or not at all.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from treasury_engine.config import settings
from treasury_engine.domain.exceptions import InvalidArgumentError, InvalidStateTransitionError, NotFoundError
from treasury_engine.domain.installments import generate_card_installments
from treasury_engine.domain.models import (
    CommitmentType,
    ContractType,
    OriginKind,
    ParentStatus,
    ScheduleOrigin,
    ScheduleStatus,
    SourceType,
)
from treasury_engine.domain.schedules import SchedulePlan, generate_schedule
from treasury_engine.domain.settlement import (
    ensure_editable,
    ensure_hard_delete_allowed,
    ensure_same_entity,
    statuses_to_cancel,
    validate_instance_transition,
    validate_parent_transition,
)
from treasury_engine.infrastructure.database.models import Account, Card, CardPurchase, Commitment, Contract
from treasury_engine.infrastructure.database.repositories import (
    AccountRepository,
    CardRepository,
    CommitmentRepository,
    ContractRepository,
    ScheduleRepository,
    parent_repository,
)
from treasury_engine.infrastructure.observability.metrics import record_schedule_generation
from treasury_engine.services.unit_of_work import unit_of_work
from treasury_engine.utils.date_utils import YearMonth

logger = logging.getLogger(__name__)


@dataclass
class CancellationResult:
    parent_id: str
    status: Optional[ParentStatus]
    cancelled_instance_ids: List[str] = field(default_factory=list)
    deleted: bool = False


def _check_account(db: Session, workspace_id: str, entity_id: str, account_id: Optional[str]) -> None:
    if account_id is None:
        return
    account = AccountRepository(db).get_account(workspace_id, account_id)
    if account is None:
        raise NotFoundError(f"Account {account_id} not found", field="account_id")
    ensure_same_entity(entity_id, account.entity_id)


def _log_plan_created(workspace_id: str, origin: ScheduleOrigin, plan_kind: str, count: int) -> None:
    record_schedule_generation(plan_kind, count)
    logger.info(
        "Plan created",
        extra={
            "workspace_id": workspace_id,
            "step": "plan_created",
            "origin": origin.kind.value,
            "parent_id": origin.parent_id,
            "plan_kind": plan_kind,
            "instances": count,
        },
    )


def create_account(
    db: Session,
    workspace_id: str,
    entity_id: str,
    name: str,
    kind: str = "checking",
    opening_balance_cents: int = 0,
) -> Account:
    with unit_of_work(db):
        account = AccountRepository(db).create_account(
            workspace_id, entity_id, name, kind, opening_balance_cents
        )
    return account


def create_card(
    db: Session,
    workspace_id: str,
    entity_id: str,
    name: str,
    closing_day: int,
    due_day: int,
) -> Card:
    for value, field_name in ((closing_day, "closing_day"), (due_day, "due_day")):
        if not 1 <= value <= 31:
            raise InvalidArgumentError(f"{field_name} must be between 1 and 31", field=field_name)
    with unit_of_work(db):
        card = CardRepository(db).create_card(workspace_id, entity_id, name, closing_day, due_day)
    return card


def create_commitment(
    db: Session,
    workspace_id: str,
    entity_id: str,
    commitment_type: CommitmentType,
    description: str,
    plan: SchedulePlan,
    category: Optional[str] = None,
    account_id: Optional[str] = None,
    currency: Optional[str] = None,
) -> Commitment:
    """Generate the schedule and persist the commitment with every instance"""
    generated = generate_schedule(plan, settings.default_recurrence_months)

    with unit_of_work(db):
        _check_account(db, workspace_id, entity_id, account_id)
        commitment = CommitmentRepository(db).create_parent(
            workspace_id,
            generated,
            entity_id=entity_id,
            account_id=account_id,
            type=commitment_type.value,
            category=category,
            description=description,
            currency=currency or settings.default_currency,
            status=ParentStatus.PLANNED.value,
        )

    _log_plan_created(workspace_id, ScheduleOrigin.commitment(commitment.id), plan.kind, len(generated.entries))
    return commitment


def create_contract(
    db: Session,
    workspace_id: str,
    entity_id: str,
    contract_type: ContractType,
    counterparty: str,
    description: str,
    plan: SchedulePlan,
    category: Optional[str] = None,
    account_id: Optional[str] = None,
    currency: Optional[str] = None,
) -> Contract:
    """Generate the schedule and persist the contract with every instance"""
    generated = generate_schedule(plan, settings.default_recurrence_months)

    with unit_of_work(db):
        _check_account(db, workspace_id, entity_id, account_id)
        contract = ContractRepository(db).create_parent(
            workspace_id,
            generated,
            entity_id=entity_id,
            account_id=account_id,
            counterparty=counterparty,
            type=contract_type.value,
            category=category,
            description=description,
            currency=currency or settings.default_currency,
            status=ParentStatus.PLANNED.value,
        )

    _log_plan_created(workspace_id, ScheduleOrigin.contract(contract.id), plan.kind, len(generated.entries))
    return contract


def create_card_purchase(
    db: Session,
    workspace_id: str,
    card_id: str,
    purchase_date: date,
    total_cents: int,
    installment_count: int,
    description: Optional[str] = None,
    merchant: Optional[str] = None,
    first_month: Optional[YearMonth] = None,
) -> CardPurchase:
    """Split the purchase on the card's statement cycle and persist it"""
    with unit_of_work(db):
        repo = CardRepository(db)
        card = repo.get_card(workspace_id, card_id)
        if card is None:
            raise NotFoundError(f"Card {card_id} not found", field="card_id")

        installments = generate_card_installments(
            total_cents,
            installment_count,
            purchase_date,
            card.closing_day,
            card.due_day,
            first_month=first_month,
        )
        purchase = repo.create_purchase(
            workspace_id,
            card,
            purchase_date,
            total_cents,
            installments,
            description=description,
            merchant=merchant,
        )

    _log_plan_created(workspace_id, ScheduleOrigin.card_purchase(purchase.id), "card", len(installments))
    return purchase


def get_parent(db: Session, workspace_id: str, kind: OriginKind, parent_id: str):
    parent = parent_repository(db, kind).get_parent(workspace_id, parent_id)
    if parent is None:
        raise NotFoundError(f"{kind.value.capitalize()} {parent_id} not found", field="id")
    return parent


def cancel_parent(
    db: Session,
    workspace_id: str,
    kind: OriginKind,
    parent_id: str,
    hard_delete: bool = False,
) -> CancellationResult:
    """
    Soft-cancel a commitment or contract, cascading onto open instances.

    Realized instances are never touched. ``hard_delete`` removes the
    parent and its instances instead, and is refused once any instance
    has been realized.
    """
    repo = parent_repository(db, kind)
    source_type = ScheduleOrigin(kind, parent_id).source_type

    with unit_of_work(db):
        parent = get_parent(db, workspace_id, kind, parent_id)
        statuses = {row.id: ScheduleStatus(row.status) for row in parent.schedules}

        if hard_delete:
            ensure_hard_delete_allowed(any(status.is_settled for status in statuses.values()))
            repo.delete_parent(parent)
            result = CancellationResult(parent_id=parent_id, status=None, deleted=True)
        elif ParentStatus(parent.status) is ParentStatus.CANCELLED:
            result = CancellationResult(parent_id=parent_id, status=ParentStatus.CANCELLED)
        else:
            validate_parent_transition(ParentStatus(parent.status), ParentStatus.CANCELLED)
            to_cancel = statuses_to_cancel(statuses)
            ScheduleRepository(db).mark_cancelled(source_type, to_cancel)
            parent.status = ParentStatus.CANCELLED.value
            result = CancellationResult(
                parent_id=parent_id,
                status=ParentStatus.CANCELLED,
                cancelled_instance_ids=to_cancel,
            )

    logger.info(
        "Parent deleted" if result.deleted else "Parent cancelled",
        extra={
            "workspace_id": workspace_id,
            "step": "parent_cancelled",
            "origin": kind.value,
            "parent_id": parent_id,
            "cancelled_instances": len(result.cancelled_instance_ids),
            "hard_delete": hard_delete,
        },
    )
    return result


def transition_parent(
    db: Session,
    workspace_id: str,
    kind: OriginKind,
    parent_id: str,
    target: ParentStatus,
):
    """Move a parent along planned → active → completed"""
    if target is ParentStatus.CANCELLED:
        cancel_parent(db, workspace_id, kind, parent_id)
        return get_parent(db, workspace_id, kind, parent_id)

    with unit_of_work(db):
        parent = get_parent(db, workspace_id, kind, parent_id)
        has_open = any(ScheduleStatus(row.status).is_open for row in parent.schedules)
        validate_parent_transition(ParentStatus(parent.status), target, has_open_instances=has_open)
        parent.status = target.value
    return parent


def update_parent(
    db: Session,
    workspace_id: str,
    kind: OriginKind,
    parent_id: str,
    changes: Dict[str, Any],
):
    """Edit non-financial fields; amount and start date are immutable"""
    with unit_of_work(db):
        parent = get_parent(db, workspace_id, kind, parent_id)
        ensure_editable(ParentStatus(parent.status), changes.keys())

        end_date = changes.get("end_date")
        if end_date is not None and end_date < parent.start_date:
            raise InvalidArgumentError("end_date must be on or after start_date", field="end_date")

        for name, value in changes.items():
            setattr(parent, name, value.value if isinstance(value, Enum) else value)
    return parent


def cancel_instance(
    db: Session,
    workspace_id: str,
    source_type: SourceType,
    instance_id: str,
):
    """Void a single open instance; cancelling a cancelled one is a no-op"""
    repo = ScheduleRepository(db)
    with unit_of_work(db):
        row = repo.get_instance(workspace_id, source_type, instance_id)
        if row is None:
            raise NotFoundError(f"Schedule instance {instance_id} not found", field="id")

        current = ScheduleStatus(row.status)
        if current is not ScheduleStatus.CANCELLED:
            validate_instance_transition(current, ScheduleStatus.CANCELLED)
            if repo.mark_cancelled(source_type, [instance_id]) != 1:
                raise InvalidStateTransitionError(
                    f"Schedule instance {instance_id} changed state concurrently", field="status"
                )
    return row
