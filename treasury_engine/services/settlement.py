"""Settlement service - realize a schedule instance into exactly one ledger movement"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from treasury_engine.domain.exceptions import (
    AlreadySettledError,
    CrossEntityViolationError,
    GovernanceViolationError,
    InvalidStateTransitionError,
    NotFoundError,
)
from treasury_engine.domain.models import ScheduleStatus, SourceType
from treasury_engine.domain.settlement import (
    ensure_same_entity,
    settled_status,
    signed_amount,
    validate_instance_transition,
)
from treasury_engine.infrastructure.database.models import LedgerMovement
from treasury_engine.infrastructure.database.repositories import (
    AccountRepository,
    LedgerRepository,
    ScheduleRepository,
)
from treasury_engine.infrastructure.observability.logging import log_settlement
from treasury_engine.infrastructure.observability.metrics import record_settlement
from treasury_engine.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


def _already_settled(source_type: SourceType, instance_id: str) -> AlreadySettledError:
    return AlreadySettledError(
        f"{source_type.value} {instance_id} is already settled", field="instance_id"
    )


def settle(
    db: Session,
    workspace_id: str,
    source_type: SourceType,
    instance_id: str,
    account_id: Optional[str] = None,
    settled_on: Optional[date] = None,
    description: Optional[str] = None,
    movement_id: Optional[str] = None,
) -> LedgerMovement:
    """
    Settle a schedule instance.

    Without ``movement_id`` a ledger movement is created from the instance:
    signed amount (income positive, expense negative), due date unless
    ``settled_on`` overrides it, parent description unless overridden. With
    ``movement_id`` an existing unsourced movement is attached instead,
    claimed by a conditional update on ``source_id IS NULL``.

    The (source_type, source_id) unique constraint makes the insert the
    atomic check: a concurrent duplicate fails at flush time and surfaces
    as AlreadySettledError. The instance status is then moved with a
    conditional update so a state change since the read is never trusted.

    Raises:
        NotFoundError: instance, account or movement missing
        AlreadySettledError: a movement already settles this instance
        InvalidStateTransitionError: instance is cancelled
        CrossEntityViolationError: account or movement of another entity
    """
    schedules = ScheduleRepository(db)
    ledger = LedgerRepository(db)

    try:
        with unit_of_work(db):
            row = schedules.get_instance(workspace_id, source_type, instance_id)
            if row is None:
                raise NotFoundError(f"Schedule instance {instance_id} not found", field="instance_id")

            owner = schedules.owner_of(source_type, row)
            if owner is None:
                raise NotFoundError(f"Parent of schedule instance {instance_id} not found", field="instance_id")

            current = ScheduleStatus(row.status)
            if ledger.find_by_source(source_type, instance_id) is not None:
                raise _already_settled(source_type, instance_id)
            target = settled_status(source_type, owner.flow)
            validate_instance_transition(current, target)

            if account_id is not None:
                account = AccountRepository(db).get_account(workspace_id, account_id)
                if account is None:
                    raise NotFoundError(f"Account {account_id} not found", field="account_id")
                ensure_same_entity(owner.entity_id, account.entity_id)

            try:
                if movement_id is None:
                    movement = ledger.create_movement(
                        workspace_id=workspace_id,
                        entity_id=owner.entity_id,
                        amount_cents=signed_amount(row.amount_cents, owner.flow),
                        movement_date=settled_on or row.due_date,
                        description=description or owner.description,
                        account_id=account_id or owner.account_id,
                        source_type=source_type,
                        source_id=instance_id,
                    )
                else:
                    movement = ledger.get_movement(workspace_id, movement_id)
                    if movement is None:
                        raise NotFoundError(f"Ledger movement {movement_id} not found", field="movement_id")
                    ensure_same_entity(owner.entity_id, movement.entity_id)
                    if not ledger.claim_movement(workspace_id, movement_id, source_type, instance_id):
                        raise GovernanceViolationError(
                            f"Ledger movement {movement_id} already settles another instance",
                            field="movement_id",
                        )
                    db.refresh(movement)
            except IntegrityError as exc:
                raise _already_settled(source_type, instance_id) from exc

            if not schedules.mark_settled(source_type, instance_id, target, movement.id):
                raise InvalidStateTransitionError(
                    f"Schedule instance {instance_id} changed state concurrently", field="status"
                )

    except AlreadySettledError:
        record_settlement("already_settled")
        log_settlement(logger, workspace_id, source_type.value, instance_id, None, "already_settled")
        raise
    except (InvalidStateTransitionError, GovernanceViolationError, CrossEntityViolationError):
        record_settlement("rejected")
        raise

    record_settlement("settled")
    log_settlement(logger, workspace_id, source_type.value, instance_id, movement.id, "settled")
    return movement
