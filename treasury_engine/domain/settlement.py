"""Schedule and parent lifecycle rules"""

from typing import Dict, Iterable, List, Optional

from treasury_engine.domain.exceptions import (
    CrossEntityViolationError,
    GovernanceViolationError,
    InvalidStateTransitionError,
)
from treasury_engine.domain.models import Flow, ParentStatus, ScheduleStatus, SourceType

# Fields that may change after a parent is created
EDITABLE_FIELDS = frozenset({"description", "category", "end_date", "recurrence"})

_PARENT_TRANSITIONS: Dict[ParentStatus, frozenset] = {
    ParentStatus.PLANNED: frozenset({ParentStatus.ACTIVE, ParentStatus.COMPLETED, ParentStatus.CANCELLED}),
    ParentStatus.ACTIVE: frozenset({ParentStatus.COMPLETED, ParentStatus.CANCELLED}),
    ParentStatus.COMPLETED: frozenset(),
    ParentStatus.CANCELLED: frozenset(),
}


def settled_status(source_type: SourceType, flow: Flow) -> ScheduleStatus:
    """Terminal success state for a settled instance"""
    if source_type is SourceType.CARD_INSTALLMENT:
        return ScheduleStatus.POSTED
    if source_type is SourceType.CONTRACT_SCHEDULE:
        return ScheduleStatus.RECEIVED if flow is Flow.INCOME else ScheduleStatus.PAID
    return ScheduleStatus.REALIZED


def validate_instance_transition(current: ScheduleStatus, target: ScheduleStatus) -> None:
    """
    Instance transitions are monotonic: an open instance may move to any
    terminal state, a terminal state never moves again.
    """
    if not current.is_open:
        raise InvalidStateTransitionError(
            f"Cannot move schedule instance from terminal state {current.value!r} to {target.value!r}",
            field="status",
        )
    if target.is_open:
        raise InvalidStateTransitionError(
            f"Cannot move schedule instance from {current.value!r} back to an open state",
            field="status",
        )


def ensure_same_entity(instance_entity_id: str, account_entity_id: Optional[str]) -> None:
    if account_entity_id is not None and account_entity_id != instance_entity_id:
        raise CrossEntityViolationError(
            f"Account belongs to entity {account_entity_id}, schedule belongs to {instance_entity_id}",
            field="account_id",
        )


def signed_amount(amount_cents: int, flow: Flow) -> int:
    """Ledger sign convention: income positive, expense negative"""
    magnitude = abs(amount_cents)
    return magnitude if flow is Flow.INCOME else -magnitude


def validate_parent_transition(
    current: ParentStatus,
    target: ParentStatus,
    has_open_instances: bool = False,
) -> None:
    if target not in _PARENT_TRANSITIONS[current]:
        raise InvalidStateTransitionError(
            f"Cannot move from {current.value!r} to {target.value!r}", field="status"
        )
    if target is ParentStatus.COMPLETED and has_open_instances:
        raise GovernanceViolationError(
            "Cannot complete while schedule instances are still planned", field="status"
        )


def ensure_hard_delete_allowed(has_settled_instances: bool) -> None:
    if has_settled_instances:
        raise GovernanceViolationError(
            "Parents with realized instances can only be cancelled, not deleted",
            field="hard_delete",
        )


def ensure_editable(status: ParentStatus, changes: Iterable[str]) -> None:
    """Only non-financial fields of a planned/active parent may change"""
    if status not in (ParentStatus.PLANNED, ParentStatus.ACTIVE):
        raise GovernanceViolationError(f"Cannot edit a {status.value} record", field="status")

    forbidden = sorted(set(changes) - EDITABLE_FIELDS)
    if forbidden:
        raise GovernanceViolationError(
            f"Fields are immutable after creation: {', '.join(forbidden)}",
            field=forbidden[0],
        )


def statuses_to_cancel(statuses: Dict[str, ScheduleStatus]) -> List[str]:
    """Instance ids a parent cancellation cascades onto: open ones only"""
    return [instance_id for instance_id, status in statuses.items() if status.is_open]
