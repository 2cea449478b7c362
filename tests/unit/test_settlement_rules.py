"""Unit tests for schedule and parent lifecycle rules"""

import pytest
from treasury_engine.domain.exceptions import (
    CrossEntityViolationError,
    GovernanceViolationError,
    InvalidStateTransitionError,
)
from treasury_engine.domain.models import Flow, ParentStatus, ScheduleStatus, SourceType
from treasury_engine.domain.settlement import (
    ensure_editable,
    ensure_hard_delete_allowed,
    ensure_same_entity,
    settled_status,
    signed_amount,
    statuses_to_cancel,
    validate_instance_transition,
    validate_parent_transition,
)


def test_settled_status_per_family():
    assert settled_status(SourceType.COMMITMENT_SCHEDULE, Flow.EXPENSE) is ScheduleStatus.REALIZED
    assert settled_status(SourceType.COMMITMENT_SCHEDULE, Flow.INCOME) is ScheduleStatus.REALIZED
    assert settled_status(SourceType.CONTRACT_SCHEDULE, Flow.INCOME) is ScheduleStatus.RECEIVED
    assert settled_status(SourceType.CONTRACT_SCHEDULE, Flow.EXPENSE) is ScheduleStatus.PAID
    assert settled_status(SourceType.CARD_INSTALLMENT, Flow.EXPENSE) is ScheduleStatus.POSTED


@pytest.mark.parametrize(
    "target",
    [ScheduleStatus.REALIZED, ScheduleStatus.RECEIVED, ScheduleStatus.PAID, ScheduleStatus.CANCELLED],
)
def test_open_instance_may_reach_any_terminal_state(target):
    validate_instance_transition(ScheduleStatus.PLANNED, target)


@pytest.mark.parametrize(
    "current",
    [ScheduleStatus.REALIZED, ScheduleStatus.PAID, ScheduleStatus.POSTED, ScheduleStatus.CANCELLED],
)
def test_terminal_states_never_move(current):
    with pytest.raises(InvalidStateTransitionError):
        validate_instance_transition(current, ScheduleStatus.CANCELLED)


def test_cannot_reopen_instance():
    with pytest.raises(InvalidStateTransitionError):
        validate_instance_transition(ScheduleStatus.PLANNED, ScheduleStatus.SCHEDULED)


def test_signed_amount_convention():
    assert signed_amount(15000, Flow.INCOME) == 15000
    assert signed_amount(15000, Flow.EXPENSE) == -15000
    assert signed_amount(-15000, Flow.EXPENSE) == -15000


def test_ensure_same_entity():
    ensure_same_entity("entity-a", "entity-a")
    ensure_same_entity("entity-a", None)
    with pytest.raises(CrossEntityViolationError) as exc_info:
        ensure_same_entity("entity-a", "entity-b")
    assert exc_info.value.field == "account_id"


def test_statuses_to_cancel_only_open():
    """Realized history is kept, cancelled rows are not touched again"""
    statuses = {
        "s1": ScheduleStatus.REALIZED,
        "s2": ScheduleStatus.PLANNED,
        "s3": ScheduleStatus.PLANNED,
        "s4": ScheduleStatus.CANCELLED,
    }
    assert statuses_to_cancel(statuses) == ["s2", "s3"]


def test_hard_delete_blocked_by_realized_history():
    ensure_hard_delete_allowed(False)
    with pytest.raises(GovernanceViolationError):
        ensure_hard_delete_allowed(True)


def test_parent_transitions():
    validate_parent_transition(ParentStatus.PLANNED, ParentStatus.ACTIVE)
    validate_parent_transition(ParentStatus.ACTIVE, ParentStatus.CANCELLED)
    validate_parent_transition(ParentStatus.ACTIVE, ParentStatus.COMPLETED, has_open_instances=False)

    with pytest.raises(InvalidStateTransitionError):
        validate_parent_transition(ParentStatus.CANCELLED, ParentStatus.ACTIVE)
    with pytest.raises(InvalidStateTransitionError):
        validate_parent_transition(ParentStatus.COMPLETED, ParentStatus.CANCELLED)


def test_parent_cannot_complete_with_open_instances():
    with pytest.raises(GovernanceViolationError):
        validate_parent_transition(ParentStatus.ACTIVE, ParentStatus.COMPLETED, has_open_instances=True)


def test_financial_fields_are_immutable():
    ensure_editable(ParentStatus.ACTIVE, ["description", "end_date"])

    with pytest.raises(GovernanceViolationError) as exc_info:
        ensure_editable(ParentStatus.ACTIVE, ["description", "total_amount_cents"])
    assert exc_info.value.field == "total_amount_cents"

    with pytest.raises(GovernanceViolationError):
        ensure_editable(ParentStatus.ACTIVE, ["start_date"])


def test_terminal_parent_not_editable():
    with pytest.raises(GovernanceViolationError):
        ensure_editable(ParentStatus.CANCELLED, ["description"])
