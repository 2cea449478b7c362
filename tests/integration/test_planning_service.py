"""Integration tests for plan creation and lifecycle governance"""

import pytest
from datetime import date
from treasury_engine.domain.exceptions import (
    AmountMismatchError,
    CrossEntityViolationError,
    GovernanceViolationError,
    InvalidArgumentError,
    InvalidStateTransitionError,
    NotFoundError,
)
from treasury_engine.domain.models import (
    CommitmentType,
    ContractType,
    OriginKind,
    ParentStatus,
    ScheduleStatus,
    SourceType,
)
from treasury_engine.domain.schedules import CustomPlan, InstallmentPlan, RecurringPlan
from treasury_engine.infrastructure.database.models import (
    CardInstallment,
    Commitment,
    CommitmentSchedule,
    ContractSchedule,
)
from treasury_engine.services import planning, settlement
from treasury_engine.utils.date_utils import YearMonth

WORKSPACE = "ws-test"
ENTITY = "entity-a"


def test_create_commitment_persists_every_instance(db, rent_commitment):
    rows = db.query(CommitmentSchedule).filter_by(commitment_id=rent_commitment.id).all()

    assert rent_commitment.status == ParentStatus.PLANNED.value
    assert rent_commitment.total_amount_cents == 60000
    assert rent_commitment.currency == "BRL"
    assert sorted(r.due_date for r in rows) == [date(2024, 1, 10), date(2024, 2, 10), date(2024, 3, 10)]
    assert all(r.status == ScheduleStatus.PLANNED.value for r in rows)
    assert all(r.workspace_id == WORKSPACE for r in rows)


def test_invalid_plan_writes_nothing(db):
    with pytest.raises(AmountMismatchError):
        planning.create_commitment(
            db,
            WORKSPACE,
            ENTITY,
            CommitmentType.EXPENSE,
            "Broken",
            CustomPlan(total_amount_cents=1000, entries=[(date(2024, 1, 1), 999)]),
        )

    assert db.query(Commitment).count() == 0
    assert db.query(CommitmentSchedule).count() == 0


def test_unknown_account_rolls_back(db):
    with pytest.raises(NotFoundError):
        planning.create_commitment(
            db,
            WORKSPACE,
            ENTITY,
            CommitmentType.EXPENSE,
            "Rent",
            RecurringPlan(amount_cents=1000, start_date=date(2024, 1, 1), end_date=date(2024, 2, 1)),
            account_id="missing",
        )
    assert db.query(Commitment).count() == 0


def test_account_of_other_entity_rejected(db):
    other = planning.create_account(db, WORKSPACE, "entity-b", "Other checking")

    with pytest.raises(CrossEntityViolationError):
        planning.create_commitment(
            db,
            WORKSPACE,
            ENTITY,
            CommitmentType.EXPENSE,
            "Rent",
            RecurringPlan(amount_cents=1000, start_date=date(2024, 1, 1), end_date=date(2024, 2, 1)),
            account_id=other.id,
        )


def test_create_contract_installments(db):
    contract = planning.create_contract(
        db,
        WORKSPACE,
        ENTITY,
        ContractType.RECEIVABLE,
        "ACME Ltd",
        "Consulting",
        InstallmentPlan(
            total_amount_cents=100000,
            entry_amount_cents=10000,
            installment_count=3,
            interval_days=30,
            base_date=date(2024, 1, 1),
        ),
    )

    rows = db.query(ContractSchedule).filter_by(contract_id=contract.id).all()
    assert contract.counterparty == "ACME Ltd"
    assert len(rows) == 4
    assert sum(r.amount_cents for r in rows) == 100000


def test_card_purchase_installments(db):
    card = planning.create_card(db, WORKSPACE, ENTITY, "Gold", closing_day=10, due_day=20)
    purchase = planning.create_card_purchase(
        db, WORKSPACE, card.id, date(2024, 3, 15), 100000, 3, description="Laptop"
    )

    rows = db.query(CardInstallment).filter_by(purchase_id=purchase.id).order_by(CardInstallment.installment_number).all()
    assert [r.competence_month for r in rows] == [date(2024, 4, 1), date(2024, 5, 1), date(2024, 6, 1)]
    assert [r.amount_cents for r in rows] == [33334, 33333, 33333]
    assert all(r.status == ScheduleStatus.SCHEDULED.value for r in rows)
    assert purchase.first_installment_month == date(2024, 4, 1)


def test_card_purchase_with_first_month(db):
    card = planning.create_card(db, WORKSPACE, ENTITY, "Gold", closing_day=10, due_day=20)
    purchase = planning.create_card_purchase(
        db, WORKSPACE, card.id, date(2024, 3, 15), 2000, 2, first_month=YearMonth(2024, 8)
    )
    assert purchase.first_installment_month == date(2024, 8, 1)


def test_card_purchase_unknown_card(db):
    with pytest.raises(NotFoundError):
        planning.create_card_purchase(db, WORKSPACE, "missing", date(2024, 3, 15), 1000, 1)


def test_card_rejects_bad_cycle_day(db):
    with pytest.raises(InvalidArgumentError) as exc_info:
        planning.create_card(db, WORKSPACE, ENTITY, "Bad", closing_day=0, due_day=10)
    assert exc_info.value.field == "closing_day"


def test_cancel_cascades_to_open_instances_only(db, rent_commitment):
    """One realized month is kept, the two open months are cancelled"""
    rows = sorted(rent_commitment.schedules, key=lambda r: r.due_date)
    settlement.settle(db, WORKSPACE, SourceType.COMMITMENT_SCHEDULE, rows[0].id)

    result = planning.cancel_parent(db, WORKSPACE, OriginKind.COMMITMENT, rent_commitment.id)

    assert result.status is ParentStatus.CANCELLED
    assert sorted(result.cancelled_instance_ids) == sorted([rows[1].id, rows[2].id])
    statuses = {r.id: r.status for r in db.query(CommitmentSchedule).all()}
    assert statuses == {
        rows[0].id: ScheduleStatus.REALIZED.value,
        rows[1].id: ScheduleStatus.CANCELLED.value,
        rows[2].id: ScheduleStatus.CANCELLED.value,
    }
    assert db.get(Commitment, rent_commitment.id).status == ParentStatus.CANCELLED.value


def test_cancel_twice_is_noop(db, rent_commitment):
    planning.cancel_parent(db, WORKSPACE, OriginKind.COMMITMENT, rent_commitment.id)
    again = planning.cancel_parent(db, WORKSPACE, OriginKind.COMMITMENT, rent_commitment.id)

    assert again.status is ParentStatus.CANCELLED
    assert again.cancelled_instance_ids == []


def test_hard_delete_without_history(db, rent_commitment):
    result = planning.cancel_parent(db, WORKSPACE, OriginKind.COMMITMENT, rent_commitment.id, hard_delete=True)

    assert result.deleted
    assert db.query(Commitment).count() == 0
    assert db.query(CommitmentSchedule).count() == 0


def test_hard_delete_refused_with_realized_history(db, rent_commitment):
    first = min(rent_commitment.schedules, key=lambda r: r.due_date)
    settlement.settle(db, WORKSPACE, SourceType.COMMITMENT_SCHEDULE, first.id)

    with pytest.raises(GovernanceViolationError):
        planning.cancel_parent(db, WORKSPACE, OriginKind.COMMITMENT, rent_commitment.id, hard_delete=True)

    assert db.query(CommitmentSchedule).count() == 3


def test_cancel_unknown_parent(db):
    with pytest.raises(NotFoundError):
        planning.cancel_parent(db, WORKSPACE, OriginKind.CONTRACT, "missing")


def test_other_workspace_cannot_see_parent(db, rent_commitment):
    with pytest.raises(NotFoundError):
        planning.get_parent(db, "ws-other", OriginKind.COMMITMENT, rent_commitment.id)


def test_transition_parent(db, rent_commitment):
    parent = planning.transition_parent(db, WORKSPACE, OriginKind.COMMITMENT, rent_commitment.id, ParentStatus.ACTIVE)
    assert parent.status == ParentStatus.ACTIVE.value

    with pytest.raises(GovernanceViolationError):
        planning.transition_parent(db, WORKSPACE, OriginKind.COMMITMENT, rent_commitment.id, ParentStatus.COMPLETED)

    parent = planning.transition_parent(db, WORKSPACE, OriginKind.COMMITMENT, rent_commitment.id, ParentStatus.CANCELLED)
    assert parent.status == ParentStatus.CANCELLED.value

    with pytest.raises(InvalidStateTransitionError):
        planning.transition_parent(db, WORKSPACE, OriginKind.COMMITMENT, rent_commitment.id, ParentStatus.ACTIVE)


def test_update_descriptive_fields(db, rent_commitment):
    parent = planning.update_parent(
        db, WORKSPACE, OriginKind.COMMITMENT, rent_commitment.id, {"description": "HQ rent", "category": "facilities"}
    )
    assert parent.description == "HQ rent"
    assert parent.category == "facilities"


def test_update_financial_fields_refused(db, rent_commitment):
    with pytest.raises(GovernanceViolationError) as exc_info:
        planning.update_parent(db, WORKSPACE, OriginKind.COMMITMENT, rent_commitment.id, {"total_amount_cents": 1})
    assert exc_info.value.field == "total_amount_cents"
    assert db.get(Commitment, rent_commitment.id).total_amount_cents == 60000


def test_update_end_date_before_start_refused(db, rent_commitment):
    with pytest.raises(InvalidArgumentError):
        planning.update_parent(
            db, WORKSPACE, OriginKind.COMMITMENT, rent_commitment.id, {"end_date": date(2023, 1, 1)}
        )


def test_cancel_single_instance(db, rent_commitment):
    row = min(rent_commitment.schedules, key=lambda r: r.due_date)

    planning.cancel_instance(db, WORKSPACE, SourceType.COMMITMENT_SCHEDULE, row.id)
    planning.cancel_instance(db, WORKSPACE, SourceType.COMMITMENT_SCHEDULE, row.id)

    assert db.get(CommitmentSchedule, row.id).status == ScheduleStatus.CANCELLED.value


def test_cannot_cancel_realized_instance(db, rent_commitment):
    row = min(rent_commitment.schedules, key=lambda r: r.due_date)
    settlement.settle(db, WORKSPACE, SourceType.COMMITMENT_SCHEDULE, row.id)

    with pytest.raises(InvalidStateTransitionError):
        planning.cancel_instance(db, WORKSPACE, SourceType.COMMITMENT_SCHEDULE, row.id)
