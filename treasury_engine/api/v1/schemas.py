"""Pydantic schemas for API request/response validation"""

from datetime import date
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from treasury_engine.domain.models import (
    CommitmentType,
    ContractType,
    ExternalDirection,
    MatchType,
    ParentStatus,
    Recurrence,
)
from treasury_engine.domain.schedules import (
    CustomPlan,
    InstallmentPlan,
    RecurringPlan,
    SinglePlan,
    SplitPlan,
)


# Plans


class SinglePlanSchema(BaseModel):
    kind: Literal["single"]
    amount_cents: int = Field(..., gt=0, description="Amount in cents")
    start_date: date

    def to_plan(self) -> SinglePlan:
        return SinglePlan(amount_cents=self.amount_cents, start_date=self.start_date)


class RecurringPlanSchema(BaseModel):
    kind: Literal["recurring"]
    amount_cents: int = Field(..., gt=0, description="Amount carried by every period, in cents")
    start_date: date
    end_date: Optional[date] = None
    recurrence: Recurrence = Recurrence.MONTHLY
    max_instances: Optional[int] = Field(None, gt=0)

    def to_plan(self) -> RecurringPlan:
        return RecurringPlan(
            amount_cents=self.amount_cents,
            start_date=self.start_date,
            end_date=self.end_date,
            recurrence=self.recurrence,
            max_instances=self.max_instances,
        )


class SplitPlanSchema(BaseModel):
    kind: Literal["split"]
    total_amount_cents: int = Field(..., gt=0, description="Total divided across the periods, in cents")
    start_date: date
    end_date: Optional[date] = None
    recurrence: Recurrence = Recurrence.NONE

    def to_plan(self) -> SplitPlan:
        return SplitPlan(
            total_amount_cents=self.total_amount_cents,
            start_date=self.start_date,
            end_date=self.end_date,
            recurrence=self.recurrence,
        )


class InstallmentPlanSchema(BaseModel):
    kind: Literal["installment"]
    total_amount_cents: int = Field(..., gt=0)
    entry_amount_cents: int = Field(..., gt=0)
    installment_count: int = Field(..., gt=0)
    interval_days: int = Field(30, gt=0)
    base_date: date

    def to_plan(self) -> InstallmentPlan:
        return InstallmentPlan(
            total_amount_cents=self.total_amount_cents,
            entry_amount_cents=self.entry_amount_cents,
            installment_count=self.installment_count,
            interval_days=self.interval_days,
            base_date=self.base_date,
        )


class CustomEntrySchema(BaseModel):
    due_date: date
    amount_cents: int = Field(..., gt=0)


class CustomPlanSchema(BaseModel):
    kind: Literal["custom"]
    total_amount_cents: int = Field(..., gt=0)
    entries: List[CustomEntrySchema] = Field(..., min_length=1)

    def to_plan(self) -> CustomPlan:
        return CustomPlan(
            total_amount_cents=self.total_amount_cents,
            entries=[(entry.due_date, entry.amount_cents) for entry in self.entries],
        )


PlanSchema = Annotated[
    Union[SinglePlanSchema, RecurringPlanSchema, SplitPlanSchema, InstallmentPlanSchema, CustomPlanSchema],
    Field(discriminator="kind"),
]


# Parents


class CommitmentRequest(BaseModel):
    """Request body for POST /v1/commitments"""

    entity_id: str = Field(..., min_length=1)
    type: CommitmentType
    description: str = Field(..., min_length=1)
    category: Optional[str] = None
    account_id: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    plan: PlanSchema


class ContractRequest(BaseModel):
    """Request body for POST /v1/contracts"""

    entity_id: str = Field(..., min_length=1)
    type: ContractType
    counterparty: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category: Optional[str] = None
    account_id: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    plan: PlanSchema


class ParentUpdateRequest(BaseModel):
    """Request body for PATCH on a commitment or contract; only set fields are applied"""

    description: Optional[str] = None
    category: Optional[str] = None
    end_date: Optional[date] = None
    recurrence: Optional[Recurrence] = None
    status: Optional[ParentStatus] = None
    # Immutable after creation; accepted so the governance rule can reject them
    total_amount_cents: Optional[int] = None
    start_date: Optional[date] = None


class ScheduleInstanceSchema(BaseModel):
    id: str
    due_date: date
    amount_cents: int
    status: str
    linked_movement_id: Optional[str] = None


class ParentResponse(BaseModel):
    """Commitment or contract with its schedule"""

    id: str
    entity_id: str
    type: str
    counterparty: Optional[str] = None
    description: str
    category: Optional[str] = None
    status: str
    total_amount_cents: int
    currency: str
    start_date: date
    end_date: Optional[date] = None
    recurrence: str
    instances: List[ScheduleInstanceSchema]


class CancelResponse(BaseModel):
    parent_id: str
    status: Optional[str] = None
    cancelled_instance_ids: List[str]
    deleted: bool


# Accounts, cards and card purchases


class AccountRequest(BaseModel):
    entity_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    kind: str = "checking"
    opening_balance_cents: int = 0


class AccountResponse(BaseModel):
    id: str
    entity_id: str
    name: str
    kind: str
    opening_balance_cents: int


class CardRequest(BaseModel):
    entity_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    closing_day: int = Field(..., ge=1, le=31)
    due_day: int = Field(..., ge=1, le=31)


class CardResponse(BaseModel):
    id: str
    entity_id: str
    name: str
    closing_day: int
    due_day: int


class CardPurchaseRequest(BaseModel):
    """Request body for POST /v1/card-purchases"""

    card_id: str
    purchase_date: date
    total_cents: int = Field(..., gt=0)
    installment_count: int = Field(1, gt=0)
    description: Optional[str] = None
    merchant: Optional[str] = None
    first_month: Optional[str] = Field(None, description="YYYY-MM, overrides the statement cycle")


class CardInstallmentSchema(BaseModel):
    id: str
    installment_number: int
    competence_month: str
    due_date: date
    amount_cents: int
    status: str


class CardPurchaseResponse(BaseModel):
    id: str
    card_id: str
    entity_id: str
    purchase_date: date
    total_amount_cents: int
    installment_count: int
    installments: List[CardInstallmentSchema]


# Settlement


class SettleRequest(BaseModel):
    """Request body for POST /v1/schedules/{source_type}/{id}/settle"""

    account_id: Optional[str] = None
    settled_on: Optional[date] = None
    description: Optional[str] = None
    movement_id: Optional[str] = Field(None, description="Attach an existing movement instead of creating one")


class MovementSchema(BaseModel):
    id: str
    entity_id: str
    amount_cents: int
    date: date
    description: str
    account_id: Optional[str] = None
    source_type: Optional[str] = None
    source_id: Optional[str] = None


# Cash flow


class CashflowMonthSchema(BaseModel):
    month: str
    planned_income: int
    planned_expense: int
    planned_net: int
    realised_income: int
    realised_expense: int
    realised_net: int
    planned_cum: int
    realised_cum: int
    planned_cum_adj: int
    realised_cum_adj: int


class CashflowMetadataSchema(BaseModel):
    opening_balance: int
    opening_date: date
    min_cum_balance: Optional[int] = None
    min_cum_month: Optional[str] = None
    min_cum_balance_adj: Optional[int] = None
    skipped_records: int


class CashflowMatrixResponse(BaseModel):
    """Response for GET /v1/cashflow/monthly"""

    months: List[CashflowMonthSchema]
    metadata: CashflowMetadataSchema


class CashflowPeriodSchema(BaseModel):
    period: str
    planned_income: int
    planned_expense: int
    planned_net: int
    realised_income: int
    realised_expense: int
    realised_net: int


class CashflowSummaryResponse(BaseModel):
    """Response for GET /v1/cashflow"""

    granularity: str
    entries: List[CashflowPeriodSchema]
    total_planned_income: int
    total_planned_expense: int
    total_planned_net: int
    total_realised_income: int
    total_realised_expense: int
    total_realised_net: int


class DrilldownItemSchema(BaseModel):
    instance_id: str
    origin: str
    parent_id: str
    entity_id: str
    description: str
    due_date: date
    amount_cents: int
    direction: str


class DrilldownResponse(BaseModel):
    month: str
    kind: str
    items: List[DrilldownItemSchema]
    total_cents: int


class CashAlertSchema(BaseModel):
    type: str
    severity: str
    message: str
    fingerprint: str
    entity_id: Optional[str] = None
    account_id: Optional[str] = None
    context: Dict[str, Any]


class CashAlertsResponse(BaseModel):
    """Response for GET /v1/cashflow/alerts"""

    as_of: date
    alerts: List[CashAlertSchema]


# Reconciliation


class ExternalTransactionRequest(BaseModel):
    """Request body for POST /v1/external-transactions"""

    entity_id: str = Field(..., min_length=1)
    external_account_id: str = Field(..., min_length=1)
    external_tx_id: str = Field(..., min_length=1)
    posted_date: date
    amount_cents: int = Field(..., ge=0)
    direction: ExternalDirection
    description_raw: str = ""
    balance_cents: Optional[int] = None


class ExternalTransactionResponse(BaseModel):
    id: str
    entity_id: str
    external_tx_id: str
    posted_date: date
    amount_cents: int
    direction: str
    description_raw: str
    description_norm: str


class SuggestionSchema(BaseModel):
    movement: MovementSchema
    confidence: float
    date_distance_days: int
    evidence: Dict[str, Any]


class SuggestionsResponse(BaseModel):
    external_transaction_id: str
    suggestions: List[SuggestionSchema]


class LinkRequest(BaseModel):
    movement_id: str
    match_type: MatchType = MatchType.MANUAL


class LinkResponse(BaseModel):
    id: str
    external_transaction_id: str
    movement_id: str
    match_type: str
    confidence: Optional[float] = None
    evidence: Dict[str, Any]


class UnlinkResponse(BaseModel):
    external_transaction_id: str
    removed: bool
