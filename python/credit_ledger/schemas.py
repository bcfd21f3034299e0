"""
Record Schemas

Pydantic models for raw rows handed over by the data-access layer. Rows may
use the storage column names (ug, pi, nd, valueReceived, creditId, ...) or the
engine's own field names.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .exceptions import InvalidAmount
from .models import Allocation, Cancellation, Classification, Commitment, Credit, Refund
from .money import to_money
from .snapshot import LedgerSnapshot


def _money(value: Any) -> Decimal:
    try:
        return to_money(value)
    except InvalidAmount as e:
        raise ValueError(e.message)


def _positive_money(value: Any) -> Decimal:
    amount = _money(value)
    if amount <= 0:
        raise ValueError("value must be positive")
    return amount


class RecordModel(BaseModel):
    """Base for inbound rows."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)


class CreditRecord(RecordModel):
    """Credit row (NC)."""

    id: str
    managing_unit: str = Field(validation_alias=AliasChoices("managing_unit", "ug"))
    internal_plan: str = Field(validation_alias=AliasChoices("internal_plan", "pi"))
    expense_nature: str = Field(validation_alias=AliasChoices("expense_nature", "nd"))
    funding_source: str = Field("", validation_alias=AliasChoices("funding_source", "fonte"))
    budget_program: str = Field("", validation_alias=AliasChoices("budget_program", "ptres"))
    responsible_unit: str = Field("", validation_alias=AliasChoices("responsible_unit", "ugr"))
    value_received: Decimal = Field(validation_alias=AliasChoices("value_received", "valueReceived"))
    created_at: datetime = Field(validation_alias=AliasChoices("created_at", "createdAt"))
    deadline: date | None = None
    credit_note: str = Field("", validation_alias=AliasChoices("credit_note", "nc"))
    organ: str = ""
    section: str = ""
    description: str = ""

    @field_validator("value_received", mode="before")
    @classmethod
    def _parse_value(cls, value: Any) -> Decimal:
        amount = _money(value)
        if amount < 0:
            raise ValueError("value_received cannot be negative")
        return amount

    @field_validator("created_at")
    @classmethod
    def _naive_utc(cls, value: datetime) -> datetime:
        # Mixed aware/naive timestamps cannot be ordered
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def to_domain(self) -> Credit:
        return Credit(
            id=self.id,
            classification=Classification(
                managing_unit=self.managing_unit,
                internal_plan=self.internal_plan,
                expense_nature=self.expense_nature,
                funding_source=self.funding_source,
                budget_program=self.budget_program,
                responsible_unit=self.responsible_unit,
            ),
            value_received=self.value_received,
            created_at=self.created_at,
            deadline=self.deadline,
            credit_note=self.credit_note,
            organ=self.organ,
            section=self.section,
            description=self.description,
        )


class AllocationRecord(RecordModel):
    credit_id: str = Field(validation_alias=AliasChoices("credit_id", "creditId"))
    value: Decimal

    @field_validator("value", mode="before")
    @classmethod
    def _parse_value(cls, value: Any) -> Decimal:
        return _positive_money(value)


class CommitmentRecord(RecordModel):
    """Commitment row (NE), multi-allocation or legacy single-credit shape."""

    id: str
    number: str = Field("", validation_alias=AliasChoices("number", "ne"))
    value: Decimal | None = None
    allocations: list[AllocationRecord] = Field(default_factory=list)
    credit_id: str | None = Field(None, validation_alias=AliasChoices("credit_id", "creditId"))
    record_date: date | None = Field(None, validation_alias=AliasChoices("record_date", "date"))
    description: str = ""

    @field_validator("value", mode="before")
    @classmethod
    def _parse_value(cls, value: Any) -> Decimal | None:
        return None if value is None else _money(value)

    def to_domain(self) -> Commitment:
        """Build the domain commitment.

        Raises:
            MalformedCommitment: If the allocations do not reconstruct the value
        """
        allocations = [Allocation(a.credit_id, a.value) for a in self.allocations]
        if not allocations and self.credit_id and self.value is not None:
            allocations = [Allocation(self.credit_id, self.value)]

        if self.value is None:
            commitment = Commitment.from_allocations(
                self.id, allocations, self.record_date, self.number, self.description
            )
        else:
            commitment = Commitment(
                id=self.id,
                allocations=tuple(allocations),
                value=self.value,
                date=self.record_date,
                number=self.number,
                description=self.description,
            )

        commitment.check()
        return commitment


class RefundRecord(RecordModel):
    id: str
    credit_id: str = Field(validation_alias=AliasChoices("credit_id", "creditId"))
    value: Decimal
    record_date: date | None = Field(None, validation_alias=AliasChoices("record_date", "date"))
    description: str = ""

    @field_validator("value", mode="before")
    @classmethod
    def _parse_value(cls, value: Any) -> Decimal:
        return _positive_money(value)

    def to_domain(self) -> Refund:
        return Refund(self.id, self.credit_id, self.value, self.record_date, self.description)


class CancellationRecord(RecordModel):
    id: str
    commitment_id: str = Field(validation_alias=AliasChoices("commitment_id", "commitmentId"))
    value: Decimal
    record_date: date | None = Field(None, validation_alias=AliasChoices("record_date", "date"))
    reference: str = Field("", validation_alias=AliasChoices("reference", "ro"))
    bulletin: str = Field("", validation_alias=AliasChoices("bulletin", "bi"))

    @field_validator("value", mode="before")
    @classmethod
    def _parse_value(cls, value: Any) -> Decimal:
        return _positive_money(value)

    def to_domain(self) -> Cancellation:
        return Cancellation(
            self.id, self.commitment_id, self.value, self.record_date, self.reference, self.bulletin
        )


def parse_snapshot(
    credits: list[dict] | None = None,
    commitments: list[dict] | None = None,
    refunds: list[dict] | None = None,
    cancellations: list[dict] | None = None,
) -> LedgerSnapshot:
    """Parse raw rows into a LedgerSnapshot.

    Raises:
        pydantic.ValidationError: If a row is missing fields or has a bad amount
        MalformedCommitment: If a commitment row does not balance
    """
    return LedgerSnapshot.of(
        credits=[CreditRecord.model_validate(r).to_domain() for r in credits or []],
        commitments=[CommitmentRecord.model_validate(r).to_domain() for r in commitments or []],
        refunds=[RefundRecord.model_validate(r).to_domain() for r in refunds or []],
        cancellations=[
            CancellationRecord.model_validate(r).to_domain() for r in cancellations or []
        ],
    )
