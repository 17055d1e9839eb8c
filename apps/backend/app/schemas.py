from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .models import (
    BudgetPeriod,
    FriendshipStatus,
    InstallmentStatus,
    MergeRequestStatus,
    ParticipantStatus,
    TxnType,
)


class UserBrief(BaseModel):
    id: int
    username: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class ParticipantIn(BaseModel):
    """One participant of a split.

    ``id`` matches an existing participant on update. A participant is a
    registered user (``user_id`` or a known ``username``) or a placeholder
    identified by ``name``.
    """

    id: Optional[int] = None
    user_id: Optional[int] = None
    username: Optional[str] = Field(default=None, max_length=50)
    name: Optional[str] = Field(default=None, max_length=100)
    amount: Optional[Decimal] = Field(default=None, ge=0)
    percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="after")
    def validate_identity(self) -> "ParticipantIn":
        if self.user_id is None and not self.username and not (self.name or "").strip():
            raise ValueError("participant requires user_id, username or name")
        return self


def _check_currency(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if len(v) != 3:
        raise ValueError("currency must be 3-letter code")
    return v.upper()


def _check_amount(v: Optional[Decimal]) -> Optional[Decimal]:
    if v is not None and not v.is_finite():
        raise ValueError("amount must be finite")
    return v


class TransactionCreate(BaseModel):
    type: TxnType
    amount: Decimal = Field(gt=0)
    currency: str = "BRL"
    description: Optional[str] = Field(default=None, max_length=500)
    date: dt.date
    category_id: Optional[int] = None
    category_name: Optional[str] = Field(default=None, max_length=100)
    is_fixed: bool = False
    recurrence_ends_at: Optional[dt.date] = None
    installments_count: Optional[int] = Field(default=None, ge=1, le=360)
    participants: Optional[list[ParticipantIn]] = None
    model_config = ConfigDict(extra="ignore")

    @field_validator("currency")
    def currency_len(cls, v: str) -> str:
        return _check_currency(v)

    @field_validator("amount")
    def validate_amount(cls, v: Decimal) -> Decimal:
        return _check_amount(v)


class TransactionUpdate(BaseModel):
    """Partial edit. Omitting ``participants`` leaves the ledger untouched;
    an empty list removes everyone but the creator."""

    type: Optional[TxnType] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    currency: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=500)
    date: Optional[dt.date] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = Field(default=None, max_length=100)
    is_fixed: Optional[bool] = None
    recurrence_ends_at: Optional[dt.date] = None
    participants: Optional[list[ParticipantIn]] = None
    model_config = ConfigDict(extra="ignore")

    @field_validator("currency")
    def currency_len(cls, v: Optional[str]) -> Optional[str]:
        return _check_currency(v)

    @field_validator("amount")
    def validate_amount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return _check_amount(v)


class ParticipantOut(BaseModel):
    id: int
    transaction_id: int
    user_id: Optional[int] = None
    placeholder_name: Optional[str] = None
    display_name: str
    share_amount: Decimal
    share_percent: Decimal
    base_share_amount: Optional[Decimal] = None
    base_share_percent: Optional[Decimal] = None
    status: ParticipantStatus

    model_config = ConfigDict(from_attributes=True)


class InstallmentOut(BaseModel):
    id: int
    number: int
    amount: Decimal
    due_date: dt.date
    status: InstallmentStatus

    model_config = ConfigDict(from_attributes=True)


class TransactionBrief(BaseModel):
    id: int
    creator_id: int
    type: TxnType
    amount: Decimal
    currency: str
    description: Optional[str] = None
    date: dt.date

    model_config = ConfigDict(from_attributes=True)


class TransactionOut(TransactionBrief):
    category_id: int
    is_shared: bool
    is_fixed: bool
    recurrence_ends_at: Optional[dt.date] = None
    excluded_dates: list[str] = []
    created_at: dt.datetime
    updated_at: dt.datetime
    participants: list[ParticipantOut] = []
    installments: list[InstallmentOut] = []


class InvitationResponse(BaseModel):
    # Checked by the ledger so an unknown value is a 400, not a 422
    status: str


class PendingInvitationOut(ParticipantOut):
    transaction: TransactionBrief


class OccurrenceExclude(BaseModel):
    date: dt.date


class RecurrenceEnd(BaseModel):
    ends_at: dt.date


class NotificationOut(BaseModel):
    id: int
    type: str
    title: str
    message: str
    data: dict[str, Any] = {}
    is_read: bool
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class ExternalFriendCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class ExternalFriendOut(BaseModel):
    id: Optional[int] = None
    name: str

    model_config = ConfigDict(from_attributes=True)


class MergeRequestCreate(BaseModel):
    placeholder_name: str = Field(min_length=1, max_length=100)
    target_username: str = Field(min_length=1, max_length=50)


class MergeRequestOut(BaseModel):
    id: int
    requester_id: int
    target_user_id: int
    placeholder_name: str
    status: MergeRequestStatus
    created_at: dt.datetime
    requester: UserBrief

    model_config = ConfigDict(from_attributes=True)


class MergeRequestRespond(BaseModel):
    status: str


class FriendRequestCreate(BaseModel):
    username: str = Field(min_length=1, max_length=50)


class FriendRequestOut(BaseModel):
    id: int
    status: FriendshipStatus
    created_at: dt.datetime
    requester: UserBrief
    addressee: UserBrief

    model_config = ConfigDict(from_attributes=True)


class FriendRequestRespond(BaseModel):
    status: str


class CategoryBrief(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class BudgetCreate(BaseModel):
    category_id: int
    amount: Decimal = Field(gt=0)
    period: Optional[BudgetPeriod] = None
    soft_limit: Optional[Decimal] = Field(default=None, gt=0)

    @field_validator("amount", "soft_limit")
    def validate_amount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return _check_amount(v)


class BudgetUpdate(BaseModel):
    category_id: Optional[int] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    period: Optional[BudgetPeriod] = None
    soft_limit: Optional[Decimal] = Field(default=None, gt=0)

    @field_validator("amount", "soft_limit")
    def validate_amount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return _check_amount(v)


class BudgetOut(BaseModel):
    id: int
    category_id: int
    period: BudgetPeriod
    amount: Decimal
    soft_limit: Optional[Decimal] = None
    category: CategoryBrief

    model_config = ConfigDict(from_attributes=True)


class BudgetStatusOut(BaseModel):
    budget: BudgetOut
    period_start: dt.date
    period_end: dt.date
    spent: Decimal
    limit: Decimal
    remaining: Decimal
    percentage: Decimal
    color: str

    model_config = ConfigDict(from_attributes=True)
