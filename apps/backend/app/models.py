from __future__ import annotations

import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo
from enum import Enum
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.ext.mutable import MutableDict, MutableList
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .core.config import settings
from .core.database import Base


try:
    LOCAL_ZONE = ZoneInfo(getattr(settings, "TIMEZONE", "America/Sao_Paulo"))
except Exception:
    LOCAL_ZONE = ZoneInfo("UTC")


def now_local_naive() -> datetime:
    """Return naive datetime normalized to configured local timezone."""
    return datetime.now(LOCAL_ZONE).replace(tzinfo=None)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_local_naive, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=now_local_naive, onupdate=now_local_naive, nullable=False)


class User(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)


class FriendshipStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"


class Friendship(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    requester_id: Mapped[int] = mapped_column(ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    addressee_id: Mapped[int] = mapped_column(ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[FriendshipStatus] = mapped_column(
        SAEnum(FriendshipStatus, name="friendship_status"),
        nullable=False,
        default=FriendshipStatus.PENDING,
    )

    requester: Mapped[User] = relationship("User", foreign_keys=[requester_id])
    addressee: Mapped[User] = relationship("User", foreign_keys=[addressee_id])

    __table_args__ = (
        UniqueConstraint("requester_id", "addressee_id", name="uq_friendship_pair"),
        CheckConstraint("requester_id != addressee_id", name="ck_friendship_not_self"),
    )


class FriendRequestLog(Base, TimestampMixin):
    """One sent friend request, kept for rate limiting."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    requester_id: Mapped[int] = mapped_column(ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    addressee_id: Mapped[int] = mapped_column(ForeignKey("user.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        Index("ix_friend_request_log_pair", "requester_id", "addressee_id", "created_at"),
    )


class ExternalFriend(Base, TimestampMixin):
    """A named contact without an account, owned by one user."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_external_friend_name"),
    )


class Category(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # NULL for system categories shared across users
    user_id: Mapped[int | None] = mapped_column(ForeignKey("user.id", ondelete="CASCADE"))
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class TxnType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class Transaction(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    creator_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("category.id"), nullable=False)
    type: Mapped[TxnType] = mapped_column(SAEnum(TxnType, name="txn_type"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="BRL")
    description: Mapped[str | None] = mapped_column(Text)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    is_shared: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_fixed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurrence_ends_at: Mapped[dt.date | None] = mapped_column(Date)
    # ISO dates of skipped occurrences of a fixed transaction
    excluded_dates: Mapped[list[str]] = mapped_column(MutableList.as_mutable(JSON), default=list, nullable=False)

    creator: Mapped[User] = relationship("User", foreign_keys=[creator_id])
    category: Mapped[Category] = relationship("Category")
    participants: Mapped[list["TransactionParticipant"]] = relationship(
        "TransactionParticipant",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionParticipant.id",
    )
    installments: Mapped[list["Installment"]] = relationship(
        "Installment",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="Installment.number",
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_txn_amount_positive"),
        Index("ix_txn_creator_date", "creator_id", "date"),
    )


class ParticipantStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXITED = "EXITED"


class TransactionParticipant(Base, TimestampMixin):
    """One party's stake in a transaction.

    ``share_amount``/``share_percent`` hold the effective share, zero unless the
    participant is ACCEPTED. ``base_share_amount``/``base_share_percent`` hold the
    nominal share as last set explicitly and survive status changes.
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    transaction_id: Mapped[int] = mapped_column(ForeignKey("transaction.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("user.id", ondelete="SET NULL"))
    placeholder_name: Mapped[str | None] = mapped_column(String(100))
    share_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    share_percent: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False, default=Decimal("0"))
    base_share_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2))
    base_share_percent: Mapped[Decimal | None] = mapped_column(Numeric(7, 2))
    status: Mapped[ParticipantStatus] = mapped_column(
        SAEnum(ParticipantStatus, name="participant_status"),
        nullable=False,
        default=ParticipantStatus.PENDING,
    )

    transaction: Mapped[Transaction] = relationship("Transaction", back_populates="participants")
    user: Mapped[User | None] = relationship("User")

    __table_args__ = (
        UniqueConstraint("transaction_id", "user_id", name="uq_participant_txn_user"),
        CheckConstraint(
            "user_id IS NOT NULL OR placeholder_name IS NOT NULL",
            name="ck_participant_identity",
        ),
        Index("ix_participant_user_status", "user_id", "status"),
    )

    @property
    def display_name(self) -> str:
        if self.user is not None:
            return self.user.name
        return self.placeholder_name or "A participant"


class InstallmentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


class Installment(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    transaction_id: Mapped[int] = mapped_column(ForeignKey("transaction.id", ondelete="CASCADE"), nullable=False)
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[InstallmentStatus] = mapped_column(
        SAEnum(InstallmentStatus, name="installment_status"),
        nullable=False,
        default=InstallmentStatus.PENDING,
    )

    transaction: Mapped[Transaction] = relationship("Transaction", back_populates="installments")

    __table_args__ = (
        UniqueConstraint("transaction_id", "number", name="uq_installment_number"),
    )


class Notification(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(MutableDict.as_mutable(JSON), default=dict, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_notification_user_created", "user_id", "created_at"),
    )


class MergeRequestStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class MergeRequest(Base, TimestampMixin):
    """Proposal to link a requester's placeholder name to a registered user."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    requester_id: Mapped[int] = mapped_column(ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    target_user_id: Mapped[int] = mapped_column(ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    placeholder_name: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[MergeRequestStatus] = mapped_column(
        SAEnum(MergeRequestStatus, name="merge_request_status"),
        nullable=False,
        default=MergeRequestStatus.PENDING,
    )

    requester: Mapped[User] = relationship("User", foreign_keys=[requester_id])
    target_user: Mapped[User] = relationship("User", foreign_keys=[target_user_id])


class BudgetPeriod(str, Enum):
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class Budget(Base, TimestampMixin):
    """Spending limit of one user for one category and period."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("category.id", ondelete="CASCADE"), nullable=False)
    period: Mapped[BudgetPeriod] = mapped_column(
        SAEnum(BudgetPeriod, name="budget_period"),
        nullable=False,
        default=BudgetPeriod.MONTHLY,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    # Spending at or above this turns the status YELLOW; defaults to 80% of amount
    soft_limit: Mapped[Decimal | None] = mapped_column(Numeric(18, 2))

    category: Mapped[Category] = relationship("Category")

    __table_args__ = (
        UniqueConstraint("user_id", "category_id", "period", name="uq_budget_category_period"),
        CheckConstraint("amount > 0", name="ck_budget_amount_positive"),
    )
