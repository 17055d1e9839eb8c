from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from app import models
from app.utils.money import ZERO, percent_of, quantize_money, quantize_percent, split_evenly, to_decimal


class ShareRedistributionService:
    """Recompute effective shares of a transaction from its base shares.

    Only ACCEPTED participants carry an effective share. The transaction
    total is spread over them in proportion to their base amounts; PENDING
    participants are zeroed while their base share is kept for when they
    accept. Participants are processed in id order so repeated runs over
    unchanged state produce identical values.
    """

    def __init__(self, db: Session, logger: logging.Logger | None = None) -> None:
        self.db = db
        self.log = logger or logging.getLogger(__name__)

    def recalculate(self, transaction_id: int) -> list[models.TransactionParticipant]:
        self.db.flush()
        transaction = self.db.get(models.Transaction, transaction_id)
        if transaction is None:
            self.log.debug("recalculate: transaction %s not found", transaction_id)
            return []

        participants = (
            self.db.query(models.TransactionParticipant)
            .filter(models.TransactionParticipant.transaction_id == transaction_id)
            .order_by(models.TransactionParticipant.id)
            .all()
        )
        active = [p for p in participants if p.status == models.ParticipantStatus.ACCEPTED]
        pending = [p for p in participants if p.status == models.ParticipantStatus.PENDING]
        self.log.debug(
            "recalculate: transaction %s has %d active, %d pending participants",
            transaction_id,
            len(active),
            len(pending),
        )

        for p in participants:
            if p.status in (models.ParticipantStatus.REJECTED, models.ParticipantStatus.EXITED):
                self._backfill_base(p)

        for p in pending:
            self._backfill_base(p)
            p.share_amount = quantize_money(ZERO)
            p.share_percent = quantize_percent(ZERO)

        if not active:
            self.db.flush()
            return participants

        total = to_decimal(transaction.amount)
        bases = [self._backfill_base(p) for p in active]
        total_base = sum(bases, ZERO)
        self.log.debug(
            "recalculate: transaction %s total %s, active base total %s",
            transaction_id,
            total,
            total_base,
        )

        if total_base > 0:
            shares = self._proportional(total, bases, total_base)
        else:
            self.log.warning(
                "recalculate: transaction %s has no base amount among %d active participants, "
                "falling back to an equal split",
                transaction_id,
                len(active),
            )
            shares = split_evenly(total, len(active))

        for p, share in zip(active, shares):
            p.share_amount = share
            p.share_percent = percent_of(share, total)
            self.log.debug(
                "recalculate: participant %s (%s) base %s -> %s (%s%%)",
                p.id,
                p.display_name,
                p.base_share_amount,
                p.share_amount,
                p.share_percent,
            )

        self.db.flush()
        return participants

    @staticmethod
    def _proportional(total: Decimal, bases: list[Decimal], total_base: Decimal) -> list[Decimal]:
        # The last participant takes whatever rounding left over
        shares: list[Decimal] = []
        remaining = total
        last = len(bases) - 1
        for i, base in enumerate(bases):
            if i == last:
                share = quantize_money(remaining)
            else:
                share = quantize_money(base / total_base * total)
                remaining -= share
            shares.append(share)
        return shares

    @staticmethod
    def _backfill_base(p: models.TransactionParticipant) -> Decimal:
        # Legacy rows may predate base shares; seed them from the effective values
        if p.base_share_amount is None:
            p.base_share_amount = quantize_money(p.share_amount)
        if p.base_share_percent is None:
            p.base_share_percent = quantize_percent(p.share_percent)
        return to_decimal(p.base_share_amount)
