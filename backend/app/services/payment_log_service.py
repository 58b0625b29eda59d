from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from decimal import MAX_PREC, Decimal, localcontext

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.metrics import payment_log_writes_total
from app.models.payment_log import PaymentLogEntry

logger = logging.getLogger("payments.log")

SUMMARY_WINDOW_START = datetime(1, 1, 1, tzinfo=UTC)
SUMMARY_WINDOW_END = datetime(9999, 12, 31, 23, 59, 59, 999000, tzinfo=UTC)


class PaymentLogError(Exception):
    pass


class DuplicatePaymentError(PaymentLogError):
    def __init__(self, entry_id: uuid.UUID) -> None:
        super().__init__(f"Payment {entry_id} is already recorded")
        self.entry_id = entry_id


class PaymentNotFoundError(PaymentLogError):
    def __init__(self, entry_id: uuid.UUID) -> None:
        super().__init__(f"Payment {entry_id} not found")
        self.entry_id = entry_id


class AttributionConflictError(PaymentLogError):
    def __init__(self, entry_id: uuid.UUID, *, current: str, requested: str) -> None:
        super().__init__(f"Payment {entry_id} is already processed by {current}; refusing {requested}")
        self.entry_id = entry_id
        self.current = current
        self.requested = requested


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize to UTC; naive values are taken to already be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def record_payment_request(
    db: Session,
    *,
    entry_id: uuid.UUID,
    amount: Decimal | None,
    requested_at: datetime | None,
) -> PaymentLogEntry:
    """Insert a new, unattributed entry.

    NOT NULL on ``amount`` and ``requested_at`` is left to the store, so a
    missing value surfaces as ``IntegrityError``. A reused ``entry_id`` raises
    ``DuplicatePaymentError`` and the stored row stays as it was.
    """
    try:
        db.execute(
            insert(PaymentLogEntry).values(
                id=entry_id,
                amount=amount,
                requested_at=as_utc(requested_at),
                processed_by=None,
            )
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if db.get(PaymentLogEntry, entry_id) is not None:
            payment_log_writes_total.labels(operation="record", outcome="duplicate").inc()
            logger.info("payment already recorded", extra={"entry_id": str(entry_id), "outcome": "duplicate"})
            raise DuplicatePaymentError(entry_id) from exc
        payment_log_writes_total.labels(operation="record", outcome="rejected").inc()
        logger.warning("payment rejected by store constraints", extra={"entry_id": str(entry_id), "outcome": "rejected"})
        raise

    payment_log_writes_total.labels(operation="record", outcome="recorded").inc()
    logger.info("payment recorded", extra={"entry_id": str(entry_id), "outcome": "recorded"})
    row = db.get(PaymentLogEntry, entry_id)
    if row is None:
        raise RuntimeError(f"Payment inserted but not found: {entry_id}")
    return row


def mark_processed(db: Session, *, entry_id: uuid.UUID, processed_by: str) -> PaymentLogEntry:
    """Attribute an entry to a processor, once.

    Only an unattributed row is updated. Repeating the same attribution is a
    no-op; a different processor raises ``AttributionConflictError``.
    """
    result = db.execute(
        update(PaymentLogEntry)
        .where(PaymentLogEntry.id == entry_id, PaymentLogEntry.processed_by.is_(None))
        .values(processed_by=processed_by)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    row = db.get(PaymentLogEntry, entry_id)
    if result.rowcount == 1 and row is not None:
        payment_log_writes_total.labels(operation="attribute", outcome="attributed").inc()
        logger.info(
            "payment processed",
            extra={"entry_id": str(entry_id), "processed_by": processed_by, "outcome": "attributed"},
        )
        return row
    if row is None:
        payment_log_writes_total.labels(operation="attribute", outcome="not_found").inc()
        raise PaymentNotFoundError(entry_id)
    if row.processed_by == processed_by:
        payment_log_writes_total.labels(operation="attribute", outcome="unchanged").inc()
        return row
    payment_log_writes_total.labels(operation="attribute", outcome="conflict").inc()
    logger.warning(
        "payment attribution conflict",
        extra={"entry_id": str(entry_id), "processed_by": row.processed_by, "outcome": "conflict"},
    )
    raise AttributionConflictError(entry_id, current=str(row.processed_by), requested=processed_by)


def get_entry(db: Session, entry_id: uuid.UUID) -> PaymentLogEntry | None:
    return db.get(PaymentLogEntry, entry_id)


def list_entries(
    db: Session,
    *,
    requested_from: datetime | None = None,
    requested_to: datetime | None = None,
    limit: int = 100,
) -> list[PaymentLogEntry]:
    start = as_utc(requested_from) or SUMMARY_WINDOW_START
    end = as_utc(requested_to) or SUMMARY_WINDOW_END
    stmt = (
        select(PaymentLogEntry)
        .where(PaymentLogEntry.requested_at >= start, PaymentLogEntry.requested_at < end)
        .order_by(PaymentLogEntry.requested_at.asc(), PaymentLogEntry.id.asc())
        .limit(limit)
    )
    return list(db.scalars(stmt).all())


def summarize(
    db: Session,
    *,
    processor_names: Sequence[str],
    requested_from: datetime | None = None,
    requested_to: datetime | None = None,
) -> dict[str, dict[str, Decimal | int]]:
    """Totals per processor over ``[requested_from, requested_to)``.

    Every name in ``processor_names`` is present in the result, with zeros when
    nothing was attributed to it in the window.
    """
    names = list(dict.fromkeys(processor_names))
    start = as_utc(requested_from) or SUMMARY_WINDOW_START
    end = as_utc(requested_to) or SUMMARY_WINDOW_END
    totals: dict[str, tuple[Decimal, int]] = {}
    if names and db.get_bind().dialect.name == "sqlite":
        # SQLite's SUM() works in floating point; add the exact values here.
        attributed = db.execute(
            select(PaymentLogEntry.processed_by, PaymentLogEntry.amount).where(
                PaymentLogEntry.processed_by.in_(names),
                PaymentLogEntry.requested_at >= start,
                PaymentLogEntry.requested_at < end,
            )
        ).all()
        with localcontext() as ctx:
            ctx.prec = MAX_PREC
            for name, amount in attributed:
                total_amount, total_requests = totals.get(name, (Decimal("0"), 0))
                totals[name] = (total_amount + amount, total_requests + 1)
    elif names:
        rows = db.execute(
            select(
                PaymentLogEntry.processed_by,
                func.sum(PaymentLogEntry.amount),
                func.count(PaymentLogEntry.id),
            )
            .where(
                PaymentLogEntry.processed_by.in_(names),
                PaymentLogEntry.requested_at >= start,
                PaymentLogEntry.requested_at < end,
            )
            .group_by(PaymentLogEntry.processed_by)
        ).all()
        for name, total_amount, total_requests in rows:
            totals[name] = (Decimal(str(total_amount or 0)), int(total_requests or 0))
    return {
        name: {
            "total_amount": totals.get(name, (Decimal("0"), 0))[0],
            "total_requests": totals.get(name, (Decimal("0"), 0))[1],
        }
        for name in names
    }
