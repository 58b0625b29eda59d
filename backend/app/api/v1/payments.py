from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.api.response import envelope
from app.core.config import get_settings
from app.db.session import get_db
from app.schemas.payment_log import PaymentLogEntryOut, PaymentRequestIn, ProcessedByIn, ProcessorSummaryOut
from app.services import payment_log_service

router = APIRouter(tags=["payments"])


@router.post("/payments", status_code=status.HTTP_201_CREATED)
def create_payment(request: Request, body: PaymentRequestIn, db: Session = Depends(get_db)) -> dict:
    request.state.entry_id = body.correlation_id
    try:
        row = payment_log_service.record_payment_request(
            db,
            entry_id=body.correlation_id,
            amount=body.amount,
            requested_at=datetime.now(UTC),
        )
    except payment_log_service.DuplicatePaymentError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(exc), "reason_code": "payment_duplicate"},
        ) from exc
    return envelope(request, {"payment": PaymentLogEntryOut.model_validate(row).model_dump(mode="json")})


@router.get("/payments")
def list_payments(
    request: Request,
    requested_from: datetime | None = Query(default=None, alias="from"),
    requested_to: datetime | None = Query(default=None, alias="to"),
    limit: int = Query(default=100, ge=1),
    db: Session = Depends(get_db),
) -> dict:
    settings = get_settings()
    rows = payment_log_service.list_entries(
        db,
        requested_from=requested_from,
        requested_to=requested_to,
        limit=min(limit, settings.payments_list_max_limit),
    )
    return envelope(request, {"items": [PaymentLogEntryOut.model_validate(row).model_dump(mode="json") for row in rows]})


@router.get("/payments-summary")
def payments_summary(
    request: Request,
    requested_from: datetime | None = Query(default=None, alias="from"),
    requested_to: datetime | None = Query(default=None, alias="to"),
    db: Session = Depends(get_db),
) -> dict:
    settings = get_settings()
    totals = payment_log_service.summarize(
        db,
        processor_names=settings.processor_names,
        requested_from=requested_from,
        requested_to=requested_to,
    )
    summary = {
        name: ProcessorSummaryOut(**values).model_dump(mode="json", by_alias=True)
        for name, values in totals.items()
    }
    return envelope(request, summary)


@router.get("/payments/{payment_id}")
def get_payment(request: Request, payment_id: UUID, db: Session = Depends(get_db)) -> dict:
    request.state.entry_id = payment_id
    row = payment_log_service.get_entry(db, payment_id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    return envelope(request, {"payment": PaymentLogEntryOut.model_validate(row).model_dump(mode="json")})


@router.put("/payments/{payment_id}/processed-by")
def set_processed_by(
    request: Request,
    payment_id: UUID,
    body: ProcessedByIn,
    db: Session = Depends(get_db),
) -> dict:
    request.state.entry_id = payment_id
    request.state.processed_by = body.processed_by
    try:
        row = payment_log_service.mark_processed(db, entry_id=payment_id, processed_by=body.processed_by)
    except payment_log_service.PaymentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found") from exc
    except payment_log_service.AttributionConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "Payment is already attributed to another processor.",
                "reason_code": "payment_attribution_conflict",
                "processed_by": exc.current,
            },
        ) from exc
    return envelope(request, {"payment": PaymentLogEntryOut.model_validate(row).model_dump(mode="json")})
