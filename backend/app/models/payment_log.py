import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.namespaces import PAYMENTS_SCHEMA
from app.db.types import ExactDecimal


class PaymentLogEntry(Base):
    """One payment request, optionally attributed to the processor that handled it.

    ``amount`` carries no precision or scale and ``processed_by`` is free text;
    both are business-layer concerns. Rows are never deleted here.
    """

    __tablename__ = "log"
    __table_args__ = {"schema": PAYMENTS_SCHEMA}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    amount: Mapped[Decimal] = mapped_column(ExactDecimal, nullable=False)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    processed_by: Mapped[str | None] = mapped_column(Text, nullable=True)
