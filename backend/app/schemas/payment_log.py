from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PaymentRequestIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    correlation_id: UUID = Field(..., alias="correlationId")
    amount: Decimal


class ProcessedByIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    processed_by: str = Field(..., alias="processedBy", min_length=1)

    @field_validator("processed_by")
    @classmethod
    def strip_processed_by(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("processedBy must not be blank")
        return stripped


class PaymentLogEntryOut(BaseModel):
    id: UUID
    amount: Decimal
    requested_at: datetime
    processed_by: str | None = None

    model_config = {"from_attributes": True}

    @field_validator("requested_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class ProcessorSummaryOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_amount: Decimal = Field(..., serialization_alias="totalAmount")
    total_requests: int = Field(..., serialization_alias="totalRequests")
