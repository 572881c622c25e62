"""
Payment Models for SiWarga

A payment is a resident's claim that they paid the dues for one month,
optionally backed by a proof of transfer. Only the treasurer moves it out
of PENDING.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Month names as stored in the Payments sheet
MONTHS = [
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]


class PaymentStatus(str, Enum):
    """
    Review status of a payment.

    CRITICAL: Payments are only CONFIRMED or REJECTED by an admin.
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


def generate_payment_id() -> str:
    """Short random identifier (9 characters)."""
    return uuid4().hex[:9]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp into a naive UTC datetime.

    Accepts ISO strings with or without time and "Z" suffix; returns None
    for anything unreadable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _coerce_int(value: Any) -> Any:
    """Sheet cells come back as 50000, 50000.0 or "50000"."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return value
        if number.is_integer():
            return int(number)
    return value


class PaymentRecord(BaseModel):
    """
    One row of the Payments sheet.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(
        default_factory=generate_payment_id,
        min_length=1,
    )
    house_id: str = Field(
        ...,
        alias="houseNumber",
        description="House identifier of the payer"
    )
    user_name: str = Field(
        default="",
        alias="userName",
    )
    month: str = Field(
        ...,
        description="Month name (see MONTHS)"
    )
    year: int = Field(
        ...,
        ge=1900,
        le=9999,
    )
    amount: int = Field(
        ...,
        ge=0,
        description="Amount in rupiah"
    )
    status: PaymentStatus = Field(
        default=PaymentStatus.PENDING,
    )
    note: str = Field(
        default="",
        max_length=1000,
    )
    proof_link: str = Field(
        default="",
        alias="proofLink",
        description="URL (or data: URL in demo mode) of the proof"
    )
    date: Optional[datetime] = Field(
        default_factory=datetime.utcnow,
        description="When the payment was submitted (UTC)"
    )

    @field_validator("id", "house_id", "user_name", "month", "note", "proof_link", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("year", "amount", mode="before")
    @classmethod
    def coerce_number(cls, v: Any) -> Any:
        return _coerce_int(v)

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> PaymentStatus:
        if isinstance(v, PaymentStatus):
            return v
        try:
            return PaymentStatus(str(v).strip().lower())
        except ValueError:
            return PaymentStatus.PENDING

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)

    @property
    def period(self) -> str:
        return f"{self.month} {self.year}"

    @property
    def sort_key(self) -> datetime:
        return self.date or datetime.min

    def to_wire(self) -> dict:
        """Dictionary in the wire format of the stores."""
        data = self.model_dump(mode="json", by_alias=True)
        if self.date is not None:
            data["date"] = self.date.isoformat(timespec="milliseconds") + "Z"
        return data
