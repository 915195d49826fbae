from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from spendwise.models.base import Frequency, naive_utc, reject_null, utcnow_iso


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"
    transfer = "transfer"


class TransactionStatus(str, Enum):
    active = "active"
    paused = "paused"


class TransactionCreate(BaseModel):
    type: TransactionType
    amount: float = Field(..., ge=0)
    description: str = Field(..., min_length=1, max_length=200)
    category_id: str
    date: datetime = Field(default_factory=datetime.utcnow)
    is_recurring: bool = False
    recurring_frequency: Optional[Frequency] = None
    status: TransactionStatus = TransactionStatus.active
    next_due_date: Optional[datetime] = None

    @field_validator("date", "next_due_date")
    @classmethod
    def _naive_dates(cls, value):
        return naive_utc(value)

    @model_validator(mode="after")
    def _recurring_needs_frequency(self):
        if self.is_recurring and self.recurring_frequency is None:
            raise ValueError("recurring_frequency is required for recurring transactions")
        return self


class TransactionUpdate(BaseModel):
    type: Optional[TransactionType] = None
    amount: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category_id: Optional[str] = None
    date: Optional[datetime] = None
    is_recurring: Optional[bool] = None
    recurring_frequency: Optional[Frequency] = None
    status: Optional[TransactionStatus] = None
    next_due_date: Optional[datetime] = None

    @field_validator("type", "amount", "description", "category_id", "date", "is_recurring", "status", mode="before")
    @classmethod
    def _required_not_null(cls, value):
        return reject_null(value)

    @field_validator("date", "next_due_date")
    @classmethod
    def _naive_dates(cls, value):
        return naive_utc(value)


class TransactionInDB(TransactionCreate):
    user_id: str
    transaction_id: str = Field(default_factory=lambda: str(uuid4()))
    reminder_sent_for: Optional[str] = None
    created_at: str = Field(default_factory=utcnow_iso)
    updated_at: str = Field(default_factory=utcnow_iso)


class TransactionFilters(BaseModel):
    type: Optional[TransactionType] = None
    status: Optional[TransactionStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _naive_dates(cls, value):
        return naive_utc(value)

    @model_validator(mode="after")
    def _range_is_ordered(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be before end_date")
        return self

    def signature(self) -> str:
        """Stable string form used in cache keys; only set filters take part."""
        parts = []
        for name, value in sorted(self.model_dump(mode="json", exclude_none=True).items()):
            parts.append(f"{name}={value}")
        return "&".join(parts) or "all"
