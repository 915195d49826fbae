from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from spendwise.models.base import Frequency, naive_utc, reject_null, utcnow_iso


class PaymentMethod(str, Enum):
    cash = "cash"
    credit = "credit"
    debit = "debit"
    crypto = "crypto"
    other = "other"


class RecurringDetails(BaseModel):
    frequency: Frequency
    end_date: Optional[datetime] = None

    @field_validator("end_date")
    @classmethod
    def _naive_end_date(cls, value):
        return naive_utc(value)


class ExpenseCreate(BaseModel):
    amount: float = Field(..., ge=0)
    description: str = Field(..., min_length=1, max_length=200)
    category_id: str
    date: datetime = Field(default_factory=datetime.utcnow)
    payment_method: PaymentMethod = PaymentMethod.cash
    currency: str = Field(default="USD", min_length=3, max_length=3)
    location: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_recurring: bool = False
    recurring: Optional[RecurringDetails] = None

    @field_validator("date")
    @classmethod
    def _naive_date(cls, value):
        return naive_utc(value)

    @field_validator("tags")
    @classmethod
    def _strip_tags(cls, value):
        return [tag.strip() for tag in value if tag.strip()]


class ExpenseUpdate(BaseModel):
    amount: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category_id: Optional[str] = None
    date: Optional[datetime] = None
    payment_method: Optional[PaymentMethod] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    location: Optional[str] = None
    tags: Optional[List[str]] = None
    is_recurring: Optional[bool] = None
    recurring: Optional[RecurringDetails] = None

    @field_validator(
        "amount", "description", "category_id", "date", "payment_method", "currency", "tags", "is_recurring",
        mode="before",
    )
    @classmethod
    def _required_not_null(cls, value):
        return reject_null(value)

    @field_validator("date")
    @classmethod
    def _naive_date(cls, value):
        return naive_utc(value)


class ExpenseInDB(ExpenseCreate):
    user_id: str
    expense_id: str = Field(default_factory=lambda: str(uuid4()))
    created_at: str = Field(default_factory=utcnow_iso)
    updated_at: str = Field(default_factory=utcnow_iso)
