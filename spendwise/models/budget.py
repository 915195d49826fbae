from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from spendwise.models.base import naive_utc, reject_null, utcnow_iso


class BudgetPeriod(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


class SharePermission(str, Enum):
    view = "view"
    edit = "edit"


class AlertThreshold(BaseModel):
    percentage: float = Field(..., ge=0, le=100)
    notified: bool = False


class BudgetAlerts(BaseModel):
    enabled: bool = True
    thresholds: List[AlertThreshold] = Field(default_factory=list)


class BudgetShare(BaseModel):
    user_id: str
    permission: SharePermission = SharePermission.view


class BudgetCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(..., gt=0)
    category_id: str
    period: BudgetPeriod = BudgetPeriod.monthly
    start_date: datetime = Field(default_factory=datetime.utcnow)
    end_date: Optional[datetime] = None
    currency: str = Field(default="USD", min_length=3, max_length=3)
    alerts: BudgetAlerts = Field(default_factory=BudgetAlerts)
    shared: List[BudgetShare] = Field(default_factory=list)

    @field_validator("start_date", "end_date")
    @classmethod
    def _naive_dates(cls, value):
        return naive_utc(value)

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class BudgetUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount: Optional[float] = Field(default=None, gt=0)
    category_id: Optional[str] = None
    period: Optional[BudgetPeriod] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    alerts: Optional[BudgetAlerts] = None
    shared: Optional[List[BudgetShare]] = None

    @field_validator(
        "name", "amount", "category_id", "period", "start_date", "currency", "alerts", "shared", mode="before"
    )
    @classmethod
    def _required_not_null(cls, value):
        return reject_null(value)

    @field_validator("start_date", "end_date")
    @classmethod
    def _naive_dates(cls, value):
        return naive_utc(value)


class BudgetInDB(BudgetCreate):
    user_id: str
    budget_id: str = Field(default_factory=lambda: str(uuid4()))
    # Flattened copy of shared[].user_id so membership can be filtered in the store
    shared_user_ids: List[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=utcnow_iso)
    updated_at: str = Field(default_factory=utcnow_iso)

    @model_validator(mode="after")
    def _sync_shared_user_ids(self):
        self.shared_user_ids = [share.user_id for share in self.shared]
        return self
