from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from spendwise.models.base import reject_null, utcnow_iso

# Partition used for the globally shared default categories
DEFAULT_OWNER = "DEFAULT"


class CategoryType(str, Enum):
    expense = "expense"
    income = "income"


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    type: CategoryType
    icon: str = "default-icon"
    color: str = Field(default="#000000", pattern=r"^#[0-9A-Fa-f]{6}$")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please add a category name")
        return value


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    type: Optional[CategoryType] = None
    icon: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")

    @field_validator("name", "type", "icon", "color", mode="before")
    @classmethod
    def _required_not_null(cls, value):
        return reject_null(value)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value):
        return value.strip()


class CategoryInDB(CategoryCreate):
    owner_id: str
    category_id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: Optional[str] = None
    is_default: bool = False
    created_at: str = Field(default_factory=utcnow_iso)


DEFAULT_CATEGORIES = [
    {"name": "Housing", "type": "expense", "icon": "🏠", "color": "#FF5733"},
    {"name": "Transportation", "type": "expense", "icon": "🚗", "color": "#33FF57"},
    {"name": "Food", "type": "expense", "icon": "🍕", "color": "#5733FF"},
    {"name": "Utilities", "type": "expense", "icon": "💡", "color": "#33B5FF"},
    {"name": "Healthcare", "type": "expense", "icon": "🏥", "color": "#FF33E9"},
    {"name": "Entertainment", "type": "expense", "icon": "🎬", "color": "#FFB533"},
    {"name": "Shopping", "type": "expense", "icon": "🛍️", "color": "#33FFC1"},
    {"name": "Salary", "type": "income", "icon": "💰", "color": "#33FF33"},
    {"name": "Investment", "type": "income", "icon": "📈", "color": "#3357FF"},
    {"name": "Other", "type": "expense", "icon": "📦", "color": "#808080"},
]
