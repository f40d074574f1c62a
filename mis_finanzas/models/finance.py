"""
Core Data Models for Mis Finanzas

These models define the schemas for all records exchanged with the backend.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for the backend and for logging

DESIGN DECISION: Amounts are always positive Decimals. Whether money came in
or went out is decided by the category type, never by the sign.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
)


IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")


def _float_to_decimal(v: Any) -> Any:
    # Postgres numerics arrive as JSON floats; go through str to keep 12.35 exact
    if isinstance(v, float):
        return Decimal(str(v))
    return v


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


Amount = Annotated[Decimal, BeforeValidator(_float_to_decimal)]


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction, carried by its category."""
    INCOME = "income"
    EXPENSE = "expense"


# =============================================================================
# CATEGORIES
# =============================================================================

class Category(BaseModel):
    """
    A user-visible label that classifies transactions as income or expense.

    (name, type) should be unique per owner. The backend tolerates
    duplicates; the category resolver merges them on read.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    icon: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        """Identity used for duplicate detection."""
        return self.name, self.type.value


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A persisted monetary movement, joined with its category when available.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    user_id: str
    amount: Amount = Field(
        ...,
        gt=0,
        description="Magnitude of the movement; always positive"
    )
    description: str = ""
    date: datetime
    category_id: Optional[str] = None
    category: Optional[Category] = None
    currency: str = Field(default="EUR", min_length=3, max_length=3)
    file_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator('description', mode='before')
    @classmethod
    def none_description(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator('currency', mode='before')
    @classmethod
    def default_currency(cls, v: Any) -> Any:
        return "EUR" if v is None else v

    @property
    def type(self) -> Optional[TransactionType]:
        """Direction taken from the joined category, if any."""
        return self.category.type if self.category else None

    @property
    def signed_amount(self) -> Decimal:
        """Amount with income positive and everything else negative."""
        if self.type == TransactionType.INCOME:
            return self.amount
        return -self.amount


class TransactionCreate(BaseModel):
    """
    User input for a new transaction.

    The owner is filled in by the writer from the auth session.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Amount = Field(
        ...,
        gt=0,
        description="Positive amount"
    )
    description: str = ""
    date: datetime = Field(default_factory=_utcnow)
    category_id: Optional[str] = Field(
        default=None,
        description="Category to file under; the flow picks a default when missing"
    )
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    file_url: Optional[str] = None


class TransactionUpdate(BaseModel):
    """
    Partial update of a transaction.

    Only fields explicitly set are sent to the backend.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Optional[Amount] = Field(default=None, gt=0)
    description: Optional[str] = None
    date: Optional[datetime] = None
    category_id: Optional[str] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    file_url: Optional[str] = None

    def to_changes(self) -> dict[str, Any]:
        """Backend-ready dict of the fields the caller set."""
        return self.model_dump(mode="json", exclude_unset=True)


# =============================================================================
# FILES
# =============================================================================

class FileItem(BaseModel):
    """A receipt stored in object storage, with its public URL."""

    id: str
    name: str
    url: str
    created_at: Optional[datetime] = None
    metadata: Optional[dict[str, Any]] = None

    @property
    def is_image(self) -> bool:
        return self.name.lower().endswith(IMAGE_EXTENSIONS)


# =============================================================================
# SUMMARIES
# =============================================================================

class BalanceSummary(BaseModel):
    """Totals shown on the dashboard."""

    total_balance: Decimal = Decimal("0")
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    income_share: int = Field(
        default=0,
        ge=0,
        le=100,
        description="Income as a percentage of income + expense volume"
    )
    expense_share: int = Field(default=0, ge=0, le=100)
    transaction_count: int = Field(default=0, ge=0)


class BizumRecipient(BaseModel):
    """Profile found behind a Bizum code."""

    code: str
    full_name: str = "Unknown user"

    @field_validator('full_name', mode='before')
    @classmethod
    def unknown_name(cls, v: Any) -> Any:
        return v or "Unknown user"

