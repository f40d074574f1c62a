"""
Savings Models for Mis Finanzas

Two groups of models live here:
1. The savings configuration the user controls (toggles, percentage, fund)
2. The record of what one interceptor run did after a transaction

DESIGN DECISION: The configuration lives on the device, not in the backend.
It is a typed record with explicit defaults so a missing or partial file
always loads into something valid.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from mis_finanzas.models.finance import Amount, Transaction


# =============================================================================
# CONFIGURATION
# =============================================================================

class FundChoice(str, Enum):
    """Display-only fund the user picked on the savings page."""
    SP500 = "sp500"
    TECH = "tech"
    GREEN = "green"


class SavingsConfiguration(BaseModel):
    """
    Per-installation savings settings.

    invested_amount is a cached projection. The authoritative figure is
    the sum of every transaction in the savings category.
    """
    model_config = ConfigDict(validate_assignment=True)

    round_up_enabled: bool = Field(
        default=False,
        description="Round expenses up to the next whole unit"
    )
    retention_enabled: bool = Field(
        default=False,
        description="Set aside a percentage of every income"
    )
    retention_percentage: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Percentage of income retained"
    )
    invested_amount: Amount = Field(
        default=Decimal("0"),
        ge=0,
        description="Cached running total of auto-saved money"
    )
    selected_fund: Optional[FundChoice] = Field(
        default=None,
        description="Fund shown on the savings page"
    )


class SavingsConfigurationUpdate(BaseModel):
    """Partial change to the configuration; unset fields are left alone."""
    model_config = ConfigDict(extra="forbid")

    round_up_enabled: Optional[bool] = None
    retention_enabled: Optional[bool] = None
    retention_percentage: Optional[int] = Field(default=None, ge=1, le=50)
    invested_amount: Optional[Amount] = Field(default=None, ge=0)
    selected_fund: Optional[FundChoice] = None


# =============================================================================
# INTERCEPTION RESULTS
# =============================================================================

class InterceptionStage(str, Enum):
    """
    Progress of one interceptor run over a freshly written transaction.

    A failure while evaluating a rule jumps straight to DONE.
    """
    IDLE = "idle"
    MAIN_WRITTEN = "main_written"
    EVALUATING_ROUNDING = "evaluating_rounding"
    EVALUATING_RETENTION = "evaluating_retention"
    DONE = "done"


class SavingsRule(str, Enum):
    ROUND_UP = "round_up"
    RETENTION = "retention"


class AppliedSaving(BaseModel):
    """One auxiliary transaction written by a savings rule."""

    rule: SavingsRule
    amount: Decimal
    transaction: Transaction


class AutoSavingsResult(BaseModel):
    """
    What the interceptor did for one main transaction.

    error is set when a rule failed; the main transaction is unaffected.
    """

    transaction_id: str
    stage: InterceptionStage = InterceptionStage.IDLE
    applied: list[AppliedSaving] = Field(default_factory=list)
    failed_stage: Optional[InterceptionStage] = None
    error: Optional[str] = None
    invested_amount: Optional[Decimal] = None

    @property
    def total_saved(self) -> Decimal:
        return sum((a.amount for a in self.applied), Decimal("0"))

    @property
    def succeeded(self) -> bool:
        return self.error is None


class SavingsSummary(BaseModel):
    """Authoritative vs cached savings figures for the savings page."""

    authoritative_amount: Decimal
    cached_amount: Decimal
    history: list[Transaction] = Field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return self.authoritative_amount == self.cached_amount
