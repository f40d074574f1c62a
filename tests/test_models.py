"""
Tests for Mis Finanzas

Test strategy:
1. Unit tests for individual components (models, pure helpers)
2. Service tests against the in-memory backend
3. No real network calls in tests
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

from mis_finanzas.models.finance import (
    BalanceSummary,
    BizumRecipient,
    Category,
    FileItem,
    Transaction,
    TransactionCreate,
    TransactionType,
    TransactionUpdate,
)
from mis_finanzas.models.savings import (
    AutoSavingsResult,
    FundChoice,
    SavingsConfiguration,
    SavingsConfigurationUpdate,
    SavingsSummary,
)
from mis_finanzas.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


def _category(ctype: TransactionType = TransactionType.EXPENSE) -> Category:
    return Category(id="cat-1", name="Alimentación", type=ctype, icon="utensils")


class TestFinanceModels:
    """Tests for transaction and category models."""

    def test_category_strips_whitespace(self):
        """Test that whitespace is stripped from category names."""
        category = Category(id="c", name="  Viajes  ", type=TransactionType.EXPENSE)
        assert category.name == "Viajes"
        assert category.key == ("Viajes", "expense")

    def test_transaction_from_backend_row(self):
        """Test a joined backend row with a float amount."""
        transaction = Transaction.model_validate({
            "id": "t-1",
            "user_id": "user-1",
            "amount": 12.35,
            "description": None,
            "date": "2024-03-01T10:30:00",
            "category_id": "cat-1",
            "category": {"id": "cat-1", "name": "Alimentación", "type": "expense"},
            "currency": None,
        })
        assert transaction.amount == Decimal("12.35")
        assert transaction.description == ""
        assert transaction.currency == "EUR"
        assert transaction.type == TransactionType.EXPENSE

    def test_signed_amount_follows_category(self):
        """Test that income is positive and expense negative."""
        income = Transaction(
            id="t", user_id="u", amount=Decimal("100"), date=datetime(2024, 1, 1),
            category=_category(TransactionType.INCOME),
        )
        expense = income.model_copy(update={"category": _category()})
        uncategorised = income.model_copy(update={"category": None})

        assert income.signed_amount == Decimal("100")
        assert expense.signed_amount == Decimal("-100")
        assert uncategorised.type is None
        assert uncategorised.signed_amount == Decimal("-100")

    def test_transaction_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        with pytest.raises(ValueError):
            TransactionCreate(amount=Decimal("0"), category_id="c")
        with pytest.raises(ValueError):
            TransactionCreate(amount=Decimal("-5"), category_id="c")

    def test_transaction_create_defaults(self):
        """Test that date defaults to now and category is optional."""
        data = TransactionCreate(amount="9.99")
        assert data.amount == Decimal("9.99")
        assert data.category_id is None
        assert isinstance(data.date, datetime)

    def test_transaction_create_default_date_is_utc(self):
        """Test that the default date carries a UTC offset when serialised."""
        data = TransactionCreate(amount="1")
        assert data.date.utcoffset() == timedelta(0)
        assert data.model_dump(mode="json")["date"].endswith("Z")

    def test_long_description_accepted(self):
        data = TransactionCreate(amount="1", description="x" * 600)
        assert len(data.description) == 600

    def test_transaction_update_only_sends_set_fields(self):
        """Test that unset fields are not part of the changes."""
        update = TransactionUpdate(description="Cena")
        assert update.to_changes() == {"description": "Cena"}

    def test_file_item_is_image(self):
        """Test image detection by extension."""
        assert FileItem(id="1", name="ticket.JPG", url="u").is_image is True
        assert FileItem(id="2", name="factura.pdf", url="u").is_image is False

    def test_bizum_recipient_unknown_name(self):
        """Test the fallback name for profiles without one."""
        assert BizumRecipient(code="ABC", full_name=None).full_name == "Unknown user"

    def test_balance_summary_share_bounds(self):
        """Test that shares must be percentages."""
        with pytest.raises(ValueError):
            BalanceSummary(income_share=101)


class TestSavingsModels:
    """Tests for savings configuration and results."""

    def test_configuration_defaults(self):
        """Test that a fresh configuration has everything off."""
        config = SavingsConfiguration()
        assert config.round_up_enabled is False
        assert config.retention_enabled is False
        assert config.retention_percentage == 10
        assert config.invested_amount == Decimal("0")
        assert config.selected_fund is None

    def test_retention_percentage_bounds(self):
        """Test percentage must be between 1 and 50."""
        with pytest.raises(ValueError):
            SavingsConfiguration(retention_percentage=0)
        with pytest.raises(ValueError):
            SavingsConfiguration(retention_percentage=51)

    def test_configuration_validates_assignment(self):
        """Test that assignments are validated too."""
        config = SavingsConfiguration()
        with pytest.raises(ValueError):
            config.invested_amount = Decimal("-1")

    def test_fund_choice_from_string(self):
        """Test fund parsing from stored values."""
        config = SavingsConfiguration.model_validate({"selected_fund": "tech"})
        assert config.selected_fund == FundChoice.TECH

    def test_update_rejects_unknown_fields(self):
        """Test that typos in update fields are caught."""
        with pytest.raises(ValueError):
            SavingsConfigurationUpdate(round_up=True)

    def test_auto_savings_result_totals(self):
        """Test total_saved and succeeded on an empty run."""
        result = AutoSavingsResult(transaction_id="t")
        assert result.total_saved == Decimal("0")
        assert result.succeeded is True

    def test_savings_summary_in_sync(self):
        """Test the in_sync property."""
        assert SavingsSummary(
            authoritative_amount=Decimal("1.50"),
            cached_amount=Decimal("1.5"),
        ).in_sync is True
        assert SavingsSummary(
            authoritative_amount=Decimal("2"),
            cached_amount=Decimal("1"),
        ).in_sync is False


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            description="Test transaction created",
        )
        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOADED,
            description="Receipt uploaded",
            details={"path": "user-1/1_ticket.jpg", "size": 10},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "receipt_uploaded"
        assert log_dict["details"]["size"] == 10

    def test_audit_event_builder_round_up(self):
        """Test AuditEventBuilder.round_up_applied."""
        correlation_id = uuid4()

        event = AuditEventBuilder.round_up_applied(
            main_transaction_id="main",
            saving_transaction_id="saving",
            original_amount=Decimal("12.50"),
            saved_amount=Decimal("0.50"),
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.ROUND_UP_APPLIED
        assert event.entity_id == "saving"
        assert event.correlation_id == correlation_id
        assert event.details["saved_amount"] == "0.50"

    def test_audit_event_builder_auto_savings_failed(self):
        """Test that savings failures are logged as errors."""
        event = AuditEventBuilder.auto_savings_failed(
            main_transaction_id="main",
            stage="evaluating_rounding",
            error_message="insert failed",
        )
        assert event.event_type == AuditEventType.AUTO_SAVINGS_FAILED
        assert event.severity in (AuditSeverity.WARNING, AuditSeverity.ERROR)
        assert event.error_message == "insert failed"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
