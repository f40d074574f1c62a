"""
Transaction Queries

DESIGN DECISION: Queries are DETERMINISTIC and run over transactions
already read from the backend. Nothing here calls the backend; callers
fetch once with TransactionWriter.list_transactions() and derive
totals, filters and the savings history from that list.

Direction always comes from the joined category. A transaction without
a category counts towards the balance as an outflow but towards neither
the income nor the expense total.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Union

from mis_finanzas.models.finance import BalanceSummary, Transaction, TransactionType


UNCATEGORIZED_LABEL = "General"


def _share(part: Decimal, volume: Decimal) -> int:
    if volume <= 0:
        return 0
    return int((part / volume * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def summarize(transactions: Iterable[Transaction]) -> BalanceSummary:
    """
    Dashboard totals.

    Shares are each side's percentage of income + expense volume,
    both 0 when there is no volume.
    """
    balance = Decimal("0")
    income = Decimal("0")
    expense = Decimal("0")
    count = 0

    for transaction in transactions:
        count += 1
        balance += transaction.signed_amount
        if transaction.type == TransactionType.INCOME:
            income += transaction.amount
        elif transaction.type == TransactionType.EXPENSE:
            expense += transaction.amount

    volume = income + expense
    return BalanceSummary(
        total_balance=balance,
        total_income=income,
        total_expense=expense,
        income_share=_share(income, volume),
        expense_share=_share(expense, volume),
        transaction_count=count,
    )


def category_label(transaction: Transaction) -> str:
    """Category name as shown in lists, "General" when uncategorised."""
    return transaction.category.name if transaction.category else UNCATEGORIZED_LABEL


def category_names(transactions: Iterable[Transaction]) -> list[str]:
    """Distinct category labels, sorted, for the category filter."""
    return sorted({category_label(t) for t in transactions})


def filter_transactions(
    transactions: Iterable[Transaction],
    search: Optional[str] = None,
    category_name: Optional[str] = None,
    on_date: Optional[Union[date, datetime]] = None,
) -> list[Transaction]:
    """
    Filter a transaction list the way the transactions page does.

    Args:
        transactions: Transactions to filter (order is preserved)
        search: Case-insensitive substring of the description or category name
        category_name: Exact category label ("General" for uncategorised)
        on_date: Calendar day the transaction falls on
    """
    term = search.lower() if search else None
    if isinstance(on_date, datetime):
        on_date = on_date.date()

    results = []
    for transaction in transactions:
        if term:
            in_description = term in transaction.description.lower()
            in_category = (
                transaction.category is not None
                and term in transaction.category.name.lower()
            )
            if not (in_description or in_category):
                continue

        if category_name and category_label(transaction) != category_name:
            continue

        if on_date and transaction.date.date() != on_date:
            continue

        results.append(transaction)
    return results


def savings_transactions(
    transactions: Iterable[Transaction],
    label: str,
) -> list[Transaction]:
    """Transactions filed under the savings category, in the given order."""
    return [
        t for t in transactions
        if t.category is not None and t.category.name == label
    ]
