"""Deterministic queries over fetched transactions."""

from mis_finanzas.queries.summary import (
    UNCATEGORIZED_LABEL,
    category_label,
    category_names,
    filter_transactions,
    savings_transactions,
    summarize,
)

__all__ = [
    "UNCATEGORIZED_LABEL",
    "category_label",
    "category_names",
    "filter_transactions",
    "savings_transactions",
    "summarize",
]
