"""Services package."""

from mis_finanzas.services.backend import (
    BackendError,
    DataBackend,
    NotAuthenticatedError,
    NotFoundError,
    ObjectStorage,
    RemoteError,
)
from mis_finanzas.services.bizum import BizumService
from mis_finanzas.services.categories import (
    DEFAULT_CATEGORIES,
    CategoryResolver,
)
from mis_finanzas.services.receipts import ReceiptService
from mis_finanzas.services.savings import (
    SavingsInterceptor,
    SavingsLedger,
    compute_retention,
    compute_round_up,
)
from mis_finanzas.services.savings_store import SavingsConfigStore, SavingsStoreError
from mis_finanzas.services.transactions import (
    TransactionValidationError,
    TransactionWriter,
)

__all__ = [
    # Backend
    "BackendError",
    "DataBackend",
    "NotAuthenticatedError",
    "NotFoundError",
    "ObjectStorage",
    "RemoteError",
    # Categories
    "DEFAULT_CATEGORIES",
    "CategoryResolver",
    # Transactions
    "TransactionValidationError",
    "TransactionWriter",
    # Automated savings
    "SavingsConfigStore",
    "SavingsInterceptor",
    "SavingsLedger",
    "SavingsStoreError",
    "compute_retention",
    "compute_round_up",
    # Receipts and transfers
    "BizumService",
    "ReceiptService",
]
