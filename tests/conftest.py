"""Shared fixtures: in-memory backend and services wired to it."""

import pytest

from mis_finanzas.audit import AuditLogger
from mis_finanzas.services.backend import InMemoryBackend, InMemoryObjectStorage
from mis_finanzas.services.categories import CategoryResolver
from mis_finanzas.services.savings import SavingsInterceptor, SavingsLedger
from mis_finanzas.services.savings_store import SavingsConfigStore
from mis_finanzas.services.transactions import TransactionWriter


OWNER = "user-1"
SAVINGS_LABEL = "Ahorro e Inversión"


@pytest.fixture
def audit_logger():
    logger = AuditLogger()
    logger.keep_history()
    return logger


@pytest.fixture
def backend():
    return InMemoryBackend(owner_id=OWNER)


@pytest.fixture
def object_storage():
    return InMemoryObjectStorage()


@pytest.fixture
def resolver(backend, audit_logger):
    return CategoryResolver(
        backend,
        audit_logger=audit_logger,
        savings_category_name=SAVINGS_LABEL,
        savings_category_icon="piggy-bank",
        seed_threshold=2,
    )


@pytest.fixture
def writer(backend, resolver, audit_logger):
    return TransactionWriter(backend, resolver, audit_logger=audit_logger, base_currency="EUR")


@pytest.fixture
def store(tmp_path, audit_logger):
    return SavingsConfigStore(
        path=tmp_path / "savings.json",
        key="savings-storage",
        default_retention_percentage=10,
        audit_logger=audit_logger,
    )


@pytest.fixture
def interceptor(resolver, writer, store, audit_logger):
    return SavingsInterceptor(resolver, writer, store, audit_logger=audit_logger)


@pytest.fixture
def ledger(writer, store, audit_logger):
    return SavingsLedger(writer, store, savings_category_name=SAVINGS_LABEL, audit_logger=audit_logger)
