"""
Tests for the category resolver: seeding, duplicate cleanup and the
savings category.
"""

import asyncio

import pytest

from mis_finanzas.models.audit import AuditEventType
from mis_finanzas.models.finance import TransactionType
from mis_finanzas.services.backend import (
    InMemoryBackend,
    NotAuthenticatedError,
    RemoteError,
)
from mis_finanzas.services.categories import DEFAULT_CATEGORIES, CategoryResolver


OWNER = "user-1"
SAVINGS_LABEL = "Ahorro e Inversión"


class SlowBackend(InMemoryBackend):
    """Yields to the event loop on every call so gathered calls interleave."""

    async def query(self, *args, **kwargs):
        await asyncio.sleep(0)
        return await super().query(*args, **kwargs)

    async def insert(self, *args, **kwargs):
        await asyncio.sleep(0)
        return await super().insert(*args, **kwargs)


class FailingDeleteBackend(InMemoryBackend):
    async def delete_many(self, collection, row_ids):
        raise RemoteError("permission denied for table categories")


class FailingInsertBackend(InMemoryBackend):
    async def insert(self, collection, rows):
        raise RemoteError("connection reset")


def _add(backend, name, ctype="expense", owner=OWNER, row_id=None):
    row = {"name": name, "type": ctype, "icon": None, "user_id": owner}
    if row_id:
        row["id"] = row_id
    return asyncio.run(backend.insert("categories", [row]))[0]


def _event_types(audit_logger):
    return [e.event_type for e in audit_logger.events]


class TestSeeding:
    """Tests for default catalog seeding."""

    def test_seeds_defaults_for_new_owner(self, resolver, backend):
        """Test that an empty owner gets 11 expense and 5 income categories."""
        categories = asyncio.run(resolver.list_categories())

        assert len(categories) == len(DEFAULT_CATEGORIES) == 16
        types = [c.type for c in categories]
        assert types.count(TransactionType.EXPENSE) == 11
        assert types.count(TransactionType.INCOME) == 5
        assert [c.name for c in categories] == sorted(c.name for c in categories)

    def test_seeding_is_idempotent(self, resolver, backend):
        """Test that a second call doesn't add anything."""
        first = asyncio.run(resolver.list_categories())
        second = asyncio.run(resolver.list_categories())

        assert len(second) == 16
        assert {c.id for c in first} == {c.id for c in second}
        assert len(backend.table("categories")) == 16

    def test_seeding_skips_existing_names(self, resolver, backend):
        """Test that a category already present by name isn't re-created."""
        existing = _add(backend, "Nómina", "income")

        categories = asyncio.run(resolver.list_categories())

        nomina = [c for c in categories if c.name == "Nómina"]
        assert len(nomina) == 1
        assert nomina[0].id == existing["id"]
        assert len(categories) == 16

    def test_no_seeding_above_threshold(self, resolver, backend):
        """Test that an owner with enough categories is left alone."""
        for name in ("Casa", "Coche", "Gatos"):
            _add(backend, name)

        categories = asyncio.run(resolver.list_categories())

        assert [c.name for c in categories] == ["Casa", "Coche", "Gatos"]

    def test_concurrent_calls_seed_once(self, audit_logger):
        """Test that concurrent list calls for one owner seed a single time."""
        backend = SlowBackend(owner_id=OWNER)
        resolver = CategoryResolver(
            backend,
            audit_logger=audit_logger,
            savings_category_name=SAVINGS_LABEL,
            seed_threshold=2,
        )

        async def run():
            return await asyncio.gather(*(resolver.list_categories() for _ in range(5)))

        results = asyncio.run(run())

        assert len(backend.table("categories")) == 16
        assert all(len(r) == 16 for r in results)
        assert _event_types(audit_logger).count(AuditEventType.CATEGORIES_SEEDED) == 1

    def test_seeding_failure_is_logged_not_raised(self, audit_logger):
        """Test that a failed seed returns what could be read."""
        backend = FailingInsertBackend(owner_id=OWNER)
        backend.table("categories").append(
            {"id": "c1", "name": "Casa", "type": "expense", "user_id": OWNER}
        )
        resolver = CategoryResolver(backend, audit_logger=audit_logger, seed_threshold=2)

        categories = asyncio.run(resolver.list_categories())

        assert [c.name for c in categories] == ["Casa"]
        assert AuditEventType.CATEGORY_SEEDING_FAILED in _event_types(audit_logger)

    def test_no_owner_returns_empty(self, resolver, backend):
        """Test that without a session nothing is read or seeded."""
        backend.auth.sign_out()

        assert asyncio.run(resolver.list_categories()) == []
        assert backend.table("categories") == []


class TestDuplicateCleanup:
    """Tests for duplicate (name, type) merging."""

    def test_duplicates_removed_on_read(self, resolver, backend, audit_logger):
        """Test that only the first of each (name, type) survives."""
        for name in ("Casa", "Coche", "Gatos"):
            _add(backend, name)
        _add(backend, "Casa", row_id="dup-1")
        _add(backend, "Casa", row_id="dup-2")

        categories = asyncio.run(resolver.list_categories())

        assert [c.name for c in categories] == ["Casa", "Coche", "Gatos"]
        assert not {"dup-1", "dup-2"} & {r["id"] for r in backend.table("categories")}
        assert AuditEventType.DUPLICATE_CATEGORIES_REMOVED in _event_types(audit_logger)

    def test_same_name_different_type_is_not_a_duplicate(self, resolver, backend):
        """Test that (name, type) is the identity, not name alone."""
        _add(backend, "Otros", "expense")
        _add(backend, "Otros", "income")
        _add(backend, "Casa", "expense")

        categories = asyncio.run(resolver.list_categories())

        assert len([c for c in categories if c.name == "Otros"]) == 2

    def test_cleanup_failure_is_logged_not_raised(self, audit_logger):
        """Test that a failed delete still returns a clean list."""
        backend = FailingDeleteBackend(owner_id=OWNER)
        for name in ("Casa", "Coche", "Gatos", "Casa"):
            _add(backend, name)
        resolver = CategoryResolver(backend, audit_logger=audit_logger, seed_threshold=2)

        categories = asyncio.run(resolver.list_categories())

        assert [c.name for c in categories] == ["Casa", "Coche", "Gatos"]
        assert len(backend.table("categories")) == 4
        assert AuditEventType.DUPLICATE_CLEANUP_FAILED in _event_types(audit_logger)


class TestCategoryCreation:
    """Tests for create_category and the savings category."""

    def test_create_category(self, resolver, backend):
        category = asyncio.run(
            resolver.create_category("Mascotas", TransactionType.EXPENSE, icon="paw")
        )
        assert category.name == "Mascotas"
        assert category.user_id == OWNER
        assert backend.table("categories")[0]["id"] == category.id

    def test_create_category_requires_owner(self, resolver, backend):
        """Test that creating without a session fails."""
        backend.auth.sign_out()
        with pytest.raises(NotAuthenticatedError):
            asyncio.run(resolver.create_category("Mascotas", TransactionType.EXPENSE))

    def test_savings_category_created_once(self, resolver, backend):
        """Test find-or-create of the savings category."""
        first = asyncio.run(resolver.find_or_create_savings_category())
        second = asyncio.run(resolver.find_or_create_savings_category())

        assert first.id == second.id
        assert first.name == SAVINGS_LABEL
        assert first.type == TransactionType.EXPENSE
        assert first.icon == "piggy-bank"
        names = [r["name"] for r in backend.table("categories")]
        assert names.count(SAVINGS_LABEL) == 1

    def test_income_category_with_savings_name_is_ignored(self, resolver, backend):
        """Test that only an expense category counts as the savings category."""
        income = _add(backend, SAVINGS_LABEL, "income")

        savings = asyncio.run(resolver.find_or_create_savings_category())

        assert savings.id != income["id"]
        assert savings.type == TransactionType.EXPENSE

    def test_default_category_prefers_existing(self, resolver):
        """Test that the first category of the type is used."""
        category = asyncio.run(resolver.default_category(TransactionType.INCOME))
        assert category.type == TransactionType.INCOME
        assert category.name != SAVINGS_LABEL

    def test_get_category_missing(self, resolver):
        assert asyncio.run(resolver.get_category("nope")) is None

    def test_malformed_row_is_a_remote_error(self, resolver, backend):
        """Test that an unreadable category row surfaces as RemoteError."""
        backend.table("categories").append(
            {"id": "c-bad", "name": "Casa", "type": "savings", "user_id": OWNER}
        )
        with pytest.raises(RemoteError, match="c-bad"):
            asyncio.run(resolver.list_categories())
