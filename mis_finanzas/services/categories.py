"""
Category Resolver

Keeps the owner's category taxonomy clean and non-empty without any
onboarding step:
1. Duplicate (name, type) pairs are merged on every read
2. An owner with almost no categories gets the default catalog
3. The savings category is created the first time a savings rule needs it

DESIGN DECISION: Cleanup and seeding are background housekeeping.
Their failures are logged and never raised; the caller still gets the
best category list we could read.

Seeding is single-flight per owner through an asyncio.Lock. Every caller
re-reads under the lock before deciding to seed. This only protects one
process; two devices seeding at once can still race, and the
duplicate cleanup reconciles that on a later read.
"""

import asyncio
from typing import Any, Optional

from pydantic import ValidationError

from mis_finanzas.audit import AuditLogger
from mis_finanzas.config import get_settings
from mis_finanzas.models.finance import Category, TransactionType
from mis_finanzas.services.backend.interface import (
    DataBackend,
    NotAuthenticatedError,
    RemoteError,
)


CATEGORIES = "categories"

FALLBACK_CATEGORY_NAME = "General"
FALLBACK_CATEGORY_ICON = "circle"

# (name, type, icon)
DEFAULT_CATEGORIES: tuple[tuple[str, TransactionType, str], ...] = (
    # Expenses
    ("Alimentación", TransactionType.EXPENSE, "utensils"),
    ("Transporte", TransactionType.EXPENSE, "bus"),
    ("Vivienda", TransactionType.EXPENSE, "home"),
    ("Entretenimiento", TransactionType.EXPENSE, "film"),
    ("Salud", TransactionType.EXPENSE, "heart"),
    ("Educación", TransactionType.EXPENSE, "book"),
    ("Compras", TransactionType.EXPENSE, "shopping-bag"),
    ("Servicios", TransactionType.EXPENSE, "wifi"),
    ("Restaurantes", TransactionType.EXPENSE, "coffee"),
    ("Viajes", TransactionType.EXPENSE, "map"),
    ("Otros Gastos", TransactionType.EXPENSE, "circle"),
    # Income
    ("Freelance", TransactionType.INCOME, "laptop"),
    ("Nómina", TransactionType.INCOME, "briefcase"),
    ("Inversiones", TransactionType.INCOME, "trending-up"),
    ("Regalos", TransactionType.INCOME, "gift"),
    ("Otros Ingresos", TransactionType.INCOME, "plus-circle"),
)


def _to_category(row: dict[str, Any]) -> Category:
    try:
        return Category.model_validate(row)
    except ValidationError as e:
        raise RemoteError(f"Malformed category row {row.get('id')}: {e}") from e


class CategoryResolver:
    """
    Reads, creates and tidies categories for the signed-in owner.
    """

    def __init__(
        self,
        backend: DataBackend,
        audit_logger: Optional[AuditLogger] = None,
        savings_category_name: Optional[str] = None,
        savings_category_icon: Optional[str] = None,
        seed_threshold: Optional[int] = None,
    ):
        """
        Initialize the resolver.

        Args:
            backend: Data backend holding the categories collection
            audit_logger: Logger for housekeeping events
            savings_category_name: Label of the savings category
                                   (defaults to SavingsSettings.category_name)
            savings_category_icon: Icon used when creating it
            seed_threshold: Seed defaults when the owner has this many
                            categories or fewer (defaults to AppSettings)
        """
        settings = get_settings()
        self._backend = backend
        self._audit_logger = audit_logger or AuditLogger()
        self._savings_name = savings_category_name or settings.savings.category_name
        self._savings_icon = savings_category_icon or settings.savings.category_icon
        self._seed_threshold = (
            seed_threshold if seed_threshold is not None else settings.app.seed_threshold
        )
        self._seed_locks: dict[str, asyncio.Lock] = {}

    @property
    def savings_category_name(self) -> str:
        return self._savings_name

    async def _resolve_owner(self, owner_id: Optional[str]) -> Optional[str]:
        if owner_id:
            return owner_id
        return await self._backend.auth.current_owner()

    async def _fetch(self, owner_id: str) -> list[Category]:
        rows = await self._backend.query(
            CATEGORIES,
            filters={"user_id": owner_id},
            order_by="name",
        )
        return [_to_category(row) for row in rows]

    @staticmethod
    def _duplicate_ids(categories: list[Category]) -> list[str]:
        """IDs of every category after the first with the same (name, type)."""
        seen: set[tuple[str, str]] = set()
        duplicates = []
        for category in categories:
            if category.key in seen:
                duplicates.append(category.id)
            else:
                seen.add(category.key)
        return duplicates

    async def _cleanup_duplicates(self, duplicate_ids: list[str]) -> bool:
        """Delete duplicates in one call. Returns False if the delete failed."""
        try:
            await self._backend.delete_many(CATEGORIES, duplicate_ids)
        except Exception as e:
            self._audit_logger.log_duplicate_cleanup_failed(duplicate_ids, str(e))
            return False
        self._audit_logger.log_duplicates_removed(duplicate_ids)
        return True

    async def _seed_defaults(self, owner_id: str) -> list[Category]:
        lock = self._seed_locks.setdefault(owner_id, asyncio.Lock())

        async with lock:
            # Re-read under the lock: a concurrent call may have seeded already
            categories = await self._fetch(owner_id)
            if len(categories) > self._seed_threshold:
                return categories

            existing_names = {c.name for c in categories}
            rows = [
                {"name": name, "type": ctype.value, "icon": icon, "user_id": owner_id}
                for name, ctype, icon in DEFAULT_CATEGORIES
                if name not in existing_names
            ]
            if not rows:
                return categories

            try:
                await self._backend.insert(CATEGORIES, rows)
            except Exception as e:
                self._audit_logger.log_category_seeding_failed(owner_id, str(e))
                return categories

            self._audit_logger.log_categories_seeded(owner_id, [r["name"] for r in rows])
            return await self._fetch(owner_id)

    async def list_categories(self, owner_id: Optional[str] = None) -> list[Category]:
        """
        All categories of the owner, ordered by name.

        Duplicates are removed and defaults seeded as a side effect.
        Without an owner (no session) the list is empty.

        Raises:
            RemoteError: If the categories cannot be read
        """
        owner = await self._resolve_owner(owner_id)
        if owner is None:
            return []

        categories = await self._fetch(owner)

        duplicate_ids = self._duplicate_ids(categories)
        if duplicate_ids:
            if await self._cleanup_duplicates(duplicate_ids):
                categories = await self._fetch(owner)
            else:
                doomed = set(duplicate_ids)
                categories = [c for c in categories if c.id not in doomed]

        if len(categories) <= self._seed_threshold:
            categories = await self._seed_defaults(owner)

        return categories

    async def get_category(self, category_id: str) -> Optional[Category]:
        """A single category by ID, or None if it doesn't exist."""
        rows = await self._backend.query(CATEGORIES, filters={"id": category_id}, limit=1)
        return _to_category(rows[0]) if rows else None

    async def create_category(
        self,
        name: str,
        category_type: TransactionType,
        icon: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> Category:
        """
        Insert a new category for the owner.

        Raises:
            NotAuthenticatedError: If there is no owner
            RemoteError: If the insert fails
        """
        owner = await self._resolve_owner(owner_id)
        if owner is None:
            raise NotAuthenticatedError()

        category_type = TransactionType(category_type)
        rows = await self._backend.insert(CATEGORIES, [{
            "name": name,
            "type": category_type.value,
            "icon": icon,
            "user_id": owner,
        }])
        if not rows:
            raise RemoteError(f"Backend returned no row for new category {name}")

        category = _to_category(rows[0])
        self._audit_logger.log_category_created(
            category.id, category.name, category.type.value
        )
        return category

    async def find_or_create_savings_category(
        self,
        owner_id: Optional[str] = None,
    ) -> Category:
        """
        The expense category that tags auto-generated savings.

        Raises:
            NotAuthenticatedError: If there is no owner
            RemoteError: If reading or creating fails
        """
        categories = await self.list_categories(owner_id)
        for category in categories:
            if category.name == self._savings_name and category.type == TransactionType.EXPENSE:
                return category

        return await self.create_category(
            name=self._savings_name,
            category_type=TransactionType.EXPENSE,
            icon=self._savings_icon,
            owner_id=owner_id,
        )

    async def default_category(
        self,
        category_type: TransactionType,
        owner_id: Optional[str] = None,
    ) -> Category:
        """
        First category of the given type, creating "General" if none exists.

        Used when the user records a transaction without picking a category.
        """
        category_type = TransactionType(category_type)
        for category in await self.list_categories(owner_id):
            if category.type == category_type and category.name != self._savings_name:
                return category

        return await self.create_category(
            name=FALLBACK_CATEGORY_NAME,
            category_type=category_type,
            icon=FALLBACK_CATEGORY_ICON,
            owner_id=owner_id,
        )
