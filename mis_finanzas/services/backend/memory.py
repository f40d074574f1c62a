"""
In-Memory Backend Implementation

Mirrors the Supabase behaviour closely enough for tests and offline use:
- IDs and created_at are assigned on insert
- Rows are returned as copies, never as live references
- Joins embed the referenced row (or None)
- Queries see only rows of the signed-in owner when the collection
  carries a user_id column (row-level security)
"""

import copy
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

from mis_finanzas.services.backend.interface import (
    AuthSession,
    DataBackend,
    Join,
    ObjectStorage,
    RemoteError,
)


RpcHandler = Callable[[Optional[str], dict[str, Any]], Any]


class InMemoryAuth(AuthSession):
    """Auth session with a settable owner."""

    def __init__(self, owner_id: Optional[str] = None):
        self._owner_id = owner_id

    async def current_owner(self) -> Optional[str]:
        return self._owner_id

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    def sign_in(self, owner_id: str) -> None:
        self._owner_id = owner_id

    def sign_out(self) -> None:
        self._owner_id = None


class InMemoryBackend(DataBackend):
    """
    Dict-backed implementation of the data backend.

    Remote procedures are registered with register_rpc(); each handler
    receives the current owner ID and the call parameters.
    """

    def __init__(self, owner_id: Optional[str] = "user-1"):
        self._auth = InMemoryAuth(owner_id)
        self._tables: dict[str, list[dict[str, Any]]] = {}
        self._rpc_handlers: dict[str, RpcHandler] = {}

    @property
    def auth(self) -> InMemoryAuth:
        return self._auth

    def table(self, collection: str) -> list[dict[str, Any]]:
        """Raw rows of a collection, for seeding and inspecting state."""
        return self._tables.setdefault(collection, [])

    def register_rpc(self, function: str, handler: RpcHandler) -> None:
        self._rpc_handlers[function] = handler

    def _visible(self, row: dict[str, Any]) -> bool:
        return "user_id" not in row or row["user_id"] == self._auth.owner_id

    def _find(self, collection: str, row_id: Any) -> Optional[dict[str, Any]]:
        for row in self.table(collection):
            if row.get("id") == row_id:
                return row
        return None

    async def query(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        join: Optional[Join] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        rows = [
            row for row in self.table(collection)
            if self._visible(row)
            and all(row.get(col) == value for col, value in (filters or {}).items())
        ]

        if order_by:
            # NULLs last ascending and first descending, as Postgres does
            rows.sort(
                key=lambda r: (r.get(order_by) is None, r.get(order_by) or ""),
                reverse=descending,
            )

        if limit is not None:
            rows = rows[:limit]

        results = []
        for row in rows:
            result = copy.deepcopy(row)
            if join is not None:
                referenced = self._find(join.collection, row.get(join.foreign_key))
                result[join.alias] = copy.deepcopy(referenced) if referenced else None
            results.append(result)
        return results

    async def insert(
        self,
        collection: str,
        rows: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        inserted = []
        for row in rows:
            stored = copy.deepcopy(row)
            stored.setdefault("id", str(uuid4()))
            stored.setdefault("created_at", datetime.now(timezone.utc).isoformat())
            if self._find(collection, stored["id"]) is not None:
                raise RemoteError(
                    f"duplicate key value violates unique constraint on {collection}.id"
                )
            self.table(collection).append(stored)
            inserted.append(copy.deepcopy(stored))
        return inserted

    async def update(
        self,
        collection: str,
        row_id: str,
        changes: dict[str, Any],
    ) -> Optional[dict[str, Any]]:
        row = self._find(collection, row_id)
        if row is None or not self._visible(row):
            return None
        row.update(copy.deepcopy(changes))
        return copy.deepcopy(row)

    async def delete(self, collection: str, row_id: str) -> None:
        await self.delete_many(collection, [row_id])

    async def delete_many(self, collection: str, row_ids: list[str]) -> None:
        doomed = set(row_ids)
        self._tables[collection] = [
            row for row in self.table(collection)
            if not (row.get("id") in doomed and self._visible(row))
        ]

    async def rpc(self, function: str, params: dict[str, Any]) -> Any:
        handler = self._rpc_handlers.get(function)
        if handler is None:
            raise RemoteError(f"Could not find the function {function}")
        try:
            return handler(self._auth.owner_id, params)
        except RemoteError:
            raise
        except Exception as e:
            raise RemoteError(f"Remote procedure {function} failed: {e}") from e


class InMemoryObjectStorage(ObjectStorage):
    """Dict-backed file bucket."""

    def __init__(self, base_url: str = "memory://receipts"):
        self._base_url = base_url.rstrip("/")
        self._files: dict[str, dict[str, Any]] = {}

    @property
    def paths(self) -> list[str]:
        return sorted(self._files)

    async def upload(
        self,
        path: str,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        if path in self._files:
            raise RemoteError(f"The resource already exists: {path}")
        self._files[path] = {
            "id": str(uuid4()),
            "content": bytes(content),
            "created_at": datetime.now(timezone.utc).isoformat(),
            "metadata": {"size": len(content), "mimetype": content_type},
        }
        return path

    async def list_files(
        self,
        prefix: str,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        folder = prefix.rstrip("/") + "/"
        entries = []
        for path in sorted(self._files):
            if not path.startswith(folder):
                continue
            name = path[len(folder):]
            if "/" in name:
                continue
            stored = self._files[path]
            entries.append({
                "name": name,
                "id": stored["id"],
                "created_at": stored["created_at"],
                "metadata": dict(stored["metadata"]),
            })
        return entries[offset:offset + limit]

    async def get_public_url(self, path: str) -> str:
        return f"{self._base_url}/{path}"

    async def remove(self, paths: list[str]) -> None:
        for path in paths:
            self._files.pop(path, None)

    def read(self, path: str) -> bytes:
        return self._files[path]["content"]
