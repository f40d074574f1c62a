"""
Abstract Backend Interface

DESIGN DECISION: Services never talk to the hosted backend directly.
They receive a DataBackend (and an ObjectStorage for files) at construction.
This allows us to:
1. Use the Supabase client in production
2. Use in-memory storage for testing and offline use
3. Keep business logic decoupled from the remote client

The interface is intentionally small: named collections, equality filters,
ordering, one-level joins, and by-id mutations. Row-level access is scoped
to the authenticated owner by the backend itself.
"""

from abc import ABC, abstractmethod
from typing import Any, NamedTuple, Optional


class Join(NamedTuple):
    """
    Embed a referenced row in each result.

    Join("category", "categories", "category_id") adds row["category"]
    holding the categories row whose id equals row["category_id"].
    """
    alias: str
    collection: str
    foreign_key: str


class AuthSession(ABC):
    """Access to the signed-in owner."""

    @abstractmethod
    async def current_owner(self) -> Optional[str]:
        """
        Return the signed-in owner's ID, or None without a session.

        Raises:
            RemoteError: If the session could not be checked
        """
        pass


class DataBackend(ABC):
    """
    Abstract interface for table-like remote collections.

    Rows are plain dicts as the backend returns them; services turn
    them into models.
    """

    @property
    @abstractmethod
    def auth(self) -> AuthSession:
        pass

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        join: Optional[Join] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """
        Read rows matching every equality filter.

        Args:
            collection: Collection (table) name
            filters: {column: value} equality filters
            order_by: Column to order by
            descending: Reverse the ordering
            join: Referenced row to embed in each result
            limit: Maximum number of rows

        Returns:
            Matching rows

        Raises:
            RemoteError: If the backend call fails
        """
        pass

    @abstractmethod
    async def insert(
        self,
        collection: str,
        rows: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """
        Insert rows and return them as persisted (with server-assigned IDs).

        Raises:
            RemoteError: If the backend call fails
        """
        pass

    @abstractmethod
    async def update(
        self,
        collection: str,
        row_id: str,
        changes: dict[str, Any],
    ) -> Optional[dict[str, Any]]:
        """
        Update one row by ID.

        Returns:
            The updated row, or None if no row had this ID

        Raises:
            RemoteError: If the backend call fails
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, row_id: str) -> None:
        """
        Delete one row by ID. Deleting a missing row is not an error.

        Raises:
            RemoteError: If the backend call fails
        """
        pass

    @abstractmethod
    async def delete_many(self, collection: str, row_ids: list[str]) -> None:
        """
        Delete every row whose ID is in row_ids.

        Raises:
            RemoteError: If the backend call fails
        """
        pass

    @abstractmethod
    async def rpc(self, function: str, params: dict[str, Any]) -> Any:
        """
        Call a remote procedure.

        Raises:
            RemoteError: If the procedure fails
        """
        pass


class ObjectStorage(ABC):
    """
    Abstract interface for a file bucket.

    Paths are "<owner>/<file name>"; callers build them.
    """

    @abstractmethod
    async def upload(
        self,
        path: str,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Store content at path.

        Returns:
            The stored path

        Raises:
            RemoteError: If the upload fails (including an existing path)
        """
        pass

    @abstractmethod
    async def list_files(
        self,
        prefix: str,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """
        List files directly under prefix, sorted by name.

        Each entry has at least "name"; "id", "created_at" and
        "metadata" when the backend knows them.
        """
        pass

    @abstractmethod
    async def get_public_url(self, path: str) -> str:
        pass

    @abstractmethod
    async def remove(self, paths: list[str]) -> None:
        """
        Remove files. Missing paths are ignored.

        Raises:
            RemoteError: If the backend call fails
        """
        pass


class BackendError(Exception):
    """Base exception for backend operations."""
    pass


class RemoteError(BackendError):
    """A backend call failed."""
    pass


class NotFoundError(BackendError):
    """Referenced entity not found."""
    pass


class NotAuthenticatedError(BackendError):
    """No signed-in owner for an operation that needs one."""

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)
