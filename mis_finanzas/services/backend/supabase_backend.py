"""
Supabase Backend Implementation

DESIGN DECISION: Supabase is the production backend because it bundles
what the app needs behind one client:
1. Postgres tables with row-level security (transactions, categories, profiles)
2. Auth sessions (the owner of every row)
3. Object storage for receipts
4. RPC for server-side operations such as Bizum transfers

TRADEOFFS:
- Every call is a network round trip; there is no local cache
- No multi-statement transactions from the client (the savings
  interceptor accepts partial application)

Reads and client creation are retried with tenacity. Inserts, updates
and deletes are NOT retried: a retry after a lost response would
duplicate the write.
"""

import inspect
from typing import Any, Optional

from supabase import AsyncClient, acreate_client
from tenacity import retry, stop_after_attempt, wait_exponential

from mis_finanzas.config import SupabaseSettings, get_settings
from mis_finanzas.services.backend.interface import (
    AuthSession,
    DataBackend,
    Join,
    ObjectStorage,
    RemoteError,
)


class SupabaseConnection:
    """
    Lazily created async Supabase client.

    One connection is built per process and shared by the backend,
    the auth session and the receipts bucket.
    """

    def __init__(self, settings: Optional[SupabaseSettings] = None):
        self._settings = settings or get_settings().supabase
        self._client: Optional[AsyncClient] = None

    @property
    def settings(self) -> SupabaseSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def connect(self) -> AsyncClient:
        """Create the client on first use."""
        if self._client is None:
            try:
                self._client = await acreate_client(
                    self._settings.url,
                    self._settings.key,
                )
            except Exception as e:
                raise RemoteError(f"Failed to connect to Supabase: {e}") from e
        return self._client


class SupabaseAuth(AuthSession):
    """Owner lookup through the Supabase auth session."""

    def __init__(self, connection: SupabaseConnection):
        self._connection = connection

    async def current_owner(self) -> Optional[str]:
        client = await self._connection.connect()
        try:
            session = await client.auth.get_session()
        except Exception as e:
            raise RemoteError(f"Failed to read auth session: {e}") from e
        if session is None or session.user is None:
            return None
        return session.user.id


class SupabaseBackend(DataBackend):
    """
    Supabase implementation of the data backend.

    Joins are expressed with PostgREST resource embedding:
    Join("category", "categories", "category_id") selects
    "*, category:categories(*)".
    """

    def __init__(self, connection: Optional[SupabaseConnection] = None):
        self._connection = connection or SupabaseConnection()
        self._auth = SupabaseAuth(self._connection)

    @property
    def auth(self) -> AuthSession:
        return self._auth

    @staticmethod
    def _select_clause(join: Optional[Join]) -> str:
        if join is None:
            return "*"
        return f"*, {join.alias}:{join.collection}(*)"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def query(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        join: Optional[Join] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        client = await self._connection.connect()
        try:
            request = client.table(collection).select(self._select_clause(join))
            for column, value in (filters or {}).items():
                request = request.eq(column, value)
            if order_by:
                request = request.order(order_by, desc=descending)
            if limit is not None:
                request = request.limit(limit)
            response = await request.execute()
            return list(response.data or [])
        except Exception as e:
            raise RemoteError(f"Failed to query {collection}: {e}") from e

    async def insert(
        self,
        collection: str,
        rows: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        client = await self._connection.connect()
        try:
            response = await client.table(collection).insert(rows).execute()
            return list(response.data or [])
        except Exception as e:
            raise RemoteError(f"Failed to insert into {collection}: {e}") from e

    async def update(
        self,
        collection: str,
        row_id: str,
        changes: dict[str, Any],
    ) -> Optional[dict[str, Any]]:
        client = await self._connection.connect()
        try:
            response = await (
                client.table(collection)
                .update(changes)
                .eq("id", row_id)
                .execute()
            )
        except Exception as e:
            raise RemoteError(f"Failed to update {collection}/{row_id}: {e}") from e
        return response.data[0] if response.data else None

    async def delete(self, collection: str, row_id: str) -> None:
        client = await self._connection.connect()
        try:
            await client.table(collection).delete().eq("id", row_id).execute()
        except Exception as e:
            raise RemoteError(f"Failed to delete {collection}/{row_id}: {e}") from e

    async def delete_many(self, collection: str, row_ids: list[str]) -> None:
        if not row_ids:
            return
        client = await self._connection.connect()
        try:
            await client.table(collection).delete().in_("id", row_ids).execute()
        except Exception as e:
            raise RemoteError(
                f"Failed to delete {len(row_ids)} rows from {collection}: {e}"
            ) from e

    async def rpc(self, function: str, params: dict[str, Any]) -> Any:
        client = await self._connection.connect()
        try:
            response = await client.rpc(function, params).execute()
        except Exception as e:
            raise RemoteError(f"Remote procedure {function} failed: {e}") from e
        return response.data


class SupabaseObjectStorage(ObjectStorage):
    """Supabase Storage bucket (receipts by default)."""

    def __init__(
        self,
        connection: Optional[SupabaseConnection] = None,
        bucket: Optional[str] = None,
    ):
        self._connection = connection or SupabaseConnection()
        self._bucket = bucket or self._connection.settings.receipts_bucket

    async def _bucket_api(self):
        client = await self._connection.connect()
        return client.storage.from_(self._bucket)

    async def upload(
        self,
        path: str,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        bucket = await self._bucket_api()
        file_options = {"content-type": content_type} if content_type else None
        try:
            await bucket.upload(path, content, file_options=file_options)
        except Exception as e:
            raise RemoteError(f"Failed to upload {path}: {e}") from e
        return path

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def list_files(
        self,
        prefix: str,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        bucket = await self._bucket_api()
        try:
            entries = await bucket.list(
                prefix,
                {
                    "limit": limit,
                    "offset": offset,
                    "sortBy": {"column": "name", "order": "asc"},
                },
            )
        except Exception as e:
            raise RemoteError(f"Failed to list {prefix}: {e}") from e
        return list(entries or [])

    async def get_public_url(self, path: str) -> str:
        bucket = await self._bucket_api()
        url = bucket.get_public_url(path)
        # storage3 made this a coroutine on the async client
        if inspect.isawaitable(url):
            url = await url
        return url

    async def remove(self, paths: list[str]) -> None:
        bucket = await self._bucket_api()
        try:
            await bucket.remove(paths)
        except Exception as e:
            raise RemoteError(f"Failed to remove {', '.join(paths)}: {e}") from e
