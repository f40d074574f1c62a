"""
Receipt Service

Receipt files live in object storage under one folder per owner:
"<owner>/<epoch millis>_<original file name>". The timestamp prefix keeps
two uploads of "ticket.jpg" apart and makes name order upload order.
"""

import time
from typing import Optional

from mis_finanzas.audit import AuditLogger
from mis_finanzas.models.finance import FileItem
from mis_finanzas.services.backend.interface import (
    AuthSession,
    NotAuthenticatedError,
    ObjectStorage,
)


LIST_LIMIT = 100


class ReceiptService:
    """
    Upload, list and delete the signed-in owner's receipts.

    Backend failures surface as RemoteError.
    """

    def __init__(
        self,
        storage: ObjectStorage,
        auth: AuthSession,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._auth = auth
        self._audit_logger = audit_logger or AuditLogger()

    async def _owner(self) -> str:
        owner = await self._auth.current_owner()
        if owner is None:
            raise NotAuthenticatedError()
        return owner

    async def upload(
        self,
        filename: str,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Store a receipt and return its path in the bucket.

        Raises:
            NotAuthenticatedError: Without a session
            RemoteError: If the upload fails
        """
        owner = await self._owner()
        path = f"{owner}/{int(time.time() * 1000)}_{filename}"
        stored = await self._storage.upload(path, content, content_type)
        self._audit_logger.log_receipt_uploaded(stored, len(content))
        return stored

    async def list_files(self) -> list[FileItem]:
        """Up to 100 receipts of the owner, sorted by name, with public URLs."""
        owner = await self._owner()
        entries = await self._storage.list_files(f"{owner}/", limit=LIST_LIMIT)

        files = []
        for entry in entries:
            name = entry["name"]
            url = await self._storage.get_public_url(f"{owner}/{name}")
            files.append(FileItem(
                id=entry.get("id") or name,
                name=name,
                url=url,
                created_at=entry.get("created_at"),
                metadata=entry.get("metadata"),
            ))
        return files

    async def public_url(self, path: str) -> str:
        """Public link for a stored path, e.g. to set as a transaction's file_url."""
        return await self._storage.get_public_url(path)

    async def delete(self, name: str) -> None:
        """
        Remove one receipt by its file name (as returned by list_files).

        Raises:
            NotAuthenticatedError: Without a session
            RemoteError: If the removal fails
        """
        owner = await self._owner()
        path = f"{owner}/{name}"
        await self._storage.remove([path])
        self._audit_logger.log_receipt_deleted(path)
