"""
Bizum Transfers

Peer-to-peer transfers between users identified by their Bizum code.
The transfer itself runs server-side in the "send_bizum" procedure,
which debits the sender and credits the recipient in one database
transaction. The client only looks up the recipient and calls it.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from mis_finanzas.audit import AuditLogger
from mis_finanzas.config import get_settings
from mis_finanzas.models.finance import BizumRecipient
from mis_finanzas.services.backend.interface import (
    DataBackend,
    NotAuthenticatedError,
    NotFoundError,
)
from mis_finanzas.services.transactions import TransactionValidationError


PROFILES = "profiles"
SEND_BIZUM = "send_bizum"
DEFAULT_CONCEPT = "Transferencia"


class BizumService:
    """Recipient lookup and transfers through the backend."""

    def __init__(
        self,
        backend: DataBackend,
        audit_logger: Optional[AuditLogger] = None,
        base_currency: Optional[str] = None,
    ):
        self._backend = backend
        self._audit_logger = audit_logger or AuditLogger()
        self._base_currency = base_currency or get_settings().app.base_currency

    async def find_recipient(self, code: str) -> BizumRecipient:
        """
        Look up the profile behind a Bizum code.

        Raises:
            NotFoundError: If no profile has this code
        """
        rows = await self._backend.query(
            PROFILES,
            filters={"bizum_code": code},
            limit=1,
        )
        if not rows:
            raise NotFoundError(f"Bizum code {code} not found")
        return BizumRecipient(code=code, full_name=rows[0].get("full_name"))

    async def send(
        self,
        code: str,
        amount: Any,
        currency: Optional[str] = None,
        concept: Optional[str] = None,
    ) -> Any:
        """
        Send money to the owner of a Bizum code.

        Returns:
            Whatever the procedure returns

        Raises:
            TransactionValidationError: If the amount is not a positive number
            NotAuthenticatedError: Without a session
            RemoteError: If the procedure fails (e.g. unknown code, no funds)
        """
        try:
            value = Decimal(str(amount))
        except InvalidOperation as e:
            raise TransactionValidationError(f"Invalid amount: {amount!r}") from e
        if not value.is_finite() or value <= 0:
            raise TransactionValidationError("Amount must be greater than zero")

        if await self._backend.auth.current_owner() is None:
            raise NotAuthenticatedError()

        currency = (currency or self._base_currency).upper()
        result = await self._backend.rpc(SEND_BIZUM, {
            "recipient_code": code,
            "amount": float(value),
            "currency": currency,
            "concept": concept or DEFAULT_CONCEPT,
        })
        self._audit_logger.log_bizum_sent(code, value, currency)
        return result

    async def my_code(self, owner_id: Optional[str] = None) -> Optional[str]:
        """The owner's own Bizum code, or None if they have none."""
        owner = owner_id or await self._backend.auth.current_owner()
        if owner is None:
            return None
        rows = await self._backend.query(PROFILES, filters={"id": owner}, limit=1)
        return rows[0].get("bizum_code") if rows else None
