"""
Savings Configuration Store

Holds the user's savings toggles on the device and survives restarts.

DESIGN DECISION: One JSON file, one named entry ("savings-storage" by
default) holding the serialized SavingsConfiguration. Other entries in
the same file are preserved on save. Writes go to a temp file in the
same directory which then replaces the target, so a crash mid-write
never leaves a half-written file.

The store is synchronous on purpose: the interceptor reads the cached
invested amount and writes the new sum with no await in between, so
concurrent interceptor runs never lose an increment.
"""

import json
import os
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError

from mis_finanzas.audit import AuditLogger
from mis_finanzas.config import get_settings
from mis_finanzas.models.savings import (
    FundChoice,
    SavingsConfiguration,
    SavingsConfigurationUpdate,
)


class SavingsStoreError(Exception):
    """An invalid change was submitted to the savings configuration."""
    pass


class SavingsConfigStore:
    """
    Persistent savings configuration.

    Usage:
        store = SavingsConfigStore()
        store.toggle_round_up()
        store.get().round_up_enabled  # True, also after a restart
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        key: Optional[str] = None,
        default_retention_percentage: Optional[int] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Initialize the store. Nothing is read until first use.

        Args:
            path: JSON file holding the configuration
                  (defaults to SavingsSettings.config_path)
            key: Entry name inside the file
            default_retention_percentage: Percentage used when nothing is stored
            audit_logger: Logger for changes and unreadable files
        """
        savings_settings = get_settings().savings
        self._path = Path(path).expanduser() if path else savings_settings.config_path
        self._key = key or savings_settings.storage_key
        self._default_percentage = (
            default_retention_percentage
            if default_retention_percentage is not None
            else savings_settings.default_retention_percentage
        )
        self._audit_logger = audit_logger or AuditLogger()
        self._config: Optional[SavingsConfiguration] = None

    @property
    def path(self) -> Path:
        return self._path

    def _defaults(self) -> SavingsConfiguration:
        return SavingsConfiguration(retention_percentage=self._default_percentage)

    def _read_file(self) -> dict[str, Any]:
        with open(self._path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object in {self._path}")
        return data

    def load(self) -> SavingsConfiguration:
        """
        Read the configuration from disk.

        A missing file or entry yields the defaults. An unreadable or
        invalid file is logged and also yields the defaults.
        """
        if not self._path.exists():
            self._config = self._defaults()
            return self._config.model_copy()

        try:
            entry = self._read_file().get(self._key)
            if entry is None:
                config = self._defaults()
            else:
                config = SavingsConfiguration.model_validate(entry)
        except (OSError, ValueError) as e:
            # pydantic's ValidationError is a ValueError
            self._audit_logger.log_error(
                error_type="savings_config_unreadable",
                error_message=str(e),
                details={"path": str(self._path)},
            )
            config = self._defaults()

        self._config = config
        return config.model_copy()

    def save(self, config: SavingsConfiguration) -> None:
        """Write the configuration atomically, keeping other entries."""
        self._path.parent.mkdir(parents=True, exist_ok=True)

        data: dict[str, Any] = {}
        if self._path.exists():
            try:
                data = self._read_file()
            except (OSError, ValueError):
                data = {}
        data[self._key] = config.model_dump(mode="json")

        with tempfile.NamedTemporaryFile(
            "w", delete=False, dir=self._path.parent, encoding="utf-8", suffix=".tmp"
        ) as tmp:
            try:
                json.dump(data, tmp, indent=2, sort_keys=True, ensure_ascii=False)
                tmp.flush()
            except BaseException:
                tmp.close()
                os.unlink(tmp.name)
                raise

        os.replace(tmp.name, self._path)
        self._config = config.model_copy()

    def get(self) -> SavingsConfiguration:
        """Current configuration (a copy; mutate through set())."""
        if self._config is None:
            return self.load()
        return self._config.model_copy()

    def set(
        self,
        update: Optional[SavingsConfigurationUpdate] = None,
        **changes: Any,
    ) -> SavingsConfiguration:
        """
        Merge a partial change, persist it and return the new snapshot.

        Accepts either a SavingsConfigurationUpdate or keyword arguments.

        Raises:
            SavingsStoreError: If a field is unknown or out of bounds
        """
        try:
            if update is None:
                update = SavingsConfigurationUpdate(**changes)
            elif changes:
                update = SavingsConfigurationUpdate(
                    **{**update.model_dump(exclude_unset=True), **changes}
                )
            patch = update.model_dump(exclude_unset=True)
            current = self.get()
            config = SavingsConfiguration.model_validate(
                {**current.model_dump(), **patch}
            )
        except ValidationError as e:
            raise SavingsStoreError(f"Invalid savings configuration: {e}") from e

        self.save(config)
        if patch:
            self._audit_logger.log_savings_config_changed(
                update.model_dump(mode="json", exclude_unset=True)
            )
        return config.model_copy()

    # =========================================================================
    # Convenience actions
    # =========================================================================

    def toggle_round_up(self) -> SavingsConfiguration:
        return self.set(round_up_enabled=not self.get().round_up_enabled)

    def toggle_retention(self) -> SavingsConfiguration:
        return self.set(retention_enabled=not self.get().retention_enabled)

    def set_retention_percentage(self, percentage: int) -> SavingsConfiguration:
        return self.set(retention_percentage=percentage)

    def set_invested_amount(self, amount: Decimal) -> SavingsConfiguration:
        return self.set(invested_amount=amount)

    def set_selected_fund(self, fund: Union[FundChoice, str]) -> SavingsConfiguration:
        return self.set(selected_fund=fund)

    def add_to_invested_amount(self, delta: Decimal) -> Decimal:
        """Add delta to the cached total and return the new total."""
        new_total = self.get().invested_amount + Decimal(delta)
        self.set(invested_amount=new_total)
        return new_total
