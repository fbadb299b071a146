"""
Account aggregates and their durable storage.

The account is a single flat record (balance, all-time high, bankruptcy
count, last-round P&L, rescue usage, round number) stored under a fixed
key. A missing or unreadable record is treated as a fresh account.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union
import json
import logging
import os
import tempfile

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "ROUNDSIM_ACCOUNT_V1"


class AdRescueUsage(BaseModel):
    """Rescue usage counter and last-use timestamp (epoch ms)."""
    count: int = Field(default=0, ge=0)
    last_used_at: float = 0.0


class Account(BaseModel):
    """Account-level aggregates persisted across rounds."""
    balance: float = Field(default=10000.0, ge=0)
    all_time_high: float = 10000.0
    bankrupt_count: int = Field(default=0, ge=0)
    last_round_pnl: float = 0.0
    ad_rescue: AdRescueUsage = Field(default_factory=AdRescueUsage)
    round_number: int = Field(default=0, ge=0)

    model_config = {"validate_assignment": True}

    @classmethod
    def fresh(cls, starting_balance: float = 10000.0) -> "Account":
        return cls(balance=starting_balance, all_time_high=starting_balance)


class AccountStore(ABC):
    """Durable single-record storage for the account."""

    @abstractmethod
    def load(self) -> Optional[Account]:
        """Return the stored account, or None if there is no usable record."""

    @abstractmethod
    def save(self, account: Account) -> None:
        """Overwrite the stored record."""

    def load_or_create(self, starting_balance: float = 10000.0) -> Account:
        account = self.load()
        if account is None:
            logger.info("No prior account record, starting fresh")
            return Account.fresh(starting_balance)
        return account


def _parse_record(raw: Any) -> Optional[Account]:
    if raw is None:
        return None
    try:
        return Account.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Ignoring invalid account record: {e}")
        return None


class MemoryAccountStore(AccountStore):
    """In-process store, mostly for tests and ephemeral sessions."""

    def __init__(self, record: Optional[Dict[str, Any]] = None):
        self.record = record
        self.save_count = 0

    def load(self) -> Optional[Account]:
        return _parse_record(self.record)

    def save(self, account: Account) -> None:
        self.record = account.model_dump()
        self.save_count += 1


class JsonFileAccountStore(AccountStore):
    """
    JSON file holding a mapping of storage keys to records.

    Only the entry under ``key`` is read or replaced; other keys in the
    file are preserved.
    """

    def __init__(self, path: Union[str, Path], key: str = DEFAULT_STORAGE_KEY):
        self.path = Path(path).expanduser()
        self.key = key

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read account store {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Unexpected account store layout in {self.path}")
            return {}
        return data

    def load(self) -> Optional[Account]:
        return _parse_record(self._read_all().get(self.key))

    def save(self, account: Account) -> None:
        data = self._read_all()
        data[self.key] = account.model_dump()

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix='.account-', suffix='.json')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except Exception:
            os.unlink(tmp_path)
            raise
        logger.debug(f"Account saved to {self.path}")
