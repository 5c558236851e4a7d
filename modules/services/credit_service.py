"""Account and credit bookkeeping."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Protocol

from modules.pipelines.errors import InsufficientCreditsError

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    """Billable operations."""

    GENERATION = "generation"
    UPSCALE = "upscale"
    ANALYSIS = "analysis"
    STYLE_GENERATION = "style_generation"


CREDIT_COSTS: Dict[Operation, int] = {
    Operation.GENERATION: 1,
    Operation.UPSCALE: 2,
    Operation.ANALYSIS: 1,
    Operation.STYLE_GENERATION: 1,
}


def credit_cost(operation: Operation, count: int = 1) -> int:
    """Total cost of running ``operation`` ``count`` times."""
    if operation is Operation.ANALYSIS:
        return CREDIT_COSTS[operation]
    return CREDIT_COSTS[operation] * max(1, count)


@dataclass(slots=True)
class Account:
    uid: str
    credits: int
    is_admin: bool = False


class AccountStore(Protocol):
    """Persistence seam for accounts."""

    def load(self, uid: str) -> Optional[Account]:
        ...

    def save(self, account: Account) -> None:
        ...


class InMemoryAccountStore:
    """Account store kept in process memory."""

    def __init__(self, accounts: Optional[Dict[str, Account]] = None) -> None:
        self._accounts: Dict[str, Account] = dict(accounts or {})

    def load(self, uid: str) -> Optional[Account]:
        account = self._accounts.get(uid)
        return Account(account.uid, account.credits, account.is_admin) if account else None

    def save(self, account: Account) -> None:
        self._accounts[account.uid] = Account(account.uid, account.credits, account.is_admin)


class JsonAccountStore:
    """Account store backed by a single JSON file keyed by uid."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            logger.error("Invalid accounts file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self, uid: str) -> Optional[Account]:
        entry = self._read().get(uid)
        if not isinstance(entry, dict):
            return None
        return Account(
            uid=uid,
            credits=int(entry.get("credits", 0)),
            is_admin=bool(entry.get("is_admin", False)),
        )

    def save(self, account: Account) -> None:
        data = self._read()
        entry = asdict(account)
        entry.pop("uid")
        data[account.uid] = entry
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")


class CreditService:
    """Check and debit credits for one user."""

    def __init__(self, store: AccountStore, uid: str, default_credits: int = 50) -> None:
        self.store = store
        self.uid = uid
        self.default_credits = default_credits
        self._lock = threading.Lock()

    def load_account(self) -> Account:
        """Return the user's account, creating it with the default balance if missing."""
        account = self.store.load(self.uid)
        if account is None:
            account = Account(uid=self.uid, credits=self.default_credits)
            self.store.save(account)
            logger.info("Created account %s with %d credits", self.uid, account.credits)
        return account

    def ensure_affordable(self, cost: int) -> Account:
        account = self.load_account()
        if not account.is_admin and account.credits < cost:
            raise InsufficientCreditsError(cost, account.credits)
        return account

    def charge(self, cost: int) -> Account:
        """Debit ``cost`` credits once; admins are never debited."""
        with self._lock:
            account = self.load_account()
            if account.is_admin:
                return account
            if account.credits < cost:
                raise InsufficientCreditsError(cost, account.credits)
            account.credits -= cost
            self.store.save(account)
            logger.info("Debited %d credits from %s, %d left", cost, self.uid, account.credits)
            return account
