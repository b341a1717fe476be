from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple


class AdjustmentState(str, Enum):
    valid = "valid"
    under_dispute = "under_dispute"
    invalid = "invalid"


@dataclass
class Account:
    frozen: bool = False
    balance: float = 0.0
    disputing: float = 0.0

    @property
    def total(self) -> float:
        return self.balance + self.disputing


@dataclass
class Adjustment:
    """Committed effect of a deposit (positive amount) or withdrawal (negative)."""
    account_id: int
    amount: float
    state: AdjustmentState = AdjustmentState.valid


class AccountRepository(ABC):
    @abstractmethod
    def get(self, client_id: int) -> Optional[Account]:
        """Get account by client id. Returns None if it was never created."""
        pass

    @abstractmethod
    def get_or_create(self, client_id: int) -> Account:
        """Get account, creating a zero-valued unfrozen one on first access."""
        pass

    @abstractmethod
    def items(self) -> Iterator[Tuple[int, Account]]:
        """Iterate over (client id, account) pairs."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Get total number of accounts."""
        pass


class AdjustmentRepository(ABC):
    @abstractmethod
    def insert_if_absent(self, tx_id: int, adjustment: Adjustment) -> bool:
        """Store adjustment unless tx_id is taken. Returns False if it was."""
        pass

    @abstractmethod
    def discard(self, tx_id: int) -> None:
        """Drop an adjustment whose transaction was refused before it took effect."""
        pass

    @abstractmethod
    def get(self, tx_id: int) -> Optional[Adjustment]:
        """Get adjustment by transaction id."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Get total number of recorded adjustments."""
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {}

    def get(self, client_id: int) -> Optional[Account]:
        return self.accounts.get(client_id)

    def get_or_create(self, client_id: int) -> Account:
        return self.accounts.setdefault(client_id, Account())

    def items(self) -> Iterator[Tuple[int, Account]]:
        return iter(self.accounts.items())

    def count(self) -> int:
        return len(self.accounts)


class InMemoryAdjustmentRepository(AdjustmentRepository):
    def __init__(self):
        self.adjustments: Dict[int, Adjustment] = {}

    def insert_if_absent(self, tx_id: int, adjustment: Adjustment) -> bool:
        if tx_id in self.adjustments:
            return False
        self.adjustments[tx_id] = adjustment
        return True

    def discard(self, tx_id: int) -> None:
        self.adjustments.pop(tx_id, None)

    def get(self, tx_id: int) -> Optional[Adjustment]:
        return self.adjustments.get(tx_id)

    def count(self) -> int:
        return len(self.adjustments)


# Shared by the HTTP service; the CLI builds its own pair per run
_account_repo = InMemoryAccountRepository()
_adjustment_repo = InMemoryAdjustmentRepository()


def get_account_repository() -> AccountRepository:
    return _account_repo


def get_adjustment_repository() -> AdjustmentRepository:
    return _adjustment_repo


def reset_repositories():
    """Reset all repositories to an empty ledger (for testing only)."""
    global _account_repo, _adjustment_repo
    _account_repo = InMemoryAccountRepository()
    _adjustment_repo = InMemoryAdjustmentRepository()
