import math
from dataclasses import dataclass, replace
from typing import Callable, List, Optional

import structlog

from errors import (
    ClientMismatchError,
    DuplicateTransactionError,
    FrozenAccountError,
    InvalidAdjustmentError,
    InvariantViolationError,
    LedgerConsistencyError,
    MissingAmountError,
    NonFiniteAmountError,
    TransactionRejected,
    UnknownTransactionError,
    WrongLifecycleStateError,
)
from models import ClientRecord, TransactionRecord, TransactionType
from repositories import (
    Account,
    AccountRepository,
    Adjustment,
    AdjustmentRepository,
    AdjustmentState,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class Snapshot:
    """Copy of the values a transition may change. The live records are never handed out."""
    amount: float
    balance: float
    disputing: float
    state: AdjustmentState


Transition = Callable[[Snapshot], Snapshot]


def apply_transition(account: Account, adjustment: Adjustment, transition: Transition) -> None:
    """Run ``transition`` on a snapshot and commit the result only if every invariant holds.

    Raises a ``TransactionRejected`` subclass, leaving ``account`` and
    ``adjustment`` untouched, when the account is frozen, the adjustment is
    already invalid, the transition refuses the current state, or the
    candidate balance/disputing values are out of bounds.
    """
    if account.frozen:
        raise FrozenAccountError("transaction attempt on frozen account")
    if adjustment.state is AdjustmentState.invalid:
        raise InvalidAdjustmentError("referenced transaction was charged back")

    candidate = transition(Snapshot(
        amount=adjustment.amount,
        balance=account.balance,
        disputing=account.disputing,
        state=adjustment.state,
    ))

    if not math.isfinite(candidate.balance) or candidate.balance < 0.0:
        raise InvariantViolationError("transaction invalidated client balance")
    # Negative when a withdrawal is under dispute
    if not math.isfinite(candidate.disputing):
        raise InvariantViolationError("transaction invalidated client dispute balance")

    adjustment.state = candidate.state
    account.balance = candidate.balance
    account.disputing = candidate.disputing
    account.frozen = candidate.state is AdjustmentState.invalid


def accredit(tx: Snapshot) -> Snapshot:
    # Withdrawals carry a negative amount
    return replace(tx, balance=tx.balance + tx.amount)


def dispute(tx: Snapshot) -> Snapshot:
    if tx.state is not AdjustmentState.valid:
        raise WrongLifecycleStateError("disputing a transaction that is not valid")
    return replace(
        tx,
        balance=tx.balance - tx.amount,
        disputing=tx.disputing + tx.amount,
        state=AdjustmentState.under_dispute,
    )


def resolve(tx: Snapshot) -> Snapshot:
    if tx.state is not AdjustmentState.under_dispute:
        raise WrongLifecycleStateError("resolving a transaction not under dispute")
    return replace(
        tx,
        balance=tx.balance + tx.amount,
        disputing=tx.disputing - tx.amount,
        state=AdjustmentState.valid,
    )


def chargeback(tx: Snapshot) -> Snapshot:
    if tx.state is not AdjustmentState.under_dispute:
        raise WrongLifecycleStateError("charging back a transaction not under dispute")
    return replace(
        tx,
        disputing=tx.disputing - tx.amount,
        state=AdjustmentState.invalid,
    )


SIGNS = {
    TransactionType.deposit: 1.0,
    TransactionType.withdrawal: -1.0,
}

TRANSITIONS = {
    TransactionType.dispute: dispute,
    TransactionType.resolve: resolve,
    TransactionType.chargeback: chargeback,
}


class TransactionEngine:
    def __init__(self, account_repo: AccountRepository, adjustment_repo: AdjustmentRepository):
        self.account_repo = account_repo
        self.adjustment_repo = adjustment_repo

    def apply(self, record: TransactionRecord) -> None:
        """Apply one transaction or raise ``TransactionRejected`` without changing anything."""
        try:
            if record.type in SIGNS:
                self._insert_adjustment(record)
            else:
                self._update_adjustment(record)
        except TransactionRejected as e:
            e.tx, e.client = record.tx, record.client
            logger.warning(
                "Transaction rejected",
                tx=record.tx,
                client=record.client,
                type=record.type.value,
                reason=e.code,
                detail=e.detail
            )
            raise

        logger.debug(
            "Transaction applied",
            tx=record.tx,
            client=record.client,
            type=record.type.value
        )

    def _insert_adjustment(self, record: TransactionRecord) -> None:
        if record.amount is None:
            raise MissingAmountError("transaction amount missing")
        if not math.isfinite(record.amount):
            raise NonFiniteAmountError("invalid transaction amount")
        adjustment = Adjustment(
            account_id=record.client,
            amount=SIGNS[record.type] * record.amount,
        )
        if not self.adjustment_repo.insert_if_absent(record.tx, adjustment):
            raise DuplicateTransactionError("transaction already exists")

        account = self.account_repo.get_or_create(record.client)
        try:
            apply_transition(account, adjustment, accredit)
        except TransactionRejected:
            # Only an accepted adjustment keeps the id
            self.adjustment_repo.discard(record.tx)
            raise

    def _update_adjustment(self, record: TransactionRecord) -> None:
        adjustment = self.adjustment_repo.get(record.tx)
        if adjustment is None:
            raise UnknownTransactionError("transaction reference does not exist")
        if adjustment.account_id != record.client:
            raise ClientMismatchError("transaction reference client-mismatch")

        account = self.account_repo.get(record.client)
        if account is None:
            raise LedgerConsistencyError(f"transaction {record.tx} exists without an account")

        apply_transition(account, adjustment, TRANSITIONS[record.type])

    def clients(self) -> List[ClientRecord]:
        return [_project(client_id, account) for client_id, account in self.account_repo.items()]

    def client(self, client_id: int) -> Optional[ClientRecord]:
        account = self.account_repo.get(client_id)
        if account is None:
            return None
        return _project(client_id, account)


def _project(client_id: int, account: Account) -> ClientRecord:
    return ClientRecord(
        client=client_id,
        available=account.balance,
        held=account.disputing,
        total=account.total,
        locked=account.frozen,
    )


# Factory function for dependency injection
def get_transaction_engine(
    account_repo: AccountRepository,
    adjustment_repo: AdjustmentRepository
) -> TransactionEngine:
    return TransactionEngine(account_repo, adjustment_repo)
