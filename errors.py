from typing import Optional


class TransactionRejected(Exception):
    """A single transaction was refused. The ledger is left untouched."""

    code = "TRANSACTION_REJECTED"

    def __init__(self, detail: str, *, tx: Optional[int] = None, client: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.tx = tx
        self.client = client


class FrozenAccountError(TransactionRejected):
    code = "FROZEN_ACCOUNT"


class InvalidAdjustmentError(TransactionRejected):
    code = "INVALID_ADJUSTMENT"


class MissingAmountError(TransactionRejected):
    code = "MISSING_AMOUNT"


class NonFiniteAmountError(TransactionRejected):
    code = "NON_FINITE_AMOUNT"


class DuplicateTransactionError(TransactionRejected):
    code = "DUPLICATE_TRANSACTION"


class UnknownTransactionError(TransactionRejected):
    code = "UNKNOWN_TRANSACTION"


class ClientMismatchError(TransactionRejected):
    code = "CLIENT_MISMATCH"


class WrongLifecycleStateError(TransactionRejected):
    code = "WRONG_LIFECYCLE_STATE"


class InvariantViolationError(TransactionRejected):
    code = "INVARIANT_VIOLATION"


class LedgerConsistencyError(RuntimeError):
    """Internal state is inconsistent (an adjustment without its account)."""


class MalformedRecordError(ValueError):
    """A delimited input row could not be turned into a transaction record."""

    def __init__(self, line: int, reason: str):
        super().__init__(f"line {line}: {reason}")
        self.line = line
        self.reason = reason
