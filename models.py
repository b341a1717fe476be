from pydantic import BaseModel, Field, field_validator
from enum import Enum
from typing import Literal, Optional
from datetime import datetime


MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"


class TransactionRecord(BaseModel):
    tx: int = Field(
        ...,
        ge=0,
        le=MAX_TRANSACTION_ID,
        description="Transaction identifier, unique across the run"
    )
    type: TransactionType = Field(..., description="Transaction type")
    client: int = Field(
        ...,
        ge=0,
        le=MAX_CLIENT_ID,
        description="Client identifier"
    )
    amount: Optional[float] = Field(
        None,
        description="Required for deposit/withdrawal, ignored otherwise"
    )

    @field_validator('type', mode='before')
    @classmethod
    def normalize_type(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator('amount', mode='before')
    @classmethod
    def blank_amount_is_missing(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def __str__(self) -> str:
        return f"{self.type.value} client={self.client} tx={self.tx} amount={self.amount}"


class ClientRecord(BaseModel):
    client: int = Field(..., description="Client identifier")
    available: float = Field(..., description="Funds available for withdrawal or dispute")
    held: float = Field(..., description="Funds held pending dispute resolution")
    total: float = Field(..., description="available + held")
    locked: bool = Field(..., description="Account frozen by a chargeback")


class ApplyResponse(BaseModel):
    status: Literal["applied"] = Field(..., description="Transaction status")
    tx: int = Field(..., description="Transaction identifier")
    account: ClientRecord = Field(..., description="Client view after the transaction")
    timestamp: datetime = Field(default_factory=datetime.now, description="Processing timestamp")


class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Error description")
    error_code: str = Field(..., description="Machine-readable error code")
    timestamp: datetime = Field(default_factory=datetime.now, description="Error timestamp")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(default_factory=datetime.now)
    accounts_count: int = Field(..., description="Number of client accounts")
    transactions_recorded: int = Field(..., description="Deposits and withdrawals on the ledger")
