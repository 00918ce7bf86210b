"""Pydantic schemas for API request/response validation

Monetary amounts travel as decimal-digit strings of minor units (wei);
requests also accept plain integers.
"""

import re
from typing import Annotated, List, Optional
from pydantic import BaseModel, BeforeValidator, Field
from acb_ledger.domain.models import AMOUNT_DIGITS, MAX_AMOUNT

_DIGITS = re.compile(r"^-?\d+$")


def _parse_amount(value):
    if isinstance(value, bool):
        raise ValueError("amount must be an integer or a string of digits")
    if isinstance(value, str):
        if not _DIGITS.match(value.strip()):
            raise ValueError("amount must be an integer or a string of digits")
        if len(value.strip().lstrip("-")) > AMOUNT_DIGITS:
            raise ValueError(f"amount must be at most {AMOUNT_DIGITS} digits")
        value = int(value.strip())
    if not isinstance(value, int):
        raise ValueError("amount must be an integer or a string of digits")
    if value > MAX_AMOUNT:
        raise ValueError(f"amount must be at most {AMOUNT_DIGITS} digits")
    return value


Amount = Annotated[int, BeforeValidator(_parse_amount)]
TxHash = Annotated[Optional[str], Field(max_length=66, description="On-chain transaction hash")]


class ErrorResponse(BaseModel):
    error: str
    detail: str


# Users


class LoginRequest(BaseModel):
    """Request body for POST /v1/users/login"""

    open_id: str = Field(..., min_length=1, max_length=64, description="External identity id")
    name: Optional[str] = None
    email: Optional[str] = Field(default=None, max_length=320)
    login_method: Optional[str] = Field(default=None, max_length=64)


class UserResponse(BaseModel):
    user_id: int
    open_id: str
    name: Optional[str] = None
    role: str
    verified: bool


class VerificationRequest(BaseModel):
    """Proof produced by the identity provider's client SDK"""

    nullifier_hash: str = Field(..., min_length=1, max_length=128)
    proof: str = Field(..., min_length=1)
    merkle_root: str = Field(..., min_length=1)
    verification_level: str = "orb"


class VerificationStatusResponse(BaseModel):
    user_id: int
    verified: bool


# Credit


class CreditScoreResponse(BaseModel):
    """Response for GET /v1/credit-score"""

    user_id: int
    score: int
    tier: str
    total_loans: int
    successful_repayments: int
    defaults: int
    last_calculated: Optional[str] = None


# Pool


class PoolResponse(BaseModel):
    """Response for GET /v1/pool"""

    total_liquidity: str
    total_borrowed: str
    risk_reserve: str
    total_lp_tokens: str
    available_liquidity: str
    utilization_bps: int
    base_interest_rate: int
    utilization_coefficient: int
    credit_coefficient: int
    reference_rate_bps: int


class LpPositionResponse(BaseModel):
    user_id: int
    deposited_amount: str
    lp_tokens: str
    value: str
    accrued_interest: str


class DepositRequest(BaseModel):
    """Request body for POST /v1/pool/deposit"""

    user_id: int
    amount: Amount
    tx_hash: TxHash = None


class DepositResponse(BaseModel):
    minted: str
    position: LpPositionResponse


class WithdrawRequest(BaseModel):
    """Request body for POST /v1/pool/withdraw"""

    user_id: int
    lp_amount: Amount
    tx_hash: TxHash = None


class WithdrawResponse(BaseModel):
    paid_out: str
    position: LpPositionResponse


# Loans


class LoanRequest(BaseModel):
    """Request body for POST /v1/loans"""

    user_id: int
    amount: Amount
    duration_days: int = Field(..., description="Loan term in days")
    tx_hash: TxHash = None


class LoanResponse(BaseModel):
    loan_id: int
    user_id: int
    amount: str
    interest_rate: int
    duration: int
    status: str
    borrowed_at: str
    due_date: str
    repaid_at: Optional[str] = None
    defaulted_at: Optional[str] = None
    repaid_amount: str
    credit_score_at_borrow: int
    amount_owed: str


class LoanListResponse(BaseModel):
    user_id: int
    loans: List[LoanResponse]


class LoanQuoteResponse(BaseModel):
    user_id: int
    score: int
    tier: str
    max_borrow: str
    rate_bps: int


class RepayRequest(BaseModel):
    """Request body for POST /v1/loans/{loan_id}/repay"""

    user_id: int
    amount: Amount
    tx_hash: TxHash = None


class RepayResponse(BaseModel):
    loan: LoanResponse
    applied: str
    total_owed: str
    outstanding: str


# Transactions


class TransactionItem(BaseModel):
    """Single audit log entry"""

    transaction_id: int
    type: str
    amount: str
    related_loan_id: Optional[int] = None
    related_pool_id: Optional[int] = None
    tx_hash: Optional[str] = None
    created_at: str


class TransactionHistoryResponse(BaseModel):
    """Response for GET /v1/transactions"""

    user_id: int
    transactions: List[TransactionItem]


# NFT


class NftMintRequest(BaseModel):
    user_id: int
    token_id: int = Field(..., ge=0)


class NftMintResponse(BaseModel):
    user_id: int
    token_id: int
    credit_score: int
    tier: str
    created_at: str
