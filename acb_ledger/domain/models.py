"""Domain models - pure Python dataclasses representing ledger entities

Monetary fields are integers in minor units (wei). Rates are basis points.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Tier(str, Enum):
    """Credit tier, A is best"""

    A = "A"
    B = "B"
    C = "C"
    D = "D"


class LoanStatus(str, Enum):
    ACTIVE = "active"
    REPAID = "repaid"
    DEFAULTED = "defaulted"


class TransactionType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    BORROW = "borrow"
    REPAY = "repay"
    LIQUIDATION = "liquidation"


NEUTRAL_SCORE = 500
DEFAULT_TIER = Tier.C

# Amounts are stored as decimal strings of at most 78 digits (uint256 range)
AMOUNT_DIGITS = 78
MAX_AMOUNT = 10**AMOUNT_DIGITS - 1


@dataclass
class CreditScore:
    """Borrower creditworthiness derived from settled loans"""

    user_id: int
    score: int = NEUTRAL_SCORE
    tier: Tier = DEFAULT_TIER
    total_loans: int = 0
    successful_repayments: int = 0
    defaults: int = 0
    last_calculated: Optional[datetime] = None


@dataclass
class PoolState:
    """In-memory view of the singleton liquidity pool"""

    total_liquidity: int = 0
    total_borrowed: int = 0
    risk_reserve: int = 0
    total_lp_tokens: int = 0
    base_interest_rate: int = 500
    utilization_coefficient: int = 1000
    credit_coefficient: int = 500
    lp_epoch: int = 0


@dataclass
class LpPosition:
    """Liquidity provider's share of the pool"""

    user_id: int
    deposited_amount: int = 0
    lp_tokens: int = 0
    epoch: int = 0


@dataclass
class Loan:
    """Unsecured loan drawn from the pool"""

    id: int
    user_id: int
    amount: int
    interest_rate: int
    duration: int
    status: LoanStatus
    borrowed_at: datetime
    due_date: datetime
    repaid_amount: int = 0
    credit_score_at_borrow: int = NEUTRAL_SCORE
    repaid_at: Optional[datetime] = None
    defaulted_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (LoanStatus.REPAID, LoanStatus.DEFAULTED)

    @property
    def settled_at(self) -> Optional[datetime]:
        return self.repaid_at if self.status == LoanStatus.REPAID else self.defaulted_at
