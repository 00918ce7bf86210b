"""Loan terms, interest accrual and lifecycle transitions"""

from dataclasses import replace
from datetime import datetime
from typing import Iterable, Tuple
from acb_ledger.domain.models import Loan, LoanStatus, Tier
from acb_ledger.domain.exceptions import AlreadySettledError, InvalidAmountError, NotDueError
from acb_ledger.domain.pool import ensure_amount
from acb_ledger.domain.rates import BASIS_POINTS
from acb_ledger.utils.date_utils import SECONDS_PER_YEAR, add_days, as_utc, elapsed_seconds

# Borrowing limit multiplier per tier, in basis points of the base allowance
TIER_MULTIPLIER_BPS = {
    Tier.A: 30_000,  # 3x
    Tier.B: 20_000,  # 2x
    Tier.C: 10_000,  # 1x
    Tier.D: 2_500,  # 0.25x
}


def max_borrow(score: int, tier: Tier, base_borrow_allowance: int) -> int:
    """
    Borrowing limit for a score/tier.

    limit = allowance * tier_multiplier * score / 1000

    A neutral borrower (500, C) may borrow half the base allowance; a perfect
    A borrower three times it.
    """
    multiplier = TIER_MULTIPLIER_BPS[Tier(tier)]
    return base_borrow_allowance * multiplier * score // (BASIS_POINTS * 1000)


def open_principal(loans: Iterable[Loan]) -> int:
    """Principal still out on a borrower's active loans"""
    return sum(loan.amount for loan in loans if loan.status == LoanStatus.ACTIVE)


def borrowing_headroom(limit: int, loans: Iterable[Loan]) -> int:
    """What is left of the borrowing limit once open loans are counted"""
    return max(limit - open_principal(loans), 0)


def validate_terms(amount: int, duration_days: int, min_days: int, max_days: int) -> None:
    ensure_amount(amount, "Loan amount")
    if not min_days <= duration_days <= max_days:
        raise InvalidAmountError(
            f"Duration must be between {min_days} and {max_days} days",
            duration_days=duration_days,
        )


def due_date_for(borrowed_at: datetime, duration_days: int) -> datetime:
    return add_days(as_utc(borrowed_at), duration_days)


def accrued_interest(loan: Loan, at: datetime) -> int:
    """
    Simple APR interest from borrow time to `at`, rounded up.

    interest = ceil(principal * rate_bps * elapsed / (10000 * year))

    Accrual continues past the due date until the loan is settled.
    """
    elapsed = elapsed_seconds(loan.borrowed_at, at)
    numerator = loan.amount * loan.interest_rate * elapsed
    denominator = BASIS_POINTS * SECONDS_PER_YEAR
    return -(-numerator // denominator)


def total_owed(loan: Loan, at: datetime) -> int:
    return loan.amount + accrued_interest(loan, at)


def outstanding(loan: Loan, at: datetime) -> int:
    return max(total_owed(loan, at) - loan.repaid_amount, 0)


def ensure_active(loan: Loan) -> None:
    if loan.status != LoanStatus.ACTIVE:
        raise AlreadySettledError(loan.id, loan.status.value)


def apply_repayment(loan: Loan, amount: int, at: datetime) -> Tuple[Loan, int]:
    """
    Apply a (possibly partial) repayment.

    Partial payments accumulate in repaid_amount and leave the loan active.
    Once the cumulative amount covers total owed the loan is repaid; any
    excess over what is owed is not taken.

    Returns (updated_loan, amount_applied).
    """
    ensure_amount(amount, "Repayment amount")
    ensure_active(loan)

    remaining = outstanding(loan, at)
    if amount < remaining:
        return replace(loan, repaid_amount=loan.repaid_amount + amount), amount

    settled = replace(
        loan,
        status=LoanStatus.REPAID,
        repaid_amount=loan.repaid_amount + remaining,
        repaid_at=as_utc(at),
    )
    return settled, remaining


def apply_default(loan: Loan, at: datetime) -> Loan:
    """Transition an overdue active loan to defaulted"""
    ensure_active(loan)
    if as_utc(at) <= as_utc(loan.due_date):
        raise NotDueError(loan.id, as_utc(loan.due_date).isoformat())
    return replace(loan, status=LoanStatus.DEFAULTED, defaulted_at=as_utc(at))
