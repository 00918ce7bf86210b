"""Unit tests for loan limits, interest accrual and lifecycle transitions"""

import pytest
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from acb_ledger.domain.exceptions import AlreadySettledError, InvalidAmountError, NotDueError
from acb_ledger.domain.loans import (
    accrued_interest,
    apply_default,
    apply_repayment,
    borrowing_headroom,
    due_date_for,
    max_borrow,
    outstanding,
    total_owed,
    validate_terms,
)
from acb_ledger.domain.models import MAX_AMOUNT, Loan, LoanStatus, Tier
from acb_ledger.domain.scoring import determine_tier

ALLOWANCE = 10**18
START = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def loan() -> Loan:
    """73e15 wei at 15% for 30 days: exactly 9e14 interest at term"""
    return Loan(
        id=1,
        user_id=1,
        amount=73 * 10**15,
        interest_rate=1500,
        duration=30,
        status=LoanStatus.ACTIVE,
        borrowed_at=START,
        due_date=due_date_for(START, 30),
    )


@pytest.mark.parametrize(
    "score,tier,expected",
    [
        (500, Tier.C, ALLOWANCE // 2),
        (1000, Tier.A, 3 * ALLOWANCE),
        (700, Tier.B, ALLOWANCE * 14 // 10),
        (400, Tier.D, ALLOWANCE // 10),
        (0, Tier.D, 0),
    ],
)
def test_max_borrow_by_score_and_tier(score, tier, expected):
    assert max_borrow(score, tier, ALLOWANCE) == expected


def test_max_borrow_monotone_in_score():
    limits = [max_borrow(s, determine_tier(s), ALLOWANCE) for s in range(0, 1001, 25)]
    assert limits == sorted(limits)


@pytest.mark.parametrize("amount,duration", [(0, 30), (-1, 30), (100, 0), (100, 366), (MAX_AMOUNT + 1, 30)])
def test_validate_terms_rejects(amount, duration):
    with pytest.raises(InvalidAmountError):
        validate_terms(amount, duration, 1, 365)


def test_headroom_counts_only_active_loans(loan: Loan):
    repaid = replace(loan, id=2, status=LoanStatus.REPAID)
    defaulted = replace(loan, id=3, status=LoanStatus.DEFAULTED)
    limit = ALLOWANCE // 2

    assert borrowing_headroom(limit, []) == limit
    assert borrowing_headroom(limit, [loan, repaid, defaulted]) == limit - loan.amount
    assert borrowing_headroom(loan.amount - 1, [loan]) == 0


def test_due_date_is_borrow_time_plus_duration():
    assert due_date_for(START, 30) == START + timedelta(days=30)


def test_interest_accrues_linearly_and_rounds_up(loan: Loan):
    assert accrued_interest(loan, START) == 0
    assert accrued_interest(loan, START + timedelta(days=30)) == 9 * 10**14
    # One second of interest is fractional and rounds up to a whole wei
    one_second = accrued_interest(loan, START + timedelta(seconds=1))
    assert one_second == -(-(73 * 10**15 * 1500) // (10_000 * 365 * 86_400))


def test_interest_keeps_accruing_after_due_date(loan: Loan):
    assert accrued_interest(loan, START + timedelta(days=60)) == 18 * 10**14


def test_partial_repayment_keeps_loan_active(loan: Loan):
    at = START + timedelta(days=30)

    updated, applied = apply_repayment(loan, 10**15, at)

    assert applied == 10**15
    assert updated.status == LoanStatus.ACTIVE
    assert updated.repaid_amount == 10**15
    assert outstanding(updated, at) == total_owed(loan, at) - 10**15


def test_full_repayment_settles_and_caps_at_owed(loan: Loan):
    at = START + timedelta(days=30)
    owed = total_owed(loan, at)

    updated, applied = apply_repayment(loan, owed + 12345, at)

    assert applied == owed
    assert updated.status == LoanStatus.REPAID
    assert updated.repaid_amount == owed
    assert updated.repaid_at == at


def test_partial_then_final_repayment(loan: Loan):
    at = START + timedelta(days=30)
    first, _ = apply_repayment(loan, 3 * 10**16, at)
    second, applied = apply_repayment(first, 10**17, at)

    assert applied == total_owed(loan, at) - 3 * 10**16
    assert second.status == LoanStatus.REPAID
    assert second.repaid_amount == total_owed(loan, at)


def test_repay_settled_loan_rejected(loan: Loan):
    settled, _ = apply_repayment(loan, 10**18, START + timedelta(days=1))
    with pytest.raises(AlreadySettledError):
        apply_repayment(settled, 1, START + timedelta(days=2))


def test_repay_non_positive_rejected(loan: Loan):
    with pytest.raises(InvalidAmountError):
        apply_repayment(loan, 0, START)


def test_default_before_or_at_due_rejected(loan: Loan):
    with pytest.raises(NotDueError):
        apply_default(loan, START + timedelta(days=29))
    with pytest.raises(NotDueError):
        apply_default(loan, loan.due_date)


def test_default_after_due(loan: Loan):
    at = loan.due_date + timedelta(seconds=1)
    defaulted = apply_default(loan, at)

    assert defaulted.status == LoanStatus.DEFAULTED
    assert defaulted.defaulted_at == at
    assert defaulted.repaid_at is None


def test_default_repaid_loan_rejected(loan: Loan):
    settled, _ = apply_repayment(loan, 10**18, START + timedelta(days=1))
    with pytest.raises(AlreadySettledError):
        apply_default(settled, START + timedelta(days=60))
