"""Unit tests for credit scoring logic"""

import pytest
from datetime import datetime, timedelta, timezone
from acb_ledger.domain.models import Loan, LoanStatus, Tier
from acb_ledger.domain.scoring import (
    calculate_credit_score,
    clamp_score,
    default_penalty,
    determine_tier,
    repayment_increment,
)

ALLOWANCE = 10**18
START = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_loan(
    loan_id: int,
    status: LoanStatus,
    amount: int = 10**16,
    duration: int = 10,
    settle_after_days: int | None = None,
) -> Loan:
    """Loan borrowed at START; settled `settle_after_days` later when terminal"""
    due = START + timedelta(days=duration)
    settled_at = START + timedelta(days=duration if settle_after_days is None else settle_after_days)
    return Loan(
        id=loan_id,
        user_id=1,
        amount=amount,
        interest_rate=1500,
        duration=duration,
        status=status,
        borrowed_at=START,
        due_date=due,
        repaid_at=settled_at if status == LoanStatus.REPAID else None,
        defaulted_at=settled_at if status == LoanStatus.DEFAULTED else None,
    )


@pytest.mark.parametrize(
    "score,expected",
    [
        (1000, Tier.A),
        (800, Tier.A),
        (799, Tier.B),
        (650, Tier.B),
        (649, Tier.C),
        (500, Tier.C),
        (450, Tier.C),
        (449, Tier.D),
        (0, Tier.D),
    ],
)
def test_determine_tier_boundaries(score, expected):
    assert determine_tier(score) == expected


def test_clamp_score():
    assert clamp_score(-40) == 0
    assert clamp_score(1200) == 1000
    assert clamp_score(512) == 512


def test_no_history_is_neutral():
    """Users with no settled loans sit at 500 / C"""
    score = calculate_credit_score(1, [], ALLOWANCE)

    assert score.score == 500
    assert score.tier == Tier.C
    assert score.total_loans == 0


def test_active_loans_do_not_count():
    score = calculate_credit_score(1, [make_loan(1, LoanStatus.ACTIVE)], ALLOWANCE)

    assert score.score == 500
    assert score.total_loans == 0


def test_on_time_repayment_increment_includes_bonuses():
    """Base 10, plus size bonus 20*amount/allowance and term bonus 20*days/365"""
    small = make_loan(1, LoanStatus.REPAID, amount=10**16, duration=10)
    large = make_loan(2, LoanStatus.REPAID, amount=ALLOWANCE // 2, duration=365)

    assert repayment_increment(small, ALLOWANCE) == 10
    assert repayment_increment(large, ALLOWANCE) == 10 + 10 + 20


def test_repayment_increment_capped():
    huge = make_loan(1, LoanStatus.REPAID, amount=5 * ALLOWANCE, duration=365)
    assert repayment_increment(huge, ALLOWANCE) == 50


def test_late_repayment_earns_nothing_but_counts():
    late = make_loan(1, LoanStatus.REPAID, duration=10, settle_after_days=12)

    assert repayment_increment(late, ALLOWANCE) == 0

    score = calculate_credit_score(1, [late], ALLOWANCE)
    assert score.score == 500
    assert score.successful_repayments == 1
    assert score.total_loans == 1


def test_default_penalty_includes_bonuses():
    assert default_penalty(make_loan(1, LoanStatus.DEFAULTED), ALLOWANCE) == 150
    huge = make_loan(2, LoanStatus.DEFAULTED, amount=5 * ALLOWANCE, duration=365)
    assert default_penalty(huge, ALLOWANCE) == 190


def test_repaid_never_lower_than_defaulted():
    """Same history except one loan repaid vs defaulted"""
    repaid = calculate_credit_score(1, [make_loan(1, LoanStatus.REPAID)], ALLOWANCE)
    defaulted = calculate_credit_score(1, [make_loan(1, LoanStatus.DEFAULTED)], ALLOWANCE)

    assert repaid.score > defaulted.score
    assert defaulted.score == 350
    assert defaulted.tier == Tier.D
    assert defaulted.defaults == 1


def test_score_clamped_at_bounds():
    defaults = [make_loan(i, LoanStatus.DEFAULTED, amount=5 * ALLOWANCE, duration=365) for i in range(1, 6)]
    assert calculate_credit_score(1, defaults, ALLOWANCE).score == 0

    repaid = [make_loan(i, LoanStatus.REPAID, amount=5 * ALLOWANCE, duration=365) for i in range(1, 31)]
    best = calculate_credit_score(1, repaid, ALLOWANCE)
    assert best.score == 1000
    assert best.tier == Tier.A


def test_clamping_applies_each_step():
    """Defaults bottom out at 0, so a later repayment starts from there"""
    history = [
        make_loan(1, LoanStatus.DEFAULTED, amount=5 * ALLOWANCE, duration=365),
        make_loan(2, LoanStatus.DEFAULTED, amount=5 * ALLOWANCE, duration=365),
        make_loan(3, LoanStatus.DEFAULTED, amount=5 * ALLOWANCE, duration=365),
        make_loan(4, LoanStatus.REPAID, duration=400),
    ]

    assert calculate_credit_score(1, history, ALLOWANCE).score == 30


def test_recompute_is_deterministic():
    history = [
        make_loan(1, LoanStatus.REPAID),
        make_loan(2, LoanStatus.DEFAULTED, duration=30),
        make_loan(3, LoanStatus.REPAID, duration=60),
    ]
    first = calculate_credit_score(1, history, ALLOWANCE)
    second = calculate_credit_score(1, list(reversed(history)), ALLOWANCE)

    assert first == second
    assert first.total_loans == 3
    assert first.successful_repayments == 2
    assert first.defaults == 1
