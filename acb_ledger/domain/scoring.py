"""Credit scoring engine - derives a 0-1000 score and tier from loan history"""

from datetime import datetime
from typing import Iterable, List
from acb_ledger.domain.models import CreditScore, Loan, LoanStatus, Tier, NEUTRAL_SCORE

MIN_SCORE = 0
MAX_SCORE = 1000

# Tier thresholds (inclusive lower bound), best first
TIER_THRESHOLDS = [
    (800, Tier.A),
    (650, Tier.B),
    (450, Tier.C),
    (MIN_SCORE, Tier.D),
]

REPAYMENT_BASE_INCREMENT = 10
REPAYMENT_MAX_INCREMENT = 50
DEFAULT_BASE_PENALTY = 150
DEFAULT_MAX_PENALTY = 200
SIZE_BONUS_CAP = 20
TERM_BONUS_CAP = 20


def determine_tier(score: int) -> Tier:
    """
    Map score to tier.

    - 800+:    A
    - 650-799: B
    - 450-649: C (the neutral 500 lands here)
    - 0-449:   D
    """
    for threshold, tier in TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return Tier.D


def clamp_score(score: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, score))


def _size_bonus(loan: Loan, base_borrow_allowance: int) -> int:
    if base_borrow_allowance <= 0:
        return 0
    return min(SIZE_BONUS_CAP, SIZE_BONUS_CAP * loan.amount // base_borrow_allowance)


def _term_bonus(loan: Loan) -> int:
    return min(TERM_BONUS_CAP, TERM_BONUS_CAP * loan.duration // 365)


def repayment_increment(loan: Loan, base_borrow_allowance: int) -> int:
    """
    Points earned by a repaid loan.

    On-time repayment earns a base increment plus bonuses for loan size
    (relative to the base allowance) and term length, capped at 50.
    Late repayment still counts as repaid but earns nothing.
    """
    if loan.repaid_at is None or loan.repaid_at > loan.due_date:
        return 0
    bonus = _size_bonus(loan, base_borrow_allowance) + _term_bonus(loan)
    return min(REPAYMENT_MAX_INCREMENT, REPAYMENT_BASE_INCREMENT + bonus)


def default_penalty(loan: Loan, base_borrow_allowance: int) -> int:
    """Points lost by a defaulted loan, capped at 200"""
    bonus = _size_bonus(loan, base_borrow_allowance) + _term_bonus(loan)
    return min(DEFAULT_MAX_PENALTY, DEFAULT_BASE_PENALTY + bonus)


def _settlement_order(loans: Iterable[Loan]) -> List[Loan]:
    terminal = [loan for loan in loans if loan.is_terminal]
    return sorted(terminal, key=lambda loan: (loan.settled_at or loan.due_date, loan.id))


def calculate_credit_score(
    user_id: int,
    loans: Iterable[Loan],
    base_borrow_allowance: int,
    calculated_at: datetime | None = None,
) -> CreditScore:
    """
    Replay settled loans from the neutral score.

    Active loans are ignored. The result depends only on the loan history,
    so recomputing an unchanged history yields the same score.
    """
    score = NEUTRAL_SCORE
    repaid = 0
    defaulted = 0

    settled = _settlement_order(loans)
    for loan in settled:
        if loan.status == LoanStatus.REPAID:
            repaid += 1
            score = clamp_score(score + repayment_increment(loan, base_borrow_allowance))
        else:
            defaulted += 1
            score = clamp_score(score - default_penalty(loan, base_borrow_allowance))

    return CreditScore(
        user_id=user_id,
        score=score,
        tier=determine_tier(score),
        total_loans=len(settled),
        successful_repayments=repaid,
        defaults=defaulted,
        last_calculated=calculated_at,
    )
