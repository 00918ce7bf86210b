"""Loan lifecycle manager - issuance, repayment and default"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple
from sqlalchemy.orm import Session
from acb_ledger.config import settings
from acb_ledger.domain import pool as pool_math
from acb_ledger.domain.exceptions import ExceedsLimitError, NotFoundError
from acb_ledger.domain.loans import (
    apply_default,
    apply_repayment,
    borrowing_headroom,
    due_date_for,
    max_borrow,
    outstanding,
    total_owed,
    validate_terms,
)
from acb_ledger.domain.models import Loan, LoanStatus, Tier, TransactionType
from acb_ledger.domain.rates import quote_for_pool
from acb_ledger.domain.scoring import determine_tier
from acb_ledger.infrastructure.database.concurrency import run_atomic
from acb_ledger.infrastructure.database.repositories import (
    LoanRepository,
    TransactionRepository,
    UserRepository,
    to_loan,
)
from acb_ledger.infrastructure.observability.logging import log_ledger_event
from acb_ledger.infrastructure.observability.metrics import loan_settlement_counter, loans_issued_counter
from acb_ledger.services.credit_service import CreditScoringService
from acb_ledger.services.pool_service import PoolService
from acb_ledger.utils.date_utils import utcnow


@dataclass
class LoanQuote:
    """What a borrower could borrow right now, net of open loans"""

    user_id: int
    score: int
    tier: Tier
    max_borrow: int
    rate_bps: int


@dataclass
class RepaymentResult:
    loan: Loan
    applied: int
    total_owed: int
    outstanding: int


class LoanService:
    """Orchestrates loans against pool accounting and credit scoring"""

    def __init__(
        self,
        db: Session,
        base_borrow_allowance: int | None = None,
        reserve_factor_bps: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.base_borrow_allowance = base_borrow_allowance or settings.base_borrow_allowance
        self.clock = clock
        self.pools = PoolService(db, reserve_factor_bps=reserve_factor_bps)
        self.credit = CreditScoringService(db, self.base_borrow_allowance, clock=clock)
        self.users = UserRepository(db)
        self.loans = LoanRepository(db)
        self.transactions = TransactionRepository(db)

    # Reads

    def quote(self, user_id: int) -> LoanQuote:
        if self.users.get(user_id) is None:
            raise NotFoundError("User", user_id)
        score = self.credit.get_credit_score(user_id)
        pool = self.pools.get_pool().state
        return LoanQuote(
            user_id=user_id,
            score=score.score,
            tier=score.tier,
            max_borrow=self._headroom(user_id, score.score, score.tier),
            rate_bps=quote_for_pool(pool, score.tier),
        )

    def get_user_loans(self, user_id: int) -> List[Loan]:
        return [to_loan(record) for record in self.loans.get_by_user(user_id)]

    def get_loan(self, user_id: int, loan_id: int) -> Loan:
        record = self.loans.get(loan_id)
        if record is None or record.user_id != user_id:
            raise NotFoundError("Loan", loan_id)
        return to_loan(record)

    def _headroom(self, user_id: int, score: int, tier: Tier) -> int:
        limit = max_borrow(score, tier, self.base_borrow_allowance)
        return borrowing_headroom(limit, self.get_user_loans(user_id))

    def amount_owed(self, loan: Loan) -> int:
        """Principal plus interest accrued to now (0 once settled)"""
        if loan.status != LoanStatus.ACTIVE:
            return 0
        return outstanding(loan, self.clock())

    # Mutations

    def request_loan(
        self,
        user_id: int,
        amount: int,
        duration_days: int,
        tx_hash: str | None = None,
    ) -> Loan:
        """
        Issue a loan.

        Flow:
        1. Validate terms, then check the amount against the borrowing limit
           for the user's score/tier less the principal of their open loans
        2. Quote the rate at current pool utilization
        3. Reserve liquidity in the pool
        4. Persist the active loan and a borrow transaction
        """
        validate_terms(amount, duration_days, settings.min_loan_duration_days, settings.max_loan_duration_days)

        def work() -> Loan:
            if self.users.get(user_id) is None:
                raise NotFoundError("User", user_id)

            # The pool lock also serializes a borrower's own concurrent requests
            record, state = self.pools.lock_pool()
            score = self.credit.get_credit_score(user_id)
            headroom = self._headroom(user_id, score.score, score.tier)
            if amount > headroom:
                raise ExceedsLimitError(requested=amount, max_borrow=headroom)

            rate = quote_for_pool(state, score.tier)
            self.pools.write_pool(record, pool_math.reserve(state, amount))

            now = self.clock()
            loan_record = self.loans.create(
                user_id=user_id,
                amount=amount,
                interest_rate=rate,
                duration=duration_days,
                borrowed_at=now,
                due_date=due_date_for(now, duration_days),
                credit_score_at_borrow=score.score,
            )
            self.transactions.append(
                user_id, TransactionType.BORROW, amount, related_loan_id=loan_record.id, tx_hash=tx_hash
            )
            return to_loan(loan_record)

        loan = run_atomic(self.db, "request_loan", work)
        loans_issued_counter.labels(tier=determine_tier(loan.credit_score_at_borrow).value).inc()
        log_ledger_event("borrow", user_id, amount, loan.id, rate_bps=loan.interest_rate)
        return loan

    def repay_loan(
        self,
        user_id: int,
        loan_id: int,
        amount: int,
        tx_hash: str | None = None,
    ) -> RepaymentResult:
        """
        Apply a repayment.

        Partial repayments accumulate and keep the loan active. Full repayment
        releases the principal, books interest into the pool and recomputes
        the borrower's credit score.
        """

        def work() -> RepaymentResult:
            pool_record, state = self.pools.lock_pool()
            record = self.loans.get(loan_id, for_update=True)
            if record is None or record.user_id != user_id:
                raise NotFoundError("Loan", loan_id)

            loan = to_loan(record)
            now = self.clock()
            owed = total_owed(loan, now)
            updated, applied = apply_repayment(loan, amount, now)
            self.loans.apply(record, updated)

            if updated.status == LoanStatus.REPAID:
                interest = updated.repaid_amount - loan.amount
                new_state = pool_math.release(state, loan.amount)
                new_state = pool_math.book_interest(new_state, interest, self.pools.reserve_factor_bps)
                self.pools.write_pool(pool_record, new_state)

            self.transactions.append(
                user_id, TransactionType.REPAY, applied, related_loan_id=loan_id, tx_hash=tx_hash
            )
            if updated.status == LoanStatus.REPAID:
                self.db.flush()
                self.credit.recompute(user_id)

            return RepaymentResult(
                loan=updated,
                applied=applied,
                total_owed=owed,
                outstanding=max(owed - updated.repaid_amount, 0),
            )

        result = run_atomic(self.db, "repay_loan", work)
        if result.loan.status == LoanStatus.REPAID:
            loan_settlement_counter.labels(status=LoanStatus.REPAID.value).inc()
        log_ledger_event("repay", user_id, result.applied, loan_id, status=result.loan.status.value)
        return result

    def mark_defaulted(self, loan_id: int) -> Loan:
        """
        Default an overdue loan. Triggered externally (cron or chain listener).

        Idempotent: an already defaulted loan is returned unchanged. The risk
        reserve absorbs the unrecovered principal before LPs do.
        """

        def work() -> Tuple[Loan, Optional[int]]:
            pool_record, state = self.pools.lock_pool()
            record = self.loans.get(loan_id, for_update=True)
            if record is None:
                raise NotFoundError("Loan", loan_id)

            loan = to_loan(record)
            if loan.status == LoanStatus.DEFAULTED:
                return loan, None

            updated = apply_default(loan, self.clock())
            self.loans.apply(record, updated)

            recovered = loan.repaid_amount
            loss = loan.amount - min(recovered, loan.amount)
            new_state = pool_math.release(state, loan.amount)
            new_state = pool_math.absorb_loss(new_state, loss)
            new_state = pool_math.book_interest(
                new_state, recovered - loan.amount, self.pools.reserve_factor_bps
            )
            self.pools.write_pool(pool_record, new_state)

            self.transactions.append(loan.user_id, TransactionType.LIQUIDATION, loss, related_loan_id=loan_id)
            self.db.flush()
            self.credit.recompute(loan.user_id)
            return updated, loss

        loan, loss = run_atomic(self.db, "mark_defaulted", work)
        if loss is not None:
            loan_settlement_counter.labels(status=LoanStatus.DEFAULTED.value).inc()
            log_ledger_event("liquidation", loan.user_id, loss, loan_id)
        return loan
