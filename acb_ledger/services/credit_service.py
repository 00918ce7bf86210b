"""Credit scoring service - recomputes and persists borrower scores"""

import logging
from typing import Callable
from datetime import datetime
from sqlalchemy.orm import Session
from acb_ledger.config import settings
from acb_ledger.domain.models import CreditScore
from acb_ledger.domain.scoring import calculate_credit_score
from acb_ledger.infrastructure.database.concurrency import run_atomic
from acb_ledger.infrastructure.database.repositories import (
    CreditScoreRepository,
    LoanRepository,
    UserRepository,
    to_loan,
)
from acb_ledger.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class CreditScoringService:
    """Derives credit scores from settled loan history"""

    def __init__(
        self,
        db: Session,
        base_borrow_allowance: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.base_borrow_allowance = base_borrow_allowance or settings.base_borrow_allowance
        self.clock = clock
        self.users = UserRepository(db)
        self.scores = CreditScoreRepository(db)
        self.loans = LoanRepository(db)

    def get_credit_score(self, user_id: int) -> CreditScore:
        """Stored score, or the neutral default (500 / C) when none exists"""
        return self.scores.get(user_id) or CreditScore(user_id=user_id)

    def recompute(self, user_id: int) -> CreditScore:
        """
        Replay the user's settled loans and persist the result.

        Runs inside the caller's transaction; does not commit. Unknown users
        get the neutral default and nothing is written.
        """
        if self.users.get(user_id) is None:
            return CreditScore(user_id=user_id)

        loans = [to_loan(record) for record in self.loans.get_by_user(user_id)]
        score = calculate_credit_score(
            user_id,
            loans,
            self.base_borrow_allowance,
            calculated_at=self.clock(),
        )
        saved = self.scores.save(score)
        logger.info(
            "Credit score recalculated",
            extra={"user_id": user_id, "score": saved.score, "tier": saved.tier.value},
        )
        return saved

    def recompute_and_commit(self, user_id: int) -> CreditScore:
        return run_atomic(self.db, "recompute_credit_score", lambda: self.recompute(user_id))
