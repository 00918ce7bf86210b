"""Data access layer for ledger entities"""

from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from acb_ledger.infrastructure.database.models import (
    POOL_ID,
    CreditPool,
    CreditScoreRecord,
    LedgerTransaction,
    LoanRecord,
    LpPositionRecord,
    NftMint,
    User,
)
from acb_ledger.domain.models import (
    CreditScore,
    Loan,
    LoanStatus,
    LpPosition,
    PoolState,
    Tier,
    TransactionType,
)
from acb_ledger.utils.date_utils import as_utc


class UserRepository:
    """Repository for users"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_by_open_id(self, open_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.open_id == open_id).first()

    def get_by_nullifier(self, nullifier_hash: str) -> Optional[User]:
        return self.db.query(User).filter(User.verification_nullifier == nullifier_hash).first()

    def upsert(
        self,
        open_id: str,
        signed_in_at: datetime,
        name: Optional[str] = None,
        email: Optional[str] = None,
        login_method: Optional[str] = None,
        role: Optional[str] = None,
    ) -> Tuple[User, bool]:
        """Create or refresh a user by external identity. Returns (user, created)."""
        user = self.get_by_open_id(open_id)
        created = user is None
        if created:
            user = User(open_id=open_id, role=role or "user")
            self.db.add(user)
        elif role is not None:
            user.role = role

        # Only overwrite profile fields the caller supplied
        if name is not None:
            user.name = name
        if email is not None:
            user.email = email
        if login_method is not None:
            user.login_method = login_method
        user.last_signed_in = signed_in_at

        self.db.flush()
        return user, created


class CreditScoreRepository:
    """Repository for credit scores"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> Optional[CreditScore]:
        record = self._get_record(user_id)
        return to_credit_score(record) if record else None

    def save(self, score: CreditScore) -> CreditScore:
        """Insert or update the user's score row"""
        record = self._get_record(score.user_id)
        if record is None:
            record = CreditScoreRecord(user_id=score.user_id)
            self.db.add(record)

        record.score = score.score
        record.tier = score.tier
        record.total_loans = score.total_loans
        record.successful_repayments = score.successful_repayments
        record.defaults = score.defaults
        if score.last_calculated is not None:
            record.last_calculated = score.last_calculated
        self.db.flush()
        return to_credit_score(record)

    def _get_record(self, user_id: int) -> Optional[CreditScoreRecord]:
        return self.db.query(CreditScoreRecord).filter(CreditScoreRecord.user_id == user_id).first()


class PoolRepository:
    """Repository for the singleton credit pool"""

    def __init__(self, db: Session):
        self.db = db

    def get(self) -> Optional[CreditPool]:
        return self.db.get(CreditPool, POOL_ID)

    def get_for_update(self) -> Optional[CreditPool]:
        """Load the pool row with a row lock (no-op on SQLite)"""
        return (
            self.db.query(CreditPool)
            .filter(CreditPool.id == POOL_ID)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def create(
        self,
        base_interest_rate: int,
        utilization_coefficient: int,
        credit_coefficient: int,
    ) -> CreditPool:
        pool = CreditPool(
            id=POOL_ID,
            base_interest_rate=base_interest_rate,
            utilization_coefficient=utilization_coefficient,
            credit_coefficient=credit_coefficient,
        )
        self.db.add(pool)
        self.db.flush()
        return pool

    def apply_state(self, record: CreditPool, state: PoolState) -> None:
        """Write balances back; rate parameters are not changed here"""
        record.total_liquidity = str(state.total_liquidity)
        record.total_borrowed = str(state.total_borrowed)
        record.risk_reserve = str(state.risk_reserve)
        record.total_lp_tokens = str(state.total_lp_tokens)
        record.lp_epoch = state.lp_epoch


class LpPositionRepository:
    """Repository for liquidity provider positions"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> Optional[LpPositionRecord]:
        return self.db.query(LpPositionRecord).filter(LpPositionRecord.user_id == user_id).first()

    def save(self, position: LpPosition) -> LpPositionRecord:
        record = self.get(position.user_id)
        if record is None:
            record = LpPositionRecord(user_id=position.user_id, pool_id=POOL_ID)
            self.db.add(record)
        record.deposited_amount = str(position.deposited_amount)
        record.lp_tokens = str(position.lp_tokens)
        record.epoch = position.epoch
        self.db.flush()
        return record


class LoanRepository:
    """Repository for loans"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: int,
        amount: int,
        interest_rate: int,
        duration: int,
        borrowed_at: datetime,
        due_date: datetime,
        credit_score_at_borrow: int,
    ) -> LoanRecord:
        """Persist a new active loan"""
        record = LoanRecord(
            user_id=user_id,
            pool_id=POOL_ID,
            amount=str(amount),
            interest_rate=interest_rate,
            duration=duration,
            status=LoanStatus.ACTIVE,
            borrowed_at=borrowed_at,
            due_date=due_date,
            repaid_amount="0",
            credit_score_at_borrow=credit_score_at_borrow,
        )
        self.db.add(record)
        self.db.flush()  # Get ID without committing
        return record

    def get(self, loan_id: int, for_update: bool = False) -> Optional[LoanRecord]:
        query = self.db.query(LoanRecord).filter(LoanRecord.id == loan_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def get_by_user(self, user_id: int) -> List[LoanRecord]:
        return (
            self.db.query(LoanRecord)
            .filter(LoanRecord.user_id == user_id)
            .order_by(LoanRecord.id)
            .all()
        )

    def apply(self, record: LoanRecord, loan: Loan) -> None:
        """Write lifecycle fields back to the row"""
        record.status = loan.status
        record.repaid_amount = str(loan.repaid_amount)
        record.repaid_at = loan.repaid_at
        record.defaulted_at = loan.defaulted_at


class TransactionRepository:
    """Append-only repository for the audit log"""

    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        user_id: int,
        type: TransactionType,
        amount: int,
        related_loan_id: Optional[int] = None,
        tx_hash: Optional[str] = None,
    ) -> LedgerTransaction:
        record = LedgerTransaction(
            user_id=user_id,
            type=type,
            amount=str(amount),
            related_loan_id=related_loan_id,
            related_pool_id=POOL_ID,
            tx_hash=tx_hash,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get_by_user(self, user_id: int, limit: int = 100) -> List[LedgerTransaction]:
        """Most recent first"""
        return (
            self.db.query(LedgerTransaction)
            .filter(LedgerTransaction.user_id == user_id)
            .order_by(LedgerTransaction.id.desc())
            .limit(limit)
            .all()
        )


class NftMintRepository:
    """Repository for credit NFT mint records"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_user(self, user_id: int) -> Optional[NftMint]:
        return self.db.query(NftMint).filter(NftMint.user_id == user_id).first()

    def get_by_nullifier(self, nullifier_hash: str) -> Optional[NftMint]:
        return self.db.query(NftMint).filter(NftMint.nullifier_hash == nullifier_hash).first()

    def create(self, user_id: int, token_id: int, nullifier_hash: str, credit_score: int, tier: Tier) -> NftMint:
        record = NftMint(
            user_id=user_id,
            token_id=token_id,
            nullifier_hash=nullifier_hash,
            credit_score=credit_score,
            tier=tier,
        )
        self.db.add(record)
        self.db.flush()
        return record


def to_credit_score(record: CreditScoreRecord) -> CreditScore:
    return CreditScore(
        user_id=record.user_id,
        score=record.score,
        tier=Tier(record.tier),
        total_loans=record.total_loans,
        successful_repayments=record.successful_repayments,
        defaults=record.defaults,
        last_calculated=as_utc(record.last_calculated),
    )


def to_pool_state(record: CreditPool) -> PoolState:
    return PoolState(
        total_liquidity=int(record.total_liquidity),
        total_borrowed=int(record.total_borrowed),
        risk_reserve=int(record.risk_reserve),
        total_lp_tokens=int(record.total_lp_tokens),
        base_interest_rate=record.base_interest_rate,
        utilization_coefficient=record.utilization_coefficient,
        credit_coefficient=record.credit_coefficient,
        lp_epoch=record.lp_epoch or 0,
    )


def to_lp_position(record: LpPositionRecord) -> LpPosition:
    return LpPosition(
        user_id=record.user_id,
        deposited_amount=int(record.deposited_amount),
        lp_tokens=int(record.lp_tokens),
        epoch=record.epoch or 0,
    )


def to_loan(record: LoanRecord) -> Loan:
    return Loan(
        id=record.id,
        user_id=record.user_id,
        amount=int(record.amount),
        interest_rate=record.interest_rate,
        duration=record.duration,
        status=LoanStatus(record.status),
        borrowed_at=as_utc(record.borrowed_at),
        due_date=as_utc(record.due_date),
        repaid_amount=int(record.repaid_amount or "0"),
        credit_score_at_borrow=record.credit_score_at_borrow,
        repaid_at=as_utc(record.repaid_at),
        defaulted_at=as_utc(record.defaulted_at),
    )
