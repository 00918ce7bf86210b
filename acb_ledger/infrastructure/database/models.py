"""SQLAlchemy ORM models for the protocol ledger

Monetary columns hold decimal-digit strings of minor units (wei) so values
beyond 64 bits survive on every backend.
"""

from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Text, Enum
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
from acb_ledger.domain.models import AMOUNT_DIGITS, LoanStatus, Tier, TransactionType

Base = declarative_base()

AMOUNT_LENGTH = AMOUNT_DIGITS
POOL_ID = 1


def _enum(enum_cls, name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=lambda members: [m.value for m in members],
    )


class User(Base):
    """Identity anchor, created on first login and never deleted"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    open_id = Column(String(64), nullable=False, unique=True)
    name = Column(Text, nullable=True)
    email = Column(String(320), nullable=True)
    login_method = Column(String(64), nullable=True)
    role = Column(String(16), nullable=False, default="user")
    verification_nullifier = Column(String(128), nullable=True, unique=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    last_signed_in = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    credit_score = relationship("CreditScoreRecord", back_populates="user", uselist=False)


class CreditScoreRecord(Base):
    """Per-user credit score, written only by the scoring engine"""

    __tablename__ = "credit_scores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    score = Column(Integer, nullable=False, default=500)
    tier = Column(_enum(Tier, "credit_tier"), nullable=False, default=Tier.C)
    total_loans = Column(Integer, nullable=False, default=0)
    successful_repayments = Column(Integer, nullable=False, default=0)
    defaults = Column(Integer, nullable=False, default=0)
    last_calculated = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="credit_score")

    __mapper_args__ = {"version_id_col": version}


class CreditPool(Base):
    """Singleton liquidity pool"""

    __tablename__ = "credit_pools"

    id = Column(Integer, primary_key=True, default=POOL_ID)
    total_liquidity = Column(String(AMOUNT_LENGTH), nullable=False, default="0")
    total_borrowed = Column(String(AMOUNT_LENGTH), nullable=False, default="0")
    risk_reserve = Column(String(AMOUNT_LENGTH), nullable=False, default="0")
    total_lp_tokens = Column(String(AMOUNT_LENGTH), nullable=False, default="0")
    base_interest_rate = Column(Integer, nullable=False, default=500)  # Basis points
    utilization_coefficient = Column(Integer, nullable=False, default=1000)
    credit_coefficient = Column(Integer, nullable=False, default=500)
    lp_epoch = Column(Integer, nullable=False, default=0)  # Bumped when LP supply is written off
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}


class LpPositionRecord(Base):
    """Liquidity provider position, one per user"""

    __tablename__ = "lp_positions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    pool_id = Column(Integer, ForeignKey("credit_pools.id"), nullable=False, default=POOL_ID)
    deposited_amount = Column(String(AMOUNT_LENGTH), nullable=False, default="0")
    lp_tokens = Column(String(AMOUNT_LENGTH), nullable=False, default="0")
    epoch = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}


class LoanRecord(Base):
    """Loan drawn from the pool; status moves one way only"""

    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    pool_id = Column(Integer, ForeignKey("credit_pools.id"), nullable=False, default=POOL_ID)
    amount = Column(String(AMOUNT_LENGTH), nullable=False)
    interest_rate = Column(Integer, nullable=False)  # Basis points
    duration = Column(Integer, nullable=False)  # Days
    status = Column(_enum(LoanStatus, "loan_status"), nullable=False, default=LoanStatus.ACTIVE)
    borrowed_at = Column(DateTime(timezone=True), nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=False)
    repaid_at = Column(DateTime(timezone=True), nullable=True)
    defaulted_at = Column(DateTime(timezone=True), nullable=True)
    repaid_amount = Column(String(AMOUNT_LENGTH), nullable=False, default="0")
    credit_score_at_borrow = Column(Integer, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}


class LedgerTransaction(Base):
    """Append-only audit record"""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(_enum(TransactionType, "transaction_type"), nullable=False)
    amount = Column(String(AMOUNT_LENGTH), nullable=False)
    related_loan_id = Column(Integer, ForeignKey("loans.id"), nullable=True)
    related_pool_id = Column(Integer, ForeignKey("credit_pools.id"), nullable=True, default=POOL_ID)
    tx_hash = Column(String(66), nullable=True)  # On-chain transaction hash, when mirrored
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class NftMint(Base):
    """Credit badge NFT mint, one per user and per verification nullifier"""

    __tablename__ = "nft_mints"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    token_id = Column(Integer, nullable=False)
    nullifier_hash = Column(String(128), nullable=False, unique=True)
    credit_score = Column(Integer, nullable=False)
    tier = Column(_enum(Tier, "nft_tier"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
