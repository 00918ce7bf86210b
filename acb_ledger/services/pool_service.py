"""Pool accounting service - deposits, withdrawals and the locked pool aggregate"""

from dataclasses import dataclass
from typing import Optional, Tuple
from sqlalchemy.orm import Session
from acb_ledger.config import settings
from acb_ledger.domain import pool as pool_math
from acb_ledger.domain.exceptions import NotFoundError
from acb_ledger.domain.models import LpPosition, PoolState, Tier, TransactionType
from acb_ledger.domain.rates import quote_for_pool, utilization_bps
from acb_ledger.infrastructure.database.concurrency import run_atomic
from acb_ledger.infrastructure.database.models import CreditPool
from acb_ledger.infrastructure.database.repositories import (
    LpPositionRepository,
    PoolRepository,
    TransactionRepository,
    UserRepository,
    to_lp_position,
    to_pool_state,
)
from acb_ledger.infrastructure.observability.logging import log_ledger_event
from acb_ledger.infrastructure.observability.metrics import pool_utilization_gauge


@dataclass
class PoolSnapshot:
    """Pool balances plus derived figures"""

    state: PoolState
    utilization_bps: int
    available_liquidity: int
    lp_assets: int
    reference_rate_bps: int  # Quote for a neutral (tier C) borrower


@dataclass
class LpPositionSnapshot:
    user_id: int
    deposited_amount: int
    lp_tokens: int
    value: int
    accrued_interest: int


@dataclass
class DepositResult:
    minted: int
    position: LpPositionSnapshot


@dataclass
class WithdrawResult:
    paid_out: int
    position: LpPositionSnapshot


class PoolService:
    """Owns every read and write of the singleton pool row"""

    def __init__(self, db: Session, reserve_factor_bps: int | None = None):
        self.db = db
        self.reserve_factor_bps = (
            settings.reserve_factor_bps if reserve_factor_bps is None else reserve_factor_bps
        )
        self.pools = PoolRepository(db)
        self.positions = LpPositionRepository(db)
        self.transactions = TransactionRepository(db)
        self.users = UserRepository(db)

    # Aggregate access

    def ensure_pool(self) -> CreditPool:
        """Create the singleton pool from configured parameters if missing"""
        record = self.pools.get()
        if record is None:
            record = self.pools.create(
                base_interest_rate=settings.pool_base_interest_rate,
                utilization_coefficient=settings.pool_utilization_coefficient,
                credit_coefficient=settings.pool_credit_coefficient,
            )
        return record

    def lock_pool(self) -> Tuple[CreditPool, PoolState]:
        """Load the pool for writing inside the current unit of work"""
        record = self.pools.get_for_update()
        if record is None:
            record = self.ensure_pool()
        return record, to_pool_state(record)

    def write_pool(self, record: CreditPool, state: PoolState) -> None:
        pool_math.check_invariants(state)
        self.pools.apply_state(record, state)
        pool_utilization_gauge.set(utilization_bps(state.total_borrowed, state.total_liquidity))

    # Reads

    def get_pool(self) -> PoolSnapshot:
        record = self.pools.get()
        state = to_pool_state(record) if record else PoolState(
            base_interest_rate=settings.pool_base_interest_rate,
            utilization_coefficient=settings.pool_utilization_coefficient,
            credit_coefficient=settings.pool_credit_coefficient,
        )
        return PoolSnapshot(
            state=state,
            utilization_bps=utilization_bps(state.total_borrowed, state.total_liquidity),
            available_liquidity=pool_math.available_liquidity(state),
            lp_assets=pool_math.lp_assets(state),
            reference_rate_bps=quote_for_pool(state, Tier.C),
        )

    def get_lp_position(self, user_id: int) -> Optional[LpPositionSnapshot]:
        record = self.positions.get(user_id)
        if record is None:
            return None
        pool_record = self.pools.get()
        state = to_pool_state(pool_record) if pool_record else PoolState()
        return self._snapshot(state, to_lp_position(record))

    # Mutations

    def deposit(self, user_id: int, amount: int, tx_hash: str | None = None) -> DepositResult:
        """Add liquidity and mint LP tokens"""

        def work() -> DepositResult:
            self._require_user(user_id)
            record, state = self.lock_pool()
            position = self._load_position(user_id)

            new_state, new_position, minted = pool_math.deposit(state, position, amount)

            self.write_pool(record, new_state)
            self.positions.save(new_position)
            self.transactions.append(user_id, TransactionType.DEPOSIT, amount, tx_hash=tx_hash)
            return DepositResult(minted=minted, position=self._snapshot(new_state, new_position))

        result = run_atomic(self.db, "deposit", work)
        log_ledger_event("deposit", user_id, amount, minted=str(result.minted))
        return result

    def withdraw(self, user_id: int, lp_amount: int, tx_hash: str | None = None) -> WithdrawResult:
        """Burn LP tokens and pay out their share of idle liquidity"""

        def work() -> WithdrawResult:
            self._require_user(user_id)
            record, state = self.lock_pool()
            position = self._load_position(user_id)

            new_state, new_position, paid_out = pool_math.withdraw(state, position, lp_amount)

            self.write_pool(record, new_state)
            self.positions.save(new_position)
            self.transactions.append(user_id, TransactionType.WITHDRAW, paid_out, tx_hash=tx_hash)
            return WithdrawResult(paid_out=paid_out, position=self._snapshot(new_state, new_position))

        result = run_atomic(self.db, "withdraw", work)
        log_ledger_event("withdraw", user_id, result.paid_out, lp_burned=str(lp_amount))
        return result

    def _require_user(self, user_id: int) -> None:
        if self.users.get(user_id) is None:
            raise NotFoundError("User", user_id)

    def _load_position(self, user_id: int) -> LpPosition:
        record = self.positions.get(user_id)
        return to_lp_position(record) if record else LpPosition(user_id=user_id)

    @staticmethod
    def _snapshot(state: PoolState, position: LpPosition) -> LpPositionSnapshot:
        position = pool_math.current_position(state, position)
        value = pool_math.claim_value(state, position.lp_tokens)
        return LpPositionSnapshot(
            user_id=position.user_id,
            deposited_amount=position.deposited_amount,
            lp_tokens=position.lp_tokens,
            value=value,
            accrued_interest=max(value - position.deposited_amount, 0),
        )
