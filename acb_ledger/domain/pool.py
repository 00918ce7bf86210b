"""Pool accounting - LP share math and borrowed/available bookkeeping

Every function takes the current PoolState and returns a new one; nothing
here touches the database. All arithmetic is integer minor units.

LP tokens are a claim on the LP-owned assets, i.e. total liquidity minus the
risk reserve. The reserve belongs to the protocol and is never lendable.

When defaults wipe out the LP assets while tokens are still outstanding, the
next deposit writes that supply off: the pool's LP epoch advances and every
position minted in an earlier epoch is worth nothing from then on.
"""

from dataclasses import replace
from typing import Tuple
from acb_ledger.domain.models import MAX_AMOUNT, LpPosition, PoolState
from acb_ledger.domain.exceptions import (
    InvalidAmountError,
    InsufficientLiquidityError,
    InsufficientPositionError,
)
from acb_ledger.domain.rates import BASIS_POINTS


def ensure_amount(amount: int, label: str = "Amount") -> None:
    """Amounts must be positive and fit the 78-digit storage width"""
    if amount <= 0:
        raise InvalidAmountError(f"{label} must be positive", amount=str(amount))
    if amount > MAX_AMOUNT:
        raise InvalidAmountError(f"{label} exceeds the uint256 range", amount=str(amount))


def lp_assets(pool: PoolState) -> int:
    """Liquidity owned by LP token holders"""
    return pool.total_liquidity - pool.risk_reserve


def available_liquidity(pool: PoolState) -> int:
    """Idle liquidity that may be lent or withdrawn"""
    return max(pool.total_liquidity - pool.total_borrowed - pool.risk_reserve, 0)


def claim_value(pool: PoolState, lp_tokens: int) -> int:
    """Current value of an LP token amount, rounded down"""
    if pool.total_lp_tokens <= 0 or lp_tokens <= 0:
        return 0
    return lp_tokens * lp_assets(pool) // pool.total_lp_tokens


def is_wiped_out(pool: PoolState) -> bool:
    """LP tokens outstanding with no assets left behind them"""
    return pool.total_lp_tokens > 0 and lp_assets(pool) <= 0


def current_position(pool: PoolState, position: LpPosition) -> LpPosition:
    """The position as the pool sees it; tokens from a written-off epoch are void"""
    if position.epoch == pool.lp_epoch:
        return position
    return replace(position, deposited_amount=0, lp_tokens=0, epoch=pool.lp_epoch)


def write_off_supply(pool: PoolState) -> PoolState:
    """Void every outstanding LP token and start a new epoch"""
    return replace(pool, total_lp_tokens=0, lp_epoch=pool.lp_epoch + 1)


def tokens_for_deposit(pool: PoolState, amount: int) -> int:
    """
    LP tokens minted for a deposit.

    1:1 when no tokens are outstanding (or the outstanding ones are backed by
    nothing), otherwise proportional to the current share value
    (amount / (lp_assets / total_lp_tokens)), rounded down so existing
    holders are never diluted.
    """
    if pool.total_lp_tokens == 0 or is_wiped_out(pool):
        return amount
    return amount * pool.total_lp_tokens // lp_assets(pool)


def deposit(pool: PoolState, position: LpPosition, amount: int) -> Tuple[PoolState, LpPosition, int]:
    """Add liquidity and mint LP tokens. Returns (pool, position, minted)."""
    ensure_amount(amount, "Deposit amount")

    minted = tokens_for_deposit(pool, amount)
    if minted <= 0:
        raise InvalidAmountError("Deposit too small to mint any LP tokens", amount=str(amount))

    if is_wiped_out(pool):
        pool = write_off_supply(pool)
    position = current_position(pool, position)

    new_pool = replace(
        pool,
        total_liquidity=pool.total_liquidity + amount,
        total_lp_tokens=pool.total_lp_tokens + minted,
    )
    if new_pool.total_liquidity > MAX_AMOUNT or new_pool.total_lp_tokens > MAX_AMOUNT:
        raise InvalidAmountError("Deposit would overflow the pool balances", amount=str(amount))

    new_position = replace(
        position,
        deposited_amount=position.deposited_amount + amount,
        lp_tokens=position.lp_tokens + minted,
    )
    return new_pool, new_position, minted


def withdraw(pool: PoolState, position: LpPosition, lp_amount: int) -> Tuple[PoolState, LpPosition, int]:
    """
    Burn LP tokens and pay out their share of LP assets.

    Liquidity out on loan or held in reserve cannot be withdrawn.
    Returns (pool, position, paid_out).
    """
    ensure_amount(lp_amount, "Withdrawal amount")
    position = current_position(pool, position)
    if lp_amount > position.lp_tokens:
        raise InsufficientPositionError(requested=lp_amount, available=position.lp_tokens)

    value = claim_value(pool, lp_amount)
    idle = available_liquidity(pool)
    if value > idle:
        raise InsufficientLiquidityError(requested=value, available=idle)

    # Reduce cost basis proportionally to the tokens burned
    if lp_amount == position.lp_tokens:
        basis_out = position.deposited_amount
    else:
        basis_out = position.deposited_amount * lp_amount // position.lp_tokens

    new_pool = replace(
        pool,
        total_liquidity=pool.total_liquidity - value,
        total_lp_tokens=pool.total_lp_tokens - lp_amount,
    )
    new_position = replace(
        position,
        deposited_amount=position.deposited_amount - basis_out,
        lp_tokens=position.lp_tokens - lp_amount,
    )
    return new_pool, new_position, value


def reserve(pool: PoolState, amount: int) -> PoolState:
    """Move liquidity from available to borrowed"""
    ensure_amount(amount, "Reserve amount")
    available = available_liquidity(pool)
    if amount > available:
        raise InsufficientLiquidityError(requested=amount, available=available)
    return replace(pool, total_borrowed=pool.total_borrowed + amount)


def release(pool: PoolState, amount: int) -> PoolState:
    """Move a settled loan's principal out of borrowed"""
    if amount < 0 or amount > pool.total_borrowed:
        raise ValueError(f"Cannot release {amount} from {pool.total_borrowed} borrowed")
    return replace(pool, total_borrowed=pool.total_borrowed - amount)


def book_interest(pool: PoolState, interest: int, reserve_factor_bps: int) -> PoolState:
    """Add repaid interest to liquidity, keeping reserve_factor of it as risk reserve"""
    if interest <= 0:
        return pool
    to_reserve = interest * reserve_factor_bps // BASIS_POINTS
    return replace(
        pool,
        total_liquidity=pool.total_liquidity + interest,
        risk_reserve=pool.risk_reserve + to_reserve,
    )


def absorb_loss(pool: PoolState, loss: int) -> PoolState:
    """
    Write off a defaulted loan's unrecovered principal.

    The risk reserve absorbs as much as it holds; the rest reduces LP assets.
    """
    if loss <= 0:
        return pool
    from_reserve = min(loss, pool.risk_reserve)
    return replace(
        pool,
        total_liquidity=pool.total_liquidity - loss,
        risk_reserve=pool.risk_reserve - from_reserve,
    )


def check_invariants(pool: PoolState) -> None:
    """Raise if the pool is in a state no committed operation may leave"""
    if min(pool.total_liquidity, pool.total_borrowed, pool.risk_reserve, pool.total_lp_tokens) < 0:
        raise ValueError(f"Negative pool balance: {pool}")
    if pool.total_borrowed > pool.total_liquidity - pool.risk_reserve:
        raise ValueError(f"Borrowed exceeds lendable liquidity: {pool}")
    if max(pool.total_liquidity, pool.total_lp_tokens) > MAX_AMOUNT:
        raise ValueError(f"Pool balance exceeds storage width: {pool}")
