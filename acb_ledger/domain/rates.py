"""Interest rate model - utilization and credit-tier based borrow rate"""

from acb_ledger.domain.models import PoolState, Tier

BASIS_POINTS = 10_000

TIER_PENALTY = {
    Tier.A: 0,
    Tier.B: 1,
    Tier.C: 2,
    Tier.D: 3,
}


def utilization_bps(total_borrowed: int, total_liquidity: int) -> int:
    """Share of liquidity lent out, in basis points. Empty pool is 0."""
    if total_liquidity <= 0:
        return 0
    return total_borrowed * BASIS_POINTS // total_liquidity


def tier_penalty(tier: Tier) -> int:
    return TIER_PENALTY[Tier(tier)]


def quote_rate(
    tier: Tier,
    utilization: int,
    base_rate: int,
    utilization_coefficient: int,
    credit_coefficient: int,
) -> int:
    """
    Borrow rate in basis points (APR).

    rate = base + k * utilization + c * tier_penalty

    All terms are integers; utilization is in basis points so
    k * utilization / 10000 is the utilization premium in basis points.
    """
    utilization_premium = utilization_coefficient * utilization // BASIS_POINTS
    credit_premium = credit_coefficient * tier_penalty(tier)
    return base_rate + utilization_premium + credit_premium


def quote_for_pool(pool: PoolState, tier: Tier) -> int:
    """Quote against the pool's current utilization"""
    return quote_rate(
        tier,
        utilization_bps(pool.total_borrowed, pool.total_liquidity),
        pool.base_interest_rate,
        pool.utilization_coefficient,
        pool.credit_coefficient,
    )
