"""Liquidity pool endpoints - pool info, LP positions, deposits and withdrawals"""

from fastapi import APIRouter, Depends, HTTPException, Query

from acb_ledger.api.v1.schemas import (
    DepositRequest,
    DepositResponse,
    LpPositionResponse,
    PoolResponse,
    WithdrawRequest,
    WithdrawResponse,
)
from acb_ledger.api.dependencies import get_pool_service
from acb_ledger.services.pool_service import LpPositionSnapshot, PoolService

router = APIRouter()


def _position_response(position: LpPositionSnapshot) -> LpPositionResponse:
    return LpPositionResponse(
        user_id=position.user_id,
        deposited_amount=str(position.deposited_amount),
        lp_tokens=str(position.lp_tokens),
        value=str(position.value),
        accrued_interest=str(position.accrued_interest),
    )


@router.get("/pool", response_model=PoolResponse)
def get_pool(pool_service: PoolService = Depends(get_pool_service)):
    snapshot = pool_service.get_pool()
    state = snapshot.state
    return PoolResponse(
        total_liquidity=str(state.total_liquidity),
        total_borrowed=str(state.total_borrowed),
        risk_reserve=str(state.risk_reserve),
        total_lp_tokens=str(state.total_lp_tokens),
        available_liquidity=str(snapshot.available_liquidity),
        utilization_bps=snapshot.utilization_bps,
        base_interest_rate=state.base_interest_rate,
        utilization_coefficient=state.utilization_coefficient,
        credit_coefficient=state.credit_coefficient,
        reference_rate_bps=snapshot.reference_rate_bps,
    )


@router.get("/lp-position", response_model=LpPositionResponse)
def get_lp_position(
    user_id: int = Query(..., description="User identifier"),
    pool_service: PoolService = Depends(get_pool_service),
):
    position = pool_service.get_lp_position(user_id)
    if position is None:
        raise HTTPException(status_code=404, detail="No liquidity position")
    return _position_response(position)


@router.post("/pool/deposit", response_model=DepositResponse)
def deposit(request_body: DepositRequest, pool_service: PoolService = Depends(get_pool_service)):
    result = pool_service.deposit(request_body.user_id, request_body.amount, tx_hash=request_body.tx_hash)
    return DepositResponse(minted=str(result.minted), position=_position_response(result.position))


@router.post("/pool/withdraw", response_model=WithdrawResponse)
def withdraw(request_body: WithdrawRequest, pool_service: PoolService = Depends(get_pool_service)):
    result = pool_service.withdraw(request_body.user_id, request_body.lp_amount, tx_hash=request_body.tx_hash)
    return WithdrawResponse(paid_out=str(result.paid_out), position=_position_response(result.position))
