"""Loan endpoints - quote, borrow, repay, default and listing"""

from fastapi import APIRouter, Depends, Query

from acb_ledger.api.v1.schemas import (
    ErrorResponse,
    LoanListResponse,
    LoanQuoteResponse,
    LoanRequest,
    LoanResponse,
    RepayRequest,
    RepayResponse,
)
from acb_ledger.api.dependencies import get_loan_service
from acb_ledger.domain.models import Loan
from acb_ledger.services.loan_service import LoanService

router = APIRouter()


def _iso(value):
    return value.isoformat() if value else None


def _to_response(loan: Loan, amount_owed: int) -> LoanResponse:
    return LoanResponse(
        loan_id=loan.id,
        user_id=loan.user_id,
        amount=str(loan.amount),
        interest_rate=loan.interest_rate,
        duration=loan.duration,
        status=loan.status.value,
        borrowed_at=loan.borrowed_at.isoformat(),
        due_date=loan.due_date.isoformat(),
        repaid_at=_iso(loan.repaid_at),
        defaulted_at=_iso(loan.defaulted_at),
        repaid_amount=str(loan.repaid_amount),
        credit_score_at_borrow=loan.credit_score_at_borrow,
        amount_owed=str(amount_owed),
    )


@router.get("/loans/quote", response_model=LoanQuoteResponse)
def get_loan_quote(
    user_id: int = Query(..., description="User identifier"),
    loans: LoanService = Depends(get_loan_service),
):
    """Borrowing limit and rate the user would get right now"""
    quote = loans.quote(user_id)
    return LoanQuoteResponse(
        user_id=quote.user_id,
        score=quote.score,
        tier=quote.tier.value,
        max_borrow=str(quote.max_borrow),
        rate_bps=quote.rate_bps,
    )


@router.post(
    "/loans",
    response_model=LoanResponse,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def request_loan(request_body: LoanRequest, loans: LoanService = Depends(get_loan_service)):
    """
    Borrow from the pool without collateral.

    Flow:
    1. Check the borrowing limit for the user's credit tier
    2. Quote the rate from pool utilization and tier
    3. Reserve liquidity and record the loan
    """
    loan = loans.request_loan(
        request_body.user_id,
        request_body.amount,
        request_body.duration_days,
        tx_hash=request_body.tx_hash,
    )
    return _to_response(loan, loans.amount_owed(loan))


@router.get("/loans", response_model=LoanListResponse)
def get_user_loans(
    user_id: int = Query(..., description="User identifier"),
    loans: LoanService = Depends(get_loan_service),
):
    items = [_to_response(loan, loans.amount_owed(loan)) for loan in loans.get_user_loans(user_id)]
    return LoanListResponse(user_id=user_id, loans=items)


@router.get("/loans/{loan_id}", response_model=LoanResponse)
def get_loan(
    loan_id: int,
    user_id: int = Query(..., description="User identifier"),
    loans: LoanService = Depends(get_loan_service),
):
    loan = loans.get_loan(user_id, loan_id)
    return _to_response(loan, loans.amount_owed(loan))


@router.post(
    "/loans/{loan_id}/repay",
    response_model=RepayResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def repay_loan(loan_id: int, request_body: RepayRequest, loans: LoanService = Depends(get_loan_service)):
    """Full or partial repayment; partial payments keep the loan active"""
    result = loans.repay_loan(request_body.user_id, loan_id, request_body.amount, tx_hash=request_body.tx_hash)
    return RepayResponse(
        loan=_to_response(result.loan, result.outstanding),
        applied=str(result.applied),
        total_owed=str(result.total_owed),
        outstanding=str(result.outstanding),
    )


@router.post(
    "/loans/{loan_id}/default",
    response_model=LoanResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def mark_defaulted(loan_id: int, loans: LoanService = Depends(get_loan_service)):
    """Default an overdue loan. Called by the external due-date trigger; idempotent."""
    loan = loans.mark_defaulted(loan_id)
    return _to_response(loan, 0)
