"""Credit score endpoints"""

from fastapi import APIRouter, Depends, Query

from acb_ledger.api.v1.schemas import CreditScoreResponse
from acb_ledger.api.dependencies import get_credit_service
from acb_ledger.domain.models import CreditScore
from acb_ledger.services.credit_service import CreditScoringService

router = APIRouter()


def _to_response(score: CreditScore) -> CreditScoreResponse:
    return CreditScoreResponse(
        user_id=score.user_id,
        score=score.score,
        tier=score.tier.value,
        total_loans=score.total_loans,
        successful_repayments=score.successful_repayments,
        defaults=score.defaults,
        last_calculated=score.last_calculated.isoformat() if score.last_calculated else None,
    )


@router.get("/credit-score", response_model=CreditScoreResponse)
def get_credit_score(
    user_id: int = Query(..., description="User identifier"),
    credit: CreditScoringService = Depends(get_credit_service),
):
    """Current score; users without history get the neutral 500 / C"""
    return _to_response(credit.get_credit_score(user_id))


@router.post("/credit-score/{user_id}/recompute", response_model=CreditScoreResponse)
def recompute_credit_score(user_id: int, credit: CreditScoringService = Depends(get_credit_service)):
    return _to_response(credit.recompute_and_commit(user_id))
