"""GET /v1/transactions - Fetch user's ledger transaction history"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from acb_ledger.api.v1.schemas import TransactionHistoryResponse, TransactionItem
from acb_ledger.infrastructure.database.session import get_db
from acb_ledger.infrastructure.database.repositories import TransactionRepository

router = APIRouter()


@router.get("/transactions", response_model=TransactionHistoryResponse)
def get_transactions(
    user_id: int = Query(..., description="User identifier"),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """
    Retrieve the user's audit log, most recent first.

    Returns:
        Deposits, withdrawals, borrows, repayments and liquidations
    """
    transaction_repo = TransactionRepository(db)
    transactions = transaction_repo.get_by_user(user_id, limit=limit)

    items = [
        TransactionItem(
            transaction_id=t.id,
            type=t.type.value,
            amount=t.amount,
            related_loan_id=t.related_loan_id,
            related_pool_id=t.related_pool_id,
            tx_hash=t.tx_hash,
            created_at=t.created_at.isoformat(),
        )
        for t in transactions
    ]

    return TransactionHistoryResponse(user_id=user_id, transactions=items)
