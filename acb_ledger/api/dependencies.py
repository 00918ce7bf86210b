"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session
from acb_ledger.infrastructure.clients.verification import VerificationClient
from acb_ledger.infrastructure.database.session import get_db
from acb_ledger.services.credit_service import CreditScoringService
from acb_ledger.services.identity_service import IdentityService
from acb_ledger.services.loan_service import LoanService
from acb_ledger.services.pool_service import PoolService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_verification_client() -> VerificationClient:
    """Provide identity provider client instance"""
    return VerificationClient()


def get_credit_service(db: Session = Depends(get_db)) -> CreditScoringService:
    return CreditScoringService(db)


def get_pool_service(db: Session = Depends(get_db)) -> PoolService:
    return PoolService(db)


def get_loan_service(db: Session = Depends(get_db)) -> LoanService:
    return LoanService(db)


def get_identity_service(
    db: Session = Depends(get_db),
    verification_client: VerificationClient = Depends(get_verification_client),
) -> IdentityService:
    return IdentityService(db, verification_client=verification_client)
