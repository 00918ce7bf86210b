"""User sign-in and identity verification endpoints"""

from fastapi import APIRouter, Depends

from acb_ledger.api.v1.schemas import (
    LoginRequest,
    UserResponse,
    VerificationRequest,
    VerificationStatusResponse,
)
from acb_ledger.api.dependencies import get_identity_service
from acb_ledger.infrastructure.database.models import User
from acb_ledger.services.identity_service import IdentityService

router = APIRouter()


def _to_response(user: User) -> UserResponse:
    return UserResponse(
        user_id=user.id,
        open_id=user.open_id,
        name=user.name,
        role=user.role,
        verified=bool(user.verification_nullifier),
    )


@router.post("/users/login", response_model=UserResponse)
def login(request_body: LoginRequest, identity: IdentityService = Depends(get_identity_service)):
    """Create the user on first sign-in, refresh last_signed_in afterwards"""
    user = identity.login(
        request_body.open_id,
        name=request_body.name,
        email=request_body.email,
        login_method=request_body.login_method,
    )
    return _to_response(user)


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(user_id: int, identity: IdentityService = Depends(get_identity_service)):
    return _to_response(identity.get_user(user_id))


@router.post("/users/{user_id}/verification", response_model=UserResponse)
async def link_verification(
    user_id: int,
    request_body: VerificationRequest,
    identity: IdentityService = Depends(get_identity_service),
):
    """
    Verify a proof of personhood with the identity provider and link it.

    Returns:
        The user, now marked verified
    """
    user = await identity.link_verification(
        user_id,
        nullifier_hash=request_body.nullifier_hash,
        proof=request_body.proof,
        merkle_root=request_body.merkle_root,
        verification_level=request_body.verification_level,
    )
    return _to_response(user)


@router.get("/users/{user_id}/verification", response_model=VerificationStatusResponse)
def get_verification_status(user_id: int, identity: IdentityService = Depends(get_identity_service)):
    return VerificationStatusResponse(user_id=user_id, verified=identity.is_linked_to_verification(user_id))
