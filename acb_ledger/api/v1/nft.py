"""Credit NFT mint records - one mint per verified human"""

from fastapi import APIRouter, Depends, HTTPException, Query

from acb_ledger.api.v1.schemas import NftMintRequest, NftMintResponse
from acb_ledger.api.dependencies import get_identity_service
from acb_ledger.infrastructure.database.models import NftMint
from acb_ledger.services.identity_service import IdentityService

router = APIRouter()


def _to_response(mint: NftMint) -> NftMintResponse:
    return NftMintResponse(
        user_id=mint.user_id,
        token_id=mint.token_id,
        credit_score=mint.credit_score,
        tier=mint.tier.value,
        created_at=mint.created_at.isoformat(),
    )


@router.get("/nft", response_model=NftMintResponse)
def get_my_mint(
    user_id: int = Query(..., description="User identifier"),
    identity: IdentityService = Depends(get_identity_service),
):
    mint = identity.get_nft_mint(user_id)
    if mint is None:
        raise HTTPException(status_code=404, detail="No NFT minted")
    return _to_response(mint)


@router.post("/nft/mint", response_model=NftMintResponse)
def mint_nft(request_body: NftMintRequest, identity: IdentityService = Depends(get_identity_service)):
    """Record a mint; requires a linked verification, at most once per user and nullifier"""
    return _to_response(identity.mint_nft(request_body.user_id, request_body.token_id))
