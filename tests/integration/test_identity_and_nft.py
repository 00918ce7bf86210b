"""Integration tests for verification linking and credit NFT mint records"""

import pytest
from acb_ledger.domain.exceptions import (
    AlreadyMintedError,
    NotFoundError,
    VerificationProviderError,
    VerificationRequiredError,
    VerificationReusedError,
)
from acb_ledger.domain.models import Tier
from acb_ledger.infrastructure.database.repositories import NftMintRepository
from acb_ledger.services.identity_service import IdentityService

PROOF = {"proof": "0xproof", "merkle_root": "0xroot", "verification_level": "orb"}


async def test_link_verification_marks_user_verified(identity: IdentityService, borrower):
    assert identity.is_linked_to_verification(borrower.id) is False

    user = await identity.link_verification(borrower.id, "0xnull1", **PROOF)

    assert user.verification_nullifier == "0xnull1"
    assert user.verified_at is not None
    assert identity.is_linked_to_verification(borrower.id) is True


async def test_relinking_same_nullifier_is_noop(identity: IdentityService, borrower):
    await identity.link_verification(borrower.id, "0xnull1", **PROOF)

    # The provider would refuse a second verification; the link short-circuits first
    user = await identity.link_verification(borrower.id, "0xnull1", **PROOF)

    assert user.verification_nullifier == "0xnull1"


async def test_nullifier_cannot_be_shared(identity: IdentityService, borrower, lender):
    await identity.link_verification(borrower.id, "0xnull1", **PROOF)

    with pytest.raises(VerificationReusedError):
        await identity.link_verification(lender.id, "0xnull1", **PROOF)
    assert identity.is_linked_to_verification(lender.id) is False


async def test_user_keeps_first_nullifier(identity: IdentityService, borrower):
    await identity.link_verification(borrower.id, "0xnull1", **PROOF)

    with pytest.raises(VerificationReusedError):
        await identity.link_verification(borrower.id, "0xnull2", **PROOF)


async def test_rejected_proof_links_nothing(identity: IdentityService, borrower):
    with pytest.raises(VerificationProviderError) as exc_info:
        await identity.link_verification(borrower.id, "0xnull1", "invalid", "0xroot", "orb")

    assert exc_info.value.details["status_code"] == 400
    assert identity.is_linked_to_verification(borrower.id) is False


async def test_link_unknown_user(identity: IdentityService):
    with pytest.raises(NotFoundError):
        await identity.link_verification(999, "0xnull1", **PROOF)


async def test_mint_records_current_score(identity: IdentityService, borrower):
    await identity.link_verification(borrower.id, "0xnull1", **PROOF)

    mint = identity.mint_nft(borrower.id, token_id=7)

    assert mint.token_id == 7
    assert mint.credit_score == 500
    assert mint.tier == Tier.C
    assert mint.nullifier_hash == "0xnull1"
    assert identity.get_nft_mint(borrower.id).id == mint.id


def test_mint_requires_verification(identity: IdentityService, borrower):
    with pytest.raises(VerificationRequiredError):
        identity.mint_nft(borrower.id, token_id=1)
    assert identity.get_nft_mint(borrower.id) is None


async def test_one_mint_per_user(identity: IdentityService, borrower):
    await identity.link_verification(borrower.id, "0xnull1", **PROOF)
    identity.mint_nft(borrower.id, token_id=1)

    with pytest.raises(AlreadyMintedError):
        identity.mint_nft(borrower.id, token_id=2)


async def test_one_mint_per_nullifier(db, identity: IdentityService, borrower, lender):
    """A nullifier already spent on a mint cannot mint again under another user"""
    NftMintRepository(db).create(
        user_id=lender.id, token_id=1, nullifier_hash="0xnull1", credit_score=500, tier=Tier.C
    )
    db.commit()
    await identity.link_verification(borrower.id, "0xnull1", **PROOF)

    with pytest.raises(VerificationReusedError):
        identity.mint_nft(borrower.id, token_id=2)
