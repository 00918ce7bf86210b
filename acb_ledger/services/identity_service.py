"""User identity, verification linking and credit NFT mint records"""

import logging
from datetime import datetime
from typing import Callable, Optional
from sqlalchemy.orm import Session
from acb_ledger.config import settings
from acb_ledger.domain.exceptions import (
    AlreadyMintedError,
    NotFoundError,
    VerificationRequiredError,
    VerificationReusedError,
)
from acb_ledger.domain.models import CreditScore
from acb_ledger.infrastructure.clients.verification import VerificationClient
from acb_ledger.infrastructure.database.concurrency import run_atomic
from acb_ledger.infrastructure.database.models import NftMint, User
from acb_ledger.infrastructure.database.repositories import (
    CreditScoreRepository,
    NftMintRepository,
    UserRepository,
)
from acb_ledger.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class IdentityService:
    """Users, their identity-provider link, and one-per-human NFT mints"""

    def __init__(
        self,
        db: Session,
        verification_client: VerificationClient | None = None,
        owner_open_id: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.verification_client = verification_client or VerificationClient()
        self.owner_open_id = settings.owner_open_id if owner_open_id is None else owner_open_id
        self.clock = clock
        self.users = UserRepository(db)
        self.scores = CreditScoreRepository(db)
        self.mints = NftMintRepository(db)

    def login(
        self,
        open_id: str,
        name: str | None = None,
        email: str | None = None,
        login_method: str | None = None,
    ) -> User:
        """Upsert a user on sign-in; first login also creates the neutral credit score"""

        def work() -> User:
            role = "admin" if self.owner_open_id and open_id == self.owner_open_id else None
            user, created = self.users.upsert(
                open_id,
                signed_in_at=self.clock(),
                name=name,
                email=email,
                login_method=login_method,
                role=role,
            )
            if created:
                self.scores.save(CreditScore(user_id=user.id, last_calculated=self.clock()))
            return user

        user = run_atomic(self.db, "login", work)
        logger.info("User signed in", extra={"user_id": user.id, "step": "login"})
        return user

    def get_user(self, user_id: int) -> User:
        user = self.users.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def is_linked_to_verification(self, user_id: int) -> bool:
        user = self.users.get(user_id)
        return bool(user and user.verification_nullifier)

    async def link_verification(
        self,
        user_id: int,
        nullifier_hash: str,
        proof: str,
        merkle_root: str,
        verification_level: str,
    ) -> User:
        """
        Verify a proof with the identity provider and bind its nullifier to the user.

        Relinking the same nullifier is a no-op. A nullifier can belong to one
        user only, and a user keeps the first nullifier it linked.
        """
        user = self.get_user(user_id)
        if user.verification_nullifier == nullifier_hash:
            return user
        self._check_nullifier_free(user, nullifier_hash)

        await self.verification_client.verify(nullifier_hash, proof, merkle_root, verification_level)

        def work() -> User:
            current = self.get_user(user_id)
            self._check_nullifier_free(current, nullifier_hash)
            current.verification_nullifier = nullifier_hash
            current.verified_at = self.clock()
            self.db.flush()
            return current

        linked = run_atomic(self.db, "link_verification", work)
        logger.info("Verification linked", extra={"user_id": user_id, "step": "link_verification"})
        return linked

    def get_nft_mint(self, user_id: int) -> Optional[NftMint]:
        return self.mints.get_by_user(user_id)

    def mint_nft(self, user_id: int, token_id: int) -> NftMint:
        """Record a credit NFT mint, snapshotting the user's current score and tier"""

        def work() -> NftMint:
            user = self.get_user(user_id)
            if not user.verification_nullifier:
                raise VerificationRequiredError("Link a verification before minting", user_id=user_id)
            if self.mints.get_by_user(user_id) is not None:
                raise AlreadyMintedError("NFT already minted for this user", user_id=user_id)
            if self.mints.get_by_nullifier(user.verification_nullifier) is not None:
                raise VerificationReusedError("This verification has already been used to mint an NFT")

            score = self.scores.get(user_id) or CreditScore(user_id=user_id)
            return self.mints.create(
                user_id=user_id,
                token_id=token_id,
                nullifier_hash=user.verification_nullifier,
                credit_score=score.score,
                tier=score.tier,
            )

        mint = run_atomic(self.db, "mint_nft", work)
        logger.info("NFT mint recorded", extra={"user_id": user_id, "token_id": token_id, "step": "mint_nft"})
        return mint

    def _check_nullifier_free(self, user: User, nullifier_hash: str) -> None:
        if user.verification_nullifier and user.verification_nullifier != nullifier_hash:
            raise VerificationReusedError("User is already linked to a different verification", user_id=user.id)
        holder = self.users.get_by_nullifier(nullifier_hash)
        if holder is not None and holder.id != user.id:
            raise VerificationReusedError("This verification is already linked to another user")
