"""Identity provider HTTP client for World ID proof verification"""

import httpx
from dataclasses import dataclass
from typing import Optional
from acb_ledger.domain.exceptions import VerificationProviderError
from acb_ledger.config import settings


@dataclass
class VerificationResult:
    """Provider's confirmation of a verified, unique human"""

    nullifier_hash: str
    verification_level: str


class VerificationClient:
    """Client for the external identity provider's cloud verify API"""

    def __init__(
        self,
        base_url: str | None = None,
        app_id: str | None = None,
        action: str | None = None,
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or settings.verification_api_base
        self.app_id = app_id or settings.verification_app_id
        self.action = action or settings.verification_action
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def verify(
        self,
        nullifier_hash: str,
        proof: str,
        merkle_root: str,
        verification_level: str,
        signal_hash: str | None = None,
    ) -> VerificationResult:
        """
        Verify a zero-knowledge proof of personhood.

        Raises:
            VerificationProviderError: On timeout, rejected proof, or invalid response
        """
        payload = {
            "nullifier_hash": nullifier_hash,
            "proof": proof,
            "merkle_root": merkle_root,
            "verification_level": verification_level,
            "action": self.action,
        }
        if signal_hash is not None:
            payload["signal_hash"] = signal_hash

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/api/v2/verify/{self.app_id}",
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()

                if not data.get("success", False):
                    raise VerificationProviderError("Identity provider did not confirm the proof")
                if data.get("nullifier_hash", nullifier_hash) != nullifier_hash:
                    raise VerificationProviderError("Identity provider returned a different nullifier")

                return VerificationResult(
                    nullifier_hash=nullifier_hash,
                    verification_level=data.get("verification_level", verification_level),
                )

            except httpx.TimeoutException as e:
                raise VerificationProviderError(f"Identity provider timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise VerificationProviderError(
                    f"Identity provider rejected proof: {e.response.status_code}",
                    status_code=e.response.status_code,
                ) from e
            except httpx.RequestError as e:
                raise VerificationProviderError(f"Identity provider unreachable: {e}") from e
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                raise VerificationProviderError(f"Invalid response from identity provider: {e}") from e
