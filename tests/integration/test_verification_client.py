"""Tests for the identity provider client"""

import httpx
import pytest
from acb_ledger.domain.exceptions import VerificationProviderError
from acb_ledger.infrastructure.clients.verification import VerificationClient


def client_with(handler) -> VerificationClient:
    return VerificationClient(
        base_url="http://identity.test",
        app_id="app_test",
        action="acb-credit-nft",
        transport=httpx.MockTransport(handler),
    )


async def test_verify_against_mock_provider(verification_client: VerificationClient):
    result = await verification_client.verify("0xnull", "0xproof", "0xroot", "device")

    assert result.nullifier_hash == "0xnull"
    assert result.verification_level == "device"


async def test_verify_posts_proof_to_app_endpoint():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = request.read()
        return httpx.Response(200, json={"success": True, "nullifier_hash": "0xnull"})

    await client_with(handler).verify("0xnull", "0xproof", "0xroot", "orb", signal_hash="0xsig")

    assert seen["url"] == "http://identity.test/api/v2/verify/app_test"
    assert b'"action":"acb-credit-nft"' in seen["body"].replace(b" ", b"")
    assert b'"signal_hash":"0xsig"' in seen["body"].replace(b" ", b"")


async def test_verify_unsuccessful_response():
    client = client_with(lambda request: httpx.Response(200, json={"success": False}))

    with pytest.raises(VerificationProviderError):
        await client.verify("0xnull", "0xproof", "0xroot", "orb")


async def test_verify_mismatched_nullifier():
    client = client_with(lambda request: httpx.Response(200, json={"success": True, "nullifier_hash": "0xother"}))

    with pytest.raises(VerificationProviderError):
        await client.verify("0xnull", "0xproof", "0xroot", "orb")


async def test_verify_server_error_carries_status():
    client = client_with(lambda request: httpx.Response(503, json={"detail": "down"}))

    with pytest.raises(VerificationProviderError) as exc_info:
        await client.verify("0xnull", "0xproof", "0xroot", "orb")

    assert exc_info.value.details["status_code"] == 503


async def test_verify_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(VerificationProviderError, match="timeout"):
        await client_with(handler).verify("0xnull", "0xproof", "0xroot", "orb")


async def test_verify_invalid_json():
    client = client_with(lambda request: httpx.Response(200, content=b"not json"))

    with pytest.raises(VerificationProviderError, match="Invalid response"):
        await client.verify("0xnull", "0xproof", "0xroot", "orb")
