from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
from typing import Optional
import os

app = FastAPI(title="Mock Identity Provider", version="1.0.0")
# Proofs equal to this value are rejected, everything else verifies
INVALID_PROOF = os.getenv("MOCK_INVALID_PROOF", "invalid")

# (app_id, action) -> nullifiers already verified
_verified: dict[tuple[str, str], set[str]] = {}


class VerifyRequest(BaseModel):
    nullifier_hash: str
    proof: str
    merkle_root: str
    verification_level: str = "orb"
    action: str
    signal_hash: Optional[str] = None


@app.get("/health")
def health(): return {"status": "ok"}

@app.post("/api/v2/verify/{app_id}")
def verify(app_id: str, body: VerifyRequest):
    if body.proof == INVALID_PROOF:
        raise HTTPException(status_code=400, detail={"code": "invalid_proof", "detail": "proof could not be verified"})
    seen = _verified.setdefault((app_id, body.action), set())
    if body.nullifier_hash in seen:
        raise HTTPException(status_code=400, detail={"code": "max_verifications_reached", "detail": "already verified"})
    seen.add(body.nullifier_hash)
    return {
        "success": True,
        "action": body.action,
        "nullifier_hash": body.nullifier_hash,
        "verification_level": body.verification_level,
    }

@app.post("/reset")
def reset():
    _verified.clear()
    return {"status": "ok"}
