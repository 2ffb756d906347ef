"""REST API endpoints for the ZK-Mixer."""

import logging
from datetime import timedelta
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from zkmixer.config import MixerSettings, get_settings
from zkmixer.core.mixer import WithdrawalRequest as MixerWithdrawalRequest
from zkmixer.core.mixer import ZKMixer
from zkmixer.core.verifier import build_verifier
from zkmixer.models.schemas import (
    BatchWithdrawalRequest,
    BatchWithdrawalResponse,
    CommitmentsResponse,
    DepositRequest,
    DepositResponse,
    DrainRequest,
    DrainResponse,
    ErrorResponse,
    MerklePathResponse,
    MixerStateResponse,
    NullifierStatusResponse,
    RootsResponse,
    RootStatusResponse,
    WithdrawalRequest,
    WithdrawalResponse,
)
from zkmixer.security import ADMIN_ROLE, create_access_token, verify_access_token
from zkmixer.storage import get_db_manager
from zkmixer.utils.encoding import field_to_hex, hex_to_field
from zkmixer.exceptions import ZKMixerException

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "WrongAmount": 400,
    "InvalidRecipient": 400,
    "InvalidRoot": 400,
    "InvalidProof": 400,
    "Unauthorized": 403,
    "InvalidLeafIndex": 404,
    "DuplicateCommitment": 409,
    "CapacityExceeded": 409,
    "NullifierAlreadySpent": 409,
    "AdminError": 409,
    "TransferFailed": 502,
    "SystemPaused": 503,
}


def create_mixer(settings: MixerSettings) -> ZKMixer:
    """Wire a mixer from settings, restoring persisted state when configured."""
    verifier = build_verifier(
        settings.verifier_backend,
        verification_key_path=settings.verification_key_path,
        snarkjs_bin=settings.snarkjs_bin,
        timeout=settings.snark_timeout_secs,
    )

    if not settings.database_url:
        return ZKMixer.from_settings(settings, verifier=verifier)

    db = get_db_manager(settings.database_url)
    snapshot = db.load_snapshot()
    return ZKMixer.from_snapshot(
        snapshot,
        verifier=verifier,
        store=db,
        depth=settings.tree_depth,
        deposit_amount=settings.deposit_amount,
        root_history_size=settings.root_history_size,
        owner=settings.owner_address,
    )


def issue_admin_token(settings: Optional[MixerSettings] = None) -> str:
    """Mint an admin bearer token for the configured owner."""
    settings = settings or get_settings()
    token, _ = create_access_token(
        settings.owner_address,
        settings.secret_key,
        expires_delta=timedelta(hours=settings.access_token_expire_hours),
    )
    return token


def get_mixer(request: Request) -> ZKMixer:
    return request.app.state.mixer


async def require_admin(request: Request, authorization: Optional[str] = Header(None)) -> str:
    """Resolve the caller address from an admin bearer token."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    payload = verify_access_token(authorization[7:], request.app.state.settings.secret_key)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    if payload.get("role") != ADMIN_ROLE:
        raise HTTPException(status_code=403, detail="Admin access required")
    return payload["sub"]


def create_app(mixer: Optional[ZKMixer] = None, settings: Optional[MixerSettings] = None) -> FastAPI:
    """Build the FastAPI application around a mixer instance."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="ZK-Mixer REST API",
        description="Fixed-denomination mixer with Merkle commitments and nullifiers",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.mixer = mixer if mixer is not None else create_mixer(settings)

    @app.exception_handler(ZKMixerException)
    async def mixer_exception_handler(request: Request, exc: ZKMixerException):
        status = ERROR_STATUS.get(exc.code, 500)
        if status >= 500:
            logger.error(f"{request.url.path} failed: {exc.code}: {exc}")
        return JSONResponse(
            status_code=status,
            content=ErrorResponse(error=exc.code, detail=str(exc)).model_dump(),
        )

    # Convert Pydantic validation errors (422) to 400 Bad Request
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        error_messages = []
        for error in exc.errors():
            field = " -> ".join(str(loc) for loc in error["loc"])
            error_messages.append(f"{field}: {error['msg']}")

        return JSONResponse(status_code=400, content={"detail": "; ".join(error_messages)})

    # ============================================================================
    # Health & State Endpoints
    # ============================================================================

    @app.get("/health", tags=["System"])
    async def health_check():
        """Check service health and status."""
        return {"status": "operational", "version": app.version}

    @app.get("/state", response_model=MixerStateResponse, tags=["System"])
    def get_state(mixer: ZKMixer = Depends(get_mixer)):
        """Get current mixer state."""
        return MixerStateResponse(**mixer.get_state().to_dict())

    @app.get("/roots", response_model=RootsResponse, tags=["State"])
    def list_roots(mixer: ZKMixer = Depends(get_mixer)):
        """Root history window; any of these may be proven against."""
        roots = mixer.roots()
        return RootsResponse(
            roots=[field_to_hex(r) for r in roots],
            latest=field_to_hex(roots[-1]) if roots else None,
            policy=mixer.root_history.policy,
        )

    @app.get("/roots/{root}", response_model=RootStatusResponse, tags=["State"])
    def root_status(root: str, mixer: ZKMixer = Depends(get_mixer)):
        value = _parse_field(root)
        return RootStatusResponse(root=field_to_hex(value), valid=mixer.is_known_root(value))

    @app.get("/commitments", response_model=CommitmentsResponse, tags=["State"])
    def list_commitments(mixer: ZKMixer = Depends(get_mixer)):
        """Ordered leaf array, for clients building authentication paths."""
        leaves = mixer.commitments()
        return CommitmentsResponse(commitments=[field_to_hex(c) for c in leaves], count=len(leaves))

    @app.get("/commitments/{leaf_index}/path", response_model=MerklePathResponse, tags=["State"])
    def get_path(leaf_index: int, mixer: ZKMixer = Depends(get_mixer)):
        return MerklePathResponse(**mixer.get_path(leaf_index).to_dict())

    @app.get("/nullifiers/{nullifier_hash}", response_model=NullifierStatusResponse, tags=["State"])
    def nullifier_status(nullifier_hash: str, mixer: ZKMixer = Depends(get_mixer)):
        value = _parse_field(nullifier_hash)
        return NullifierStatusResponse(nullifier_hash=field_to_hex(value), spent=mixer.is_spent(value))

    # ============================================================================
    # Deposit & Withdrawal Endpoints
    # ============================================================================

    @app.post("/deposit", response_model=DepositResponse, tags=["Deposit"])
    def deposit(request: DepositRequest, mixer: ZKMixer = Depends(get_mixer)):
        """
        Insert a commitment.

        - **commitment**: H(secret, nullifier_secret), hex
        - **value**: must equal the fixed denomination
        """
        receipt = mixer.deposit(hex_to_field(request.commitment), request.value)
        return DepositResponse(
            commitment=field_to_hex(receipt.commitment),
            leaf_index=receipt.leaf_index,
            root=field_to_hex(receipt.root),
            timestamp=receipt.timestamp,
        )

    @app.post("/withdraw", response_model=WithdrawalResponse, tags=["Withdrawal"])
    def withdraw(request: WithdrawalRequest, mixer: ZKMixer = Depends(get_mixer)):
        """Redeem one deposit to the recipient bound in the proof."""
        receipt = mixer.withdraw(
            request.proof,
            hex_to_field(request.root),
            hex_to_field(request.nullifier_hash),
            request.recipient,
        )
        return WithdrawalResponse(
            recipient=receipt.recipient,
            nullifier_hash=field_to_hex(receipt.nullifier_hash),
            amount=receipt.amount,
            timestamp=receipt.timestamp,
        )

    @app.post("/withdraw/batch", response_model=BatchWithdrawalResponse, tags=["Withdrawal"])
    def withdraw_batch(request: BatchWithdrawalRequest, mixer: ZKMixer = Depends(get_mixer)):
        """Independent withdrawals; one failure does not affect the others."""
        results = mixer.withdraw_batch(
            [
                MixerWithdrawalRequest(
                    proof=item.proof,
                    root=hex_to_field(item.root),
                    nullifier_hash=hex_to_field(item.nullifier_hash),
                    recipient=item.recipient,
                )
                for item in request.requests
            ]
        )
        return BatchWithdrawalResponse(results=results, succeeded=sum(results))

    # ============================================================================
    # Administrative Endpoints
    # ============================================================================

    @app.post("/admin/pause", tags=["Admin"])
    def pause(caller: str = Depends(require_admin), mixer: ZKMixer = Depends(get_mixer)):
        mixer.pause(caller)
        return {"paused": True}

    @app.post("/admin/unpause", tags=["Admin"])
    def unpause(caller: str = Depends(require_admin), mixer: ZKMixer = Depends(get_mixer)):
        mixer.unpause(caller)
        return {"paused": False}

    @app.post("/admin/drain", response_model=DrainResponse, tags=["Admin"])
    def drain(
        request: DrainRequest,
        caller: str = Depends(require_admin),
        mixer: ZKMixer = Depends(get_mixer),
    ):
        receipt = mixer.emergency_drain(caller, request.recipient)
        return DrainResponse(recipient=receipt.recipient, amount=receipt.amount)

    return app


def _parse_field(value: str) -> int:
    try:
        return hex_to_field(value)
    except (ValueError, TypeError):
        raise HTTPException(status_code=400, detail="Expected a hex field element")


app = create_app()


def main():
    """Serve the API with uvicorn."""
    uvicorn.run("zkmixer.api.routes:app", host="0.0.0.0", port=8000)
