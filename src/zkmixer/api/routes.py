"""REST API endpoints for the ZK-Mixer."""

import logging
from dataclasses import dataclass
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from zkmixer.config import Settings, configure_logging, get_settings
from zkmixer.core.ledger import Ledger
from zkmixer.core.mixer import WITHDRAWAL_PUBLIC_INPUTS, MixingLedger
from zkmixer.crypto.groth16 import Proof, VerificationKey
from zkmixer.crypto.trapdoor import DevelopmentSetup
from zkmixer.exceptions import (
    DepositNotFound,
    DeserializationError,
    InsufficientFunds,
    InvalidProof,
    InvalidVerificationKey,
    LedgerError,
    MalformedInputError,
    ProtocolViolation,
    Unauthorized,
    ZKMixerException,
)
from zkmixer.models.schemas import (
    DepositRequest,
    DepositResponse,
    EmergencyWithdrawalRequest,
    EmergencyWithdrawalResponse,
    ErrorResponse,
    HealthResponse,
    MixerStatistics,
    NullifierStatusResponse,
    PoolActiveRequest,
    PoolCreateRequest,
    PoolResponse,
    ProofData,
    RootUpdateRequest,
    VerifyRequest,
    VerifyResponse,
    WithdrawalRequest,
    WithdrawalResponse,
)
from zkmixer.security.auth import AdminCapability, verify_admin_token
from zkmixer.storage.database import SqlLedger, get_db_manager, reset_db_manager
from zkmixer.utils.encoding import bytes_to_hex, hex_to_bytes

# Configure logging
logger = logging.getLogger(__name__)


@dataclass
class MixerService:
    """Everything the endpoints need, built once per process."""

    mixer: MixingLedger
    admin: AdminCapability
    ledger: Ledger
    settings: Settings
    dev_setup: Optional[DevelopmentSetup] = None


_service: Optional[MixerService] = None


def build_service(settings: Optional[Settings] = None, ledger: Optional[Ledger] = None) -> MixerService:
    """
    Wire a mixer from settings.

    Without ``verification_key_path`` a development setup is generated, but
    only when ``allow_dev_setup`` is set; its trapdoor can forge proofs, so it
    must never back real funds.

    Raises:
        InvalidVerificationKey: If no key path is set and development setups
            are not allowed
    """
    settings = settings or get_settings()
    dev_setup = None
    if settings.verification_key_path:
        key = VerificationKey.load(settings.verification_key_path)
    elif not settings.allow_dev_setup:
        raise InvalidVerificationKey(
            "No verification_key_path configured (set allow_dev_setup for development)"
        )
    else:
        dev_setup = DevelopmentSetup(WITHDRAWAL_PUBLIC_INPUTS)
        key = dev_setup.key
    if ledger is None:
        ledger = SqlLedger(get_db_manager(settings.database_url))
    admin = AdminCapability.issue()
    mixer = MixingLedger(key, ledger, admin, settings)
    return MixerService(mixer=mixer, admin=admin, ledger=ledger, settings=settings, dev_setup=dev_setup)


def set_service(service: Optional[MixerService]) -> None:
    """Install the service used by the endpoints (None resets it)."""
    global _service
    _service = service


def get_service() -> MixerService:
    """Get or create the process-wide mixer service."""
    global _service
    if _service is None:
        _service = build_service()
    return _service


def require_admin(
    authorization: Optional[str] = Header(None),
    service: MixerService = Depends(get_service),
) -> AdminCapability:
    """Exchange an admin bearer token for the admin capability."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    payload = verify_admin_token(authorization[7:], service.settings)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired admin token")

    logger.info("Admin request by %s", payload.get("sub"))
    return service.admin


def _parse_proof(proof: ProofData, public_signals: List) -> Proof:
    return Proof.from_snarkjs(proof.model_dump(), public_signals)


# Initialize FastAPI
app = FastAPI(
    title="ZK-Mixer REST API",
    description="Privacy-preserving value mixer with Groth16 withdrawals",
    version="0.1.0",
)


# ============================================================================
# Error Handlers
# ============================================================================


def _status_code_for(exc: ZKMixerException) -> int:
    if isinstance(exc, Unauthorized):
        return 403
    if isinstance(exc, DepositNotFound):
        return 404
    if isinstance(exc, (ProtocolViolation, InvalidProof)):
        return 409
    if isinstance(exc, InsufficientFunds):
        return 402
    if isinstance(exc, LedgerError):
        return 503
    if isinstance(exc, (MalformedInputError, DeserializationError)):
        return 400
    return 500


@app.exception_handler(ZKMixerException)
async def mixer_exception_handler(request: Request, exc: ZKMixerException):
    """Map mixer errors to 4xx responses carrying the error code."""
    return JSONResponse(
        status_code=_status_code_for(exc),
        content=ErrorResponse(error=str(exc), code=exc.code).model_dump(),
    )


# Convert 422 to 400
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Convert Pydantic validation errors (422) to 400 Bad Request."""
    error_messages = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        error_messages.append(f"{field}: {error['msg']}")

    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error="; ".join(error_messages), code="validation_error").model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail), code="http_error").model_dump(),
    )


# ============================================================================
# Health & System Endpoints
# ============================================================================


@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """Check service health and status."""
    return HealthResponse(status="operational")


@app.get("/", tags=["System"])
async def root():
    """API documentation root."""
    return {
        "name": "ZK-Mixer REST API",
        "version": "0.1.0",
        "endpoints": {
            "health": "/health",
            "statistics": "/statistics",
            "create_pool": "POST /pools",
            "pool": "GET /pools/{pool_id}",
            "update_root": "PUT /pools/{pool_id}/root",
            "deposit": "POST /deposit",
            "withdraw": "POST /withdraw",
            "deposit_info": "GET /deposits/{commitment}",
            "nullifier": "GET /nullifiers/{nullifier}",
            "verify": "POST /verify",
        },
    }


@app.get("/statistics", response_model=MixerStatistics, tags=["System"])
def get_statistics(service: MixerService = Depends(get_service)):
    """Get mixer statistics."""
    return MixerStatistics(**service.mixer.get_statistics())


# ============================================================================
# Pool Endpoints
# ============================================================================


@app.post("/pools", response_model=PoolResponse, status_code=201, tags=["Pools"])
def create_pool(
    request: PoolCreateRequest,
    capability: AdminCapability = Depends(require_admin),
    service: MixerService = Depends(get_service),
):
    """Create a mixing pool (admin)."""
    pool = service.mixer.create_pool(
        capability, request.min_delay, request.max_delay, request.merkle_depth
    )
    return PoolResponse(**pool.to_dict())


@app.get("/pools/{pool_id}", response_model=PoolResponse, tags=["Pools"])
def get_pool(pool_id: int, service: MixerService = Depends(get_service)):
    """Get pool configuration and totals."""
    info = service.mixer.get_pool_info(pool_id)
    if info is None:
        raise HTTPException(status_code=404, detail="Pool not found")
    return PoolResponse(**info)


@app.get("/pools/{pool_id}/commitments", tags=["Pools"])
def get_pool_commitments(pool_id: int, service: MixerService = Depends(get_service)):
    """Commitments of a pool in Merkle leaf order."""
    commitments = service.mixer.get_pool_commitments(pool_id)
    return {"pool_id": pool_id, "commitments": [bytes_to_hex(c) for c in commitments]}


@app.put("/pools/{pool_id}/root", response_model=PoolResponse, tags=["Pools"])
def update_root(
    pool_id: int,
    request: RootUpdateRequest,
    capability: AdminCapability = Depends(require_admin),
    service: MixerService = Depends(get_service),
):
    """Publish a new Merkle root for a pool (admin)."""
    service.mixer.update_merkle_root(capability, pool_id, hex_to_bytes(request.merkle_root))
    return PoolResponse(**service.mixer.get_pool_info(pool_id))


@app.put("/pools/{pool_id}/active", response_model=PoolResponse, tags=["Pools"])
def set_pool_active(
    pool_id: int,
    request: PoolActiveRequest,
    capability: AdminCapability = Depends(require_admin),
    service: MixerService = Depends(get_service),
):
    """Activate or deactivate a pool (admin)."""
    service.mixer.set_pool_active(capability, pool_id, request.active)
    return PoolResponse(**service.mixer.get_pool_info(pool_id))


@app.post("/admin/pause", response_model=MixerStatistics, tags=["Admin"])
def pause(
    capability: AdminCapability = Depends(require_admin),
    service: MixerService = Depends(get_service),
):
    """Pause deposits and withdrawals (admin)."""
    service.mixer.pause(capability)
    return MixerStatistics(**service.mixer.get_statistics())


@app.post("/admin/unpause", response_model=MixerStatistics, tags=["Admin"])
def unpause(
    capability: AdminCapability = Depends(require_admin),
    service: MixerService = Depends(get_service),
):
    """Resume deposits and withdrawals (admin)."""
    service.mixer.unpause(capability)
    return MixerStatistics(**service.mixer.get_statistics())


@app.post(
    "/pools/{pool_id}/emergency-withdraw",
    response_model=EmergencyWithdrawalResponse,
    tags=["Admin"],
)
def emergency_withdraw(
    pool_id: int,
    request: EmergencyWithdrawalRequest,
    capability: AdminCapability = Depends(require_admin),
    service: MixerService = Depends(get_service),
):
    """Drain a pool to a recipient while the mixer is paused (admin)."""
    amount = service.mixer.emergency_withdraw(capability, pool_id, request.recipient)
    return EmergencyWithdrawalResponse(pool_id=pool_id, recipient=request.recipient, amount=amount)


# ============================================================================
# Deposit & Withdrawal Endpoints
# ============================================================================


@app.post("/deposit", response_model=DepositResponse, tags=["Deposit"])
def deposit(request: DepositRequest, service: MixerService = Depends(get_service)):
    """
    Deposit under a commitment.

    - **commitment**: H(secret, amount, nullifier_seed) as 32-byte hex
    - **pool_id**: Target pool
    - **amount**: Amount in base units
    - **depositor**: Ledger account debited
    """
    record = service.mixer.deposit(
        hex_to_bytes(request.commitment), request.pool_id, request.amount, request.depositor
    )
    return DepositResponse(**record.to_dict())


@app.get("/deposits/{commitment}", response_model=DepositResponse, tags=["Deposit"])
def get_deposit(commitment: str, service: MixerService = Depends(get_service)):
    """Public deposit metadata."""
    info = service.mixer.get_deposit_info(hex_to_bytes(commitment))
    if info is None:
        raise HTTPException(status_code=404, detail="Deposit not found")
    return DepositResponse(**info)


@app.post("/withdraw", response_model=WithdrawalResponse, tags=["Withdrawal"])
def withdraw(request: WithdrawalRequest, service: MixerService = Depends(get_service)):
    """
    Withdraw to a recipient with a Groth16 proof.

    The public signals must be (merkle_root, nullifier, recipient, amount)
    exactly as rebuilt from the request fields.
    """
    proof = _parse_proof(request.proof, request.public_signals)
    receipt = service.mixer.withdraw(
        hex_to_bytes(request.nullifier), request.recipient, request.amount, proof
    )
    return WithdrawalResponse(**receipt.to_dict())


@app.get("/nullifiers/{nullifier}", response_model=NullifierStatusResponse, tags=["Withdrawal"])
def get_nullifier(nullifier: str, service: MixerService = Depends(get_service)):
    """Whether a nullifier has been spent."""
    key = hex_to_bytes(nullifier)
    return NullifierStatusResponse(
        nullifier=bytes_to_hex(key), used=service.mixer.is_nullifier_used(key)
    )


@app.post("/verify", response_model=VerifyResponse, tags=["Withdrawal"])
def verify_proof(request: VerifyRequest, service: MixerService = Depends(get_service)):
    """Verify a proof against the mixer's key without spending anything."""
    proof = _parse_proof(request.proof, request.public_signals)
    return VerifyResponse(valid=service.mixer.verifier.verify(proof, proof.public_inputs))


# ============================================================================
# Startup and Shutdown
# ============================================================================


@app.on_event("startup")
async def startup():
    """Configure logging and build the mixer service."""
    configure_logging()
    service = get_service()
    if service.dev_setup is not None:
        logger.warning("allow_dev_setup is set; proofs are checked against a development key")


@app.on_event("shutdown")
async def shutdown():
    """Release database connections."""
    reset_db_manager()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
