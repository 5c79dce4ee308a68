from fastapi import APIRouter, Depends

from ..deps import get_recovery_workflow
from ..schemas.recovery import (
    PasswordResetRequest,
    PasswordResetResponse,
    RecoveryRequest,
    RecoveryRequestResponse,
    TokenValidationResponse,
)
from ..services.recovery_workflow import RecoveryWorkflow

router = APIRouter(prefix="/api/v1/password-recovery", tags=["password-recovery"])


@router.post("/request", response_model=RecoveryRequestResponse)
async def request_recovery(
    req: RecoveryRequest, workflow: RecoveryWorkflow = Depends(get_recovery_workflow)
):
    """Always answers the same way, whether or not the email belongs to anyone."""
    body = await workflow.request(str(req.email))
    return RecoveryRequestResponse(**body)


@router.get("/validate/{token}", response_model=TokenValidationResponse)
async def validate_token(token: str, workflow: RecoveryWorkflow = Depends(get_recovery_workflow)):
    return TokenValidationResponse(valid=await workflow.validate(token))


@router.post(
    "/reset/{token}", response_model=PasswordResetResponse, response_model_by_alias=True
)
async def reset_password(
    token: str,
    req: PasswordResetRequest,
    workflow: RecoveryWorkflow = Depends(get_recovery_workflow),
):
    result = await workflow.reset(token, req.new_password)
    return PasswordResetResponse(
        success=result.success,
        message=result.message,
        subject_kind=result.subject_kind,
        processed_at=result.processed_at,
    )
