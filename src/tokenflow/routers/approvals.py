from fastapi import APIRouter, Depends

from ..deps import get_approval_workflow
from ..logging_config import get_logger
from ..schemas.approval import (
    ApprovalDecisionRequest,
    ApprovalIssueResponse,
    ApprovalResponse,
    TokenStatusResponse,
)
from ..services.approval_workflow import ApprovalWorkflow

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/registrations", tags=["approvals"])


@router.post(
    "/{registration_id}/approval-request",
    response_model=ApprovalIssueResponse,
    response_model_by_alias=True,
    status_code=201,
)
async def request_approval(
    registration_id: str,
    workflow: ApprovalWorkflow = Depends(get_approval_workflow),
):
    issued = await workflow.issue(registration_id)
    return ApprovalIssueResponse(
        registration_id=issued.registration_id,
        approve_url=issued.approve_url,
        reject_url=issued.reject_url,
        expires_at=issued.expires_at,
    )


@router.get("/approval/{token}", response_model=TokenStatusResponse, response_model_by_alias=True)
async def approval_status(token: str, workflow: ApprovalWorkflow = Depends(get_approval_workflow)):
    status = await workflow.status(token)
    return TokenStatusResponse(
        state=status.state,
        action=status.action,
        subject_id=status.subject_id,
        expires_at=status.expires_at,
        consumed_at=status.consumed_at,
        result=status.result,
    )


@router.post("/approval/{token}", response_model=ApprovalResponse, response_model_by_alias=True)
async def decide(
    token: str,
    req: ApprovalDecisionRequest,
    workflow: ApprovalWorkflow = Depends(get_approval_workflow),
):
    logger.debug("approval_decision_received", action=req.action)
    result = await workflow.consume(token, req.action, req.reason)
    return ApprovalResponse(
        success=result.success,
        message=result.message,
        subject_id=result.subject_id,
        status=result.status,
        action=result.action,
        reason=result.reason,
        processed_at=result.processed_at,
    )
