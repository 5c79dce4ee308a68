from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApprovalDecisionRequest(BaseModel):
    action: str
    reason: Optional[str] = None


class ApprovalIssueResponse(CamelModel):
    registration_id: str
    approve_url: str
    reject_url: str
    expires_at: datetime


class ApprovalResponse(CamelModel):
    success: bool
    message: str
    subject_id: str
    status: str
    action: str
    reason: Optional[str] = None
    processed_at: datetime


class TokenStatusResponse(CamelModel):
    state: str
    action: str
    subject_id: str
    expires_at: datetime
    consumed_at: Optional[datetime] = None
    result: Optional[Dict[str, Any]] = None
