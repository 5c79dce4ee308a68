from datetime import datetime

from pydantic import BaseModel, EmailStr

from .approval import CamelModel


class RecoveryRequest(BaseModel):
    email: EmailStr


class RecoveryRequestResponse(BaseModel):
    success: bool
    message: str


class TokenValidationResponse(BaseModel):
    valid: bool


class PasswordResetRequest(BaseModel):
    new_password: str


class PasswordResetResponse(CamelModel):
    success: bool
    message: str
    subject_kind: str
    processed_at: datetime
