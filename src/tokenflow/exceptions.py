"""Workflow error taxonomy.

Every error carries a stable ``code`` and the HTTP status the API maps it to,
so routers can translate them with one exception handler.
"""

from typing import Any, Dict, Optional


class WorkflowError(Exception):
    code = "workflow_error"
    status_code = 400
    default_message = "Workflow error"

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        body.update({k: v for k, v in self.context.items() if v is not None})
        return body


class InvalidTokenError(WorkflowError):
    code = "token_not_found"
    status_code = 404
    default_message = "This link is invalid or has already been removed"


class MalformedTokenError(InvalidTokenError):
    code = "malformed_token"
    default_message = "This link is not a valid token"


class TokenExpiredError(WorkflowError):
    code = "token_expired"
    default_message = "This link has expired; request a new one"


class AlreadyProcessedError(WorkflowError):
    code = "already_processed"
    default_message = "This link has already been used; no further action was taken"


class InvalidStateError(WorkflowError):
    code = "invalid_state"
    default_message = "The record is no longer eligible for this action"


class RegistrationNotFoundError(WorkflowError):
    code = "registration_not_found"
    status_code = 404
    default_message = "No registration exists with this id"


class UpdateFailedError(WorkflowError):
    code = "update_failed"
    status_code = 502
    default_message = "The record could not be updated"


class ValidationError(WorkflowError):
    code = "validation_error"
    default_message = "The request payload is invalid"


class TokenConflictError(WorkflowError):
    code = "token_conflict"
    status_code = 409
    default_message = "A token with this value already exists"


class UnsupportedSubjectKindError(WorkflowError):
    code = "unsupported_subject_kind"
    status_code = 500
    default_message = "No update path is registered for this subject kind"


__all__ = [
    "WorkflowError",
    "InvalidTokenError",
    "MalformedTokenError",
    "TokenExpiredError",
    "AlreadyProcessedError",
    "InvalidStateError",
    "RegistrationNotFoundError",
    "UpdateFailedError",
    "ValidationError",
    "TokenConflictError",
    "UnsupportedSubjectKindError",
]
