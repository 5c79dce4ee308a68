"""Ports package - defines interfaces for external dependencies.

Exports the token store, subject collaborator and notification protocols the
workflows are written against.
"""

from .hashing import PasswordHasher
from .notifications import NotificationSender
from .registrations import RegistrationRepository
from .subjects import AccountUpdater, AffiliateCredentialUpdater, SubjectLookup
from .token_store import TokenStore

__all__ = [
    "TokenStore",
    "SubjectLookup",
    "AccountUpdater",
    "AffiliateCredentialUpdater",
    "RegistrationRepository",
    "NotificationSender",
    "PasswordHasher",
]
