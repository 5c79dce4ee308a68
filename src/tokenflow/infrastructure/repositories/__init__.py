"""Repository adapters package: explicit public exports.

Call `get_repositories(db_session, cache=None)` to obtain repository instances.
"""


def get_repositories(db_session, cache=None, retention_grace_seconds: int = 86400):
    """Return a simple container of repository instances wired to the given db_session and optional cache."""
    # import concrete implementations lazily so callers obtain repositories
    # only via the factory API (get_repositories) rather than top-level imports
    from .accounts_repository import SqlAlchemyAccountRepository
    from .affiliates_repository import SqlAlchemyAffiliateRepository
    from .registrations_repository import SqlAlchemyRegistrationRepository

    result = {
        "registrations": SqlAlchemyRegistrationRepository(db_session),
        "accounts": SqlAlchemyAccountRepository(db_session),
        "affiliates": SqlAlchemyAffiliateRepository(db_session),
        "tokens": None,
    }

    # Link tokens are cache-only - create only if a cache is available
    if cache is not None:
        from .token_store import CacheTokenStore

        result["tokens"] = CacheTokenStore(cache, retention_grace_seconds=retention_grace_seconds)

    return result


__all__ = ["get_repositories"]
