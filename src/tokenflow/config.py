from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    server_host: str = "0.0.0.0"
    server_port: int = 8080
    # Full database URL for the subject tables (registrations/accounts/affiliates)
    database_url: str = "sqlite+aiosqlite:///./tokenflow.db"
    db_pool_recycle: int = 3600
    db_pool_pre_ping: bool = True
    # Redis; empty means the in-process InMemoryCache is used for tokens
    redis_url: str = ""
    # Approval links stay valid for 7 days
    approval_token_ttl_seconds: int = 604800
    # Recovery links stay valid for 30 minutes
    recovery_token_ttl_seconds: int = 1800
    # Token records (and their consumption markers) are kept this long past
    # expires_at so late clicks report "expired" instead of "unknown".
    token_retention_grace_seconds: int = 86400
    # Minimum wall time of a recovery request, whether or not the email matched
    anti_enumeration_min_seconds: float = 0.5
    password_min_length: int = 8
    password_max_length: int = 128
    # Email / SendGrid
    sendgrid_api_key: str = ""
    email_from: str = "no-reply@example.com"
    frontend_url: str = "http://localhost:5173"
    approval_base_url: str = "http://localhost:8080/api/v1/registrations/approval"
    # Comma separated list of administrators receiving approval requests
    admin_emails: str = "admin@example.com"
    organization_name: str = "the registry"

    def admin_email_list(self) -> list[str]:
        return [e.strip() for e in self.admin_emails.split(",") if e.strip()]
