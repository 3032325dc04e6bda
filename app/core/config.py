"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma-separated origins. Empty = default list in app.main.
    cors_origins: str = ""

    # ===========================================
    # GOOGLE SHEETS (record store)
    # ===========================================
    spreadsheet_id: str  # Required, no default
    google_sheets_api_url: str = "https://sheets.googleapis.com/v4"
    google_sheets_access_token: str = ""  # OAuth2 token of the service account
    google_sheets_api_key: str = ""  # Optional, read-only fallback
    payments_sheet: str = "Payment"
    gold_payments_sheet: str = "Gold Payment"
    seller_info_sheet: str = "Seller Info"
    # Bounded timeout per store call; expiry is reported as StoreUnavailable
    store_timeout_seconds: float = 15.0

    # ===========================================
    # RECONCILIATION CACHE
    # ===========================================
    cache_refresh_interval_seconds: int = 900  # 15 min
    cache_inactivity_timeout_seconds: int = 1800  # 30 min

    # ===========================================
    # DISCORD (identity + notifications)
    # ===========================================
    discord_api_url: str = "https://discord.com/api/v10"
    discord_bot_token: str = ""
    discord_guild_id: str = ""
    discord_support_role_id: str = ""
    discord_webhook_url: str = ""  # Empty = notifications disabled
    webhook_username: str = "Payment Tracker"
    webhook_avatar_url: str = ""
    webhook_timeout: float = 10.0

    # ===========================================
    # SESSION (signed viewer token)
    # ===========================================
    session_secret: str  # Required, no default
    session_max_age: int = 1800  # 30 minutes
    session_cookie_name: str = "ledger_session"
    # Shared key of the sign-in glue calling POST /auth/session. Empty = route disabled
    internal_api_key: str = ""

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("session_secret")
    @classmethod
    def validate_session_secret(cls, v: str) -> str:
        """Ensure session secret is reasonably secure."""
        if len(v) < 16:
            raise ValueError("session_secret must be at least 16 characters")
        if v in ("changeme", "secret", "password", "admin"):
            raise ValueError("session_secret is too weak, please change it")
        return v

    @field_validator("discord_webhook_url", "google_sheets_api_url", "discord_api_url")
    @classmethod
    def strip_url(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
