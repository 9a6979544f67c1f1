import os
import logging
from pydantic import BaseModel, Field
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()

class AuthSettings(BaseModel):
    secret_key: str = Field(default=os.getenv("SECRET_KEY", "dev-only-insecure-key-DO-NOT-USE-IN-PROD"))
    refresh_secret_key: str = Field(default=os.getenv("REFRESH_SECRET_KEY", "dev-only-insecure-refresh-key"))
    algorithm: str = Field(default=os.getenv("JWT_ALGORITHM", "HS256"))
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))
    refresh_token_expire_days: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))
    refresh_cookie_name: str = "refreshToken"

class Config(BaseModel):
    app_name: str = "Leave Ledger API"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"
    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./database.db")

    # Auth
    auth: AuthSettings = AuthSettings()

    # Optional bootstrap admin, created at startup when both are set
    admin_email: Optional[str] = os.getenv("ADMIN_EMAIL")
    admin_password: Optional[str] = os.getenv("ADMIN_PASSWORD")

    # CORS: comma-separated origins loaded from env.
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
            if o.strip()
        ]
    )

    rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))

    # Optimistic-concurrency retries for ledger deductions before giving up with 409
    ledger_max_retries: int = int(os.getenv("LEDGER_MAX_RETRIES", "3"))

settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
if settings.environment not in ("development", "testing"):
    _critical_missing = []
    if "dev-only" in settings.auth.secret_key:
        _critical_missing.append("SECRET_KEY")
    if "dev-only" in settings.auth.refresh_secret_key:
        _critical_missing.append("REFRESH_SECRET_KEY")
    if _critical_missing:
        raise RuntimeError(
            f"FATAL: The following secrets must be set for non-development environments: "
            f"{', '.join(_critical_missing)}. Set them as environment variables."
        )
else:
    if "dev-only" in settings.auth.secret_key:
        _logger.warning("⚠ Using insecure default SECRET_KEY; only acceptable in development.")
