from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import computed_field
from functools import lru_cache
from pathlib import Path
import secrets

# Get the project root (repository root, one level above backend/)
PROJECT_ROOT = Path(__file__).parent.parent.parent


class Settings(BaseSettings):

    # Application
    app_env: str = "development"
    app_debug: bool = False
    site_url: str = "http://localhost:3000"  # Public base URL used in tracking/unsubscribe links
    frontend_url: str = "http://localhost:3000"

    # PostgreSQL Configuration
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "badcompany_db"
    postgres_user: str = "badcompany_user"
    postgres_password: str = ""

    # SQLite (local development and tests)
    use_sqlite: bool = False
    sqlite_url: str = "sqlite+aiosqlite:///./data/badcompany.db"

    @computed_field
    @property
    def database_url(self) -> str:
        """Return the appropriate database URL based on configuration."""
        if self.use_sqlite:
            return self.sqlite_url
        return f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    # Database pooling (PostgreSQL)
    db_pool_size: int = 10
    db_max_overflow: int = 5
    db_pool_recycle: int = 1800

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Authentication - JWT issued by the site's login flow
    secret_key: str = secrets.token_urlsafe(32)  # Generate random if not set
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    cookie_access_token_name: str = "badcompany_access_token"
    admin_roles: list[str] = ["admin", "newsletter_manager"]

    # Security Headers
    security_headers_enabled: bool = True
    security_csp_enabled: bool = True
    security_csp_directives: str = (
        "default-src 'self'; "
        "img-src 'self' data: https:; "
        "style-src 'self' 'unsafe-inline'; "
        "frame-ancestors 'none'; "
        "base-uri 'self'; "
        "form-action 'self'"
    )
    security_hsts_enabled: bool = True
    security_hsts_max_age: int = 31536000  # 1 year
    security_hsts_include_subdomains: bool = True
    security_x_frame_options: str = "DENY"
    security_x_content_type_options: bool = True
    security_referrer_policy: str = "strict-origin-when-cross-origin"
    security_permissions_policy: str = "geolocation=(), microphone=(), camera=(), payment=()"

    # Email Configuration
    email_enabled: bool = False  # Default to False so app works without email
    email_from_address: str = "geral@badcompany.pt"
    email_from_name: str = "BadCompany"
    bookings_email: str = "bookings@badcompany.pt"  # Inbox for contact and budget request forms

    # SMTP Settings
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True

    # Retry policy for persistence calls in the newsletter pipeline
    retry_max_attempts: int = 5
    retry_base_delay: float = 1.0  # seconds, doubled per attempt
    retry_max_delay: float = 30.0
    retry_max_jitter: float = 1.0

    # Audience segmentation windows
    engaged_window_days: int = 30
    new_subscriber_window_days: int = 7

    # Newsletter defaults
    newsletter_name_fallback: str = "assinante"
    default_tag_color: str = "#6366F1"

    # Background jobs
    scheduler_enabled: bool = True
    counter_reconcile_interval_minutes: int = 15

    # Metrics
    prometheus_enabled: bool = False

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()

