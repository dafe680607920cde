from functools import lru_cache
from typing import List, Optional
from urllib.parse import quote_plus
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application configuration loaded from environment variables.
    Uses Pydantic's BaseSettings for robust env parsing and validation.
    """

    # App
    APP_NAME: str = "Merchant PO Service"
    PRODUCT_NAME: str = "Merchant Portal"
    COMPANY_NAME: Optional[str] = None
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Database (support single URL or split parts)
    DATABASE_URL: Optional[str] = None
    DB_SCHEME: str = "postgresql+psycopg"
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DB_NAME: str = "merchant_po"
    CREATE_TABLES_ON_STARTUP: bool = False

    # Optional shared key checked on the X-API-Key header. Disabled when unset.
    API_KEY: Optional[str] = None

    # CORS
    # Comma-separated origins, e.g. "http://localhost:3000,https://myapp.com"
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    # Security middleware toggles
    ENABLE_RATE_LIMITER: bool = True
    RATE_LIMIT_REQUESTS: int = 100  # requests
    RATE_LIMIT_WINDOW_SECONDS: int = 60  # per this many seconds
    RATE_LIMIT_STORAGE_URI: Optional[str] = None  # e.g., "redis://localhost:6379"

    # Email / SMTP
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    SMTP_FROM_EMAIL: Optional[str] = None
    SMTP_FROM_NAME: Optional[str] = None
    EMAIL_MIN_INTERVAL_MS: int = 600  # gap between two consecutive sends
    EMAIL_MAX_RETRIES: int = 3
    EMAIL_RETRY_DELAY_SECONDS: float = 1.0

    # Storage / S3
    AWS_REGION: Optional[str] = None
    # Optional explicit credentials (boto3 can also read from environment/instance profile)
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_SESSION_TOKEN: Optional[str] = None
    PO_BUCKET: str = "pofy26"
    INVOICE_BUCKET: str = "invoice-documents"
    TRAVEL_BILL_BUCKET: str = "travel-bill-fy26"
    # When set, public URLs are "{base}/{bucket}/{key}" instead of the S3 virtual-host form
    STORAGE_PUBLIC_BASE_URL: Optional[str] = None

    # Shopify Admin API (legacy admin alert recipients)
    SHOPIFY_STORE: Optional[str] = None  # e.g. "my-store.myshopify.com"
    SHOPIFY_ADMIN_TOKEN: Optional[str] = None
    SHOPIFY_API_VERSION: str = "2025-07"
    SHOPIFY_TIMEOUT_SECONDS: float = 15.0

    # Members of organizations of this type receive PO/PI alerts
    MERCHANT_ORG_TYPE: str = "merchant"

    # Invoice issuer block printed on generated invoices (multi-line values use "\n")
    INVOICE_ISSUER_ADDRESS: str = ""
    INVOICE_ISSUER_REGISTRATION: str = ""
    INVOICE_ISSUER_EMAIL: Optional[str] = None
    # "LABEL: value" per line
    INVOICE_BANK_DETAILS: str = ""
    INVOICE_INTERMEDIARY_BANK_DETAILS: str = ""

    # Pydantic v2 settings configuration
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def allowed_origins_list(self) -> List[str]:
        """
        Parses comma-separated origins into a list. Trims spaces, omits empties.
        """
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    def build_database_url(self) -> str:
        """
        Compose a SQLAlchemy URL from individual DB_* parts when DATABASE_URL is not provided.
        """
        if self.DATABASE_URL:
            return str(self.DATABASE_URL)
        return f"{self.DB_SCHEME}://{self.DB_USER}:{quote_plus(self.DB_PASSWORD)}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    @field_validator("DEBUG", mode="before")
    def _normalize_debug(cls, v):
        # Accept "1", "true", "True", etc.
        if isinstance(v, str):
            return v.lower() in ("1", "true", "yes", "on")
        return bool(v)


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance to avoid re-parsing env on each import.
    """
    return Settings()
