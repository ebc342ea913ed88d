"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env
file as a fallback. Secrets (JWT signing key, gateway API keys, webhook
secrets) never live in source code; .env.example lists every variable.

Pydantic Settings resolves values in this order:
  1. Environment variables (highest priority)
  2. .env file values
  3. Defaults defined here (lowest priority)

Gateway credentials are optional at startup so the service can boot with only
one provider configured. A provider whose credentials are missing fails at
use time: initiation raises GatewayConfigurationError and its webhooks are
rejected by the verifier.

Usage:
    from marketplace_payments.config import settings
    print(settings.GATEWAY_TIMEOUT_SECONDS)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Marketplace Payments API.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign JWT tokens
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Marketplace Payments API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    # JSON lines for log shippers; console rendering when False
    LOG_JSON: bool = True

    # --- Database ---
    # SQLite for local runs; use a postgresql+asyncpg URL in production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/payments.db"
    DB_POOL_SIZE: int = 10
    DB_POOL_TIMEOUT_SECONDS: float = 10.0
    # SQLite busy timeout / driver connect timeout
    DB_CONNECT_TIMEOUT_SECONDS: float = 5.0

    # --- Authentication ---
    # REQUIRED: No default - forces the operator to set a real secret
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # --- Gateways ---
    # Upper bound on a single initiation call to any provider
    GATEWAY_TIMEOUT_SECONDS: float = 15.0
    PAYMENT_TITLE: str = "Marketplace Payment"

    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None

    FLUTTERWAVE_SECRET_KEY: str | None = None
    # The "secret hash" configured on the Flutterwave dashboard; sent back
    # verbatim in the verif-hash header of every webhook
    FLUTTERWAVE_WEBHOOK_HASH: str | None = None
    FLUTTERWAVE_BASE_URL: str = "https://api.flutterwave.com"
    FLUTTERWAVE_REDIRECT_URL: str = "http://localhost:3000/payments/complete"

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
