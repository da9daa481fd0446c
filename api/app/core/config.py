"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "PadelBook"
    debug: bool = True
    secret_key: str = "dev-secret-change-in-production"
    api_prefix: str = "/api/v1"
    club_timezone: str = "Europe/Paris"

    # Database
    database_url: str = "postgresql+asyncpg://padelbook:padelbook@db:5432/padelbook"
    database_echo: bool = False

    # Redis
    redis_url: str = "redis://redis:6379/0"

    # Auth (tokens are issued by the identity provider; we only verify them)
    access_token_expire_minutes: int = 60
    jwt_algorithm: str = "HS256"

    # Outbound HTTP calls to payment/email providers
    http_timeout_seconds: float = 10.0

    # Brevo transactional email
    brevo_api_key: str = ""
    brevo_api_url: str = "https://api.brevo.com/v3/smtp/email"
    frontend_url: str = "http://localhost:5173"

    # Event type -> Brevo template id, e.g. PB_EMAIL_TEMPLATES='{"booking_created": 3}'
    email_templates: dict[str, int] = {}

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    currency: str = "eur"

    model_config = {"env_prefix": "PB_", "env_file": ".env", "extra": "ignore"}


settings = Settings()
