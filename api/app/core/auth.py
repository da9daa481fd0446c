"""Bearer token handling.

Accounts and sign-in live with the identity provider; this API only needs to
mint tokens for seed data and tests, and to verify the ones it receives.
"""

from datetime import UTC, datetime, timedelta

from jose import jwt

from app.core.config import settings


def create_access_token(profile_id: str, lifetime: timedelta | None = None) -> str:
    """Sign an access token whose subject is the profile id."""
    lifetime = lifetime or timedelta(minutes=settings.access_token_expire_minutes)
    payload = {"sub": profile_id, "exp": datetime.now(UTC) + lifetime, "type": "access"}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Verify signature and expiry. Raises JWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
