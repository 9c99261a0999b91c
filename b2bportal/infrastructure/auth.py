"""Buyer bearer tokens.

Tokens are HS256 JWTs signed with ``buyer_token_secret``. The buyer ID
travels in the ``sub`` claim and every token carries an ``exp``.
Issuing tokens belongs to the OTP login flow; the order workflow only
verifies them.
"""

from datetime import datetime, timedelta, timezone

import jwt
import structlog

from b2bportal.infrastructure.config import settings

logger = structlog.get_logger()

ALGORITHM = "HS256"


class InvalidBuyerTokenError(Exception):
    """Raised when a bearer token is malformed, forged or expired."""


def issue_buyer_token(
    buyer_id: str,
    secret: str | None = None,
    ttl_seconds: int | None = None,
    now: datetime | None = None,
) -> str:
    """Issue a signed bearer token for a buyer.

    Args:
        buyer_id: Corporate user ID.
        secret: Signing secret, defaults to settings.
        ttl_seconds: Token lifetime, defaults to settings.
        now: Issue time, defaults to the current time.

    Returns:
        Encoded JWT.
    """
    secret = secret or settings.buyer_token_secret
    ttl = ttl_seconds if ttl_seconds is not None else settings.buyer_token_ttl_seconds
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": buyer_id,
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=ttl),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def verify_buyer_token(token: str, secret: str | None = None) -> str:
    """Verify a bearer token and return the buyer ID it names.

    Args:
        token: Encoded JWT.
        secret: Signing secret, defaults to settings.

    Returns:
        Buyer ID.

    Raises:
        InvalidBuyerTokenError: If the token is malformed, forged or expired.
    """
    secret = secret or settings.buyer_token_secret
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise InvalidBuyerTokenError("Token expired") from e
    except jwt.InvalidSignatureError as e:
        logger.warning("Buyer token signature mismatch")
        raise InvalidBuyerTokenError("Invalid token signature") from e
    except jwt.InvalidTokenError as e:
        raise InvalidBuyerTokenError(f"Malformed token: {e}") from e

    buyer_id = claims["sub"]
    if not isinstance(buyer_id, str) or not buyer_id:
        raise InvalidBuyerTokenError("Malformed token: empty subject")
    return buyer_id
