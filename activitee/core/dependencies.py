import logging

import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from activitee.core.config import JWT_SECRET_KEY, JWT_ALGORITHM
from activitee.core.exceptions import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)

security = HTTPBearer(
    scheme_name="Bearer token",
    description="Access token issued by the identity service",
    auto_error=False,
)


def decode_access_token(token: str) -> int:
    """
    Verify a bearer token and return the caller's user id (``sub`` claim)

    Raises:
        ConfigurationError: JWT_SECRET_KEY is not configured
        AuthenticationError: token is expired, malformed or has no usable subject
    """
    if not JWT_SECRET_KEY:
        raise ConfigurationError("JWT_SECRET_KEY", "Token verification is not configured")

    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid bearer token: {str(e)}")
        raise AuthenticationError("Invalid token")

    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError):
        raise AuthenticationError("Token subject is not a user id")


async def get_current_caller(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> int:
    """Dependency: authenticated caller id"""
    if credentials is None or not credentials.credentials.strip():
        raise AuthenticationError("Missing token")

    return decode_access_token(credentials.credentials.strip())
