"""
Session authentication.

Sessions are issued by the main Chatter login flow as HS256 JWTs whose
``sub`` claim is the user ID (plus an optional ``email`` claim). The token
is read from the ``Authorization: Bearer`` header or the ``access_token``
cookie.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt

from chatter_2fa.config import settings
from chatter_2fa.exceptions import AuthenticationError, InvalidTokenError, TokenExpiredError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# OAuth2 scheme for token validation; the cookie is tried when the header is missing
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """The authenticated caller, as asserted by the session token."""

    id: str
    email: str | None = None


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({"exp": expire})

    if "sub" not in to_encode:
        raise ValueError("Missing 'sub' claim (user ID) in token data.")

    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> CurrentUser:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        logger.warning("Token expired")
        raise TokenExpiredError()
    except JWTError as e:
        logger.warning(f"JWT decoding failed: {str(e)}")
        raise InvalidTokenError()

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("Token is missing 'sub' claim")
        raise InvalidTokenError("Token does not contain 'sub' field.")

    return CurrentUser(id=str(user_id), email=payload.get("email"))


async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
) -> CurrentUser:
    token = token or request.cookies.get("access_token")
    if not token:
        logger.debug("No session token in header or cookies")
        raise AuthenticationError()

    return decode_access_token(token)
