from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from typing import Optional
import logging
import os

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt

from app.config.loader import get_access_token_expire_minutes

# Set up a dedicated logger for authentication events
logger = logging.getLogger("auth_module")
logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())


@dataclass(frozen=True)
class Identity:
    """Caller identity resolved from a verified bearer token."""

    uid: str
    email: Optional[str] = None


# --- Configuration ---
def generate_dev_key() -> str:
    """Generate a secure default key for development environments ONLY."""
    import secrets

    key = secrets.token_urlsafe(48)  # 48 bytes = 64 characters
    logger.warning(
        "\n"
        + "*" * 80
        + "\n"
        + "DEVELOPMENT MODE: Using generated secret key.\n"
        + "This is NOT secure for production use!\n"
        + "Set MEETLINE_JWT_SECRET_KEY in your environment variables for production.\n"
        + "*" * 80
    )
    return key


def validate_secret_key(key: str) -> bool:
    """Validate that a JWT secret key meets minimum security requirements."""
    if not key:
        return False
    if len(key) < 32:
        logger.error("JWT secret key must be at least 32 characters long for security.")
        return False
    return True


def _is_production_mode() -> bool:
    env = os.getenv("MEETLINE_ENV", "development").strip().lower()
    return env in {"production", "prod"}


SECRET_KEY = os.getenv("MEETLINE_JWT_SECRET_KEY")
ALGORITHM = "HS256"
JWT_ISSUER = os.getenv("MEETLINE_JWT_ISSUER", "meetline")
ACCESS_TOKEN_EXPIRE_MINUTES = get_access_token_expire_minutes()

if not SECRET_KEY:
    if _is_production_mode():
        raise RuntimeError(
            "Missing MEETLINE_JWT_SECRET_KEY while MEETLINE_ENV is set to production. "
            + "Configure a strong static secret before startup."
        )
    SECRET_KEY = generate_dev_key()
elif not validate_secret_key(SECRET_KEY):
    raise RuntimeError(
        "Invalid JWT secret key configuration. "
        + "The key must be at least 32 characters long. "
        + "Update MEETLINE_JWT_SECRET_KEY in your environment variables."
    )
else:
    logger.info("JWT secret key validated and loaded from environment.")


# --- Token Utilities ---


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Creates a new JWT access token.
    The 'sub' claim carries the caller's uid; 'email' is optional.
    """
    to_encode = data.copy()
    now = datetime.now(UTC)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire, "iat": now, "iss": JWT_ISSUER})

    try:
        encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
        logger.info(f"Successfully created access token for subject: {data.get('sub')}")
        return encoded_jwt
    except Exception as e:
        logger.error(
            f"Error creating access token for subject {data.get('sub')}: {str(e)}",
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not create access token due to an internal error.",
        )


def verify_token(token: str) -> Identity:
    """
    Decode and validate a bearer token.
    Raises JWTError when the signature, expiry or issuer check fails or
    when the subject claim is missing.
    """
    payload = jwt.decode(
        token,
        SECRET_KEY,
        algorithms=[ALGORITHM],
        issuer=JWT_ISSUER,
        options={"verify_aud": False},
    )
    uid: Optional[str] = payload.get("sub")
    if not uid:
        raise JWTError("'sub' claim missing in token payload")
    return Identity(uid=uid, email=payload.get("email"))


def get_token_from_header(request: Request) -> Optional[str]:
    """Extracts the token from an ``Authorization: Bearer <token>`` header."""
    header = request.headers.get("Authorization")
    if not header:
        logger.debug("No Authorization header found in request.")
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        logger.debug("Authorization header is not a bearer credential.")
        return None
    return token.strip()


def get_current_identity(
    token: Optional[str] = Depends(get_token_from_header),
) -> Identity:
    """
    FastAPI dependency resolving the caller's Identity from the bearer token.
    Raises 401 if the token is missing or invalid.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials. Invalid or expired token.",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if token is None:
        logger.warning("Authentication required: No bearer token found.")
        raise credentials_exception

    try:
        identity = verify_token(token)
    except JWTError as e:
        logger.warning(f"JWTError during token decoding: {str(e)}")
        raise credentials_exception

    logger.debug(f"Token successfully decoded for uid: {identity.uid}")
    return identity
