from .auth import (
    Identity,
    create_access_token,
    verify_token,
    get_token_from_header,
    get_current_identity,
    ACCESS_TOKEN_EXPIRE_MINUTES,
    SECRET_KEY,
    ALGORITHM,
)

__all__ = [
    "Identity",
    "create_access_token",
    "verify_token",
    "get_token_from_header",
    "get_current_identity",
    "ACCESS_TOKEN_EXPIRE_MINUTES",
    "SECRET_KEY",
    "ALGORITHM",
]
