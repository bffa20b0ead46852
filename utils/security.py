"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT creation/verification via PyJWT
- JTI generation for token identifiers
"""
from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Dict, Any

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHashError

from flask import current_app

from utils.time_utils import utcnow

ph = PasswordHasher()


class TokenError(Exception):
    """Raised for any bearer token that cannot be accepted."""


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    return str(uuid.uuid4())


def create_access_token(user, jti: str = None) -> str:
    """Sign a short-lived access token carrying the user's id and roles."""
    jti = jti or generate_jti()
    now = utcnow()
    expires = current_app.config.get("JWT_TOKEN_EXPIRES", timedelta(hours=24))
    payload = {
        "iss": current_app.config.get("JWT_ISSUER", "sweet-shop-api"),
        "sub": str(user.id),
        "iat": int(now.timestamp()),
        "exp": int((now + expires).timestamp()),
        "type": "access",
        "jti": jti,
        "roles": list(user.roles or []),
    }
    return jwt.encode(payload, current_app.config["JWT_SECRET"], algorithm=current_app.config["JWT_ALGORITHM"])


def decode_token(token: str, expected_type: str = "access") -> Dict[str, Any]:
    """
    Decode and validate a JWT. Raises TokenError on invalid signature/expired jwt
    or when the token type does not match.
    """
    try:
        decoded = jwt.decode(
            token,
            current_app.config["JWT_SECRET"],
            algorithms=[current_app.config["JWT_ALGORITHM"]],
            issuer=current_app.config.get("JWT_ISSUER", "sweet-shop-api"),
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token expired")
    except jwt.InvalidTokenError as exc:
        raise TokenError(f"Invalid token: {exc}")

    if decoded.get("type") != expected_type:
        raise TokenError("Wrong token type")
    return decoded
