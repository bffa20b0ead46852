from __future__ import annotations
from functools import wraps
from flask import request, g, abort
from utils.security import decode_token, TokenError
from models import storage
from models.user import User


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer "):
                abort(401, description="Access token required")
            token = auth.split(" ", 1)[1].strip()
            try:
                decoded = decode_token(token, expected_type="access")
            except TokenError as e:
                abort(401, description=str(e))

            user = storage.get_session().get(User, decoded.get("sub"))
            if not user or not user.is_active:
                abort(401, description="User not found")
            g.current_user = user
            # roles come from the user row, not the token claim
            g.current_user_roles = list(user.roles or [])
            g.current_token_jti = decoded.get("jti")
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the user has ANY of the required roles.
    Deny (403) only if there is NO overlap between user_roles and required_roles.
    """
    req = set(required_roles or [])

    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            user_roles = set(getattr(g, "current_user_roles", []))
            if not (user_roles & req):
                abort(403, description="Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
