"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- GET  /auth/me
- PUT  /auth/users/<user_id>/roles (admin only)

Passwords are hashed with argon2 and sessions are stateless HS256 access
tokens (utils.security); no refresh tokens are issued.
"""
from __future__ import annotations

import logging

from flask import Blueprint, request, g, abort, current_app

from models import storage
from models.user import User
from models.schemas.user import UserCreateSchema, UserOutSchema, UserLoginSchema
from utils.decorators import jwt_required, roles_required
from utils.responses import api_response
from utils.security import hash_password, verify_password, create_access_token

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__, url_prefix="/auth")

user_create_schema = UserCreateSchema()
user_out_schema = UserOutSchema()
user_login_schema = UserLoginSchema()


@bp.post("/register")
def register():
    """
    Register a new user.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [name, email, password]
          properties:
            name: { type: string }
            email: { type: string }
            password: { type: string }
    responses:
      201:
        description: Created
      400:
        description: Validation error
      409:
        description: Email already registered
    """
    data = user_create_schema.load(request.get_json(silent=True) or {})

    session = storage.get_session()
    if session.query(User).filter(User.email == data["email"]).first():
        abort(409, description="Email already registered")

    user = User(
        name=data["name"].strip(),
        email=data["email"],
        password_hash=hash_password(data["password"]),
        roles=["user"],
    )
    storage.new(user)
    storage.save()
    logger.info("user %s registered", user.id)

    return api_response(
        {"user": user_out_schema.dump(user), "accessToken": create_access_token(user)},
        "User registered successfully",
        201,
    )


@bp.post("/login")
def login():
    """
    Login: returns a bearer access token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns token)
      401:
        description: Unauthorized
    """
    data = user_login_schema.load(request.get_json(silent=True) or {})

    session = storage.get_session()
    user = session.query(User).filter(User.email == data["email"]).first()
    if not user or not user.is_active or not verify_password(data["password"], user.password_hash):
        abort(401, description="Invalid credentials")

    return api_response(
        {
            "user": user_out_schema.dump(user),
            "accessToken": create_access_token(user),
            "tokenType": "bearer",
            "expiresIn": int(current_app.config["JWT_TOKEN_EXPIRES"].total_seconds()),
        },
        "Login successful",
    )


@bp.get("/me")
@jwt_required()
def me():
    """
    Current user profile
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return api_response(user_out_schema.dump(g.current_user), "User retrieved successfully")


@bp.put("/users/<user_id>/roles")
@roles_required(["admin"])
def set_roles(user_id: str):
    """
    Admin-only: replace a user's roles.
    Body: { "roles": ["admin", "user"] }
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    parameters:
      -  in: path
         name: user_id
         type: string
         required: true
      -  in: body
         name: body
         schema:
           type: object
           properties:
             roles: { type: array, items: { type: string } }
    responses:
      200: { description: OK }
      400: { description: Invalid roles }
      404: { description: User not found }
    """
    payload = request.get_json(silent=True) or {}
    roles = payload.get("roles")
    if not isinstance(roles, list) or not roles:
        abort(400, description="roles must be a non-empty list")

    allowed = set(current_app.config.get("ALLOWED_ROLES", ["admin", "user"]))
    if any(r not in allowed for r in roles):
        abort(400, description=f"Roles must be a subset of {sorted(allowed)}")

    user = storage.get(User, user_id)
    if not user:
        abort(404, description="User not found")

    user.roles = sorted(set(roles))
    storage.save()
    logger.info("roles of user %s set to %s by %s", user_id, user.roles, g.current_user.id)
    return api_response(user_out_schema.dump(user), "Roles updated")
