"""
Shared authentication helpers.
Provides token creation, verification, and role enforcement.
"""

import os
import logging
from contextlib import closing
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Callable, Dict, Optional

import jwt
from flask import g, request
from dotenv import load_dotenv

from event_manager.database.db_connection import get_db
from event_manager.errors import Forbidden, ServerError, Unauthorized

# Load .env only once here
load_dotenv()

# Load secrets & configs
JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET is missing. Set it in .env")

TOKEN_EXPIRATION_MINUTES = int(os.getenv("TOKEN_EXPIRATION_MINUTES", 1440))  # Default 24 hours

VALID_ROLES = ("admin", "user")


def public_user(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shape a users row into the fields we hand back to clients.

    Args:
        row (dict): A users row containing user_id, username, email, role.

    Returns:
        dict: {id, username, email, role}
    """
    return {
        "id": row["user_id"],
        "username": row["username"],
        "email": row["email"],
        "role": row["role"],
    }


# --- JWT CREATION ---
def create_token(user_id: int, role: str) -> str:
    """
    Generates a new JWT for a given user.

    Args:
        user_id (int): The unique ID of the user.
        role (str): The role of the user (admin or user).

    Returns:
        str: Encoded JWT string.
    """
    now = datetime.now(timezone.utc)

    payload = {
        # PyJWT requires the subject claim to be a string
        "sub": str(user_id),
        "role": role,
        "exp": now + timedelta(minutes=TOKEN_EXPIRATION_MINUTES),
        "iat": now
    }

    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


# --- JWT VALIDATION ---
def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode a JWT and return its claims.

    Raises:
        Unauthorized: If the token is expired, malformed or signed with another key.
    """
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid token")


def get_bearer_token() -> Optional[str]:
    """Return the token from `Authorization: Bearer <token>`, or None."""
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    token = auth.split(" ", 1)[1].strip()
    return token or None


def load_user(user_id: int) -> Optional[Dict[str, Any]]:
    """Fetch a live user row by id."""
    sql = "SELECT user_id, username, email, role, created_at FROM users WHERE user_id = %s;"
    try:
        with closing(get_db()) as conn, conn:
            with conn.cursor() as cur:
                cur.execute(sql, (user_id,))
                row = cur.fetchone()
    except Exception:
        logging.exception("Database error loading user")
        raise ServerError("Could not verify user")
    return dict(row) if row else None


def verify_token_from_request() -> Dict[str, Any]:
    """
    Verify the JWT in the Authorization header and resolve it to a live user.

    Returns:
        dict: The user's public identity {id, username, email, role}.

    Raises:
        Unauthorized: Missing/invalid/expired token, or the user no longer exists.
    """
    token = get_bearer_token()
    if not token:
        raise Unauthorized("No token, authorization denied")

    payload = decode_token(token)

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise Unauthorized("Invalid token")

    user = load_user(user_id)
    if not user:
        raise Unauthorized("Invalid token")

    return public_user(user)


def require_role(identity: Dict[str, Any], expected_role: str) -> None:
    """
    Role gate applied after token verification.

    Raises:
        Forbidden: If the identity's role is not `expected_role`.
    """
    if identity.get("role") != expected_role:
        raise Forbidden(f"Access denied. {expected_role} role required.")


# --- ROUTE DECORATORS ---
def token_required(view: Callable) -> Callable:
    """Verify the bearer token and expose the identity as `g.current_user`."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        g.current_user = verify_token_from_request()
        return view(*args, **kwargs)
    return wrapper


def role_required(expected_role: str) -> Callable:
    """Like `token_required`, then reject identities without `expected_role`."""
    def decorator(view: Callable) -> Callable:
        @wraps(view)
        def wrapper(*args, **kwargs):
            g.current_user = verify_token_from_request()
            require_role(g.current_user, expected_role)
            return view(*args, **kwargs)
        return wrapper
    return decorator
