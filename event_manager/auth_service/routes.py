"""
Authentication service route handlers.

Provides routes for:
- User signup
- User login
- Token verification (/verify-token)
- Profile retrieval (/profile)

All JWT logic is delegated to `auth_service.utils`.
"""

import re
import logging
from contextlib import closing
from typing import Tuple, Dict, Any

import psycopg2.errors
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError
from flask import Blueprint, request, jsonify, Response, g

from event_manager.database.db_connection import get_db
from event_manager.auth_service.utils import (
    VALID_ROLES,
    create_token,
    public_user,
    token_required,
)
from event_manager.errors import (
    Conflict,
    InvalidCredentials,
    NotFound,
    ServerError,
    ValidationError,
    register_error_handlers,
)

auth_bp = Blueprint("auth", __name__)
register_error_handlers(auth_bp)
ph = PasswordHasher()

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_MIN_LENGTH = 8
USERNAME_MAX_LENGTH = 50


# --- REQUEST LOGGING ---
@auth_bp.before_request
def before_request() -> None:
    """
    Log every incoming request method and path to the authentication service.
    Headers are not logged since they carry bearer tokens.
    """
    logging.info(f"[Auth] Incoming {request.method} {request.path}")


@auth_bp.after_request
def after_request(response: Response) -> Response:
    """
    Log the response status code for every request.

    Args:
        response (Response): The Flask response object.

    Returns:
        Response: The passed-through response object.
    """
    logging.info(f"[Auth] Response {response.status}")
    return response


# --- SIGNUP ---
@auth_bp.route("/signup", methods=["POST"])
def signup() -> Tuple[Response, int]:
    """
    Register a new user in the system.

    Expects a JSON body with:
    - username (str): Unique username.
    - email (str): Unique email address.
    - password (str): Minimum 8 characters.
    - role (str, optional): "admin" or "user" (default "user").

    Returns:
        201: JSON with message, public user fields, and a new JWT token.
        400: Missing fields, invalid input, or user already exists.
        500: Server-side error (hashing or database).
    """
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    username: str = (data.get("username") or "").strip()
    email: str = (data.get("email") or "").strip().lower()
    password: str = data.get("password") or ""
    role: str = (data.get("role") or "user").strip().lower()

    # Validate input
    if not username or not email or not password:
        raise ValidationError("Username, email and password are required")
    if len(username) > USERNAME_MAX_LENGTH:
        raise ValidationError(f"Username must be {USERNAME_MAX_LENGTH} characters or less")
    if not EMAIL_RE.match(email):
        raise ValidationError("Please enter a valid email address")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(VALID_ROLES)}")

    try:
        with closing(get_db()) as conn, conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT user_id FROM users WHERE email = %s OR username = %s;",
                    (email, username),
                )
                if cur.fetchone():
                    raise Conflict("User already exists")

                pw_hash = ph.hash(password)

                cur.execute(
                    """
                    INSERT INTO users (username, email, password_hash, role)
                    VALUES (%s, %s, %s, %s)
                    RETURNING user_id, username, email, role;
                    """,
                    (username, email, pw_hash, role),
                )
                user = cur.fetchone()
                conn.commit()
    except Conflict:
        raise
    except psycopg2.errors.UniqueViolation:
        # Lost a race with a concurrent signup for the same email/username
        raise Conflict("User already exists")
    except Exception:
        logging.exception("Signup failed")
        raise ServerError("Registration failed")

    # Generate initial token for immediate login
    token = create_token(user["user_id"], user["role"])

    return jsonify({
        "message": "User created successfully",
        "user": public_user(user),
        "token": token,
    }), 201


# --- LOGIN ---
@auth_bp.route("/login", methods=["POST"])
def login() -> Tuple[Response, int]:
    """
    Authenticate a user and return a JWT.

    Expects a JSON body with:
    - email (str)
    - password (str)
    - role (str, optional): accepted for client compatibility, ignored.

    Returns:
        200: JSON with message, public user fields, and JWT token.
        400: Missing or invalid credentials.
        500: Database error.
    """
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    email: str = (data.get("email") or "").strip().lower()
    password: str = data.get("password") or ""

    if not email or not password:
        raise ValidationError("Email and password are required")

    sql = "SELECT user_id, username, email, password_hash, role FROM users WHERE email = %s;"

    try:
        with closing(get_db()) as conn, conn:
            with conn.cursor() as cur:
                cur.execute(sql, (email,))
                user = cur.fetchone()
    except Exception:
        logging.exception("Login lookup failed")
        raise ServerError("Login failed")

    if not user:
        raise InvalidCredentials()

    # Argon2 verification compares hashes in constant time
    try:
        ph.verify(user["password_hash"], password)
    except (VerificationError, InvalidHashError):
        raise InvalidCredentials()

    token = create_token(user["user_id"], user["role"])

    return jsonify({
        "message": "Login successful",
        "user": public_user(user),
        "token": token,
    }), 200


# --- VERIFY TOKEN ---
@auth_bp.route("/verify-token", methods=["GET"])
@token_required
def verify_token_route() -> Tuple[Response, int]:
    """
    Resolve the bearer token to the live user it belongs to.

    Returns:
        200: {id, username, email, role}
        401: Missing, invalid or expired token, or the user no longer exists.
    """
    return jsonify(g.current_user), 200


# --- PROFILE ---
@auth_bp.route("/profile", methods=["GET"])
@token_required
def get_profile() -> Tuple[Response, int]:
    """
    Retrieve the current user's stored record, without the password hash.

    Returns:
        200: {"user": {...}}
        401: Authentication failure.
        404: User not found (deleted between verification and lookup).
    """
    sql = "SELECT user_id, username, email, role, created_at FROM users WHERE user_id = %s;"

    try:
        with closing(get_db()) as conn, conn:
            with conn.cursor() as cur:
                cur.execute(sql, (g.current_user["id"],))
                user = cur.fetchone()
    except Exception:
        logging.exception("Profile lookup failed")
        raise ServerError("Could not retrieve user")

    if not user:
        raise NotFound("User not found")

    profile = public_user(user)
    created_at = user.get("created_at")
    profile["createdAt"] = created_at.isoformat() if created_at else None

    return jsonify({"user": profile}), 200
