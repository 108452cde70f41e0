# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/bizledger/routes/auth.py
"""
Authentication API routes

- register: creates the business user and logs it in
- login: email or username plus password, returns a bearer token
- logout: revokes the presented token
- me: the authenticated user
"""

from flask import Blueprint, request, current_app, g

from ..decorators import require_auth
from ..responses import success, failure, error_response
from ..services import auth_service
from ..services import session_service
from ..services.auth_service import RegistrationError
from ..validation import ConflictError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, token: str, session) -> dict:
    return {
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
    }


@auth_bp.post("/register")
def register_route():
    """
    Register a new business account.

    Returns 400 with every invalid field listed in `errors`, or
    "Email or username already exists" if either is taken.
    """
    payload = request.get_json(silent=True)
    try:
        user = auth_service.register_business(payload)
        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except RegistrationError as e:
        return failure("Validation failed", 400, e.errors)
    except ConflictError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to register user")
        return failure("Internal server error", 500)

    return success(_session_payload(user, token, session), 201, message="User registered successfully")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    Accepts `emailOrUsername` (or `identifier`, `username`, `email`) and
    `password`. Wrong identifier and wrong password look the same.
    """
    data = request.get_json(silent=True) or {}
    identifier = (
        data.get("emailOrUsername")
        or data.get("identifier")
        or data.get("username")
        or data.get("email")
    )
    password = data.get("password")

    if not isinstance(identifier, str) or not isinstance(password, str) or not identifier or not password:
        return failure("Email/username and password are required", 400)

    try:
        user = auth_service.authenticate(identifier, password)
        if not user:
            return failure("Invalid credentials", 401)

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except Exception:
        current_app.logger.exception("Failed to login user")
        return failure("Internal server error", 500)

    return success(_session_payload(user, token, session), message="Login successful")


@auth_bp.route("/logout", methods=["POST", "GET"])
@require_auth
def logout_route():
    try:
        session_service.revoke_session(g.token, reason="User logout")
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return failure("Internal server error", 500)

    return success(message="Logout successful")


@auth_bp.get("/me")
@require_auth
def me_route():
    return success(g.current_user.to_dict())
