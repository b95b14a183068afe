"""Authentication API for operators and students."""
from flask import Blueprint, request
from campus_access import limiter
from campus_access.services.auth_service import AuthService
from campus_access.utils.decorators import current_user, roles_required
from campus_access.utils.helpers import success_response, error_response

auth_bp = Blueprint("auth", __name__)

@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per minute")
def login():
    """Email and password login."""
    data = request.get_json(silent=True)

    if not isinstance(data, dict):
        return error_response("Request body must be JSON", 400)

    email = data.get("email") or ""
    password = data.get("password") or ""

    if not isinstance(email, str) or not isinstance(password, str) or not email.strip() or not password:
        return error_response("Email and password are required", 400)

    result, error = AuthService.login(email, password)

    if error:
        return error_response(error, 401)

    return success_response(
        data=result,
        message="Login successful"
    )

@auth_bp.route("/me", methods=["GET"])
@roles_required()
def get_current_user():
    """Profile of the authenticated operator or student."""
    return success_response(data=current_user().to_dict())
