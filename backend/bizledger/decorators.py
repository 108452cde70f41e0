# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, g

from .responses import error_response, failure
from .services import session_service
from .services.concurrency import PersistenceFailure
from .services.session_service import UnauthorizedError


def require_auth(f):
    """
    Require a bearer token and establish the business context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.business_id: The caller's business id (== user id)
    - g.session_context: The full SessionContext object
    - g.token: The presented plaintext token (used by logout)

    SECURITY: Returns 401 if the header is missing or malformed, or the
    token is unknown, expired or revoked, or the user is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            token = session_service.bearer_token(request.headers.get("Authorization"))
        except UnauthorizedError as e:
            return failure(str(e), 401)

        try:
            context = session_service.validate_session(token)
        except PersistenceFailure as e:
            return error_response(e)
        if not context:
            return failure("Token is not valid", 401)

        g.current_user = context.user
        g.business_id = context.business_id
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function
