from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app

from utils.permissions import capabilities_for
from utils.security import InvalidToken, TokenExpired

NO_TOKEN = "No token provided"
INVALID_TOKEN = "Invalid token"
TOKEN_EXPIRED = "Token expired"
PERMISSION_DENIED = "Permission denied"


def require_auth():
    """
    Validate the bearer access token of the current request and put its
    claims on g.current_user. Signature and expiry only; no database access.
    Aborts with 401 on failure.
    """
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        abort(401, description=NO_TOKEN)
    token = auth.split(" ", 1)[1].strip()
    if not token:
        abort(401, description=NO_TOKEN)

    issuer = current_app.extensions["token_issuer"]
    try:
        claims = issuer.decode_access_token(token)
    except TokenExpired:
        abort(401, description=TOKEN_EXPIRED)
    except InvalidToken:
        abort(401, description=INVALID_TOKEN)

    g.current_user = claims
    g.current_user_capabilities = capabilities_for(claims.role)
    return claims


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if getattr(g, "current_user", None) is None:
                require_auth()
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def permission_required(capability):
    """
    Allow access if the authenticated role grants capability, 403 otherwise.
    """
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if capability not in g.current_user_capabilities:
                abort(403, description=PERMISSION_DENIED)
            return fn(*args, **kwargs)

        return wrapper

    return decorator
