"""
Authentication blueprint:
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- GET  /auth/me

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived signed access tokens (HS256 JWT, 15 min) and opaque
  refresh tokens (7 days) stored in the refresh_tokens table
- Gates login behind the per-IP LoginRateLimiter
- Records every outcome in the audit log
"""
from __future__ import annotations

import logging

from flask import Blueprint, request, jsonify, g, abort, current_app
from marshmallow import ValidationError
from werkzeug.exceptions import TooManyRequests

from models import storage
from models.audit_log import AuditEvent
from models.schemas.auth import LoginSchema, RefreshTokenSchema, TokenPairSchema, AccessGrantSchema

from utils.decorators import jwt_required
from utils.tokens import InvalidCredentials, InvalidRefreshToken

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__, url_prefix="/auth")

login_schema = LoginSchema()
refresh_token_schema = RefreshTokenSchema()
token_pair_schema = TokenPairSchema()
access_grant_schema = AccessGrantSchema()
access_grant_no_refresh_schema = AccessGrantSchema(exclude=("refresh_token",))


def get_client_info() -> tuple[str, str]:
    forwarded = request.headers.get("X-Forwarded-For", "")
    ip = forwarded.split(",")[0].strip() or request.headers.get("X-Real-IP", "").strip() or "unknown"
    user_agent = request.headers.get("User-Agent") or "unknown"
    return ip, user_agent


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


@bp.post("/login")
def login():
    """
    Login: return accessToken and refreshToken
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
        description: OK (returns tokens and the user)
      400:
        description: Missing email or password
      401:
        description: Invalid email or password
      429:
        description: Too many attempts from this IP (see retryAfter)
    """
    ip, user_agent = get_client_info()
    limiter = current_app.extensions["rate_limiter"]
    audit = current_app.extensions["audit_logger"]
    issuer = current_app.extensions["token_issuer"]

    decision = limiter.check(ip)
    if not decision.allowed:
        raise TooManyRequests(
            description="Too many login attempts. Please try again later.",
            retry_after=decision.retry_after,
        )

    try:
        data = login_schema.load(_json_body())
    except ValidationError:
        data = {}
    email = data.get("email")
    password = data.get("password")
    if not email or not password:
        audit.record(AuditEvent.LOGIN_ATTEMPT, email=email, ip=ip, user_agent=user_agent,
                     success=False, details="Missing credentials")
        abort(400, description="Email and password are required")

    try:
        pair = issuer.login(email, password)
    except InvalidCredentials as exc:
        audit.record(AuditEvent.LOGIN_FAILURE, user_id=exc.user.id if exc.user else None, email=email,
                     ip=ip, user_agent=user_agent, success=False, details=exc.reason)
        raise
    except Exception as exc:
        storage.rollback()
        audit.record(AuditEvent.LOGIN_ERROR, email=email, ip=ip, user_agent=user_agent,
                     success=False, details=f"{exc.__class__.__name__}: {exc}")
        raise

    limiter.reset(ip)
    audit.record(AuditEvent.LOGIN_SUCCESS, user_id=pair.user.id, email=pair.user.email,
                 ip=ip, user_agent=user_agent, success=True)
    logger.info("user %s logged in", pair.user.id)

    return jsonify(token_pair_schema.dump(pair)), 200


@bp.post("/refresh")
def refresh():
    """
    Exchange a refresh token for a new access token
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
             refreshToken: { type: string }
    responses:
      200:
        description: OK (returns accessToken, expiresIn)
      400:
        description: Missing refresh token
      401:
        description: Invalid, expired or revoked refresh token
    """
    ip, user_agent = get_client_info()
    audit = current_app.extensions["audit_logger"]
    issuer = current_app.extensions["token_issuer"]

    data = refresh_token_schema.load(_json_body())
    token = data.get("refresh_token")
    if not token:
        abort(400, description="Refresh token required")

    try:
        grant = issuer.refresh(token)
    except InvalidRefreshToken as exc:
        audit.record(AuditEvent.REFRESH_FAILED, ip=ip, user_agent=user_agent, success=False, details=exc.reason)
        raise

    audit.record(AuditEvent.TOKEN_REFRESH, user_id=grant.user.id, email=grant.user.email,
                 ip=ip, user_agent=user_agent, success=True)

    schema = access_grant_schema if grant.refresh_token else access_grant_no_refresh_schema
    return jsonify(schema.dump(grant)), 200


@bp.post("/logout")
def logout():
    """
    logout: revokes the refresh token; always succeeds
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
             refreshToken: { type: string }
    responses:
      200:
        description: "{success: true}, also for unknown or already revoked tokens"
    """
    ip, user_agent = get_client_info()
    audit = current_app.extensions["audit_logger"]
    issuer = current_app.extensions["token_issuer"]

    try:
        token = refresh_token_schema.load(_json_body()).get("refresh_token")
    except ValidationError:
        token = None

    if token:
        revoked = issuer.logout(token)
        if revoked is not None:
            email = revoked.user.email if revoked.user is not None else None
            audit.record(AuditEvent.LOGOUT, user_id=revoked.user_id, email=email,
                         ip=ip, user_agent=user_agent, success=True)

    return jsonify({"success": True}), 200


@bp.get("/me")
@jwt_required()
def me():
    """
    Get the identity carried by the access token
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
    return jsonify({"user": g.current_user.to_dict()}), 200
