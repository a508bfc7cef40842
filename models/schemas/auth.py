"""
Request/response shapes of the /auth endpoints. The wire format is camelCase.
"""
from marshmallow import Schema, fields, EXCLUDE

from models.schemas.user import UserOutSchema


class LoginSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.String(load_default=None)
    password = fields.String(load_default=None)


class RefreshTokenSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    refresh_token = fields.String(data_key="refreshToken", load_default=None)


class TokenPairSchema(Schema):
    access_token = fields.String(data_key="accessToken")
    refresh_token = fields.String(data_key="refreshToken")
    expires_in = fields.Integer(data_key="expiresIn")
    user = fields.Nested(UserOutSchema, only=("id", "email", "name", "role"))


class AccessGrantSchema(Schema):
    access_token = fields.String(data_key="accessToken")
    expires_in = fields.Integer(data_key="expiresIn")
    # dumped only when refresh tokens are rotated
    refresh_token = fields.String(data_key="refreshToken")
