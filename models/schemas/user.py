from marshmallow import Schema, fields, pre_load, validates, ValidationError, EXCLUDE

from utils.permissions import Role, parse_role


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


class UserCreateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.Email(required=True)
    name = fields.String(required=True)
    password = fields.String(required=True, load_only=True)
    role = fields.String(load_default=Role.EMPLOYEE.value)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get("email"), str):
            data = dict(data, email=_norm_email(data["email"]))
        return data

    @validates("name")
    def validate_name(self, value, **kwargs):
        if not value.strip():
            raise ValidationError("Name must not be empty.")

    @validates("password")
    def validate_password(self, value, **kwargs):
        if not value:
            raise ValidationError("Password must not be empty.")

    @validates("role")
    def validate_role(self, value, **kwargs):
        try:
            parse_role(value)
        except ValueError:
            raise ValidationError("Invalid role. Must be: superadmin, admin, or employee")


class UserOutSchema(Schema):
    id = fields.Integer()
    email = fields.String()
    name = fields.String()
    role = fields.Method("get_role")
    created_at = fields.DateTime(data_key="createdAt")

    def get_role(self, obj):
        role = getattr(obj, "role", None)
        return role.value if isinstance(role, Role) else role
