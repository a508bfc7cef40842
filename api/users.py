"""
User administration (admin and superadmin only):
- GET    /users
- POST   /users
- DELETE /users/<id>

An admin never sees, creates or deletes a superadmin; nobody deletes their own account.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g, abort, current_app

from models import storage
from models.user import User
from models.schemas.user import UserCreateSchema, UserOutSchema
from utils.decorators import require_auth, permission_required, PERMISSION_DENIED
from utils.permissions import Capability, Role, parse_role
from utils.security import hash_password

bp = Blueprint("users", __name__, url_prefix="/users")

user_create_schema = UserCreateSchema()
user_out_schema = UserOutSchema()
user_list_out_schema = UserOutSchema(many=True)


@bp.before_request
def authenticate():
    require_auth()


@bp.get("")
@permission_required(Capability.MANAGE_USERS)
def list_users():
    """
    List users
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200: { description: OK }
      401: { description: Unauthorized }
      403: { description: Permission denied }
    """
    query = storage.get_session().query(User)
    if g.current_user.role == Role.ADMIN:
        query = query.filter(User.role != Role.SUPERADMIN)
    rows = query.order_by(User.id.asc()).all()
    return jsonify(user_list_out_schema.dump(rows)), 200


@bp.post("")
@permission_required(Capability.MANAGE_USERS)
def create_user():
    """
    Create a user
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             name: { type: string }
             password: { type: string }
             role: { type: string, enum: [superadmin, admin, employee] }
    responses:
      201: { description: Created }
      400: { description: Validation error }
      403: { description: Permission denied }
      409: { description: Email already exists }
    """
    payload = request.get_json(silent=True)
    data = user_create_schema.load(payload if isinstance(payload, dict) else {})
    role = parse_role(data["role"])

    if g.current_user.role == Role.ADMIN and role == Role.SUPERADMIN:
        abort(403, description=PERMISSION_DENIED)

    session = storage.get_session()
    if session.query(User).filter(User.email == data["email"]).first():
        abort(409, description="Email already exists")

    user = User(
        email=data["email"],
        name=data["name"].strip(),
        password_hash=hash_password(data["password"]),
        role=role,
    )
    user.save()

    return jsonify(user_out_schema.dump(user)), 201


@bp.delete("/<int:user_id>")
@permission_required(Capability.MANAGE_USERS)
def delete_user(user_id: int):
    """
    Delete a user
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      -  in: path
         name: user_id
         type: integer
         required: true
    responses:
      200: { description: Deleted }
      400: { description: Cannot delete yourself }
      403: { description: Permission denied }
      404: { description: User not found }
    """
    if user_id == g.current_user.id:
        abort(400, description="Cannot delete yourself")

    user = storage.get(User, user_id)
    if user is None:
        abort(404, description="User not found")
    if g.current_user.role == Role.ADMIN and user.role == Role.SUPERADMIN:
        abort(403, description=PERMISSION_DENIED)

    # token rows stay for audit; revoked in the same commit as the delete
    current_app.extensions["token_issuer"].revoke_all(user.id)
    user.delete()
    return jsonify({"status": "deleted"}), 200
