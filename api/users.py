from __future__ import annotations

from flask import Blueprint, abort, g, jsonify, request

from models.schemas.user import PublicUserSchema, UserOutSchema
from utils.decorators import auth_services, jwt_required

bp = Blueprint("users", __name__, url_prefix="/users")

user_out_schema = UserOutSchema()
public_user_schema = PublicUserSchema()


@bp.get("/me")
@jwt_required()
def me():
    """
    Get the current user's profile
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthenticated
    """
    user = auth_services().sessions.get_profile(g.identity.subject_id)
    return jsonify(user_out_schema.dump(user)), 200


@bp.patch("/me")
@jwt_required()
def update_me():
    """
    Update the current user's name and bio
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
             name: { type: string }
             bio: { type: string }
    responses:
      200:
        description: OK
      400:
        description: Invalid input
      401:
        description: Unauthenticated
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        abort(400, description="JSON object expected")
    user = auth_services().sessions.update_profile(g.identity.subject_id, payload)
    return jsonify(user_out_schema.dump(user)), 200


@bp.get("/<user_id>")
@jwt_required()
def get_user(user_id: str):
    """
    Public profile of a user
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      200:
        description: OK
      401:
        description: Unauthenticated
      404:
        description: Not found
    """
    user = auth_services().storage.get_user(user_id)
    if user is None:
        abort(404, description="User not found")
    return jsonify(public_user_schema.dump(user)), 200
