from flask import Blueprint, current_app, jsonify, request, session

from .. import database
from ..errors import BadRequest, Forbidden
from ..schemas import SQLITE_MAX_INT, FriendRequest
from ..services import place_service, social_service
from ..utils import login_required

friends_bp = Blueprint("friends", __name__, url_prefix="/api")


@friends_bp.get("/friends")
@login_required
def list_friends():
    return jsonify(social_service.list_friends(database.get_db(), session["user_id"]))


@friends_bp.post("/friends")
@login_required
def add_friend():
    data = FriendRequest.model_validate(request.get_json(silent=True) or {})
    friendship = social_service.add_friend(database.get_db(), session["user_id"], data.friend_id)
    current_app.logger.info("User %s now follows %s", session["user_id"], data.friend_id)
    return jsonify(friendship), 201


@friends_bp.delete("/friends/<int:friend_id>")
@login_required
def remove_friend(friend_id):
    social_service.remove_friend(database.get_db(), session["user_id"], friend_id)
    return "", 204


@friends_bp.get("/search-users")
@login_required
def search_users():
    query = (request.args.get("q") or "").strip()
    if not query:
        return jsonify([])
    return jsonify(social_service.search_users(database.get_db(), query, session["user_id"]))


@friends_bp.get("/friends/<int:friend_id>/recommendations")
@login_required
def friend_recommendations(friend_id):
    db = database.get_db()
    if not social_service.is_following(db, session["user_id"], friend_id):
        raise Forbidden("You are not following this user")
    rows = social_service.friend_recommendations(db, friend_id)
    return jsonify([place_service.place_to_dict(row) for row in rows])


@friends_bp.post("/places/<int:place_id>/clone")
@login_required
def clone_place(place_id):
    place = social_service.clone_place(database.get_db(), place_id, session["user_id"])
    current_app.logger.info(
        "User %s cloned place %s as %s", session["user_id"], place_id, place["id"]
    )
    return jsonify(place_service.place_to_dict(place)), 201


def _non_negative_int(name):
    value = request.args.get(name)
    if value is None or value == "":
        return None
    try:
        number = int(value)
    except ValueError:
        raise BadRequest(f"{name} must be an integer")
    if number < 0:
        raise BadRequest(f"{name} must not be negative")
    if number > SQLITE_MAX_INT:
        raise BadRequest(f"{name} is too large")
    return number


@friends_bp.get("/feed")
@login_required
def feed():
    limit = _non_negative_int("limit")
    offset = _non_negative_int("offset") or 0
    activities = social_service.friends_activities(
        database.get_db(), session["user_id"], limit=limit, offset=offset
    )
    return jsonify(activities)
