import random
import re
import sqlite3
from datetime import date

from flask import Blueprint, current_app, jsonify, request, session
from werkzeug.security import check_password_hash, generate_password_hash

from .. import database
from ..errors import BadRequest, NotFound, Unauthorized
from ..schemas import LoginRequest, ProfilePictureUpdate, ProfileUpdate, RegisterRequest
from ..utils import get_current_user, login_required, user_to_dict

auth_bp = Blueprint("auth", __name__, url_prefix="/api")

PASSWORD_METHOD = "scrypt"


def hash_password(password):
    return generate_password_hash(password, method=PASSWORD_METHOD)


def get_user_by_identifier(db, identifier):
    """Identifiers containing '@' are emails, anything else is a username."""
    column = "email" if "@" in identifier else "username"
    return db.execute(
        f"SELECT * FROM users WHERE {column} = ? COLLATE NOCASE", (identifier.strip(),)
    ).fetchone()


def _username_taken(db, username):
    row = db.execute(
        "SELECT 1 FROM users WHERE username = ? COLLATE NOCASE", (username,)
    ).fetchone()
    return row is not None


def _email_taken(db, email):
    row = db.execute(
        "SELECT 1 FROM users WHERE email = ? COLLATE NOCASE", (email,)
    ).fetchone()
    return row is not None


def _start_session(user):
    session.clear()
    session.permanent = True
    session["user_id"] = user["id"]
    session["username"] = user["username"]


@auth_bp.post("/register")
def register():
    data = RegisterRequest.model_validate(request.get_json(silent=True) or {})
    db = database.get_db()

    if _username_taken(db, data.username):
        raise BadRequest("Username already exists")
    if _email_taken(db, data.email):
        raise BadRequest("Email already exists")

    try:
        with db:
            cursor = db.execute(
                "INSERT INTO users (username, email, name, password) VALUES (?, ?, ?, ?)",
                (data.username, data.email, data.name, hash_password(data.password)),
            )
    except sqlite3.IntegrityError:
        raise BadRequest("Username or email already exists")

    user = db.execute("SELECT * FROM users WHERE id = ?", (cursor.lastrowid,)).fetchone()
    _start_session(user)
    current_app.logger.info("Registered user %s (id=%s)", user["username"], user["id"])
    return jsonify(user_to_dict(user)), 201


@auth_bp.post("/login")
def login():
    payload = request.get_json(silent=True) or {}
    if "identifier" not in payload and "username" in payload:
        payload["identifier"] = payload["username"]
    data = LoginRequest.model_validate(payload)

    db = database.get_db()
    user = get_user_by_identifier(db, data.identifier)
    if user is None or not check_password_hash(user["password"], data.password):
        current_app.logger.warning("Failed login for identifier %r", data.identifier)
        raise Unauthorized("Invalid credentials")

    _start_session(user)
    return jsonify(user_to_dict(user)), 200


@auth_bp.post("/logout")
def logout():
    session.clear()
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/user")
def current_user():
    user = get_current_user()
    if user is None:
        raise Unauthorized("Authentication required")
    return jsonify(user_to_dict(user))


@auth_bp.get("/users/<int:user_id>")
def get_user(user_id):
    db = database.get_db()
    user = db.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    if user is None:
        raise NotFound("User not found")
    return jsonify(user_to_dict(user, public=True))


def generate_username_suggestions(db, base_username, limit=4):
    base = re.sub(r"\d+$", "", base_username) or base_username
    year = date.today().year
    candidates = [
        f"{base}{year}",
        f"{base}_togo",
        f"{base}{random.randint(0, 999)}",
        f"{base}_{year}",
        f"{base}{random.randint(0, 99)}",
        f"togo_{base}",
    ]

    suggestions = []
    for candidate in candidates:
        if len(suggestions) >= limit:
            break
        if candidate not in suggestions and not _username_taken(db, candidate):
            suggestions.append(candidate)
    return suggestions


@auth_bp.get("/check-username/<username>")
def check_username(username):
    if len(username) < 3:
        raise BadRequest("Username must be at least 3 characters")

    db = database.get_db()
    if not _username_taken(db, username):
        return jsonify({"available": True, "username": username})
    return jsonify(
        {"available": False, "suggestions": generate_username_suggestions(db, username)}
    )


@auth_bp.put("/user/profile")
@login_required
def update_profile():
    data = ProfileUpdate.model_validate(request.get_json(silent=True) or {})
    changes = data.model_dump(exclude_unset=True)
    db = database.get_db()
    user = get_current_user()

    if changes.get("username") and changes["username"].lower() != user["username"].lower():
        if _username_taken(db, changes["username"]):
            raise BadRequest("Username already exists")
    if changes.get("email") and changes["email"].lower() != user["email"].lower():
        if _email_taken(db, changes["email"]):
            raise BadRequest("Email already exists")
    for required in ("username", "email"):
        if required in changes and not changes[required]:
            raise BadRequest(f"{required} cannot be empty")

    if changes:
        assignments = ", ".join(f"{name} = ?" for name in changes)
        with db:
            db.execute(
                f"UPDATE users SET {assignments} WHERE id = ?",
                list(changes.values()) + [user["id"]],
            )
        if "username" in changes:
            session["username"] = changes["username"]

    return jsonify(user_to_dict(get_current_user()))


@auth_bp.put("/profile-picture")
@login_required
def update_profile_picture():
    data = ProfilePictureUpdate.model_validate(request.get_json(silent=True) or {})
    db = database.get_db()
    with db:
        db.execute(
            "UPDATE users SET profile_picture_url = ? WHERE id = ?",
            (data.image_url, session["user_id"]),
        )
    return jsonify(user_to_dict(get_current_user()))
