import sqlite3

from flask import Blueprint, current_app, jsonify, request

from .. import database
from ..errors import BadRequest, NotFound
from ..schemas import PlaceTypeCreate, PlaceTypeUpdate
from ..utils import login_required, row_to_dict

place_types_bp = Blueprint("place_types", __name__, url_prefix="/api/place-types")


def _get_place_type(db, type_id):
    row = db.execute("SELECT * FROM place_types WHERE id = ?", (type_id,)).fetchone()
    if row is None:
        raise NotFound("Place type not found")
    return row


@place_types_bp.get("")
def list_place_types():
    db = database.get_db()
    rows = db.execute("SELECT * FROM place_types ORDER BY name").fetchall()
    return jsonify([row_to_dict(row) for row in rows])


@place_types_bp.post("")
@login_required
def create_place_type():
    data = PlaceTypeCreate.model_validate(request.get_json(silent=True) or {})
    db = database.get_db()
    try:
        with db:
            cursor = db.execute(
                "INSERT INTO place_types (name) VALUES (?)", (data.name.strip(),)
            )
    except sqlite3.IntegrityError:
        raise BadRequest("Place type already exists")
    return jsonify(row_to_dict(_get_place_type(db, cursor.lastrowid))), 201


@place_types_bp.put("/<int:type_id>")
@login_required
def update_place_type(type_id):
    data = PlaceTypeUpdate.model_validate(request.get_json(silent=True) or {})
    db = database.get_db()
    _get_place_type(db, type_id)

    if data.name:
        try:
            with db:
                db.execute(
                    "UPDATE place_types SET name = ? WHERE id = ?",
                    (data.name.strip(), type_id),
                )
        except sqlite3.IntegrityError:
            raise BadRequest("Place type already exists")
    return jsonify(row_to_dict(_get_place_type(db, type_id)))


@place_types_bp.delete("/<int:type_id>")
@login_required
def delete_place_type(type_id):
    db = database.get_db()
    _get_place_type(db, type_id)

    in_use = db.execute(
        "SELECT COUNT(*) AS total FROM places WHERE type_id = ?", (type_id,)
    ).fetchone()["total"]
    if in_use:
        raise BadRequest(f"Place type is in use by {in_use} place(s) and cannot be deleted")

    try:
        with db:
            db.execute("DELETE FROM place_types WHERE id = ?", (type_id,))
    except sqlite3.IntegrityError:
        raise BadRequest("Place type is in use and cannot be deleted")

    current_app.logger.info("Deleted place type %s", type_id)
    return "", 204
