from flask import Blueprint, jsonify, request, session

from .. import database
from ..errors import NotFound
from ..schemas import CarouselImageCreate, CarouselImageUpdate
from ..utils import admin_required, row_to_dict

carousel_bp = Blueprint("carousel", __name__, url_prefix="/api")


def _get_image(db, image_id):
    row = db.execute("SELECT * FROM carousel_images WHERE id = ?", (image_id,)).fetchone()
    if row is None:
        raise NotFound("Carousel image not found")
    return row


@carousel_bp.get("/carousel-images")
def list_active_images():
    db = database.get_db()
    rows = db.execute(
        """
        SELECT * FROM carousel_images
        WHERE is_active = 1
        ORDER BY display_order ASC, id ASC
        """
    ).fetchall()
    return jsonify([row_to_dict(row) for row in rows])


@carousel_bp.get("/admin/carousel-images")
@admin_required
def list_all_images():
    db = database.get_db()
    rows = db.execute(
        "SELECT * FROM carousel_images ORDER BY display_order ASC, id ASC"
    ).fetchall()
    return jsonify([row_to_dict(row) for row in rows])


@carousel_bp.post("/carousel-images")
@admin_required
def create_image():
    data = CarouselImageCreate.model_validate(request.get_json(silent=True) or {})
    db = database.get_db()
    with db:
        cursor = db.execute(
            """
            INSERT INTO carousel_images
                (image_url, title, description, display_order, is_active, created_by)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                data.image_url,
                data.title,
                data.description,
                data.display_order,
                int(data.is_active),
                session["user_id"],
            ),
        )
    return jsonify(row_to_dict(_get_image(db, cursor.lastrowid))), 201


@carousel_bp.put("/carousel-images/<int:image_id>")
@admin_required
def update_image(image_id):
    data = CarouselImageUpdate.model_validate(request.get_json(silent=True) or {})
    db = database.get_db()
    _get_image(db, image_id)

    changes = data.model_dump(exclude_unset=True)
    # NOT NULL columns: an explicit null leaves the stored value alone
    for key in ("image_url", "display_order", "is_active"):
        if key in changes and changes[key] is None:
            changes.pop(key)
    if "is_active" in changes:
        changes["is_active"] = int(changes["is_active"])

    if changes:
        assignments = ", ".join(f"{name} = ?" for name in changes)
        with db:
            db.execute(
                f"UPDATE carousel_images SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                list(changes.values()) + [image_id],
            )
    return jsonify(row_to_dict(_get_image(db, image_id)))


@carousel_bp.delete("/carousel-images/<int:image_id>")
@admin_required
def delete_image(image_id):
    db = database.get_db()
    _get_image(db, image_id)
    with db:
        db.execute("DELETE FROM carousel_images WHERE id = ?", (image_id,))
    return "", 204
