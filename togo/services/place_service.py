import json
from typing import Dict, List, Optional

from ..errors import BadRequest, Forbidden, NotFound
from ..schemas import PlaceCreate, PlaceFilters
from ..utils import escape_like, row_to_dict

ACTIVITY_NEW_RECOMMENDATION = "new-recommendation"
ACTIVITY_NEW_RATING = "new-rating"
ACTIVITY_RATING_CHANGED = "rating-changed"

PLACE_SELECT = """
    SELECT p.*, t.name AS type_name, t.created_at AS type_created_at
    FROM places p
    JOIN place_types t ON t.id = p.type_id
"""


def place_to_dict(row) -> Dict:
    data = row_to_dict(row, exclude=("type_name", "type_created_at"))
    data["tags"] = json.loads(row["tags"] or "[]")
    data["type"] = {
        "id": row["type_id"],
        "name": row["type_name"],
        "createdAt": row["type_created_at"],
    }
    return data


def list_places(db, filters: PlaceFilters) -> List:
    conditions = []
    params: list = []

    if filters.type_ids:
        placeholders = ", ".join("?" for _ in filters.type_ids)
        conditions.append(f"p.type_id IN ({placeholders})")
        params.extend(filters.type_ids)
    if filters.state_id is not None:
        conditions.append("p.state_id = ?")
        params.append(filters.state_id)
    if filters.city_id is not None:
        conditions.append("p.city_id = ?")
        params.append(filters.city_id)
    if filters.has_rodizio is not None:
        conditions.append("p.has_rodizio = ?")
        params.append(int(filters.has_rodizio))
    if filters.is_visited is not None:
        conditions.append("p.is_visited = ?")
        params.append(int(filters.is_visited))
    if filters.min_rating is not None:
        conditions.append("p.rating >= ?")
        params.append(filters.min_rating)
    if filters.search:
        conditions.append("p.name LIKE ? ESCAPE '\\'")
        params.append(f"%{escape_like(filters.search.strip())}%")
    if filters.created_by is not None:
        conditions.append("p.created_by = ?")
        params.append(filters.created_by)

    query = PLACE_SELECT
    if conditions:
        query += " WHERE " + " AND ".join(conditions)
    query += " ORDER BY p.created_at DESC, p.id DESC"
    return db.execute(query, params).fetchall()


def get_place(db, place_id):
    return db.execute(PLACE_SELECT + " WHERE p.id = ?", (place_id,)).fetchone()


def get_places_by_ids(db, place_ids) -> Dict:
    place_ids = list(place_ids)
    if not place_ids:
        return {}
    placeholders = ", ".join("?" for _ in place_ids)
    rows = db.execute(
        PLACE_SELECT + f" WHERE p.id IN ({placeholders})", place_ids
    ).fetchall()
    return {row["id"]: row for row in rows}


def require_place(db, place_id):
    place = get_place(db, place_id)
    if place is None:
        raise NotFound("Place not found")
    return place


def ensure_can_modify(place, user):
    if place["created_by"] != user["id"] and not user["is_admin"]:
        raise Forbidden("You can only modify your own places")


def _ensure_type_exists(db, type_id):
    row = db.execute("SELECT id FROM place_types WHERE id = ?", (type_id,)).fetchone()
    if row is None:
        raise BadRequest("Place type not found")


def _to_columns(values: Dict) -> Dict:
    columns = dict(values)
    if "tags" in columns:
        columns["tags"] = json.dumps(columns["tags"] or [], ensure_ascii=False)
    for key in ("has_rodizio", "pet_friendly", "recommend_to_friends", "is_visited", "is_clone"):
        if key in columns and columns[key] is not None:
            columns[key] = int(columns[key])
    return columns


def insert_place(db, values: Dict) -> int:
    """Insert a place row; caller owns the transaction."""
    columns = _to_columns(values)
    names = ", ".join(columns)
    placeholders = ", ".join("?" for _ in columns)
    cursor = db.execute(
        f"INSERT INTO places ({names}) VALUES ({placeholders})",
        list(columns.values()),
    )
    return cursor.lastrowid


def record_activity(db, user_id, activity_type, place_id, old_rating=None, new_rating=None):
    db.execute(
        """
        INSERT INTO activities (user_id, type, place_id, old_rating, new_rating)
        VALUES (?, ?, ?, ?, ?)
        """,
        (user_id, activity_type, place_id, old_rating, new_rating),
    )


def _has_rating(value: Optional[float]) -> bool:
    return value is not None and value > 0


def create_place(db, data: PlaceCreate, user_id):
    _ensure_type_exists(db, data.type_id)
    values = data.model_dump()
    values["created_by"] = user_id

    with db:
        place_id = insert_place(db, values)
        if data.recommend_to_friends:
            record_activity(db, user_id, ACTIVITY_NEW_RECOMMENDATION, place_id)
        if _has_rating(data.rating):
            record_activity(db, user_id, ACTIVITY_NEW_RATING, place_id, new_rating=data.rating)

    return get_place(db, place_id)


def update_place(db, place, changes: Dict, user_id):
    """Apply a partial update and emit the matching activities atomically.

    Activities are attributed to ``user_id`` (the editor) and describe the
    transition from the stored row to the new values.
    """
    if "type_id" in changes:
        if changes["type_id"] is None:
            raise BadRequest("Place type is required")
        _ensure_type_exists(db, changes["type_id"])
    for required in ("name", "state_id", "state_name", "city_id", "city_name"):
        if required in changes and changes[required] is None:
            raise BadRequest(f"{required} cannot be empty")

    if not changes:
        return place

    columns = _to_columns(changes)
    assignments = ", ".join(f"{name} = ?" for name in columns)

    old_rating = place["rating"]
    new_rating = changes.get("rating", old_rating)

    with db:
        db.execute(
            f"UPDATE places SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            list(columns.values()) + [place["id"]],
        )
        if changes.get("recommend_to_friends") and not place["recommend_to_friends"]:
            record_activity(db, user_id, ACTIVITY_NEW_RECOMMENDATION, place["id"])
        if "rating" in changes and _has_rating(new_rating):
            if not _has_rating(old_rating):
                record_activity(db, user_id, ACTIVITY_NEW_RATING, place["id"], new_rating=new_rating)
            elif old_rating != new_rating:
                record_activity(
                    db, user_id, ACTIVITY_RATING_CHANGED, place["id"],
                    old_rating=old_rating, new_rating=new_rating,
                )

    return get_place(db, place["id"])


def delete_place(db, place_id):
    with db:
        db.execute("DELETE FROM places WHERE id = ?", (place_id,))


def get_stats(db, user_id) -> Dict:
    row = db.execute(
        """
        SELECT COUNT(*) AS total,
               COALESCE(SUM(is_visited), 0) AS visited
        FROM places
        WHERE created_by = ?
        """,
        (user_id,),
    ).fetchone()
    total = row["total"]
    visited = row["visited"]
    return {"totalPlaces": total, "visited": visited, "toVisit": total - visited}
