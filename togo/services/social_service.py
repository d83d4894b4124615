import json
import sqlite3
from typing import Dict, List, Optional

from ..errors import BadRequest, Forbidden, NotFound
from ..utils import escape_like, row_to_dict, user_to_dict
from . import place_service


def is_following(db, user_id, friend_id) -> bool:
    row = db.execute(
        "SELECT 1 FROM friendships WHERE user_id = ? AND friend_id = ?",
        (user_id, friend_id),
    ).fetchone()
    return row is not None


def list_friends(db, user_id) -> List[Dict]:
    rows = db.execute(
        """
        SELECT f.id, f.user_id, f.friend_id, f.created_at,
               u.username, u.name, u.profile_picture_url, u.is_admin,
               u.created_at AS user_created_at
        FROM friendships f
        JOIN users u ON u.id = f.friend_id
        WHERE f.user_id = ?
        ORDER BY f.created_at DESC, f.id DESC
        """,
        (user_id,),
    ).fetchall()

    friends = []
    for row in rows:
        friends.append(
            {
                "id": row["id"],
                "userId": row["user_id"],
                "friendId": row["friend_id"],
                "createdAt": row["created_at"],
                "friend": {
                    "id": row["friend_id"],
                    "username": row["username"],
                    "name": row["name"],
                    "profilePictureUrl": row["profile_picture_url"],
                    "isAdmin": bool(row["is_admin"]),
                    "createdAt": row["user_created_at"],
                },
            }
        )
    return friends


def add_friend(db, user_id, friend_id) -> Dict:
    if user_id == friend_id:
        raise BadRequest("You cannot follow yourself")
    friend = db.execute("SELECT id FROM users WHERE id = ?", (friend_id,)).fetchone()
    if friend is None:
        raise NotFound("User not found")

    try:
        with db:
            cursor = db.execute(
                "INSERT INTO friendships (user_id, friend_id) VALUES (?, ?)",
                (user_id, friend_id),
            )
    except sqlite3.IntegrityError:
        raise BadRequest("You are already following this user")

    row = db.execute(
        "SELECT * FROM friendships WHERE id = ?", (cursor.lastrowid,)
    ).fetchone()
    return row_to_dict(row)


def remove_friend(db, user_id, friend_id):
    with db:
        cursor = db.execute(
            "DELETE FROM friendships WHERE user_id = ? AND friend_id = ?",
            (user_id, friend_id),
        )
    if cursor.rowcount == 0:
        raise NotFound("Friendship not found")


def search_users(db, query, exclude_user_id, limit=10) -> List[Dict]:
    pattern = f"%{escape_like(query.strip())}%"
    rows = db.execute(
        """
        SELECT * FROM users
        WHERE id != ?
          AND (username LIKE ? ESCAPE '\\' OR email LIKE ? ESCAPE '\\')
        ORDER BY username
        LIMIT ?
        """,
        (exclude_user_id, pattern, pattern, limit),
    ).fetchall()
    return [user_to_dict(row, public=True) for row in rows]


def friend_recommendations(db, friend_id) -> List:
    return db.execute(
        place_service.PLACE_SELECT
        + """
        WHERE p.created_by = ? AND p.recommend_to_friends = 1
        ORDER BY p.created_at DESC, p.id DESC
        """,
        (friend_id,),
    ).fetchall()


def clone_place(db, place_id, user_id):
    """Copy a followee's recommended place into ``user_id``'s catalog.

    The copy is unvisited, unrated and not recommended onward; it keeps a
    pointer to both the source user and the source place.
    """
    source = place_service.require_place(db, place_id)
    owner_id = source["created_by"]

    if owner_id == user_id:
        raise BadRequest("You cannot clone your own place")
    if not is_following(db, user_id, owner_id):
        raise Forbidden("You can only clone places from users you follow")
    if not source["recommend_to_friends"]:
        raise Forbidden("This place is not recommended to friends")

    existing = db.execute(
        "SELECT id FROM places WHERE created_by = ? AND cloned_from_place_id = ?",
        (user_id, place_id),
    ).fetchone()
    if existing is not None:
        raise BadRequest("You have already cloned this specific place")

    values = {
        key: source[key]
        for key in (
            "name",
            "type_id",
            "state_id",
            "state_name",
            "city_id",
            "city_name",
            "address",
            "description",
            "instagram_profile",
            "has_rodizio",
            "pet_friendly",
            "main_image",
            "thumbnail_image",
            "itinerary_file",
        )
    }
    values.update(
        {
            "tags": json.loads(source["tags"] or "[]"),
            "rating": None,
            "is_visited": False,
            "recommend_to_friends": False,
            "is_clone": True,
            "cloned_from_user_id": owner_id,
            "cloned_from_place_id": place_id,
            "created_by": user_id,
        }
    )

    with db:
        new_id = place_service.insert_place(db, values)
    return place_service.get_place(db, new_id)


def friends_activities(db, user_id, limit: Optional[int] = None, offset: int = 0) -> List[Dict]:
    """Activities of everyone ``user_id`` follows, newest first."""
    query = """
        SELECT a.*,
               u.username, u.name, u.profile_picture_url, u.is_admin,
               u.created_at AS user_created_at
        FROM activities a
        JOIN friendships f ON f.friend_id = a.user_id AND f.user_id = ?
        JOIN users u ON u.id = a.user_id
        ORDER BY a.created_at DESC, a.id DESC
    """
    params: list = [user_id]
    if limit is not None:
        query += " LIMIT ? OFFSET ?"
        params.extend([limit, offset])
    elif offset:
        query += " LIMIT -1 OFFSET ?"
        params.append(offset)
    rows = db.execute(query, params).fetchall()

    places = place_service.get_places_by_ids(
        db, {row["place_id"] for row in rows if row["place_id"] is not None}
    )

    feed = []
    for row in rows:
        place_row = places.get(row["place_id"])
        feed.append(
            {
                "id": row["id"],
                "userId": row["user_id"],
                "type": row["type"],
                "placeId": row["place_id"],
                "oldRating": row["old_rating"],
                "newRating": row["new_rating"],
                "createdAt": row["created_at"],
                "user": {
                    "id": row["user_id"],
                    "username": row["username"],
                    "name": row["name"],
                    "profilePictureUrl": row["profile_picture_url"],
                    "isAdmin": bool(row["is_admin"]),
                    "createdAt": row["user_created_at"],
                },
                "place": place_service.place_to_dict(place_row) if place_row else None,
            }
        )
    return feed
