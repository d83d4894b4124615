import json
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Dict, Optional

from flask import session
from pydantic.alias_generators import to_camel
from werkzeug.routing import IntegerConverter

from . import database
from .errors import Forbidden, Unauthorized
from .schemas import SQLITE_MAX_INT

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

BOOLEAN_COLUMNS = {
    "is_admin",
    "has_rodizio",
    "pet_friendly",
    "recommend_to_friends",
    "is_visited",
    "is_clone",
    "is_active",
    "is_used",
}


def utc_timestamp(offset: Optional[timedelta] = None) -> str:
    """UTC time in the same text format SQLite uses for CURRENT_TIMESTAMP."""
    now = datetime.now(timezone.utc)
    if offset:
        now += offset
    return now.strftime(TIMESTAMP_FORMAT)


class DbIdConverter(IntegerConverter):
    """``<int:...>`` that only matches ids an SQLite INTEGER can hold."""

    def __init__(self, map, *args, **kwargs):
        kwargs.setdefault("max", SQLITE_MAX_INT)
        super().__init__(map, *args, **kwargs)


def row_to_dict(row, exclude=()) -> Dict:
    """Convert a sqlite3.Row into a camelCase dict ready for jsonify."""
    data = {}
    for key in row.keys():
        if key in exclude:
            continue
        value = row[key]
        if key in BOOLEAN_COLUMNS and value is not None:
            value = bool(value)
        data[to_camel(key)] = value
    return data


def user_to_dict(row, public=False) -> Dict:
    exclude = ("password", "email") if public else ("password",)
    return row_to_dict(row, exclude=exclude)


def current_user_id() -> Optional[int]:
    return session.get("user_id")


def get_current_user():
    user_id = current_user_id()
    if user_id is None:
        return None
    return database.get_db().execute(
        "SELECT * FROM users WHERE id = ?", (user_id,)
    ).fetchone()


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if current_user_id() is None:
            raise Unauthorized("Authentication required")
        return fn(*args, **kwargs)

    return wrapper


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = get_current_user()
        if user is None:
            raise Unauthorized("Authentication required")
        if not user["is_admin"]:
            raise Forbidden("Admin access required")
        return fn(*args, **kwargs)

    return wrapper


def parse_bool(value) -> Optional[bool]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "on", "yes")


def form_to_payload(form, nullable=()) -> Dict:
    """Flatten a multipart form into a dict pydantic can validate.

    Every form value arrives as a string; tags come as a JSON array string.
    An empty string means "not provided", except for keys in ``nullable``
    where it clears the value.
    """
    payload = {}
    for key in form.keys():
        value = form.get(key)
        if value == "" and key in nullable:
            payload[key] = None
            continue
        if value is None or value == "":
            continue
        if key == "tags":
            try:
                value = json.loads(value)
            except ValueError:
                value = value.split(",")
        payload[key] = value
    return payload


def escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
