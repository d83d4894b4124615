import secrets
from datetime import timedelta

from flask import Blueprint, current_app, jsonify, request

from .. import database
from ..errors import BadRequest
from ..schemas import PasswordResetRequest, PasswordResetVerify
from ..utils import utc_timestamp
from .auth import hash_password

password_reset_bp = Blueprint("password_reset", __name__, url_prefix="/api/password-reset")

RESET_CODE_TTL = timedelta(minutes=15)
REQUEST_MESSAGE = "If this email is registered, a reset code has been sent."
INVALID_CODE_MESSAGE = "Invalid or expired code"


def _generate_code(db, now):
    """Six digits, not shared with any other live token."""
    while True:
        code = f"{secrets.randbelow(1_000_000):06d}"
        clash = db.execute(
            """
            SELECT 1 FROM password_reset_tokens
            WHERE code = ? AND is_used = 0 AND expires_at > ?
            """,
            (code, now),
        ).fetchone()
        if clash is None:
            return code


@password_reset_bp.post("/request")
def request_reset():
    data = PasswordResetRequest.model_validate(request.get_json(silent=True) or {})
    db = database.get_db()
    now = utc_timestamp()

    with db:
        db.execute(
            "DELETE FROM password_reset_tokens WHERE is_used = 0 AND expires_at <= ?",
            (now,),
        )

    response = {"message": REQUEST_MESSAGE}
    user = db.execute(
        "SELECT * FROM users WHERE email = ? COLLATE NOCASE", (data.email,)
    ).fetchone()
    if user is None:
        current_app.logger.info("Password reset requested for an unknown email")
        return jsonify(response), 200

    code = _generate_code(db, now)
    with db:
        db.execute(
            """
            INSERT INTO password_reset_tokens (user_id, token, code, expires_at)
            VALUES (?, ?, ?, ?)
            """,
            (user["id"], secrets.token_urlsafe(32), code, utc_timestamp(RESET_CODE_TTL)),
        )

    if current_app.config["PASSWORD_RESET_DEV_MODE"]:
        response["resetCode"] = code
    else:
        mailer = current_app.extensions["mailer"]
        sent = mailer.send_password_reset(
            user["email"],
            user["name"] or user["username"],
            code,
            minutes=int(RESET_CODE_TTL.total_seconds() // 60),
        )
        if not sent:
            current_app.logger.warning("Reset email for user %s was not delivered", user["id"])

    current_app.logger.info("Issued password reset code for user %s", user["id"])
    return jsonify(response), 200


@password_reset_bp.post("/verify")
def verify_reset():
    data = PasswordResetVerify.model_validate(request.get_json(silent=True) or {})
    db = database.get_db()

    token = db.execute(
        """
        SELECT * FROM password_reset_tokens
        WHERE code = ? AND is_used = 0 AND expires_at > ?
        ORDER BY id DESC
        LIMIT 1
        """,
        (data.code, utc_timestamp()),
    ).fetchone()
    if token is None:
        raise BadRequest(INVALID_CODE_MESSAGE)

    with db:
        claimed = db.execute(
            "UPDATE password_reset_tokens SET is_used = 1 WHERE id = ? AND is_used = 0",
            (token["id"],),
        )
        if claimed.rowcount != 1:
            raise BadRequest(INVALID_CODE_MESSAGE)
        db.execute(
            "UPDATE users SET password = ? WHERE id = ?",
            (hash_password(data.new_password), token["user_id"]),
        )
        # any other outstanding codes for this user are now stale
        db.execute(
            "UPDATE password_reset_tokens SET is_used = 1 WHERE user_id = ? AND is_used = 0",
            (token["user_id"],),
        )

    current_app.logger.info("Password reset completed for user %s", token["user_id"])
    return jsonify({"message": "Password updated successfully"}), 200
