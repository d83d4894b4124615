import logging
import os
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask

from . import database
from .errors import register_error_handlers
from .services.email_service import MailerSendClient
from .utils import DbIdConverter, parse_bool


def create_app(test_config=None):
    """Application factory to build the Flask app with blueprints and config."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)
    instance_path = Path(app.instance_path)

    app.config.from_mapping(
        SECRET_KEY=os.getenv("SESSION_SECRET", "dev-secret"),
        DATABASE=os.getenv("DATABASE_PATH", str(instance_path / "togo.db")),
        UPLOAD_FOLDER=os.getenv("UPLOAD_FOLDER", str(instance_path / "uploads")),
        MAX_CONTENT_LENGTH=10 * 1024 * 1024,
        MAILERSEND_API_KEY=os.getenv("MAILERSEND_API_KEY"),
        MAIL_FROM=os.getenv("MAIL_FROM", "noreply@togo.app"),
        MAIL_FROM_NAME=os.getenv("MAIL_FROM_NAME", "ToGo - Password recovery"),
        PASSWORD_RESET_DEV_MODE=bool(parse_bool(os.getenv("PASSWORD_RESET_DEV_MODE"))),
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SECURE=os.getenv("FLASK_ENV") == "production",
        PERMANENT_SESSION_LIFETIME=timedelta(hours=24),
    )
    if test_config is not None:
        app.config.from_mapping(test_config)

    instance_path.mkdir(parents=True, exist_ok=True)
    Path(app.config["UPLOAD_FOLDER"]).mkdir(parents=True, exist_ok=True)

    if not app.testing:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )

    app.url_map.converters["int"] = DbIdConverter

    database.init_app(app)
    register_error_handlers(app)

    app.extensions["mailer"] = MailerSendClient(
        app.config["MAILERSEND_API_KEY"],
        app.config["MAIL_FROM"],
        app.config["MAIL_FROM_NAME"],
    )

    from .blueprints.auth import auth_bp
    from .blueprints.carousel import carousel_bp
    from .blueprints.friends import friends_bp
    from .blueprints.password_reset import password_reset_bp
    from .blueprints.place_types import place_types_bp
    from .blueprints.places import places_bp
    from .blueprints.uploads import uploads_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(place_types_bp)
    app.register_blueprint(places_bp)
    app.register_blueprint(friends_bp)
    app.register_blueprint(carousel_bp)
    app.register_blueprint(password_reset_bp)
    app.register_blueprint(uploads_bp)

    return app
