import os
from pathlib import Path

from togo import create_app, database

app = create_app()


def ensure_database():
    """Create the SQLite file and tables on first start."""
    if Path(app.config["DATABASE"]).exists():
        return
    with app.app_context():
        database.init_db()
    app.logger.info("Created database at %s", app.config["DATABASE"])


if __name__ == "__main__":
    ensure_database()
    app.run(
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "5000")),
        debug=os.getenv("FLASK_ENV") != "production",
    )
