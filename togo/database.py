import sqlite3
from pathlib import Path

import click
from flask import current_app, g
from flask.cli import with_appcontext


def get_db():
    if "db" not in g:
        g.db = sqlite3.connect(
            current_app.config["DATABASE"],
            detect_types=sqlite3.PARSE_DECLTYPES,
        )
        g.db.row_factory = sqlite3.Row
        g.db.execute("PRAGMA foreign_keys = ON")
    return g.db


def close_db(e=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db():
    db = get_db()
    schema_path = Path(current_app.root_path) / "schema.sql"
    with open(schema_path, "r", encoding="utf8") as f:
        db.executescript(f.read())
    db.commit()


@click.command("init-db")
@with_appcontext
def init_db_command():
    """Create the tables (drops existing data)."""
    init_db()
    click.echo("Initialized the database.")


@click.command("create-admin")
@click.argument("username")
@with_appcontext
def create_admin_command(username):
    """Grant the admin flag to an existing user."""
    db = get_db()
    cursor = db.execute(
        "UPDATE users SET is_admin = 1 WHERE username = ?", (username,)
    )
    db.commit()
    if cursor.rowcount == 0:
        raise click.ClickException(f"User '{username}' not found.")
    click.echo(f"{username} is now an admin.")


def init_app(app):
    app.teardown_appcontext(close_db)
    app.cli.add_command(init_db_command)
    app.cli.add_command(create_admin_command)
