import pytest

from togo import create_app, database


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test",
            "DATABASE": str(tmp_path / "togo-test.db"),
            "UPLOAD_FOLDER": str(tmp_path / "uploads"),
            "PASSWORD_RESET_DEV_MODE": True,
            "MAILERSEND_API_KEY": None,
        }
    )
    with app.app_context():
        database.init_db()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class AuthActions:
    def __init__(self, client):
        self._client = client

    def register(self, username="ana", email="a@x.com", password="secret123", name=None):
        payload = {"username": username, "email": email, "password": password}
        if name:
            payload["name"] = name
        return self._client.post("/api/register", json=payload)

    def login(self, identifier="ana", password="secret123"):
        return self._client.post(
            "/api/login", json={"identifier": identifier, "password": password}
        )

    def logout(self):
        return self._client.post("/api/logout")


@pytest.fixture
def auth(client):
    return AuthActions(client)


@pytest.fixture
def make_admin(app):
    def _make_admin(username):
        with app.app_context():
            db = database.get_db()
            db.execute("UPDATE users SET is_admin = 1 WHERE username = ?", (username,))
            db.commit()

    return _make_admin


@pytest.fixture
def place_type(client, auth):
    """A 'Restaurante' type created by a throwaway user; the session is cleared afterwards."""
    auth.register("typeowner", "types@x.com")
    response = client.post("/api/place-types", json={"name": "Restaurante"})
    auth.logout()
    return response.get_json()


def place_payload(type_id, **overrides):
    payload = {
        "name": "Churrascaria Boi",
        "typeId": type_id,
        "stateId": 35,
        "stateName": "São Paulo",
        "cityId": 3550308,
        "cityName": "São Paulo",
        "tags": ["carne", "rodízio"],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def create_place(client, place_type):
    def _create_place(**overrides):
        response = client.post("/api/places", json=place_payload(place_type["id"], **overrides))
        assert response.status_code == 201, response.get_json()
        return response.get_json()

    return _create_place
