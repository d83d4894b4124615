import pytest

from togo import database


@pytest.fixture
def users(auth):
    """Register ana, bruno and carla; returns their ids. Nobody is logged in afterwards."""
    ids = {}
    for username in ("ana", "bruno", "carla"):
        ids[username] = auth.register(username, f"{username}@x.com").get_json()["id"]
        auth.logout()
    return ids


def test_follow_and_list(client, auth, users):
    auth.login("ana")
    response = client.post("/api/friends", json={"friendId": users["bruno"]})
    assert response.status_code == 201
    assert response.get_json()["friendId"] == users["bruno"]

    friends = client.get("/api/friends").get_json()
    assert [f["friend"]["username"] for f in friends] == ["bruno"]
    assert "password" not in friends[0]["friend"]


def test_following_is_one_directional(client, auth, users):
    auth.login("ana")
    client.post("/api/friends", json={"friendId": users["bruno"]})
    auth.logout()

    auth.login("bruno")
    assert client.get("/api/friends").get_json() == []


@pytest.mark.parametrize(
    ("target", "status", "message"),
    (
        ("ana", 400, "You cannot follow yourself"),
        (None, 404, "User not found"),
    ),
)
def test_follow_rejections(client, auth, users, target, status, message):
    auth.login("ana")
    friend_id = users[target] if target else 9999
    response = client.post("/api/friends", json={"friendId": friend_id})
    assert response.status_code == status
    assert response.get_json()["message"] == message


def test_follow_rejects_out_of_range_id(client, auth, users):
    auth.login("ana")
    response = client.post("/api/friends", json={"friendId": 2**70})
    assert response.status_code == 400
    assert any(err["field"] == "friendId" for err in response.get_json()["errors"])
    assert client.delete(f"/api/friends/{2**70}").status_code == 404


@pytest.mark.parametrize(
    "query",
    (
        f"limit={2**70}",
        f"offset={2**70}",
        "limit=abc",
        "offset=-3",
    ),
)
def test_feed_rejects_bad_paging(client, auth, users, query):
    auth.login("ana")
    response = client.get(f"/api/feed?{query}")
    assert response.status_code == 400


def test_follow_twice_rejected(client, auth, users):
    auth.login("ana")
    client.post("/api/friends", json={"friendId": users["bruno"]})
    response = client.post("/api/friends", json={"friendId": users["bruno"]})
    assert response.status_code == 400
    assert len(client.get("/api/friends").get_json()) == 1


def test_unfollow(client, auth, users):
    auth.login("ana")
    client.post("/api/friends", json={"friendId": users["bruno"]})
    assert client.delete(f"/api/friends/{users['bruno']}").status_code == 204
    assert client.get("/api/friends").get_json() == []
    assert client.delete(f"/api/friends/{users['bruno']}").status_code == 404


def test_friend_routes_require_login(client):
    assert client.get("/api/friends").status_code == 401
    assert client.post("/api/friends", json={"friendId": 1}).status_code == 401
    assert client.get("/api/feed").status_code == 401
    assert client.post("/api/places/1/clone").status_code == 401


def test_search_users(client, auth, users):
    auth.login("ana")
    results = client.get("/api/search-users?q=b").get_json()
    assert [u["username"] for u in results] == ["bruno"]
    assert "email" not in results[0]

    assert client.get("/api/search-users?q=ana").get_json() == []
    assert client.get("/api/search-users?q=").get_json() == []
    assert len(client.get("/api/search-users?q=x.com").get_json()) == 2


def test_friend_recommendations(client, auth, users, create_place):
    auth.login("bruno")
    create_place(name="Recomendado", recommendToFriends=True)
    create_place(name="Privado")
    auth.logout()

    auth.login("ana")
    url = f"/api/friends/{users['bruno']}/recommendations"
    assert client.get(url).status_code == 403

    client.post("/api/friends", json={"friendId": users["bruno"]})
    names = [p["name"] for p in client.get(url).get_json()]
    assert names == ["Recomendado"]


def _feed_types(client):
    return [(a["user"]["username"], a["type"]) for a in client.get("/api/feed").get_json()]


def test_feed_contains_only_followees_newest_first(client, auth, users, create_place):
    auth.login("bruno")
    first = create_place(name="Bar do Bruno", rating=3)
    auth.logout()

    auth.login("carla")
    create_place(name="Café da Carla", recommendToFriends=True)
    auth.logout()

    auth.login("bruno")
    client.put(f"/api/places/{first['id']}", json={"rating": 4})
    auth.logout()

    auth.login("ana")
    create_place(name="Meu lugar", rating=5)
    assert client.get("/api/feed").get_json() == []

    client.post("/api/friends", json={"friendId": users["bruno"]})
    feed = client.get("/api/feed").get_json()
    assert [(a["type"], a["oldRating"], a["newRating"]) for a in feed] == [
        ("rating-changed", 3, 4),
        ("new-rating", None, 3),
    ]
    assert feed[0]["user"]["username"] == "bruno"
    assert "password" not in feed[0]["user"]
    assert feed[0]["place"]["name"] == "Bar do Bruno"
    assert feed[0]["place"]["type"]["name"] == "Restaurante"

    client.post("/api/friends", json={"friendId": users["carla"]})
    assert _feed_types(client) == [
        ("bruno", "rating-changed"),
        ("carla", "new-recommendation"),
        ("bruno", "new-rating"),
    ]

    client.delete(f"/api/friends/{users['bruno']}")
    assert _feed_types(client) == [("carla", "new-recommendation")]


def test_feed_orders_by_created_at(app, client, auth, users, create_place):
    auth.login("bruno")
    older = create_place(name="Antigo", rating=4)
    newer = create_place(name="Novo", rating=4)
    auth.logout()

    with app.app_context():
        db = database.get_db()
        db.execute(
            "UPDATE activities SET created_at = '2030-01-01 00:00:00' WHERE place_id = ?",
            (older["id"],),
        )
        db.execute(
            "UPDATE activities SET created_at = '2020-01-01 00:00:00' WHERE place_id = ?",
            (newer["id"],),
        )
        db.commit()

    auth.login("ana")
    client.post("/api/friends", json={"friendId": users["bruno"]})
    feed = client.get("/api/feed").get_json()
    assert [a["place"]["name"] for a in feed] == ["Antigo", "Novo"]


def test_feed_pagination_and_deleted_place(client, auth, users, create_place):
    auth.login("bruno")
    gone = create_place(name="Fechou", rating=4)
    create_place(name="Aberto", rating=5)
    client.delete(f"/api/places/{gone['id']}")
    auth.logout()

    auth.login("ana")
    client.post("/api/friends", json={"friendId": users["bruno"]})

    feed = client.get("/api/feed").get_json()
    assert len(feed) == 2
    assert feed[1]["place"] is None
    assert feed[1]["placeId"] is None

    page = client.get("/api/feed?limit=1&offset=1").get_json()
    assert [a["id"] for a in page] == [feed[1]["id"]]
    assert client.get("/api/feed?limit=-1").status_code == 400


def test_clone_recommended_place(client, auth, users, create_place):
    auth.login("bruno")
    source = create_place(
        name="Pizzaria", rating=5, isVisited=True, recommendToFriends=True, petFriendly=True
    )
    auth.logout()

    auth.login("ana")
    client.post("/api/friends", json={"friendId": users["bruno"]})
    response = client.post(f"/api/places/{source['id']}/clone")
    assert response.status_code == 201
    clone = response.get_json()

    assert clone["id"] != source["id"]
    assert clone["name"] == "Pizzaria"
    assert clone["createdBy"] == users["ana"]
    assert clone["isClone"] is True
    assert clone["clonedFromUserId"] == users["bruno"]
    assert clone["clonedFromPlaceId"] == source["id"]
    assert clone["rating"] is None
    assert clone["isVisited"] is False
    assert clone["recommendToFriends"] is False
    assert clone["petFriendly"] is True
    assert clone["tags"] == source["tags"]

    again = client.post(f"/api/places/{source['id']}/clone")
    assert again.status_code == 400
    assert again.get_json()["message"] == "You have already cloned this specific place"


def test_clone_rejections(client, auth, users, create_place):
    auth.login("bruno")
    shared = create_place(name="Compartilhado", recommendToFriends=True)
    private = create_place(name="Privado")

    own = client.post(f"/api/places/{shared['id']}/clone")
    assert own.status_code == 400
    assert own.get_json()["message"] == "You cannot clone your own place"
    auth.logout()

    auth.login("ana")
    assert client.post(f"/api/places/{shared['id']}/clone").status_code == 403

    client.post("/api/friends", json={"friendId": users["bruno"]})
    assert client.post(f"/api/places/{private['id']}/clone").status_code == 403
    assert client.post("/api/places/9999/clone").status_code == 404
