from bson import ObjectId


def register(client, **overrides):
    payload = {"username": "alice", "password": "pw123", "email": "alice@example.com"}
    payload.update(overrides)
    return client.post("/api/users", json=payload)


def test_register_returns_user_without_hash(client, db):
    r = register(client, firstName="Alice")
    assert r.status_code == 201
    body = r.json()
    assert body["username"] == "alice"
    assert body["email"] == "alice@example.com"
    assert body["first_name"] == "Alice"
    assert body["role"] == "user"
    assert "password_hash" not in body
    assert "password" not in body

    stored = db["user"].find_one({"username": "alice"})
    assert stored["password_hash"] != "pw123"


def test_register_requires_username_and_password(client):
    r = client.post("/api/users", json={"username": "alice"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_INPUT"

    r = client.post("/api/users", json={"password": "pw123"})
    assert r.status_code == 400


def test_register_username_length_bounds(client):
    assert register(client, username="al").status_code == 400
    assert register(client, username="a" * 31).status_code == 400


def test_register_duplicate_username(client):
    assert register(client).status_code == 201
    r = register(client, email="other@example.com")
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "USER_EXISTS"


def test_register_duplicate_email_is_case_insensitive(client):
    assert register(client).status_code == 201
    r = register(client, username="alice2", email="ALICE@example.com")
    assert r.status_code == 409


def test_users_without_email_do_not_collide(client):
    assert register(client, username="bob", email=None).status_code == 201
    assert register(client, username="carol", email=None).status_code == 201


def test_login_returns_token_and_stamps_last_login(client, db):
    register(client)
    r = client.post("/api/users/login", json={"email": "alice@example.com", "password": "pw123"})
    assert r.status_code == 200
    body = r.json()
    assert body["token"]
    assert body["user"]["username"] == "alice"
    assert body["user"]["last_login"]
    assert "password_hash" not in body["user"]
    assert db["user"].find_one({"username": "alice"})["last_login"] is not None

    me = client.get(f"/api/users/{body['user']['id']}", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["username"] == "alice"


def test_login_wrong_password(client):
    register(client)
    r = client.post("/api/users/login", json={"email": "alice@example.com", "password": "nope"})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "INVALID_CREDENTIALS"


def test_login_unknown_email(client):
    r = client.post("/api/users/login", json={"email": "ghost@example.com", "password": "pw123"})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "INVALID_CREDENTIALS"


def test_login_requires_email_and_password(client):
    r = client.post("/api/users/login", json={"email": "alice@example.com"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_INPUT"


def test_get_user_requires_auth(client):
    user_id = register(client).json()["id"]
    assert client.get(f"/api/users/{user_id}").status_code == 401


def test_get_unknown_user(client, bearer):
    r = client.get(f"/api/users/{ObjectId()}", headers=bearer())
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "USER_NOT_FOUND"

    r = client.get("/api/users/not-an-id", headers=bearer())
    assert r.status_code == 404


def test_update_own_profile(client, bearer):
    user_id = register(client).json()["id"]
    r = client.put(
        f"/api/users/{user_id}",
        json={"firstName": "Alice", "last_name": "Liddell"},
        headers=bearer(user_id),
    )
    assert r.status_code == 200
    body = r.json()
    assert body["first_name"] == "Alice"
    assert body["last_name"] == "Liddell"
    assert "password_hash" not in body


def test_update_only_touches_given_fields(client, bearer):
    user_id = register(client, firstName="Alice", lastName="Liddell").json()["id"]
    r = client.put(f"/api/users/{user_id}", json={"lastName": "Hargreaves"}, headers=bearer(user_id))
    assert r.json()["first_name"] == "Alice"
    assert r.json()["last_name"] == "Hargreaves"


def test_update_other_profile_forbidden(client, bearer):
    user_id = register(client).json()["id"]
    r = client.put(f"/api/users/{user_id}", json={"firstName": "Mallory"}, headers=bearer())
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "FORBIDDEN"
