def register_and_login(client, username="alice", password="hunter2"):
    response = client.post("/api/auth/register", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    response = client.post("/api/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text


def test_register_login_me_logout(client):
    register_and_login(client)

    response = client.get("/api/auth/me")
    assert response.status_code == 200
    assert response.json()["payload"]["username"] == "alice"

    assert client.post("/api/auth/logout").status_code == 200
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["message"] == "You must be logged in to do this."


def test_register_duplicate_and_invalid(client):
    client.post("/api/auth/register", json={"username": "bob", "password": "pw"})
    response = client.post("/api/auth/register", json={"username": "bob", "password": "pw"})
    assert response.status_code == 400
    assert response.json()["message"] == "A user with this username already exists."

    response = client.post("/api/auth/register", json={"username": "no spaces", "password": "pw"})
    assert response.status_code == 400


def test_login_bad_credentials(client):
    client.post("/api/auth/register", json={"username": "carol", "password": "right"})
    response = client.post("/api/auth/login", json={"username": "carol", "password": "wrong"})
    assert response.status_code == 401
    response = client.post("/api/auth/login", json={"username": "nobody", "password": "right"})
    assert response.status_code == 401


def test_owner_edits_without_password(client):
    register_and_login(client)
    response = client.post("/api/new", json={"url": "owned", "content": "mine"})
    paste = response.json()["payload"]["paste"]
    assert paste["metadata"]["owner"] == "alice"

    response = client.post("/api/owned/edit", json={"new_content": "still mine"})
    assert response.status_code == 200

    response = client.post(
        "/api/owned/metadata", json={"metadata": {"title": "Mine", "owner": "someone-else"}}
    )
    assert response.status_code == 200
    assert client.get("/api/owned").json()["payload"]["metadata"]["owner"] == "alice"

    listing = client.get("/api/auth/pastes").json()["payload"]
    assert [p["url"] for p in listing] == ["owned"]

    client.post("/api/auth/logout")
    response = client.post("/api/owned/edit", json={"new_content": "not yours"})
    assert response.status_code == 400

    register_and_login(client, "mallory", "pw")
    response = client.post("/api/owned/delete", json={})
    assert response.status_code == 400


def test_anonymous_metadata_edit_clears_owner(client):
    register_and_login(client)
    response = client.post("/api/new", json={"url": "handoff", "content": "x", "password": "pw"})
    assert response.status_code == 200
    client.post("/api/auth/logout")

    response = client.post("/api/handoff/metadata", json={"password": "pw", "metadata": {}})
    assert response.status_code == 200
    assert client.get("/api/handoff").json()["payload"]["metadata"]["owner"] == ""


def test_delete_account_removes_owned_pastes(client):
    register_and_login(client)
    client.post("/api/new", json={"url": "mine-1", "content": "x"})
    client.post("/api/auth/logout")
    client.post("/api/new", json={"url": "anon-1", "content": "x"})
    response = client.post("/api/auth/login", json={"username": "alice", "password": "hunter2"})
    assert response.status_code == 200

    response = client.delete("/api/auth/account")
    assert response.status_code == 200
    assert client.get("/api/mine-1").status_code == 404
    assert client.get("/api/anon-1").status_code == 200
    assert client.get("/api/auth/me").status_code == 401


def test_ownership_disabled(make_client, monkeypatch):
    monkeypatch.setenv("PASTE_OWNERSHIP", "false")
    client = make_client()
    register_and_login(client)
    paste = client.post("/api/new", json={"url": "unowned", "content": "x"}).json()["payload"]["paste"]
    assert paste["metadata"]["owner"] == ""
    assert client.post("/api/unowned/edit", json={"new_content": "y"}).status_code == 400


def test_auth_disabled(make_client, monkeypatch):
    monkeypatch.setenv("AUTH_ENABLED", "false")
    client = make_client()
    response = client.post("/api/auth/register", json={"username": "dave", "password": "pw"})
    assert response.status_code == 404
    assert response.json()["message"] == "Path does not exist"
    assert client.post("/api/new", json={"content": "still works"}).status_code == 200


def test_owned_listing_only_has_own_pastes(client):
    register_and_login(client)
    client.post("/api/new", json={"url": "alice-1", "content": "a"})
    client.post("/api/new", json={"url": "alice-2", "content": "a"})
    client.post("/api/auth/logout")

    register_and_login(client, "bob", "pw")
    client.post("/api/new", json={"url": "bob-1", "content": "b"})
    listing = client.get("/api/auth/pastes").json()["payload"]
    assert [p["url"] for p in listing] == ["bob-1"]
    assert listing[0]["metadata"]["owner"] == "bob"

    client.post("/api/auth/login", json={"username": "alice", "password": "hunter2"})
    listing = client.get("/api/auth/pastes").json()["payload"]
    assert {p["url"] for p in listing} == {"alice-1", "alice-2"}


def test_failed_account_deletion_rolls_back(client, monkeypatch):
    import pytest

    import handlers

    register_and_login(client)
    client.post("/api/new", json={"url": "kept", "content": "x"})

    def broken_delete(table):
        raise RuntimeError("users table unavailable")

    # the owned pastes are removed first, then the user row fails
    monkeypatch.setattr(handlers, "delete", broken_delete)
    with pytest.raises(RuntimeError):
        client.delete("/api/auth/account")
    monkeypatch.undo()

    assert client.get("/api/kept").status_code == 200
    assert client.get("/api/auth/me").status_code == 200
    assert [p["url"] for p in client.get("/api/auth/pastes").json()["payload"]] == ["kept"]
