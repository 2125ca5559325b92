from bson import ObjectId


def test_users_routes_are_admin_only(client, publisher, reviewer):
    assert client.get("/api/v1/users", headers=publisher[1]).status_code == 403
    assert client.get("/api/v1/users", headers=reviewer[1]).status_code == 403
    assert client.get("/api/v1/users").status_code == 401


def test_list_users(client, admin, publisher, reviewer):
    body = client.get("/api/v1/users", headers=admin[1]).json()
    assert body["count"] == 3
    assert all("password_hash" not in u for u in body["data"])

    body = client.get("/api/v1/users", params={"role": "publisher"}, headers=admin[1]).json()
    assert [u["email"] for u in body["data"]] == ["publisher@example.com"]


def test_create_user_with_any_role(client, db, admin):
    resp = client.post("/api/v1/users",
                       json={"name": "Second Admin", "email": "admin2@example.com",
                             "password": "password1", "role": "admin"},
                       headers=admin[1])
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["role"] == "admin"
    assert "password_hash" not in data
    assert db["user"].count_documents({"role": "admin"}) == 2


def test_get_update_delete_user(client, db, admin, reviewer):
    user, _ = reviewer
    url = f"/api/v1/users/{user['_id']}"

    data = client.get(url, headers=admin[1]).json()["data"]
    assert data["email"] == user["email"]

    resp = client.put(url, json={"role": "publisher", "name": "Promoted"}, headers=admin[1])
    assert resp.status_code == 200
    assert resp.json()["data"]["role"] == "publisher"
    assert resp.json()["data"]["name"] == "Promoted"

    resp = client.put(url, json={"password_hash": "x"}, headers=admin[1])
    assert resp.status_code == 400

    resp = client.delete(url, headers=admin[1])
    assert resp.status_code == 200
    assert db["user"].count_documents({"_id": user["_id"]}) == 0
    assert client.get(url, headers=admin[1]).status_code == 404


def test_missing_user(client, admin):
    assert client.get(f"/api/v1/users/{ObjectId()}", headers=admin[1]).status_code == 404
    assert client.delete(f"/api/v1/users/{ObjectId()}", headers=admin[1]).status_code == 404
