from datetime import timedelta

from conftest import PASSWORD
from database import utcnow
from security import hash_reset_token


def register(client, **fields):
    payload = {"name": "Jane Doe", "email": "jane@example.com", "password": "password1", **fields}
    return client.post("/api/v1/auth/register", json=payload)


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def test_register_returns_token_and_cookie(client, db):
    resp = register(client, role="publisher")
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["token"]
    assert resp.cookies.get("token") == body["token"]

    user = db["user"].find_one({"email": "jane@example.com"})
    assert user["role"] == "publisher"
    assert user["password_hash"] != "password1"


def test_register_cannot_pick_admin(client):
    assert register(client, role="admin").status_code == 400


def test_register_duplicate_email(client):
    assert register(client).status_code == 201
    resp = register(client, name="Other")
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_register_validation(client):
    resp = client.post("/api/v1/auth/register", json={"email": "not-an-email", "password": "short"})
    assert resp.status_code == 400
    assert len(resp.json()["error"]) == 3


def test_login(client):
    register(client)
    client.cookies.clear()
    resp = client.post("/api/v1/auth/login", json={"email": "jane@example.com", "password": "password1"})
    assert resp.status_code == 200
    token = resp.json()["token"]

    me = client.get("/api/v1/auth/me", headers=auth(token)).json()["data"]
    assert me["email"] == "jane@example.com"
    assert me["role"] == "user"
    assert "password_hash" not in me


def test_login_failures(client):
    register(client)
    resp = client.post("/api/v1/auth/login", json={"email": "jane@example.com"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Please provide an email and a password"

    resp = client.post("/api/v1/auth/login", json={"email": "jane@example.com", "password": "wrong-pass"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid login"


def test_cookie_authenticates(client):
    register(client)
    # the register response left the token cookie on the client
    resp = client.get("/api/v1/auth/me")
    assert resp.status_code == 200

    resp = client.delete("/api/v1/auth/logout")
    assert resp.status_code == 200
    client.cookies.clear()
    assert client.get("/api/v1/auth/me").status_code == 401


def test_me_requires_token(client):
    assert client.get("/api/v1/auth/me").status_code == 401
    assert client.get("/api/v1/auth/me", headers=auth("garbage")).status_code == 401


def test_token_of_deleted_user(client, db, reviewer):
    user, headers = reviewer
    db["user"].delete_one({"_id": user["_id"]})
    assert client.get("/api/v1/auth/me", headers=headers).status_code == 401


def test_forgot_and_reset_password(client, db, reviewer, mailer):
    user, _ = reviewer
    resp = client.post("/api/v1/auth/reset-password", json={"email": user["email"]})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "data": "Email sent"}

    [mail] = mailer.sent
    assert mail["email"] == user["email"]
    reset_url = mail["message"].split()[-1]
    token = reset_url.rsplit("/", 1)[-1]

    stored = db["user"].find_one({"_id": user["_id"]})
    assert stored["reset_password_token"] == hash_reset_token(token)

    resp = client.post(f"/api/v1/auth/reset-password/{token}", json={"password": "brand-new-pass"})
    assert resp.status_code == 200
    assert resp.json()["token"]

    stored = db["user"].find_one({"_id": user["_id"]})
    assert "reset_password_token" not in stored

    client.cookies.clear()
    resp = client.post("/api/v1/auth/login", json={"email": user["email"], "password": "brand-new-pass"})
    assert resp.status_code == 200
    # the token is single use
    resp = client.post(f"/api/v1/auth/reset-password/{token}", json={"password": "another-pass"})
    assert resp.status_code == 400


def test_reset_token_expires(client, db, reviewer):
    user, _ = reviewer
    db["user"].update_one({"_id": user["_id"]}, {"$set": {
        "reset_password_token": hash_reset_token("abc"),
        "reset_password_expire": utcnow() - timedelta(minutes=1),
    }})
    resp = client.post("/api/v1/auth/reset-password/abc", json={"password": "brand-new-pass"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid token"


def test_forgot_password_unknown_email(client):
    resp = client.post("/api/v1/auth/reset-password", json={"email": "nobody@example.com"})
    assert resp.status_code == 404


def test_forgot_password_rolls_back_when_mail_fails(client, db, reviewer, mailer):
    user, _ = reviewer
    mailer.fail = True
    resp = client.post("/api/v1/auth/reset-password", json={"email": user["email"]})
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Email could not be sent"}

    stored = db["user"].find_one({"_id": user["_id"]})
    assert "reset_password_token" not in stored
    assert "reset_password_expire" not in stored


def test_update_details(client, db, reviewer):
    user, headers = reviewer
    resp = client.put("/api/v1/auth/update-details", json={"name": "Renamed"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Renamed"
    assert resp.json()["data"]["email"] == user["email"]


def test_update_details_rejects_role_change(client, db, reviewer):
    user, headers = reviewer
    resp = client.put("/api/v1/auth/update-details", json={"role": "admin"}, headers=headers)
    assert resp.status_code == 400
    assert db["user"].find_one({"_id": user["_id"]})["role"] == "user"


def test_update_password(client, reviewer):
    user, headers = reviewer
    resp = client.put("/api/v1/auth/update-password",
                      json={"current_password": "wrong-one", "new_password": "new-password"},
                      headers=headers)
    assert resp.status_code == 401

    resp = client.put("/api/v1/auth/update-password",
                      json={"current_password": PASSWORD, "new_password": "new-password"},
                      headers=headers)
    assert resp.status_code == 200

    client.cookies.clear()
    resp = client.post("/api/v1/auth/login", json={"email": user["email"], "password": "new-password"})
    assert resp.status_code == 200


def test_login_with_the_registered_spelling_of_the_email(client):
    assert register(client, email="amy@Example.COM").status_code == 201
    client.cookies.clear()
    resp = client.post("/api/v1/auth/login", json={"email": "amy@Example.COM", "password": "password1"})
    assert resp.status_code == 200
    assert resp.json()["token"]
