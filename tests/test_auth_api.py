from vx_academy.models.activity_log import UserActivityLog

from tests.conftest import PASSWORD


def test_register_creates_learner(client):
    response = client.post("/api/auth/register", json={
        "username": "newcomer",
        "email": "newcomer@vx-academy.com",
        "name": "New Comer",
        "password": "Password123",
    })
    assert response.status_code == 201
    body = response.json()
    assert body["role"] == "user"
    assert body["xp_points"] == 0
    assert "hashed_password" not in body


def test_register_rejects_weak_password(client):
    response = client.post("/api/auth/register", json={
        "username": "weak",
        "email": "weak@vx-academy.com",
        "name": "Weak",
        "password": "short",
    })
    assert response.status_code == 422
    assert response.json()["success"] is False


def test_register_rejects_duplicates(client, learner):
    response = client.post("/api/auth/register", json={
        "username": "learner",
        "email": "someone@vx-academy.com",
        "name": "Copy",
        "password": "Password123",
    })
    assert response.status_code == 400


def test_login_by_username_or_email(client, db, learner):
    for identifier in ("learner", "learner@vx-academy.com"):
        response = client.post("/api/auth/login", json={"username": identifier, "password": PASSWORD})
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["username"] == "learner"

    assert db.query(UserActivityLog).filter_by(user_id=learner.id, activity="login").count() == 2


def test_login_with_wrong_password(client, learner):
    response = client.post("/api/auth/login", json={"username": "learner", "password": "Wrong12345"})
    assert response.status_code == 401
    assert response.json()["message"] == "Incorrect username or password"


def test_me_and_refresh(client, learner):
    tokens = client.post("/api/auth/login", json={"username": "learner", "password": PASSWORD}).json()

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert me.json()["email"] == "learner@vx-academy.com"

    refreshed = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["access_token"]


def test_access_token_cannot_refresh(client, learner):
    tokens = client.post("/api/auth/login", json={"username": "learner", "password": PASSWORD}).json()
    response = client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert response.status_code == 401


def test_invalid_token(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_missing_token(client):
    assert client.get("/api/auth/me").status_code in (401, 403)


def test_permissions_follow_role(client, learner_headers, admin_headers):
    learner_view = client.get("/api/user/permissions", headers=learner_headers).json()
    admin_view = client.get("/api/user/permissions", headers=admin_headers).json()
    assert learner_view["role"] == "user"
    assert learner_view["permissions"]["can_view_analytics"] is False
    assert admin_view["permissions"]["can_manage_badges"] is True


def test_change_password(client, learner_headers):
    wrong = client.patch(
        "/api/user/password",
        json={"current_password": "Nope12345", "new_password": "Another123"},
        headers=learner_headers,
    )
    assert wrong.status_code == 400

    ok = client.patch(
        "/api/user/password",
        json={"current_password": PASSWORD, "new_password": "Another123"},
        headers=learner_headers,
    )
    assert ok.status_code == 200
    login = client.post("/api/auth/login", json={"username": "learner", "password": "Another123"})
    assert login.status_code == 200


def test_update_profile(client, learner_headers):
    response = client.patch("/api/user/profile", json={"name": "Jane Learner"}, headers=learner_headers)
    assert response.json()["name"] == "Jane Learner"
