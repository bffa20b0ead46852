PASSWORD = "Password123!"


class TestRegisterAndLogin:
    def test_register_returns_envelope(self, client):
        resp = client.post(
            "/api/v1/auth/register",
            json={"name": "Ada", "email": "Ada@Example.com", "password": "s3cret-pass"},
        )
        body = resp.get_json()
        assert resp.status_code == 201
        assert body["success"] is True
        assert body["statusCode"] == 201
        assert body["data"]["user"]["email"] == "ada@example.com"
        assert body["data"]["user"]["roles"] == ["user"]
        assert body["data"]["accessToken"]
        assert "password" not in body["data"]["user"]

    def test_duplicate_email_conflicts(self, client, user):
        resp = client.post(
            "/api/v1/auth/register",
            json={"name": "Again", "email": user.email, "password": "s3cret-pass"},
        )
        assert resp.status_code == 409
        assert resp.get_json()["success"] is False

    def test_short_password_is_rejected(self, client):
        resp = client.post("/api/v1/auth/register", json={"name": "Bo", "email": "bo@example.com", "password": "x"})
        body = resp.get_json()
        assert resp.status_code == 400
        assert "password" in body["data"]["errors"]

    def test_login_and_me(self, client, user):
        resp = client.post("/api/v1/auth/login", json={"email": user.email, "password": PASSWORD})
        assert resp.status_code == 200
        token = resp.get_json()["data"]["accessToken"]

        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.get_json()["data"]["id"] == user.id

    def test_wrong_password(self, client, user):
        resp = client.post("/api/v1/auth/login", json={"email": user.email, "password": "nope-nope"})
        assert resp.status_code == 401


class TestTokens:
    def test_missing_token(self, client):
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Access token required"

    def test_garbage_token(self, client):
        resp = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_roles_endpoint_is_admin_only(self, client, user, admin, auth_header):
        resp = client.put(
            f"/api/v1/auth/users/{user.id}/roles", json={"roles": ["admin"]}, headers=auth_header(user)
        )
        assert resp.status_code == 403

        resp = client.put(
            f"/api/v1/auth/users/{user.id}/roles", json={"roles": ["admin", "user"]}, headers=auth_header(admin)
        )
        assert resp.status_code == 200
        assert resp.get_json()["data"]["roles"] == ["admin", "user"]

    def test_unknown_role_is_rejected(self, client, user, admin, auth_header):
        resp = client.put(
            f"/api/v1/auth/users/{user.id}/roles", json={"roles": ["superuser"]}, headers=auth_header(admin)
        )
        assert resp.status_code == 400


class TestHealth:
    def test_health(self, client):
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.get_json()["data"]["status"] == "ok"
