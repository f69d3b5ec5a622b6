"""Integration tests for api/routes/accounts.py -- register, login, logout, user lookup.

Covers:
- The register -> login -> lookup flow, with the session cookie's attributes
- Unknown user and wrong password produce byte-identical 403 responses
- Duplicate username, email, or phone number -> 409
- Session failures: no cookie 401, malformed 400, unknown 401, expired 401
- Each authenticated request refreshes last_activity, including concurrent ones
- Secrets (hash, token, submitted password) never appear in a response
- JSON and form-encoded bodies are both accepted
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from conftest import login_user, register_user, session_header, unique_name

REGISTERED = "Registration successful. Please verify your account via email."


def _login_token(client, username, password="correct-horse") -> str:
    resp = login_user(client, username, password)
    assert resp.status_code == 200
    return resp.cookies["login_id"]


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegister:
    def test_register_with_username_and_password_only(self, client):
        resp = register_user(client, unique_name("alice"), "p1")
        assert resp.status_code == 200
        assert resp.json() == {"message": REGISTERED}

    def test_register_does_not_log_in(self, client):
        resp = register_user(client, unique_name())
        assert "login_id" not in resp.cookies

    def test_duplicate_username(self, client):
        name = unique_name()
        assert register_user(client, name).status_code == 200
        resp = register_user(client, name, "another-password")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_duplicate_email(self, client):
        email = f"{unique_name()}@example.com"
        assert register_user(client, unique_name(), email=email).status_code == 200
        assert register_user(client, unique_name(), email=email).status_code == 409

    def test_duplicate_phone_number(self, client):
        phone = unique_name("555")
        assert register_user(client, unique_name(), phone_number=phone).status_code == 200
        assert register_user(client, unique_name(), phone_number=phone).status_code == 409

    def test_form_encoded_body(self, client):
        name = unique_name("form")
        resp = client.post("/register", data={"username": name, "password": "p1", "email": ""})
        assert resp.status_code == 200
        assert login_user(client, name, "p1").status_code == 200

    def test_password_longer_than_bcrypt_limit_rejected(self, client):
        resp = register_user(client, unique_name(), "x" * 73)
        assert resp.status_code == 422
        assert resp.json()["error"]["detail"] == "password"

    def test_missing_field_names_field_without_echoing_values(self, client):
        resp = client.post("/register", json={"password": "hunter2-secret"})
        assert resp.status_code == 422
        body = resp.json()
        assert body["error"]["code"] == "validation_error"
        assert "username" in body["error"]["detail"]
        assert "hunter2-secret" not in resp.text

    def test_malformed_json(self, client):
        resp = client.post("/register", content=b"{not json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestLogin:
    def test_login_sets_session_cookie(self, client):
        name = unique_name("alice")
        register_user(client, name, "p1")
        resp = login_user(client, name, "p1")
        assert resp.status_code == 200
        assert resp.json() == {"message": "Logged in."}
        assert resp.headers["cache-control"] == "no-store"

        cookie = resp.headers["set-cookie"]
        assert cookie.startswith("login_id=")
        lowered = cookie.lower()
        assert "httponly" in lowered
        assert "samesite=strict" in lowered
        assert "path=/" in lowered
        assert "max-age=1800" in lowered

    def test_wrong_password(self, client):
        name = unique_name("alice")
        register_user(client, name, "p1")
        resp = login_user(client, name, "wrong")
        assert resp.status_code == 403
        assert resp.json() == {"error": {"code": "bad_credentials", "message": "Invalid credentials."}}
        assert "set-cookie" not in resp.headers

    def test_unknown_user_is_indistinguishable_from_wrong_password(self, client):
        name = unique_name("alice")
        register_user(client, name, "p1")
        wrong_pw = login_user(client, name, "wrong")
        no_user = login_user(client, unique_name("ghost"), "wrong")
        assert wrong_pw.status_code == no_user.status_code == 403
        assert wrong_pw.content == no_user.content
        assert wrong_pw.headers["cache-control"] == no_user.headers["cache-control"]

    def test_form_encoded_login(self, client):
        name = unique_name()
        register_user(client, name, "p1")
        resp = client.post("/login", data={"username": name, "password": "p1"})
        assert resp.status_code == 200
        assert "login_id" in resp.cookies

    def test_second_login_invalidates_first_token(self, client):
        name = unique_name()
        register_user(client, name)
        first = _login_token(client, name)
        second = _login_token(client, name)
        client.cookies.clear()
        assert client.get("/me", headers=session_header(first)).status_code == 401
        assert client.get("/me", headers=session_header(second)).status_code == 200


# ---------------------------------------------------------------------------
# Session-protected lookups
# ---------------------------------------------------------------------------


class TestUserLookup:
    def test_me_returns_public_record(self, client):
        name = unique_name()
        phone = unique_name("555")
        register_user(client, name, email=f"{name}@example.com", phone_number=phone)
        token = _login_token(client, name)
        resp = client.get("/me")
        assert resp.status_code == 200
        body = resp.json()
        assert body["username"] == name
        assert body["email"] == f"{name}@example.com"
        assert body["phone_number"] == phone
        assert body["verified"] is False
        assert body["is_admin"] is False
        assert "hashed_password" not in body
        assert "session_token" not in body
        assert token not in resp.text
        assert "$2" not in resp.text

    def test_lookup_by_id(self, client):
        name = unique_name()
        email = f"{name}@example.com"
        phone = unique_name("555")
        register_user(client, name, email=email, phone_number=phone)
        _login_token(client, name)
        uid = client.get("/me").json()["id"]
        resp = client.get(f"/users/{uid}")
        assert resp.status_code == 200
        assert resp.json()["username"] == name
        assert resp.json()["email"] == email
        assert resp.json()["phone_number"] == phone
        assert "hashed_password" not in resp.json()

    def test_lookup_of_another_user(self, client):
        other = unique_name("other")
        register_user(client, other)
        _login_token(client, other)
        other_id = client.get("/me").json()["id"]

        name = unique_name()
        register_user(client, name)
        _login_token(client, name)
        assert client.get(f"/users/{other_id}").json()["username"] == other

    def test_nonexistent_user(self, client):
        name = unique_name()
        register_user(client, name)
        _login_token(client, name)
        resp = client.get("/users/999999")
        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "User not found."

    def test_id_beyond_integer_range_is_not_found(self, client):
        name = unique_name()
        register_user(client, name)
        _login_token(client, name)
        resp = client.get("/users/99999999999999999999")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "user_not_found"

    def test_no_cookie(self, client):
        resp = client.get("/users/1")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "missing_credential"

    def test_malformed_cookie(self, client):
        resp = client.get("/users/1", headers=session_header("not-a-uuid"))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_credential"

    def test_unknown_token(self, client):
        resp = client.get("/users/1", headers=session_header("0f3c5a9e-2b1d-4c7e-9a8b-5d6e7f8a9b0c"))
        assert resp.status_code == 401
        assert resp.json()["error"] == {
            "code": "invalid_session",
            "message": "Invalid session. Please login again.",
        }


# ---------------------------------------------------------------------------
# Sliding expiry and logout
# ---------------------------------------------------------------------------


class TestSessionLifecycle:
    def test_request_refreshes_last_activity(self, api_client, client):
        _client, user_store, _agent = api_client
        name = unique_name()
        register_user(client, name)
        token = _login_token(client, name)
        uid = client.get("/me").json()["id"]

        earlier = datetime.now(timezone.utc) - timedelta(minutes=10)
        user_store.start_session(uid, token, earlier)

        resp = client.get("/me")
        assert resp.status_code == 200
        refreshed = datetime.fromisoformat(resp.json()["last_activity"])
        assert refreshed > earlier
        assert user_store.get_by_id(uid).last_activity == resp.json()["last_activity"]

    def test_idle_session_expires_and_is_cleared(self, api_client, client):
        _client, user_store, _agent = api_client
        name = unique_name()
        register_user(client, name)
        token = _login_token(client, name)
        uid = client.get("/me").json()["id"]

        user_store.start_session(uid, token, datetime.now(timezone.utc) - timedelta(minutes=31))

        resp = client.get("/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "session_expired"
        assert user_store.get_by_id(uid).session_token is None

        # Once cleared, the same cookie is just an unknown session.
        assert client.get("/me").json()["error"]["code"] == "invalid_session"

    def test_logout_ends_session(self, client):
        name = unique_name()
        register_user(client, name)
        token = _login_token(client, name)
        resp = client.post("/logout")
        assert resp.status_code == 200
        assert resp.json() == {"message": "Logged out."}
        assert resp.headers["cache-control"] == "no-store"

        client.cookies.clear()
        assert client.get("/me", headers=session_header(token)).status_code == 401

    def test_logout_without_session_is_ok(self, client):
        assert client.post("/logout").status_code == 200

    def test_concurrent_requests_on_one_session_all_succeed(self, api_client, client):
        _client, user_store, _agent = api_client
        name = unique_name()
        register_user(client, name)
        token = _login_token(client, name)
        client.cookies.clear()

        with ThreadPoolExecutor(max_workers=8) as pool:
            statuses = list(pool.map(lambda _: client.get("/me", headers=session_header(token)).status_code, range(16)))

        assert statuses == [200] * 16
        assert user_store.get_by_username(name).session_token == token
