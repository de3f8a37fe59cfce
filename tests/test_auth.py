import time
from datetime import timedelta

import pytest

import helpers
from conftest import count, login, register


def test_register_starts_session(client, db):
    response = register(client, "Ann", "ann@x.edu", "pw")
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/clubs")
    with client.session_transaction() as session:
        assert session["user"]["email"] == "ann@x.edu"
        assert session["user"]["role"] == "student"
        assert "password_hash" not in session["user"]
    assert count(db, "users") == 1


def test_register_same_email_twice(client, db):
    register(client, "Ann", "ann@x.edu", "pw")
    client.post("/logout")
    response = register(client, "Ann Again", "ann@x.edu", "other")
    assert response.status_code == 400
    assert b"Email already registered." in response.data
    assert count(db, "users") == 1


def test_register_password_mismatch(client, db):
    response = client.post(
        "/register",
        data={"name": "Ann", "email": "ann@x.edu", "password": "a", "confirmation": "b"},
    )
    assert response.status_code == 400
    assert b"Passwords do not match." in response.data
    assert count(db, "users") == 0


def test_login_and_logout(client, student):
    response = login(client, "stud@x.edu", "pw2")
    assert response.headers["Location"].endswith("/clubs")
    with client.session_transaction() as session:
        assert session["user"]["id"] == student["id"]

    response = client.post("/logout")
    assert response.headers["Location"].endswith("/login")
    with client.session_transaction() as session:
        assert "user" not in session


@pytest.mark.parametrize("email, password", [("stud@x.edu", "wrong"), ("nobody@x.edu", "pw2")])
def test_bad_credentials_redirect_to_login(client, student, email, password):
    response = login(client, email, password)
    assert response.headers["Location"].endswith("/login")
    with client.session_transaction() as session:
        assert "user" not in session


def test_logout_requires_login(client):
    response = client.post("/logout")
    assert response.headers["Location"].endswith("/login")


def test_session_expires_after_lifetime(client, student, club_id, monkeypatch):
    login(client, "stud@x.edu", "pw2")
    assert client.get(f"/clubs/{club_id}").status_code == 200

    later = time.time() + 25 * 3600
    monkeypatch.setattr(helpers.time, "time", lambda: later)
    response = client.get(f"/clubs/{club_id}")
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/login")


def test_session_expired_is_absolute():
    lifetime = timedelta(hours=24)
    assert not helpers.session_expired(1000.0, lifetime, now=1000.0 + 23 * 3600)
    assert helpers.session_expired(1000.0, lifetime, now=1000.0 + 24 * 3600)
    assert helpers.session_expired(None, lifetime)


def test_register_requires_confirmation(client, db):
    response = client.post("/register", data={"name": "Ann", "email": "ann@x.edu", "password": "a"})
    assert response.status_code == 400
    assert b"Passwords do not match." in response.data
    assert count(db, "users") == 0


def test_csrf_token_required_when_enabled(app, client, student):
    app.config["CSRF_ENABLED"] = True
    client.get("/login")
    with client.session_transaction() as session:
        token = session["_csrf_token"]

    response = client.post("/login", data={"email": "stud@x.edu", "password": "pw2", "_csrf_token": "nope"})
    assert response.status_code == 400
    response = client.post("/login", data={"email": "stud@x.edu", "password": "pw2"})
    assert response.status_code == 400

    response = client.post("/login", data={"email": "stud@x.edu", "password": "pw2", "_csrf_token": token})
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/clubs")


def test_post_without_session_cookie_goes_to_login(app, client, student):
    app.config["CSRF_ENABLED"] = True
    response = login(client, "stud@x.edu", "pw2")
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/login")
    with client.session_transaction() as session:
        assert "user" not in session


def _login_with_csrf(client):
    client.get("/login")
    with client.session_transaction() as session:
        token = session["_csrf_token"]
    client.post("/login", data={"email": "stud@x.edu", "password": "pw2", "_csrf_token": token})
    # Logging in clears the session, so the next page issues a fresh token
    client.get("/clubs")
    with client.session_transaction() as session:
        return session["_csrf_token"]


def test_expired_login_with_csrf_redirects_to_login(app, client, db, student, club_id):
    app.config["CSRF_ENABLED"] = True
    token = _login_with_csrf(client)
    with client.session_transaction() as session:
        session["authenticated_at"] = time.time() - 25 * 3600

    response = client.post(f"/clubs/{club_id}/join", data={"_csrf_token": token})
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/login")
    with client.session_transaction() as session:
        assert "user" not in session
        assert session["_csrf_token"] == token
    assert count(db, "memberships") == 0


def test_expired_cookie_with_csrf_redirects_to_login(app, client, db, student, club_id, monkeypatch):
    app.config["CSRF_ENABLED"] = True
    token = _login_with_csrf(client)

    later = time.time() + 25 * 3600
    monkeypatch.setattr(helpers.time, "time", lambda: later)
    response = client.post(f"/clubs/{club_id}/join", data={"_csrf_token": token})
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/login")
    assert count(db, "memberships") == 0
