import pytest

import models
from app import create_app


@pytest.fixture()
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "DATABASE_URL": f"sqlite:///{tmp_path / 'test_clubhub.db'}",
        "SECRET_KEY": "test-secret",
        "SEED_DATA": False,
        "CSRF_ENABLED": False,
        "LOG_FILE": "",
    })
    yield app
    app.extensions["clubhub_db"].dispose()


@pytest.fixture()
def db(app):
    return app.extensions["clubhub_db"]


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def admin(db):
    return models.create_user(db, "Admin", "admin@x.edu", "pw1", role=models.ROLE_ADMIN)


@pytest.fixture()
def student(db):
    return models.create_user(db, "Stud", "stud@x.edu", "pw2")


@pytest.fixture()
def club_id(db, admin):
    return models.create_club(db, "Chess", "Weekly games", admin["id"])


def register(client, name, email, password):
    return client.post(
        "/register",
        data={"name": name, "email": email, "password": password, "confirmation": password},
    )


def login(client, email, password):
    return client.post("/login", data={"email": email, "password": password})


def count(db, table):
    return db.query_one(f"SELECT COUNT(*) AS c FROM {table}")["c"]
