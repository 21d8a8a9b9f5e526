import pytest
from werkzeug.security import generate_password_hash

from app.quoteboard import create_app
from app.quoteboard.access import Principal
from app.quoteboard.db import session_scope
from app.quoteboard.models import Base, Group, User, UserGroup


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    for k in ("QUOTE_MAX_LENGTH", "EVERYONE_GROUP_NAME"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    app.config["TESTING"] = True

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add(Group(name="Everyone"))

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def session(app):
    # No app context here: pushing one would make test-client requests share `g`.
    s = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture()
def make_group(session):
    def _make(name: str) -> Group:
        group = session.query(Group).filter(Group.name == name).one_or_none()
        if group is None:
            group = Group(name=name)
            session.add(group)
            session.commit()
        return group

    return _make


@pytest.fixture()
def make_user(session, make_group):
    """Create a user enrolled in the named groups (created on demand)."""

    def _make(username: str, *, groups=("Everyone",), is_admin: bool = False, display_name: str | None = None) -> User:
        user = User(
            username=username,
            password_hash=generate_password_hash("pw"),
            display_name=display_name or username.capitalize(),
            is_admin=is_admin,
        )
        session.add(user)
        session.flush()
        for name in groups:
            session.add(UserGroup(user_id=user.id, group_id=make_group(name).id))
        session.commit()
        return user

    return _make


def principal(user: User) -> Principal:
    return Principal(user_id=user.id, is_admin=bool(user.is_admin))


@pytest.fixture()
def as_principal():
    return principal


def login(client, username: str, password: str = "pw"):
    return client.post("/api/login", json={"username": username, "password": password})


@pytest.fixture()
def login_as(client):
    def _login(username: str, password: str = "pw"):
        r = login(client, username, password)
        assert r.status_code == 200, r.json
        return client

    return _login
