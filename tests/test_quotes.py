"""Tests for the Quotes module."""
from datetime import datetime, timedelta

import pytest

from app.quoteboard.access import Principal
from app.quoteboard.errors import Forbidden, InvalidInput, StorageFailure
from app.quoteboard.models import Group, Quote
from app.quoteboard.modules.quotes.service import (
    add_quote,
    list_quotes,
    normalize_sort,
    random_quote,
    validate_quote_text,
)


def _group_id(session, name: str) -> int:
    return session.query(Group).filter(Group.name == name).one().id


def _quote(session, text, subject, submitter, group_id, *, minutes_ago=0) -> Quote:
    q = Quote(
        text=text,
        subject_user_id=subject.id,
        submitter_user_id=submitter.id,
        group_id=group_id,
        created_at=datetime(2026, 1, 1, 12, 0) - timedelta(minutes=minutes_ago),
    )
    session.add(q)
    session.commit()
    return q


@pytest.fixture()
def board(session, make_user):
    """Two groups, a member of each, a member of both, and an admin in neither."""
    alice = make_user("alice", groups=("Everyone", "Engineering"))
    bob = make_user("bob", groups=("Everyone",))
    carol = make_user("carol", groups=("Sales",))
    admin = make_user("admin", groups=(), is_admin=True)
    everyone = _group_id(session, "Everyone")
    eng = _group_id(session, "Engineering")
    sales = _group_id(session, "Sales")

    _quote(session, "everyone sees me", bob, alice, everyone, minutes_ago=30)
    _quote(session, "engineering only", alice, alice, eng, minutes_ago=20)
    _quote(session, "sales only", carol, carol, sales, minutes_ago=10)
    return {
        "alice": alice,
        "bob": bob,
        "carol": carol,
        "admin": admin,
        "everyone": everyone,
        "eng": eng,
        "sales": sales,
    }


class TestListQuotes:
    def test_non_admin_sees_only_member_groups(self, session, board):
        texts = [q.text for q in list_quotes(session, Principal(board["alice"].id))]
        assert texts == ["engineering only", "everyone sees me"]

        texts = [q.text for q in list_quotes(session, Principal(board["bob"].id))]
        assert texts == ["everyone sees me"]

        texts = [q.text for q in list_quotes(session, Principal(board["carol"].id))]
        assert texts == ["sales only"]

    def test_every_listed_quote_is_in_scope(self, session, board):
        allowed = {board["everyone"], board["eng"]}
        for q in list_quotes(session, Principal(board["alice"].id)):
            assert q.group_id in allowed

    def test_admin_sees_everything_without_memberships(self, session, board):
        quotes = list_quotes(session, Principal(board["admin"].id, is_admin=True))
        assert len(quotes) == 3

    def test_empty_membership_returns_empty_list(self, session, make_user, board):
        loner = make_user("loner", groups=())
        assert list_quotes(session, Principal(loner.id)) == []

    def test_sort_orders(self, session, board):
        admin = Principal(board["admin"].id, is_admin=True)
        newest = [q.text for q in list_quotes(session, admin, "date_desc")]
        oldest = [q.text for q in list_quotes(session, admin, "date_asc")]
        by_person = [q.subject.display_name for q in list_quotes(session, admin, "person")]

        assert newest == ["sales only", "engineering only", "everyone sees me"]
        assert oldest == list(reversed(newest))
        assert by_person == ["Alice", "Bob", "Carol"]

    def test_person_sort_is_newest_first_within_subject(self, session, board):
        bob = board["bob"]
        _quote(session, "bob again", bob, board["alice"], board["everyone"], minutes_ago=1)
        quotes = list_quotes(session, Principal(board["admin"].id, is_admin=True), "person")
        bob_texts = [q.text for q in quotes if q.subject_user_id == bob.id]
        assert bob_texts == ["bob again", "everyone sees me"]

    def test_unknown_sort_falls_back_to_newest_first(self, session, board):
        admin = Principal(board["admin"].id, is_admin=True)
        assert [q.id for q in list_quotes(session, admin, "DROP TABLE quotes")] == [
            q.id for q in list_quotes(session, admin, "date_desc")
        ]

    def test_normalize_sort(self):
        assert normalize_sort(None) == "date_desc"
        assert normalize_sort("") == "date_desc"
        assert normalize_sort("person") == "person"
        assert normalize_sort("random") == "date_desc"


class TestRandomQuote:
    def test_returns_visible_quote(self, session, board):
        for _ in range(10):
            q = random_quote(session, Principal(board["bob"].id))
            assert q is not None
            assert q.group_id == board["everyone"]

    def test_empty_scope_is_none(self, session, make_user, board):
        loner = make_user("loner", groups=())
        assert random_quote(session, Principal(loner.id)) is None

    def test_member_of_group_without_quotes_is_none(self, session, make_user, board):
        u = make_user("marketer", groups=("Marketing",))
        assert random_quote(session, Principal(u.id)) is None

    def test_admin_can_draw_any_quote(self, session, board):
        seen = {random_quote(session, Principal(board["admin"].id, is_admin=True)).id for _ in range(60)}
        assert len(seen) > 1


class TestAddQuote:
    def test_adds_into_member_group(self, session, board):
        qid = add_quote(session, Principal(board["alice"].id), "  ship it  ", board["bob"].id, board["eng"])
        session.commit()
        q = session.get(Quote, qid)
        assert q.text == "ship it"
        assert q.group_id == board["eng"]
        assert q.submitter_user_id == board["alice"].id
        assert q.subject_user_id == board["bob"].id

    def test_defaults_to_everyone_group(self, session, board):
        qid = add_quote(session, Principal(board["bob"].id), "hello", board["alice"].id)
        assert session.get(Quote, qid).group_id == board["everyone"]

    def test_blank_group_id_defaults_to_everyone(self, session, board):
        qid = add_quote(session, Principal(board["bob"].id), "hello", board["alice"].id, "  ")
        assert session.get(Quote, qid).group_id == board["everyone"]

    def test_forbidden_outside_membership(self, session, board):
        with pytest.raises(Forbidden):
            add_quote(session, Principal(board["alice"].id), "psst", board["bob"].id, board["sales"])

    def test_admin_must_be_member_to_submit(self, session, board):
        admin = Principal(board["admin"].id, is_admin=True)
        with pytest.raises(Forbidden):
            add_quote(session, admin, "I see all", board["bob"].id, board["everyone"])

    def test_empty_membership_cannot_submit(self, session, make_user, board):
        loner = make_user("loner", groups=())
        with pytest.raises(Forbidden):
            add_quote(session, Principal(loner.id), "anyone?", loner.id)

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_rejects_empty_text(self, session, board, text):
        with pytest.raises(InvalidInput):
            add_quote(session, Principal(board["bob"].id), text, board["alice"].id)

    def test_rejects_oversized_text(self, session, board):
        with pytest.raises(InvalidInput):
            add_quote(session, Principal(board["bob"].id), "x" * 4097, board["alice"].id)

    def test_cap_applies_after_trimming(self, session, board):
        qid = add_quote(session, Principal(board["bob"].id), "  " + "x" * 4096 + "  ", board["alice"].id)
        assert len(session.get(Quote, qid).text) == 4096

    def test_rejects_non_numeric_ids(self, session, board):
        with pytest.raises(InvalidInput):
            add_quote(session, Principal(board["bob"].id), "hi", "abc")
        with pytest.raises(InvalidInput):
            add_quote(session, Principal(board["bob"].id), "hi", board["alice"].id, "eng")

    def test_rejects_unknown_group(self, session, board):
        with pytest.raises(InvalidInput):
            add_quote(session, Principal(board["bob"].id), "hi", board["alice"].id, 9999)

    def test_rejects_unknown_subject(self, session, board):
        with pytest.raises(InvalidInput):
            add_quote(session, Principal(board["bob"].id), "hi", 9999)

    def test_subject_from_another_group_is_allowed(self, session, board):
        # carol is Sales-only; the target group alone decides the write.
        qid = add_quote(session, Principal(board["bob"].id), "hi", board["carol"].id)
        session.commit()
        q = session.get(Quote, qid)
        assert q.subject_user_id == board["carol"].id
        assert q.group_id == board["everyone"]

    def test_records_audit_event(self, session, board):
        from app.quoteboard.models import AuditEvent

        qid = add_quote(session, Principal(board["bob"].id), "logged", board["alice"].id)
        session.commit()
        ev = session.query(AuditEvent).filter(AuditEvent.action == "quote.create").one()
        assert ev.entity_id == str(qid)
        assert ev.actor_username == "bob"


def test_validate_quote_text_uses_configured_cap(app):
    app.config["QUOTE_MAX_LENGTH"] = 5
    with app.app_context():
        assert validate_quote_text(" abcde ") == "abcde"
        with pytest.raises(InvalidInput):
            validate_quote_text("abcdef")


def test_validate_quote_text_rejects_non_strings():
    with pytest.raises(InvalidInput):
        validate_quote_text(123)  # type: ignore[arg-type]


# ---------- HTTP ----------
def test_quotes_require_login(client):
    assert client.get("/api/quotes").status_code == 401
    assert client.get("/api/quotes/random").status_code == 401
    assert client.post("/api/quotes", json={"quoteText": "x", "personId": 1}).status_code == 401


def test_everyone_only_user_submits_without_group(client, make_user, login_as, session):
    u1 = make_user("u1", groups=("Everyone",))
    other = make_user("other", groups=("Everyone",))
    login_as("u1")

    me = client.get("/api/me").json
    assert me["showGroupSelector"] is False

    r = client.post("/api/quotes", json={"quoteText": "auto scoped", "personId": other.id})
    assert r.status_code == 201
    q = session.get(Quote, r.json["quoteId"])
    assert q.group_id == _group_id(session, "Everyone")
    assert q.submitter_user_id == u1.id


def test_multi_group_user_scenario(client, make_user, make_group, login_as, session):
    make_group("Sales")
    u2 = make_user("u2", groups=("Everyone", "Engineering"))
    login_as("u2")

    assert client.get("/api/me").json["showGroupSelector"] is True

    for name in ("Everyone", "Engineering"):
        r = client.post(
            "/api/quotes",
            json={"quoteText": f"into {name}", "personId": u2.id, "groupId": _group_id(session, name)},
        )
        assert r.status_code == 201, r.json

    r = client.post(
        "/api/quotes",
        json={"quoteText": "into sales", "personId": u2.id, "groupId": _group_id(session, "Sales")},
    )
    assert r.status_code == 403
    assert "error" in r.json


def test_invalid_input_is_400(client, make_user, login_as):
    u = make_user("u", groups=("Everyone",))
    login_as("u")
    r = client.post("/api/quotes", json={"quoteText": "   ", "personId": u.id})
    assert r.status_code == 400
    r = client.post("/api/quotes", json={"quoteText": "hi", "personId": "not-a-number"})
    assert r.status_code == 400


def test_form_submission_is_accepted(client, make_user, login_as):
    u = make_user("u", groups=("Everyone",))
    login_as("u")
    r = client.post("/api/quotes", data={"text": "from a form", "subjectUserId": str(u.id)})
    assert r.status_code == 201


def test_list_and_random_endpoints(client, make_user, login_as):
    u = make_user("u", groups=("Everyone",))
    login_as("u")

    assert client.get("/api/quotes").json == []
    r = client.get("/api/quotes/random")
    assert r.status_code == 404
    assert r.json == {"error": "No quotes found"}

    client.post("/api/quotes", json={"quoteText": "first", "personId": u.id})
    body = client.get("/api/quotes?sort=bogus").json
    assert [q["text"] for q in body] == ["first"]
    assert body[0]["subjectName"] == "U"
    assert client.get("/api/quotes/random").json["text"] == "first"


def test_storage_failure_maps_to_503(client, make_user, login_as, monkeypatch):
    make_user("u", groups=("Everyone",))
    login_as("u")

    def broken(*args, **kwargs):
        raise StorageFailure()

    monkeypatch.setattr("app.quoteboard.modules.quotes.routes.list_quotes", broken)
    r = client.get("/api/quotes")
    assert r.status_code == 503
    assert r.json == {"error": "Storage failure"}


def test_raw_database_error_maps_to_503(client, make_user, login_as, monkeypatch):
    from sqlalchemy.exc import OperationalError

    make_user("u", groups=("Everyone",))
    login_as("u")

    def broken(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection reset"))

    monkeypatch.setattr("app.quoteboard.modules.quotes.routes.random_quote", broken)
    r = client.get("/api/quotes/random")
    assert r.status_code == 503
