from datetime import datetime, timedelta, timezone

import pytest

from drinkwise.models import DrinkSession
from drinkwise.services import sessions as sessions_service
from drinkwise.services.sessions import (
    SessionConflict,
    create_session,
    end_session,
    get_session,
    resume_session,
)
from tests.utils.auth import build_auth_headers


def _start(client, headers, name=None):
    body = {"name": name} if name is not None else {}
    resp = client.post("/api/sessions", headers=headers, json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _log(client, headers, session_id, units=1.0, buzz=3):
    resp = client.post(
        "/api/drinks",
        headers=headers,
        json={"sessionId": session_id, "units": units, "buzzLevel": buzz},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_requires_authorization(client):
    resp = client.get("/api/sessions")
    assert resp.status_code == 401
    assert resp.json() == {"error": "No authorization header", "code": "UNAUTHORIZED"}


def test_rejects_non_bearer_header(client):
    resp = client.get("/api/sessions", headers={"Authorization": "Basic abc"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "No token provided"


def test_rejects_bad_token(client):
    resp = client.get("/api/sessions", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid token"


def test_rejects_expired_token(client, user):
    stale = build_auth_headers(user.id, now=datetime.now(timezone.utc) - timedelta(days=30))
    resp = client.get("/api/sessions", headers=stale)
    assert resp.status_code == 401
    assert resp.json()["error"] == "Expired token"


def test_create_session_defaults(client, headers, user):
    session = _start(client, headers)

    assert session["user_id"] == user.id
    assert session["name"] == "Session"
    assert session["is_active"] is True
    assert session["end_time"] is None
    assert session["version"] == 1


def test_second_active_session_conflicts(client, headers):
    _start(client, headers, "Friday")

    resp = client.post("/api/sessions", headers=headers, json={"name": "Again"})

    assert resp.status_code == 409
    assert resp.json()["code"] == "CONFLICT"


def test_active_session_with_stats(client, headers):
    resp = client.get("/api/sessions/active", headers=headers)
    assert resp.status_code == 404

    session = _start(client, headers, "Pub")
    _log(client, headers, session["id"], units=2.0, buzz=4)

    resp = client.get("/api/sessions/active", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == session["id"]
    assert len(body["drinks"]) == 1
    assert body["stats"]["total_units"] == 2.0
    assert body["stats"]["units_per_hour"] == 2.0
    assert body["stats"]["current_buzz_level"] == 4


def test_end_and_resume(client, headers):
    session = _start(client, headers)

    ended = client.patch(f"/api/sessions/{session['id']}/end", headers=headers)
    assert ended.status_code == 200
    assert ended.json()["is_active"] is False
    assert ended.json()["end_time"] is not None
    assert ended.json()["version"] == 2

    again = client.patch(f"/api/sessions/{session['id']}/end", headers=headers)
    assert again.status_code == 409

    resumed = client.patch(f"/api/sessions/{session['id']}/resume", headers=headers)
    assert resumed.status_code == 200
    assert resumed.json()["is_active"] is True
    assert resumed.json()["end_time"] is None
    assert resumed.json()["version"] == 3


def test_stale_expected_version_conflicts(client, headers):
    session = _start(client, headers)

    resp = client.patch(
        f"/api/sessions/{session['id']}/end",
        headers=headers,
        json={"expectedVersion": session["version"] + 5},
    )
    assert resp.status_code == 409

    resp = client.patch(
        f"/api/sessions/{session['id']}/end",
        headers=headers,
        json={"expected_version": session["version"]},
    )
    assert resp.status_code == 200


def test_resume_blocked_while_other_session_active(client, headers):
    first = _start(client, headers, "first")
    client.patch(f"/api/sessions/{first['id']}/end", headers=headers)
    _start(client, headers, "second")

    resp = client.patch(f"/api/sessions/{first['id']}/resume", headers=headers)

    assert resp.status_code == 409


def test_list_sessions_newest_first(client, headers, database, user):
    now = datetime.now(timezone.utc)
    with database.session() as db:
        for days in (10, 3):
            started = now - timedelta(days=days)
            db.add(
                DrinkSession(
                    user_id=user.id,
                    name=f"{days} days ago",
                    start_time=started,
                    end_time=started + timedelta(hours=2),
                    is_active=False,
                    version=2,
                    created_at=started,
                )
            )
        db.commit()
    current = _start(client, headers, "tonight")
    _log(client, headers, current["id"])

    resp = client.get("/api/sessions", headers=headers)

    assert resp.status_code == 200
    body = resp.json()
    assert [s["name"] for s in body] == ["tonight", "3 days ago", "10 days ago"]
    assert len(body[0]["drinks"]) == 1
    assert body[1]["drinks"] == []


def test_list_sessions_range_filter(client, headers):
    _start(client, headers, "now")
    future = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()

    resp = client.get("/api/sessions", headers=headers, params={"start": future})

    assert resp.status_code == 200
    assert resp.json() == []


def test_rename_session(client, headers):
    session = _start(client, headers)

    resp = client.patch(
        f"/api/sessions/{session['id']}", headers=headers, json={"name": "Birthday"}
    )

    assert resp.status_code == 200
    assert resp.json()["name"] == "Birthday"


def test_other_users_session_is_not_found(client, headers, other_user):
    session = _start(client, headers)
    intruder = build_auth_headers(other_user.id)

    assert client.get(f"/api/sessions/{session['id']}", headers=intruder).status_code == 404
    assert (
        client.patch(f"/api/sessions/{session['id']}/end", headers=intruder).status_code
        == 404
    )
    assert client.delete(f"/api/sessions/{session['id']}", headers=intruder).status_code == 404
    assert client.get(f"/api/sessions/{session['id']}", headers=headers).status_code == 200


def test_delete_session_removes_drinks(client, headers):
    session = _start(client, headers)
    _log(client, headers, session["id"])
    _log(client, headers, session["id"])

    resp = client.delete(f"/api/sessions/{session['id']}", headers=headers)
    assert resp.status_code == 204

    assert client.get(f"/api/sessions/{session['id']}", headers=headers).status_code == 404
    drinks = client.get(f"/api/drinks/session/{session['id']}", headers=headers)
    assert drinks.status_code == 200
    assert drinks.json() == []


def test_session_stats_endpoint(client, headers):
    session = _start(client, headers)
    _log(client, headers, session["id"], units=1.0, buzz=2)
    _log(client, headers, session["id"], units=2.0, buzz=5)

    resp = client.get(f"/api/sessions/{session['id']}/stats", headers=headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["session_id"] == session["id"]
    assert body["stats"]["total_drinks"] == 2
    assert body["stats"]["total_units"] == 3.0
    assert body["stats"]["peak_buzz_level"] == 5
    assert body["units_rate_progression"] == [1.0, 3.0]
    assert [p["value"] for p in body["units_progression"]] == [1.0, 3.0]
    assert [p["value"] for p in body["buzz_progression"]] == [2, 5]


def test_closed_session_stats_measured_at_end(client, headers, database, user):
    started = datetime(2025, 1, 10, 20, 0, tzinfo=timezone.utc)
    with database.session() as db:
        record = DrinkSession(
            user_id=user.id,
            name="old",
            start_time=started,
            end_time=started + timedelta(minutes=70),
            is_active=False,
            version=2,
            created_at=started,
        )
        db.add(record)
        db.commit()
        session_id = record.id

    resp = client.get(f"/api/sessions/{session_id}/stats", headers=headers)

    assert resp.status_code == 200
    assert resp.json()["stats"]["time_elapsed"] == 0
    assert resp.json()["as_of"].startswith("2025-01-10T21:10:00")


def test_stream_for_unknown_session(client, headers):
    resp = client.get("/api/sessions/999999/stream", headers=headers)
    assert resp.status_code == 404


def test_end_with_camel_case_expected_version(client, headers):
    session = _start(client, headers)

    resp = client.patch(
        f"/api/sessions/{session['id']}/end",
        headers=headers,
        json={"expectedVersion": session["version"]},
    )

    assert resp.status_code == 200
    assert resp.json()["version"] == session["version"] + 1


def test_concurrent_create_rejected_by_unique_index(database, user, monkeypatch):
    with database.session() as db:
        first = create_session(db, user_id=user.id, name="first")

        # both requests read "no active session" before either inserts
        monkeypatch.setattr(sessions_service, "get_active_session", lambda *a, **kw: None)
        with pytest.raises(SessionConflict):
            create_session(db, user_id=user.id, name="second")

        monkeypatch.undo()
        active = sessions_service.get_active_session(db, user_id=user.id)
        listed = sessions_service.list_sessions(db, user_id=user.id)

    assert active.id == first.id
    assert [s.id for s in listed] == [first.id]


def test_concurrent_resume_rejected_by_unique_index(database, user, monkeypatch):
    with database.session() as db:
        old = create_session(db, user_id=user.id, name="old")
        end_session(db, user_id=user.id, session_id=old.id)
        current = create_session(db, user_id=user.id, name="current")

        monkeypatch.setattr(sessions_service, "get_active_session", lambda *a, **kw: None)
        with pytest.raises(SessionConflict):
            resume_session(db, user_id=user.id, session_id=old.id)

        monkeypatch.undo()
        assert get_session(db, user_id=user.id, session_id=old.id).is_active is False
        assert get_session(db, user_id=user.id, session_id=current.id).is_active is True
