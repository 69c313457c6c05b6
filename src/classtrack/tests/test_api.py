# src/classtrack/tests/test_api.py
from __future__ import annotations

import uuid

import pytest
from sqlalchemy.exc import OperationalError

pytestmark = pytest.mark.anyio


async def _subject(client, headers, name="Math"):
    r = await client.post("/subjects", json={"name": name}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


async def _rule(client, headers, subject_id, weekdays=("Mon", "Wed", "Fri"), start="09:00", end="10:00"):
    return await client.put(
        "/schedule/rules",
        json={"subject_id": subject_id, "weekdays": list(weekdays), "start_time": start, "end_time": end},
        headers=headers,
    )


async def test_requests_without_user_are_rejected(client):
    r = await client.get("/subjects")
    assert r.status_code == 401


async def test_subject_create_list_get(client, auth_headers):
    created = await _subject(client, auth_headers)
    assert created["color"] == "#3B82F6"

    r = await client.get("/subjects", headers=auth_headers)
    assert [s["name"] for s in r.json()] == ["Math"]

    r = await client.get(f"/subjects/{created['id']}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["id"] == created["id"]


async def test_duplicate_subject_is_conflict(client, auth_headers):
    await _subject(client, auth_headers)
    r = await client.post("/subjects", json={"name": "Math"}, headers=auth_headers)
    assert r.status_code == 409
    assert r.json()["error_code"] == "conflict"


async def test_bad_color_is_unprocessable(client, auth_headers):
    r = await client.post("/subjects", json={"name": "Art", "color": "blue"}, headers=auth_headers)
    assert r.status_code == 422


async def test_rule_create_materializes_twelve(client, auth_headers, today):
    subject = await _subject(client, auth_headers)
    r = await _rule(client, auth_headers, subject["id"])
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["created"] is True
    assert body["reconcile"] == {"deleted_count": 0, "created_count": 12}
    assert body["rule"]["weekdays"] == ["Mon", "Wed", "Fri"]

    r = await client.get("/classes", headers=auth_headers)
    classes = r.json()
    assert len(classes) == 12
    assert classes[0]["date"] == today.isoformat()
    assert classes[0]["weekday"] == "Mon"
    assert [c["date"] for c in classes] == sorted(c["date"] for c in classes)


async def test_rule_end_before_start_is_unprocessable(client, auth_headers):
    subject = await _subject(client, auth_headers)
    r = await _rule(client, auth_headers, subject["id"], weekdays=("Tue",), start="14:00", end="13:00")
    assert r.status_code == 422
    assert r.json()["context"]["field"] == "end_time"

    r = await client.get("/classes", headers=auth_headers)
    assert r.json() == []


async def test_rule_for_unknown_subject_is_not_found(client, auth_headers):
    r = await _rule(client, auth_headers, str(uuid.uuid4()))
    assert r.status_code == 404
    assert r.json()["error_code"] == "subject_not_found"


async def test_rule_update_reconciles(client, auth_headers):
    subject = await _subject(client, auth_headers)
    await _rule(client, auth_headers, subject["id"])
    classes = (await client.get("/classes", headers=auth_headers)).json()
    for c in classes[:2]:
        r = await client.post(f"/classes/{c['id']}/status", json={"status": "attended"}, headers=auth_headers)
        assert r.status_code == 200

    r = await _rule(client, auth_headers, subject["id"], weekdays=("Tue", "Thu"))
    body = r.json()
    assert body["created"] is False
    assert body["reconcile"] == {"deleted_count": 10, "created_count": 8}

    r = await client.get("/classes", params={"status": "attended"}, headers=auth_headers)
    assert len(r.json()) == 2


async def test_rules_listing_and_weekly_timetable(client, auth_headers):
    math = await _subject(client, auth_headers, "Math")
    art = await _subject(client, auth_headers, "Art")
    await _rule(client, auth_headers, math["id"], weekdays=("Mon",), start="11:00", end="12:00")
    await _rule(client, auth_headers, art["id"], weekdays=("Mon", "Tue"), start="08:00", end="09:00")

    rules = (await client.get("/schedule/rules", headers=auth_headers)).json()
    assert len(rules) == 2
    only_math = (await client.get(f"/schedule/rules/{math['id']}", headers=auth_headers)).json()
    assert [r["subject_id"] for r in only_math] == [math["id"]]

    week = (await client.get("/schedule/weekly", headers=auth_headers)).json()
    assert list(week) == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    assert [e["subject_name"] for e in week["Mon"]] == ["Art", "Math"]
    assert [e["subject_name"] for e in week["Tue"]] == ["Art"]
    assert week["Sun"] == []


async def test_delete_rule(client, auth_headers):
    subject = await _subject(client, auth_headers)
    rule = (await _rule(client, auth_headers, subject["id"])).json()["rule"]
    classes = (await client.get("/classes", headers=auth_headers)).json()
    await client.post(f"/classes/{classes[0]['id']}/status", json={"status": "missed"}, headers=auth_headers)

    r = await client.delete(f"/schedule/rules/{rule['id']}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {"deleted_count": 11}

    remaining = (await client.get("/classes", headers=auth_headers)).json()
    assert len(remaining) == 1
    assert remaining[0]["rule_id"] is None

    r = await client.delete(f"/schedule/rules/{rule['id']}", headers=auth_headers)
    assert r.status_code == 404


async def test_slots_endpoint(client, auth_headers):
    subject = await _subject(client, auth_headers)
    r = await client.put(
        f"/schedule/subjects/{subject['id']}/slots",
        json={"slots": [
            {"weekdays": ["Mon"], "start_time": "9:00", "end_time": "10:00"},
            {"weekdays": ["Thu"], "start_time": "14:00", "end_time": "15:30"},
        ]},
        headers=auth_headers,
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert [s["rule"]["position"] for s in body["slots"]] == [0, 1]
    assert body["slots"][0]["rule"]["start_time"] == "09:00"
    assert body["removed_count"] == 0
    assert len((await client.get("/classes", headers=auth_headers)).json()) == 8


async def test_regenerate_and_ensure_upcoming_are_idempotent(client, auth_headers):
    subject = await _subject(client, auth_headers)
    await _rule(client, auth_headers, subject["id"])

    r = await client.post(f"/schedule/subjects/{subject['id']}/regenerate", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["created_count"] == 0
    assert r.json()["planned_count"] == 12

    r = await client.post("/classes/ensure-upcoming", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["created_count"] == 0


async def test_today_and_week_views(client, auth_headers):
    subject = await _subject(client, auth_headers)
    await _rule(client, auth_headers, subject["id"])

    today_rows = (await client.get("/classes/today", headers=auth_headers)).json()
    assert [c["weekday"] for c in today_rows] == ["Mon"]

    this_week = (await client.get("/classes/week", headers=auth_headers)).json()
    assert [c["weekday"] for c in this_week] == ["Mon", "Wed", "Fri"]

    last_week = (await client.get("/classes/week", params={"week_offset": -1}, headers=auth_headers)).json()
    assert last_week == []


async def test_class_range_validation(client, auth_headers):
    r = await client.get("/classes", params={"start": "2024-09-10", "end": "2024-09-01"}, headers=auth_headers)
    assert r.status_code == 422
    r = await client.get("/classes", params={"status": "late"}, headers=auth_headers)
    assert r.status_code == 422


async def test_mark_returns_recomputed_summary(client, auth_headers):
    subject = await _subject(client, auth_headers)
    await _rule(client, auth_headers, subject["id"])
    [first] = (await client.get("/classes/today", headers=auth_headers)).json()

    r = await client.post(f"/classes/{first['id']}/status", json={"status": "attended"}, headers=auth_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["occurrence"]["status"] == "attended"
    assert body["occurrence"]["marked_at"] is not None
    assert body["summary"]["attended"] == 1
    assert body["summary"]["percentage"] == 100

    r = await client.post(f"/classes/{first['id']}/status", json={"status": "pending"}, headers=auth_headers)
    assert r.status_code == 422

    r = await client.post(f"/classes/{uuid.uuid4()}/status", json={"status": "missed"}, headers=auth_headers)
    assert r.status_code == 404


async def test_attendance_summary_endpoint(client, auth_headers):
    subject = await _subject(client, auth_headers)
    await _rule(client, auth_headers, subject["id"])

    r = await client.get("/attendance/summary", headers=auth_headers)
    assert r.status_code == 200
    [item] = r.json()
    assert item["subject_id"] == subject["id"]
    assert item["total"] == 1
    assert item["pending"] == 1
    assert item["percentage"] == 0

    r = await client.get("/attendance/summary", params={"include_future": "true"}, headers=auth_headers)
    assert r.json()[0]["total"] == 12

    r = await client.get("/attendance/summary", params={"subject_id": str(uuid.uuid4())}, headers=auth_headers)
    assert r.status_code == 404


async def test_users_are_isolated(client, auth_headers):
    subject = await _subject(client, auth_headers)
    await _rule(client, auth_headers, subject["id"])
    other = {"X-User-Id": str(uuid.uuid4())}

    assert (await client.get("/classes", headers=other)).json() == []
    assert (await client.get(f"/subjects/{subject['id']}", headers=other)).status_code == 404


async def test_unknown_timezone_is_unprocessable(client, auth_headers):
    r = await client.get("/subjects", headers={**auth_headers, "X-User-Timezone": "Nowhere/Land"})
    assert r.status_code == 422


async def test_store_outage_is_503_with_retry_after(client, auth_headers, monkeypatch):
    subject = await _subject(client, auth_headers)

    async def _down(self, *args, **kwargs):
        raise OperationalError("INSERT", {}, ConnectionRefusedError("connection refused"))

    from classtrack.db.repositories.occurrences import OccurrenceRepository

    monkeypatch.setattr(OccurrenceRepository, "_insert_on_conflict_do_nothing", _down)
    r = await _rule(client, auth_headers, subject["id"])
    assert r.status_code == 503
    assert r.headers["Retry-After"] == "5"
    assert r.json()["error_code"] == "store_unavailable"

    # the rule row exists; once the store is back, ensure-upcoming fills the gap
    monkeypatch.undo()
    r = await client.post("/classes/ensure-upcoming", params={"days_ahead": 28}, headers=auth_headers)
    assert r.json()["created_count"] == 12


async def test_store_outage_during_update_keeps_history_and_retry_completes(client, auth_headers, monkeypatch):
    from classtrack.db.repositories.occurrences import OccurrenceRepository

    subject = await _subject(client, auth_headers)
    await _rule(client, auth_headers, subject["id"])
    classes = (await client.get("/classes", headers=auth_headers)).json()
    assert len(classes) == 12
    for c in classes[:2]:
        await client.post(f"/classes/{c['id']}/status", json={"status": "attended"}, headers=auth_headers)

    async def _down(self, *args, **kwargs):
        raise OperationalError("INSERT", {}, ConnectionResetError("connection reset"))

    monkeypatch.setattr(OccurrenceRepository, "_insert_on_conflict_do_nothing", _down)
    r = await _rule(client, auth_headers, subject["id"], weekdays=("Tue", "Thu"))
    assert r.status_code == 503
    assert r.headers["Retry-After"] == "5"

    # old pending rows are gone, marked ones survive, nothing new yet
    after_failure = (await client.get("/classes", headers=auth_headers)).json()
    assert [c["status"] for c in after_failure] == ["attended", "attended"]
    assert [c["id"] for c in after_failure] == [c["id"] for c in classes[:2]]

    monkeypatch.undo()
    r = await _rule(client, auth_headers, subject["id"], weekdays=("Tue", "Thu"))
    assert r.status_code == 200, r.text
    assert r.json()["reconcile"] == {"deleted_count": 0, "created_count": 8}

    recovered = (await client.get("/classes", headers=auth_headers)).json()
    assert len(recovered) == 10
    assert {c["weekday"] for c in recovered if c["status"] == "pending"} == {"Tue", "Thu"}


async def test_summary_reports_standing(client, auth_headers):
    subject = await _subject(client, auth_headers)
    await _rule(client, auth_headers, subject["id"])
    [first] = (await client.get("/classes/today", headers=auth_headers)).json()

    r = await client.post(f"/classes/{first['id']}/status", json={"status": "missed"}, headers=auth_headers)
    assert r.json()["summary"]["standing"] == "red"

    r = await client.post(f"/classes/{first['id']}/status", json={"status": "attended"}, headers=auth_headers)
    assert r.json()["summary"]["standing"] == "green"

    [item] = (await client.get("/attendance/summary", headers=auth_headers)).json()
    assert item["percentage"] == 100
    assert item["standing"] == "green"


async def test_repeated_rule_submission_is_not_an_error(client, auth_headers):
    subject = await _subject(client, auth_headers)
    first = await _rule(client, auth_headers, subject["id"])
    second = await _rule(client, auth_headers, subject["id"])
    assert first.status_code == second.status_code == 200
    assert second.json()["rule"]["id"] == first.json()["rule"]["id"]
    assert len((await client.get("/classes", headers=auth_headers)).json()) == 12


async def test_overlapping_slot_via_rule_upsert_is_unprocessable(client, auth_headers):
    subject = await _subject(client, auth_headers)
    await _rule(client, auth_headers, subject["id"])
    r = await client.put(
        "/schedule/rules",
        json={"subject_id": subject["id"], "weekdays": ["Mon"], "start_time": "09:00", "end_time": "10:00", "position": 1},
        headers=auth_headers,
    )
    assert r.status_code == 422
    assert r.json()["context"]["field"] == "slots"
