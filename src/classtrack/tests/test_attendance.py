# src/classtrack/tests/test_attendance.py
from __future__ import annotations

import uuid
from datetime import timedelta

import pytest

from classtrack.common.enums import AttendanceStanding, DenominatorPolicy
from classtrack.exceptions import NotFoundError, ValidationError
from classtrack.services.attendance import (
    AttendanceService,
    parse_mark_status,
    percentage_half_up,
    standing_for,
    summarize,
)
from classtrack.services.schedule import ScheduleService

pytestmark = pytest.mark.anyio

# 3 attended, 1 missed, 2 cancelled, 4 pending
SAMPLE = ["attended"] * 3 + ["missed"] + ["cancelled"] * 2 + ["pending"] * 4


def test_summary_counts_and_conducted_percentage():
    s = summarize(SAMPLE, DenominatorPolicy.CONDUCTED)
    assert (s.total, s.attended, s.missed, s.cancelled, s.pending) == (10, 3, 1, 2, 4)
    assert s.percentage == 75


def test_denominator_policies():
    assert summarize(SAMPLE, "scheduled").percentage == 38  # 3/8 = 37.5 -> 38
    assert summarize(SAMPLE, "logged").percentage == 50  # 3/6


def test_summary_accepts_status_count_mapping():
    s = summarize({"attended": 2, "missed": 1}, "conducted")
    assert s.total == 3
    assert s.percentage == 67


def test_percentage_rounds_half_up():
    assert percentage_half_up(1, 8) == 13  # 12.5
    assert percentage_half_up(1, 3) == 33
    assert percentage_half_up(2, 3) == 67
    assert percentage_half_up(0, 4) == 0
    assert percentage_half_up(5, 0) == 0


def test_empty_and_all_pending_give_zero():
    assert summarize([], "conducted").percentage == 0
    assert summarize(["pending", "cancelled"], "conducted").percentage == 0


def test_unknown_status_is_rejected():
    with pytest.raises(ValidationError):
        summarize({"late": 1}, "conducted")


def test_only_terminal_statuses_can_be_marked():
    for value in ("attended", "missed", "cancelled"):
        assert parse_mark_status(value).value == value
    with pytest.raises(ValidationError):
        parse_mark_status("pending")


async def _setup(session, user_id, today):
    svc = ScheduleService(session)
    subject = await svc.create_subject(user_id, "Physics", "#10B981")
    await svc.create_or_update_rule(user_id, subject.id, ["Mon", "Tue", "Wed", "Thu", "Fri"], "08:00", "09:00", today)
    return svc, subject


async def test_mark_stamps_marked_at_once_and_allows_correction(session, user_id, today):
    svc, subject = await _setup(session, user_id, today)
    [first] = await svc.todays_classes(user_id, today)

    marked = await svc.mark_occurrence(user_id, first.id, "attended", today)
    stamp = marked.occurrence.marked_at
    assert marked.occurrence.status == "attended"
    assert stamp is not None

    corrected = await svc.mark_occurrence(user_id, first.id, "missed", today)
    assert corrected.occurrence.status == "missed"
    assert corrected.occurrence.marked_at == stamp
    assert corrected.attendance.summary.missed == 1
    assert corrected.attendance.summary.percentage == 0


async def test_mark_occurrence_of_other_user_is_not_found(session, user_id, today):
    svc, subject = await _setup(session, user_id, today)
    [first] = await svc.todays_classes(user_id, today)
    with pytest.raises(NotFoundError):
        await svc.mark_occurrence(uuid.uuid4(), first.id, "attended", today)


async def test_summary_only_counts_up_to_today_by_default(session, user_id, today):
    svc, subject = await _setup(session, user_id, today)
    friday = today + timedelta(days=4)
    week = await svc.week_classes(user_id, today)
    assert len(week) == 5
    for occ, status in zip(week, ["attended", "attended", "attended", "missed", "cancelled"]):
        await svc.mark_occurrence(user_id, occ.id, status, friday)

    [item] = await svc.get_summary(user_id, friday)
    assert item.subject.id == subject.id
    assert item.summary.total == 5
    assert item.summary.percentage == 75

    [everything] = await svc.get_summary(user_id, friday, include_future=True)
    assert everything.summary.total == 20
    assert everything.summary.pending == 15
    assert everything.summary.percentage == 75


async def test_summaries_cover_subjects_without_occurrences(session, user_id, today):
    svc, subject = await _setup(session, user_id, today)
    empty = await svc.create_subject(user_id, "Art")

    items = await AttendanceService(session).subject_summaries(user_id, today)
    by_name = {i.subject.name: i.summary for i in items}
    assert set(by_name) == {"Art", "Physics"}
    assert by_name["Art"].total == 0
    assert by_name["Art"].percentage == 0
    assert by_name["Physics"].total == 1


@pytest.mark.parametrize(
    "percentage, expected",
    [
        (0, AttendanceStanding.RED),
        (64, AttendanceStanding.RED),
        (65, AttendanceStanding.YELLOW),
        (74, AttendanceStanding.YELLOW),
        (75, AttendanceStanding.GREEN),
        (100, AttendanceStanding.GREEN),
    ],
)
def test_standing_bands(percentage, expected):
    assert standing_for(percentage) is expected


def test_standing_thresholds_are_configurable(monkeypatch):
    from classtrack.core.config import settings

    assert standing_for(80, green_at=85, yellow_at=80) is AttendanceStanding.YELLOW
    monkeypatch.setattr(settings, "ATTENDANCE_GREEN_AT", 90)
    monkeypatch.setattr(settings, "ATTENDANCE_YELLOW_AT", 50)
    assert standing_for(75) is AttendanceStanding.YELLOW
    assert summarize(["attended", "missed"], "conducted").standing == "yellow"


def test_yellow_band_above_green_is_rejected():
    from pydantic import ValidationError as SettingsError

    from classtrack.core.config import Settings

    with pytest.raises(SettingsError):
        Settings(ATTENDANCE_GREEN_AT=60, ATTENDANCE_YELLOW_AT=70)


def test_summary_carries_standing():
    assert summarize(SAMPLE, "conducted").standing == "green"  # 75
    assert summarize(SAMPLE, "logged").standing == "red"  # 50
    assert summarize({"attended": 7, "missed": 3}, "conducted").standing == "yellow"  # 70
    assert summarize([], "conducted").standing == "red"
