# src/classtrack/tests/test_rules.py
import pytest

from classtrack.exceptions import ValidationError
from classtrack.services.rules import RuleShape, normalize_time


def test_build_normalizes_weekdays_and_times():
    shape = RuleShape.build(["Fri", "Mon", "Wed", "Mon"], "9:00", "10:30")
    assert shape.weekdays == ("Mon", "Wed", "Fri")
    assert shape.start_time == "09:00"
    assert shape.end_time == "10:30"
    assert shape.as_columns() == {"weekdays": ["Mon", "Wed", "Fri"], "start_time": "09:00", "end_time": "10:30"}


def test_end_before_start_is_rejected():
    with pytest.raises(ValidationError) as exc:
        RuleShape.build(["Tue"], "14:00", "13:00")
    assert exc.value.field == "end_time"
    assert "after start" in exc.value.message


def test_equal_start_and_end_is_rejected():
    with pytest.raises(ValidationError):
        RuleShape.build(["Tue"], "14:00", "14:00")


@pytest.mark.parametrize("weekdays", [[], "Mon", ["Mon", "Someday"], None])
def test_bad_weekdays_are_rejected(weekdays):
    with pytest.raises(ValidationError) as exc:
        RuleShape.build(weekdays, "09:00", "10:00")
    assert exc.value.field == "weekdays"


@pytest.mark.parametrize("value", ["24:00", "9", "09:60", "0900", "", None, 900])
def test_bad_times_are_rejected(value):
    with pytest.raises(ValidationError):
        normalize_time(value, "start_time")


def test_shape_of_persisted_rule():
    class Row:
        weekdays = ["Tue", "Thu"]
        start_time = "08:00"
        end_time = "09:00"

    assert RuleShape.of(Row()) == RuleShape(("Tue", "Thu"), "08:00", "09:00")
