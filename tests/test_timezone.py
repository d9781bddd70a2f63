from datetime import datetime, timezone

import pytest

from momentum.core.exceptions import ValidationException
from momentum.scheduling import (
    create_date_in_timezone,
    format_for_graph_api,
    format_utc_to_local,
    get_timezone_abbreviation,
    get_timezone_offset,
    normalize_ai_timestamp,
    normalize_timezone,
    parse_local_time_to_utc,
    to_iso_z,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def test_local_time_is_converted_to_utc():
    assert parse_local_time_to_utc("2026-01-06T10:30:00", "America/New_York") == utc(2026, 1, 6, 15, 30)
    assert parse_local_time_to_utc("2026-01-06T10:30", "America/Los_Angeles") == utc(2026, 1, 6, 18, 30)
    assert parse_local_time_to_utc("2026-01-06T10:30:00", "America/Chicago") == utc(2026, 1, 6, 16, 30)


def test_daylight_saving_time_is_respected():
    assert parse_local_time_to_utc("2026-03-09T10:30:00", "America/New_York") == utc(2026, 3, 9, 14, 30)


def test_strings_with_offsets_are_taken_as_is():
    assert parse_local_time_to_utc("2026-01-06T10:30:00Z", "America/New_York") == utc(2026, 1, 6, 10, 30)
    assert parse_local_time_to_utc("2026-01-06T10:30:00+05:30", None) == utc(2026, 1, 6, 5, 0)


def test_garbage_is_rejected():
    with pytest.raises(ValidationException):
        parse_local_time_to_utc("next tuesday-ish", "America/New_York")


def test_offsets_follow_dst():
    assert get_timezone_offset("America/New_York", utc(2026, 1, 6, 12)) == -5
    assert get_timezone_offset("America/New_York", utc(2026, 7, 6, 12)) == -4


def test_format_for_calendar_apis():
    instant = utc(2026, 1, 6, 15, 30, 45)
    assert format_utc_to_local(instant, "America/New_York") == "2026-01-06T10:30:00"
    assert format_for_graph_api(instant, "Pacific Standard Time") == "2026-01-06T07:30:00"


def test_create_date_in_timezone():
    assert create_date_in_timezone(2026, 1, 6, 14, 0, "America/New_York") == utc(2026, 1, 6, 19, 0)


def test_iso_z_has_milliseconds():
    assert to_iso_z(utc(2026, 1, 6, 19, 0)) == "2026-01-06T19:00:00.000Z"
    assert to_iso_z(datetime(2026, 1, 6, 19, 0, 0, 123456)) == "2026-01-06T19:00:00.123Z"


def test_windows_names_are_mapped():
    assert normalize_timezone("Eastern Standard Time") == "America/New_York"
    assert normalize_timezone("Central Daylight Time") == "America/Chicago"
    assert normalize_timezone("Europe/Berlin") == "Europe/Berlin"


def test_unknown_zone_is_rejected():
    with pytest.raises(ValidationException):
        get_timezone_offset("Mars/Olympus_Mons")


def test_abbreviation():
    assert get_timezone_abbreviation(utc(2026, 1, 6, 12), "America/New_York") == "EST"
    assert get_timezone_abbreviation(utc(2026, 7, 6, 12), "America/New_York") == "EDT"


class TestAITimestamps:

    def test_local_time_in_user_zone(self):
        result = normalize_ai_timestamp("2026-01-06T10:30:00", "America/Chicago")
        assert result.utc == utc(2026, 1, 6, 16, 30)
        assert result.original == "2026-01-06T10:30:00"
        assert result.was_converted

    def test_zulu_time_is_not_converted(self):
        result = normalize_ai_timestamp("2026-01-06T10:30:00Z", "America/Chicago")
        assert result.utc == utc(2026, 1, 6, 10, 30)
        assert not result.was_converted

    def test_empty_input(self):
        assert normalize_ai_timestamp(None, "America/Chicago") == (None, None, False)
