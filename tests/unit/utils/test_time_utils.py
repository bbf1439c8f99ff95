from datetime import datetime, timedelta, timezone

from farmdash.utils.time import coerce_datetime, convert_utc_to_local, format_time_label, utc_now


def test_coerce_datetime_parses_z_suffix():
    dt = coerce_datetime("2026-01-01T00:00:00Z")
    assert dt is not None
    assert dt.tzinfo is not None
    assert dt.utcoffset() == timedelta(0)
    assert dt.isoformat().endswith("+00:00")


def test_coerce_datetime_parses_offset():
    dt = coerce_datetime("2026-01-01T02:00:00+02:00")
    assert dt is not None
    assert dt.tzinfo is not None
    assert dt.utcoffset() == timedelta(0)
    assert dt.hour == 0


def test_coerce_datetime_parses_naive_as_utc():
    dt = coerce_datetime("2026-01-01T00:00:00")
    assert dt is not None
    assert dt.tzinfo is not None
    assert dt.utcoffset() == timedelta(0)

    time_diff = utc_now() - dt
    assert isinstance(time_diff, timedelta)


def test_coerce_datetime_parses_epoch_millis():
    dt = coerce_datetime(1714550400000)
    assert dt == datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


def test_coerce_datetime_rejects_garbage():
    assert coerce_datetime("yesterday") is None
    assert coerce_datetime(True) is None
    assert coerce_datetime(None) is None
    assert coerce_datetime([2024, 5, 1]) is None


def test_convert_naive_utc_to_fixed_zone():
    plus_two = timezone(timedelta(hours=2))
    local = convert_utc_to_local(datetime(2024, 5, 1, 8, 0), plus_two)
    assert local.hour == 10
    assert local.utcoffset() == timedelta(hours=2)


def test_format_time_label_uses_zone():
    value = datetime(2024, 5, 1, 8, 5, tzinfo=timezone.utc)
    assert format_time_label(value, tz=timezone.utc) == "08:05"
    assert format_time_label(value, tz=timezone(timedelta(hours=-3))) == "05:05"
    assert format_time_label(value, "%d/%m %H:%M", timezone.utc) == "01/05 08:05"
