import pytest

from gbfsstats.core.time import date_partition, dates_between, parse_datetime, to_epoch_seconds

JAN_1 = 1_704_067_200


def test_parse_datetime_accepts_z_offsets_naive_and_date_only():
    assert to_epoch_seconds(parse_datetime("2024-01-01T00:00:00Z")) == JAN_1
    assert to_epoch_seconds(parse_datetime("2024-01-01T02:00:00+02:00")) == JAN_1
    assert to_epoch_seconds(parse_datetime("2024-01-01T00:00:00")) == JAN_1
    assert to_epoch_seconds(parse_datetime("2024-01-01")) == JAN_1
    assert to_epoch_seconds(parse_datetime("2024-01-01T00:00:00.999Z")) == JAN_1


def test_parse_datetime_rejects_garbage():
    with pytest.raises(ValueError):
        parse_datetime("   ")
    with pytest.raises(ValueError):
        parse_datetime("01/02/2024")


def test_date_partition_is_utc():
    assert date_partition(JAN_1 - 1) == "2023-12-31"
    assert date_partition(JAN_1) == "2024-01-01"


@pytest.mark.parametrize(
    "start, end, expected",
    [
        (JAN_1, JAN_1, ["2024-01-01"]),
        (JAN_1, JAN_1 + 36 * 3600, ["2024-01-01", "2024-01-02"]),
        (JAN_1 + 20 * 3600, JAN_1 + 26 * 3600, ["2024-01-01", "2024-01-02"]),
        (JAN_1 - 1, JAN_1 + 2 * 86_400, ["2023-12-31", "2024-01-01", "2024-01-02", "2024-01-03"]),
        (JAN_1 + 10, JAN_1, []),
    ],
)
def test_dates_between_covers_every_touched_day(start, end, expected):
    assert dates_between(start, end) == expected
