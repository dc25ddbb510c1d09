import pytest

from conftest import FakeDynamoResource, make_stats

from gbfsstats.services.retention import CleanupError, RetentionSweeper, chunked
from gbfsstats.storage.stats_table import StatsTable

NOW = 1_704_110_400
DAY = 86_400


def _sweeper(settings, dynamodb, **retention):
    if retention:
        settings = settings.model_copy(update={"retention": settings.retention.model_copy(update=retention)})
    return RetentionSweeper(settings, StatsTable(dynamodb, "bike-stats"))


def _seed(dynamodb, provider, timestamps):
    table = StatsTable(dynamodb, "bike-stats")
    for ts in timestamps:
        table.put(make_stats(provider, ts))


def _remaining(dynamodb, provider):
    return sorted(ts for p, ts in dynamodb.Table("bike-stats").items if p == provider)


@pytest.fixture
def sleeps(monkeypatch):
    calls: list[float] = []
    monkeypatch.setattr("gbfsstats.services.retention.time.sleep", lambda s: calls.append(s))
    return calls


def test_sweep_deletes_only_records_past_retention(settings, dynamodb, sleeps):
    _seed(dynamodb, "citibike", [NOW - 3 * DAY, NOW - 10 * DAY])

    result = _sweeper(settings, dynamodb).run(["citibike"], now=NOW)

    assert _remaining(dynamodb, "citibike") == [NOW - 3 * DAY]
    assert result.deleted == {"citibike": 1}
    assert result.model_dump(by_alias=True)["providersProcessed"] == 1
    assert sleeps == []


def test_sweep_keeps_records_at_the_cutoff(settings, dynamodb, sleeps):
    cutoff = NOW - 5 * DAY
    _seed(dynamodb, "citibike", [cutoff - 1, cutoff, cutoff + 1])

    _sweeper(settings, dynamodb).run(["citibike"], now=NOW)

    assert _remaining(dynamodb, "citibike") == [cutoff, cutoff + 1]


def test_sweep_pages_and_batches_and_is_idempotent(settings, sleeps):
    dynamodb = FakeDynamoResource(page_size=40)
    old = [NOW - 10 * DAY - i for i in range(60)]
    _seed(dynamodb, "citibike", old + [NOW - DAY])
    _seed(dynamodb, "nextbike", [NOW - 30 * DAY, NOW])

    first = _sweeper(settings, dynamodb).run(now=NOW)

    assert first.deleted == {"citibike": 60, "nextbike": 1}
    # Pages of 40 + 20, each chunked into batches of at most 25.
    assert dynamodb.batch_calls == [25, 15, 20, 1]
    assert _remaining(dynamodb, "citibike") == [NOW - DAY]
    assert _remaining(dynamodb, "nextbike") == [NOW]

    dynamodb.batch_calls.clear()
    second = _sweeper(settings, dynamodb).run(now=NOW)

    assert second.deleted == {"citibike": 0, "nextbike": 0}
    assert dynamodb.batch_calls == []


def test_sweep_retries_only_unprocessed_keys_with_linear_backoff(settings, dynamodb, sleeps):
    _seed(dynamodb, "citibike", [NOW - 10 * DAY - i for i in range(10)])
    dynamodb.unprocessed_plan = [4, 1]

    result = _sweeper(settings, dynamodb).run(["citibike"], now=NOW)

    assert dynamodb.batch_calls == [10, 4, 1]
    assert sleeps == [1.0, 2.0]
    assert result.deleted == {"citibike": 10}
    assert _remaining(dynamodb, "citibike") == []


def test_sweep_failure_is_isolated_to_one_provider(settings, dynamodb, sleeps):
    _seed(dynamodb, "citibike", [NOW - 10 * DAY])
    _seed(dynamodb, "nextbike", [NOW - 10 * DAY])
    dynamodb.always_unprocessed = {"citibike"}

    with pytest.raises(CleanupError) as excinfo:
        _sweeper(settings, dynamodb).run(["citibike", "nextbike"], now=NOW)

    err = excinfo.value
    assert str(err) == "Failed to complete cleanup process"
    assert list(err.context["failed_providers"]) == ["citibike"]
    assert "Max retries reached" in err.context["failed_providers"]["citibike"]["error"]
    assert err.context["deleted"] == {"nextbike": 1}
    # Three submissions in total, two backoff sleeps in between.
    assert sleeps == [1.0, 2.0]
    assert _remaining(dynamodb, "citibike") == [NOW - 10 * DAY]
    assert _remaining(dynamodb, "nextbike") == []


def test_sweep_wraps_store_errors(settings, dynamodb, sleeps):
    _seed(dynamodb, "citibike", [NOW - 10 * DAY])

    def broken(**_kwargs):
        raise RuntimeError("ProvisionedThroughputExceeded")

    dynamodb.batch_write_item = broken

    with pytest.raises(CleanupError) as excinfo:
        _sweeper(settings, dynamodb).run(["citibike"], now=NOW)

    failure = excinfo.value.context["failed_providers"]["citibike"]
    assert failure["error"] == "Failed to process batch delete"
    assert failure["context"]["error"] == "ProvisionedThroughputExceeded"


def test_chunked_splits_into_fixed_size_batches():
    keys = [{"provider": "p", "timestamp": i} for i in range(51)]
    assert [len(c) for c in chunked(keys, 25)] == [25, 25, 1]
