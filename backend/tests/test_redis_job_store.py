"""RedisJobStore against a mocked redis client."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import redis

from oversight.errors import ScanJobNotFound, StoreUnavailable
from oversight.models import ScanStatus, ScanTool
from oversight.schemas import ScanJob
from oversight.services.jobs.store import SCAN_KEY_PREFIX, SCAN_LIST_KEY, RedisJobStore


def make_job(scan_id: str = "abcdef123456", repo: str = "alpha") -> ScanJob:
    return ScanJob(
        id=scan_id,
        repo_name=repo,
        repo_full_name=f"SnickerSec/{repo}",
        tools=[ScanTool.SEMGREP],
        started_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def client():
    return MagicMock(spec=redis.Redis)


@pytest.fixture
def redis_store(client):
    return RedisJobStore(client, ttl_seconds=86400, index_limit=100)


def test_create_sets_key_with_ttl_and_trims_index(redis_store, client):
    pipe = client.pipeline.return_value
    job = make_job()

    redis_store.create(job)

    pipe.set.assert_called_once_with(f"{SCAN_KEY_PREFIX}{job.id}", job.to_json(), ex=86400)
    pipe.lpush.assert_called_once_with(SCAN_LIST_KEY, job.id)
    pipe.ltrim.assert_called_once_with(SCAN_LIST_KEY, 0, 99)
    pipe.execute.assert_called_once()


def test_get_parses_stored_json(redis_store, client):
    job = make_job()
    client.get.return_value = job.to_json()

    assert redis_store.get(job.id) == job
    client.get.assert_called_once_with(f"{SCAN_KEY_PREFIX}{job.id}")


def test_get_missing_returns_none(redis_store, client):
    client.get.return_value = None

    assert redis_store.get("nope") is None


def test_list_recent_reads_index_range(redis_store, client):
    client.lrange.return_value = ["b", "a"]

    assert redis_store.list_recent(20) == ["b", "a"]
    client.lrange.assert_called_once_with(SCAN_LIST_KEY, 0, 19)


def test_update_runs_mutation_inside_transaction(redis_store, client):
    job = make_job()
    pipe = MagicMock()
    pipe.get.return_value = job.to_json()

    def _transaction(func, *keys, value_from_callable=False):
        assert keys == (f"{SCAN_KEY_PREFIX}{job.id}",)
        assert value_from_callable is True
        return func(pipe)

    client.transaction.side_effect = _transaction

    def _mutate(j):
        j.status = ScanStatus.CLONING
        return j

    updated = redis_store.update(job.id, _mutate)

    assert updated.status == ScanStatus.CLONING
    pipe.multi.assert_called_once()
    key, payload = pipe.set.call_args.args
    assert key == f"{SCAN_KEY_PREFIX}{job.id}"
    assert ScanJob.from_json(payload).status == ScanStatus.CLONING
    assert pipe.set.call_args.kwargs == {"ex": 86400}


def test_update_missing_job_raises_not_found(redis_store, client):
    pipe = MagicMock()
    pipe.get.return_value = None
    client.transaction.side_effect = lambda func, *keys, **kw: func(pipe)

    with pytest.raises(ScanJobNotFound):
        redis_store.update("gone", lambda j: j)


def test_connection_errors_become_store_unavailable(redis_store, client):
    client.get.side_effect = redis.ConnectionError("refused")

    with pytest.raises(StoreUnavailable):
        redis_store.get("abc")


def test_ping_failure_is_store_unavailable(redis_store, client):
    client.ping.side_effect = redis.TimeoutError("slow")

    with pytest.raises(StoreUnavailable):
        redis_store.ping()
