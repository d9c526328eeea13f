import json
import fakeredis
import fakeredis.aioredis
import pytest
import repository.job_repository as job_repository
from conftest import make_job, minutes_ago
from model.job import JobStatus
from repository.job_repository import (
    POLL_COUNT,
    POLL_INTERVAL,
    RECORD,
    InMemoryJobRepository,
    RedisJobRepository,
)

OLDER_ID = "00000000-0000-4000-8000-000000000001"
NEWER_ID = "00000000-0000-4000-8000-000000000002"
TTL = 3600


@pytest.fixture
def fake_redis(monkeypatch):
    client = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer())

    async def _get_redis():
        return client

    monkeypatch.setattr(job_repository, "get_redis", _get_redis)
    return client


@pytest.fixture(params=["memory", "redis"])
def store(request):
    if request.param == "memory":
        return InMemoryJobRepository()
    request.getfixturevalue("fake_redis")
    return RedisJobRepository(ttl_seconds=TTL)


# ---------------- Contract: both stores ----------------


async def test_read_your_writes(store):
    job = make_job()
    await store.create(job)

    loaded = await store.get(job.id)

    assert loaded is not None
    assert loaded.model_dump() == job.model_dump()


async def test_get_unknown_job(store):
    assert await store.get("00000000-0000-4000-8000-00000000dead") is None


async def test_store_returns_copies(store):
    job = make_job()
    await store.create(job)

    loaded = await store.get(job.id)
    loaded.warnings.append("local only")

    assert (await store.get(job.id)).warnings == []


async def test_update_stamps_and_keeps_poll_counters(store):
    job = make_job()
    await store.create(job)
    assert await store.record_poll(job.id, 4000) == 1

    # The pipeline still holds the pre-poll copy (poll_count=0).
    saved = await store.update(job.model_copy(update={"status": JobStatus.detecting}))

    stored = await store.get(job.id)
    assert stored.status == JobStatus.detecting
    assert stored.poll_count == 1
    assert stored.poll_interval_ms == 4000
    assert saved.updated_at >= job.updated_at


async def test_record_poll_increments(store):
    job = make_job()
    await store.create(job)

    assert await store.record_poll(job.id, 2000) == 1
    assert await store.record_poll(job.id, 2000) == 2
    assert (await store.get(job.id)).poll_count == 2


async def test_record_poll_unknown_job(store):
    assert await store.record_poll("missing", 2000) is None


async def test_find_latest_prefers_newest(store):
    older = make_job(id=OLDER_ID, created_at=minutes_ago(5))
    newer = make_job(id=NEWER_ID)
    await store.create(newer)
    await store.create(older)

    latest = await store.find_latest("user-1", older.normalized_url)

    assert latest.id == NEWER_ID
    assert await store.find_latest("user-2", older.normalized_url) is None
    assert await store.find_latest("user-1", "https://youtube.com/shorts/aaaaaaaaaaa") is None


# ---------------- Redis layout ----------------


async def test_create_writes_hash_index_and_ttl(fake_redis):
    repo = RedisJobRepository(ttl_seconds=TTL)
    job = make_job()
    await repo.create(job)

    key = RedisJobRepository._key(job.id)
    idx = RedisJobRepository._index_key(job.owner_id, job.normalized_url)
    assert await fake_redis.hget(key, POLL_COUNT) == b"0"
    assert await fake_redis.zscore(idx, job.id) == int(job.created_at.timestamp() * 1000)
    assert 0 < await fake_redis.ttl(key) <= TTL
    assert 0 < await fake_redis.ttl(idx) <= TTL


async def test_update_refreshes_index_ttl(fake_redis):
    repo = RedisJobRepository(ttl_seconds=TTL)
    job = make_job()
    await repo.create(job)
    idx = RedisJobRepository._index_key(job.owner_id, job.normalized_url)
    await fake_redis.expire(idx, 5)

    await repo.update(job.model_copy(update={"status": JobStatus.detecting}))

    assert await fake_redis.ttl(idx) > 5


async def test_find_latest_prunes_expired_ids(fake_redis):
    repo = RedisJobRepository(ttl_seconds=TTL)
    older = make_job(id=OLDER_ID, created_at=minutes_ago(5))
    newer = make_job(id=NEWER_ID)
    await repo.create(older)
    await repo.create(newer)
    await fake_redis.delete(RedisJobRepository._key(NEWER_ID))

    latest = await repo.find_latest("user-1", older.normalized_url)

    idx = RedisJobRepository._index_key("user-1", older.normalized_url)
    assert latest.id == OLDER_ID
    assert await fake_redis.zrange(idx, 0, -1) == [OLDER_ID.encode()]


def test_redis_decode_prefers_counter_fields():
    job = make_job(poll_count=0, poll_interval_ms=2000)
    h = {
        RECORD.encode(): job.model_dump_json().encode(),
        POLL_COUNT.encode(): b"7",
        POLL_INTERVAL.encode(): b"8000",
    }
    decoded = RedisJobRepository._decode(job.id, h)
    assert decoded.poll_count == 7
    assert decoded.poll_interval_ms == 8000
    assert decoded.status == JobStatus.created


def test_redis_decode_rejects_garbage():
    h = {RECORD.encode(): json.dumps({"id": "x"}).encode()}
    assert RedisJobRepository._decode("x", h) is None
