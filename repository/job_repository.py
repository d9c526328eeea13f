# repository/job_repository.py
import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Dict, Final, List, Optional, Tuple
from pydantic import ValidationError
from redis.asyncio import Redis
from config.cache import get_redis
from config.settings import settings
from model.job import ProcessingJob
from repository.namespaces import JOB_INDEX, JOBS
from util.functions import utc_now

logger = logging.getLogger(__name__)

KEY_PREFIX: Final[str] = JOBS
INDEX_PREFIX: Final[str] = JOB_INDEX

# Hash fields. The pipeline writes RECORD; status polls write only the POLL_* counters.
RECORD: Final[str] = "record"
POLL_COUNT: Final[str] = "poll_count"
POLL_INTERVAL: Final[str] = "poll_interval_ms"

# How many index entries find_latest walks before giving up on expired ids.
LOOKUP_DEPTH: Final[int] = 10


def _url_digest(normalized_url: str) -> str:
    return hashlib.sha1(normalized_url.encode("utf-8")).hexdigest()


def _s(v) -> Optional[str]:
    if v is None:
        return None
    return v.decode("utf-8") if isinstance(v, (bytes, bytearray)) else str(v)


class JobRepository(ABC):
    """
    Durable storage for ProcessingJob records.
    - `update` replaces the whole record and stamps updated_at.
    - `record_poll` touches only poll bookkeeping and may race with `update`
      without either side losing its fields.
    """

    @abstractmethod
    async def create(self, job: ProcessingJob) -> ProcessingJob: ...

    @abstractmethod
    async def update(self, job: ProcessingJob) -> ProcessingJob: ...

    @abstractmethod
    async def get(self, job_id: str) -> Optional[ProcessingJob]: ...

    @abstractmethod
    async def find_latest(self, owner_id: str, normalized_url: str) -> Optional[ProcessingJob]:
        """Newest job for (owner, url) by created_at, any status."""

    @abstractmethod
    async def record_poll(self, job_id: str, poll_interval_ms: int) -> Optional[int]:
        """Bump poll_count and store the interval last handed out. Returns the new count."""


class RedisJobRepository(JobRepository):
    """
    Layout:
    - {JOBS}:{id}                  hash: record (JSON), poll_count, poll_interval_ms
    - {JOB_INDEX}:{owner}:{sha1}   zset of job ids scored by created_at (ms)
    Both keys carry PERSISTENCE_TTL_SECONDS, refreshed on write.
    """

    def __init__(self, ttl_seconds: int = settings.PERSISTENCE_TTL_SECONDS) -> None:
        self._ttl = int(ttl_seconds)

    @staticmethod
    async def _client() -> Redis:
        return await get_redis()

    @staticmethod
    def _key(job_id: str) -> str:
        return f"{KEY_PREFIX}:{job_id}"

    @staticmethod
    def _index_key(owner_id: str, normalized_url: str) -> str:
        return f"{INDEX_PREFIX}:{owner_id}:{_url_digest(normalized_url)}"

    async def create(self, job: ProcessingJob) -> ProcessingJob:
        r = await self._client()
        key = self._key(job.id)
        idx = self._index_key(job.owner_id, job.normalized_url)
        score = int(job.created_at.timestamp() * 1000)
        async with r.pipeline(transaction=True) as pipe:
            pipe.hset(
                key,
                mapping={
                    RECORD: job.model_dump_json().encode("utf-8"),
                    POLL_COUNT: str(job.poll_count),
                    POLL_INTERVAL: str(job.poll_interval_ms),
                },
            )
            pipe.expire(key, self._ttl)
            pipe.zadd(idx, {job.id: score})
            pipe.expire(idx, self._ttl)
            await pipe.execute()
        logger.info("jobs.create id=%s owner=%s platform=%s", job.id, job.owner_id, job.platform.value)
        return job

    async def update(self, job: ProcessingJob) -> ProcessingJob:
        job = job.model_copy(update={"updated_at": utc_now()})
        r = await self._client()
        key = self._key(job.id)
        async with r.pipeline(transaction=True) as pipe:
            pipe.hset(key, RECORD, job.model_dump_json().encode("utf-8"))
            pipe.expire(key, self._ttl)
            # Keep the lookup index alive as long as the record it points to.
            pipe.expire(self._index_key(job.owner_id, job.normalized_url), self._ttl)
            await pipe.execute()
        return job

    async def get(self, job_id: str) -> Optional[ProcessingJob]:
        if not job_id:
            return None
        r = await self._client()
        h = await r.hgetall(self._key(job_id))
        if not h:
            return None
        return self._decode(job_id, h)

    @staticmethod
    def _decode(job_id: str, h: dict) -> Optional[ProcessingJob]:
        raw = h.get(RECORD) or h.get(RECORD.encode("utf-8"))
        if raw is None:
            return None
        try:
            job = ProcessingJob.model_validate_json(raw)
        except ValidationError as e:
            logger.error("jobs.decode_failed id=%s errors=%d", job_id, e.error_count())
            return None

        counters = {}
        count = _s(h.get(POLL_COUNT) or h.get(POLL_COUNT.encode("utf-8")))
        interval = _s(h.get(POLL_INTERVAL) or h.get(POLL_INTERVAL.encode("utf-8")))
        if count:
            counters["poll_count"] = int(count)
        if interval:
            counters["poll_interval_ms"] = int(interval)
        return job.model_copy(update=counters) if counters else job

    async def find_latest(self, owner_id: str, normalized_url: str) -> Optional[ProcessingJob]:
        r = await self._client()
        idx = self._index_key(owner_id, normalized_url)
        ids = await r.zrevrange(idx, 0, LOOKUP_DEPTH - 1)
        stale: List[str] = []
        found: Optional[ProcessingJob] = None
        for raw_id in ids:
            job_id = _s(raw_id)
            job = await self.get(job_id)
            if job is None:
                stale.append(job_id)
                continue
            found = job
            break
        if stale:
            await r.zrem(idx, *stale)
        return found

    async def record_poll(self, job_id: str, poll_interval_ms: int) -> Optional[int]:
        r = await self._client()
        key = self._key(job_id)
        if not await r.exists(key):
            return None
        async with r.pipeline(transaction=True) as pipe:
            pipe.hincrby(key, POLL_COUNT, 1)
            pipe.hset(key, POLL_INTERVAL, str(int(poll_interval_ms)))
            pipe.expire(key, self._ttl)
            count, _, _ = await pipe.execute()
        return int(count)


class InMemoryJobRepository(JobRepository):
    """Process-local store for development and tests. Holds copies, never the caller's objects."""

    def __init__(self) -> None:
        self._jobs: Dict[str, ProcessingJob] = {}
        self._index: Dict[Tuple[str, str], List[str]] = {}

    async def create(self, job: ProcessingJob) -> ProcessingJob:
        self._jobs[job.id] = job.model_copy(deep=True)
        self._index.setdefault((job.owner_id, job.normalized_url), []).append(job.id)
        return job

    async def update(self, job: ProcessingJob) -> ProcessingJob:
        job = job.model_copy(update={"updated_at": utc_now()})
        current = self._jobs.get(job.id)
        stored = job.model_copy(deep=True)
        if current is not None:
            stored = stored.model_copy(
                update={
                    "poll_count": current.poll_count,
                    "poll_interval_ms": current.poll_interval_ms,
                }
            )
        self._jobs[job.id] = stored
        return job

    async def get(self, job_id: str) -> Optional[ProcessingJob]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job is not None else None

    async def find_latest(self, owner_id: str, normalized_url: str) -> Optional[ProcessingJob]:
        ids = self._index.get((owner_id, normalized_url)) or []
        jobs = [self._jobs[i] for i in reversed(ids) if i in self._jobs]
        if not jobs:
            return None
        latest = max(jobs, key=lambda j: j.created_at)
        return latest.model_copy(deep=True)

    async def record_poll(self, job_id: str, poll_interval_ms: int) -> Optional[int]:
        job = self._jobs.get(job_id)
        if job is None:
            return None
        self._jobs[job_id] = job.model_copy(
            update={"poll_count": job.poll_count + 1, "poll_interval_ms": int(poll_interval_ms)}
        )
        return job.poll_count + 1
