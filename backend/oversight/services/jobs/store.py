from __future__ import annotations

"""backend/oversight/services/jobs/store.py

Durable key-value store for scan jobs.

Each job lives under one key with a TTL (24h by default). A bounded
recency index (most-recent first, capped at ``recent_index_limit``) backs
listing, admission checks and "latest job for repo" lookups. Index entries
may outlive the record they point to; readers treat those as not found.

Two backends implement the JobStore protocol:
- RedisJobStore: the production substrate (SET EX + LPUSH/LTRIM)
- SqlJobStore: SQLAlchemy tables with an ``expires_at`` column, used for
  single-node deployments without Redis

Store failures are raised as StoreUnavailable; this module does no
validation of its own.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Protocol

import redis
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from oversight import models
from oversight.errors import ScanJobNotFound, StoreUnavailable
from oversight.schemas import ScanJob

logger = logging.getLogger(__name__)

SCAN_KEY_PREFIX = "oversight:scan:"
SCAN_LIST_KEY = "oversight:scans:list"

DEFAULT_TTL_SECONDS = 3600 * 24
DEFAULT_INDEX_LIMIT = 100

JobMutation = Callable[[ScanJob], ScanJob]
Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStore(Protocol):
    """Minimal interface shared by the admission controller, the
    orchestrator and the status service."""

    def create(self, job: ScanJob) -> None:
        """Persist a new job and push it onto the recency index."""
        ...

    def get(self, scan_id: str) -> Optional[ScanJob]:
        """Return the live job or None if it is missing or expired."""
        ...

    def update(self, scan_id: str, mutation: JobMutation) -> ScanJob:
        """Atomically apply ``mutation`` to one job and refresh its TTL."""
        ...

    def list_recent(self, limit: int) -> List[str]:
        """Return up to ``limit`` ids from the recency index, newest first."""
        ...

    def find_latest_by_repo(self, repo_name: str) -> Optional[ScanJob]:
        ...

    def ping(self) -> None:
        ...


class RedisJobStore:
    """JobStore backed by Redis string keys and one list index."""

    def __init__(
        self,
        client: redis.Redis,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        index_limit: int = DEFAULT_INDEX_LIMIT,
    ) -> None:
        self._redis = client
        self._ttl = ttl_seconds
        self._index_limit = index_limit

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisJobStore":
        client = redis.Redis.from_url(
            url,
            socket_connect_timeout=5,
            socket_timeout=5,
            decode_responses=True,
        )
        return cls(client, **kwargs)

    @staticmethod
    def _key(scan_id: str) -> str:
        return f"{SCAN_KEY_PREFIX}{scan_id}"

    def create(self, job: ScanJob) -> None:
        try:
            pipe = self._redis.pipeline()
            pipe.set(self._key(job.id), job.to_json(), ex=self._ttl)
            pipe.lpush(SCAN_LIST_KEY, job.id)
            pipe.ltrim(SCAN_LIST_KEY, 0, self._index_limit - 1)
            pipe.execute()
        except redis.RedisError as exc:
            raise StoreUnavailable(f"Job store unavailable: {exc}") from exc

    def get(self, scan_id: str) -> Optional[ScanJob]:
        try:
            data = self._redis.get(self._key(scan_id))
        except redis.RedisError as exc:
            raise StoreUnavailable(f"Job store unavailable: {exc}") from exc
        if not data:
            return None
        return ScanJob.from_json(data)

    def update(self, scan_id: str, mutation: JobMutation) -> ScanJob:
        key = self._key(scan_id)

        def _apply(pipe: redis.client.Pipeline) -> ScanJob:
            data = pipe.get(key)
            if not data:
                raise ScanJobNotFound(scan_id)
            job = mutation(ScanJob.from_json(data))
            pipe.multi()
            pipe.set(key, job.to_json(), ex=self._ttl)
            return job

        try:
            return self._redis.transaction(_apply, key, value_from_callable=True)
        except redis.RedisError as exc:
            raise StoreUnavailable(f"Job store unavailable: {exc}") from exc

    def list_recent(self, limit: int) -> List[str]:
        if limit <= 0:
            return []
        try:
            return list(self._redis.lrange(SCAN_LIST_KEY, 0, limit - 1))
        except redis.RedisError as exc:
            raise StoreUnavailable(f"Job store unavailable: {exc}") from exc

    def find_latest_by_repo(self, repo_name: str) -> Optional[ScanJob]:
        for scan_id in self.list_recent(self._index_limit):
            job = self.get(scan_id)
            if job is not None and job.repo_name == repo_name:
                return job
        return None

    def ping(self) -> None:
        try:
            self._redis.ping()
        except redis.RedisError as exc:
            raise StoreUnavailable(f"Job store unavailable: {exc}") from exc


class SqlJobStore:
    """JobStore backed by two SQLAlchemy tables.

    Expiry is evaluated against ``clock()`` on every read; expired rows are
    purged opportunistically on create.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        index_limit: int = DEFAULT_INDEX_LIMIT,
        clock: Clock = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._ttl = timedelta(seconds=ttl_seconds)
        self._index_limit = index_limit
        self._clock = clock

    def create(self, job: ScanJob) -> None:
        now = self._clock()
        try:
            with self._session_factory.begin() as db:
                db.execute(
                    delete(models.ScanJobRow).where(models.ScanJobRow.expires_at <= now)
                )
                db.add(
                    models.ScanJobRow(
                        id=job.id,
                        repo_name=job.repo_name,
                        status=job.status.value,
                        payload=job.to_json(),
                        updated_at=now,
                        expires_at=now + self._ttl,
                    )
                )
                db.add(models.ScanIndexEntry(scan_id=job.id))
                db.flush()
                self._trim_index(db)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Job store unavailable: {exc}") from exc

    def _trim_index(self, db) -> None:
        keep = (
            select(models.ScanIndexEntry.position)
            .order_by(models.ScanIndexEntry.position.desc())
            .limit(self._index_limit)
        )
        db.execute(
            delete(models.ScanIndexEntry).where(
                models.ScanIndexEntry.position.not_in(keep)
            )
        )

    def _live_row(self, db, scan_id: str, *, for_update: bool = False):
        stmt = select(models.ScanJobRow).where(
            models.ScanJobRow.id == scan_id,
            models.ScanJobRow.expires_at > self._clock(),
        )
        if for_update:
            stmt = stmt.with_for_update()
        return db.execute(stmt).scalar_one_or_none()

    def get(self, scan_id: str) -> Optional[ScanJob]:
        try:
            with self._session_factory() as db:
                row = self._live_row(db, scan_id)
                payload = row.payload if row is not None else None
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Job store unavailable: {exc}") from exc
        if payload is None:
            return None
        return ScanJob.from_json(payload)

    def update(self, scan_id: str, mutation: JobMutation) -> ScanJob:
        try:
            with self._session_factory.begin() as db:
                row = self._live_row(db, scan_id, for_update=True)
                if row is None:
                    raise ScanJobNotFound(scan_id)
                job = mutation(ScanJob.from_json(row.payload))
                now = self._clock()
                row.payload = job.to_json()
                row.status = job.status.value
                row.updated_at = now
                row.expires_at = now + self._ttl
                return job
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Job store unavailable: {exc}") from exc

    def list_recent(self, limit: int) -> List[str]:
        if limit <= 0:
            return []
        try:
            with self._session_factory() as db:
                return list(
                    db.execute(
                        select(models.ScanIndexEntry.scan_id)
                        .order_by(models.ScanIndexEntry.position.desc())
                        .limit(limit)
                    ).scalars()
                )
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Job store unavailable: {exc}") from exc

    def find_latest_by_repo(self, repo_name: str) -> Optional[ScanJob]:
        for scan_id in self.list_recent(self._index_limit):
            job = self.get(scan_id)
            if job is not None and job.repo_name == repo_name:
                return job
        return None

    def ping(self) -> None:
        try:
            with self._session_factory() as db:
                db.execute(select(1))
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Job store unavailable: {exc}") from exc


def build_job_store(settings) -> JobStore:
    """Construct the configured backend (one instance per process)."""
    backend = settings.job_store_backend.lower()
    if backend == "redis":
        logger.info("Using Redis job store")
        return RedisJobStore.from_url(
            settings.redis_url,
            ttl_seconds=settings.job_ttl_seconds,
            index_limit=settings.recent_index_limit,
        )
    if backend == "sql":
        from oversight.db.session import build_engine, build_session_factory

        logger.info("Using SQL job store")
        engine = build_engine(settings.database_url)
        return SqlJobStore(
            build_session_factory(engine),
            ttl_seconds=settings.job_ttl_seconds,
            index_limit=settings.recent_index_limit,
        )
    raise ValueError(f"Unknown job store backend: {settings.job_store_backend}")
