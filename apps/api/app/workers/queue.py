from __future__ import annotations

import logging

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue, Retry

from app.core.config import get_settings

logger = logging.getLogger(__name__)

QUEUE_NAME = "network-intel"
JOB_NAMES: frozenset[str] = frozenset(
    {
        "batch_score_contacts",
        "discover_relationships_batch",
        "generate_opportunities_for_account",
    }
)


def _get_queue() -> Queue:
    settings = get_settings()
    conn = Redis.from_url(settings.redis_url)
    return Queue(QUEUE_NAME, connection=conn, default_timeout=settings.queue_job_timeout_seconds)


def _run_inline(job_name: str, *args, **kwargs) -> None:
    from app.workers import jobs

    getattr(jobs, job_name)(*args, **kwargs)


def enqueue_job(job_name: str, *args, **kwargs) -> str:
    """Queue a batch job on Redis, or run it in-process when the queue is inline or unreachable."""
    if job_name not in JOB_NAMES:
        raise ValueError(f"unknown job: {job_name}")

    settings = get_settings()
    if settings.queue_mode == "inline":
        _run_inline(job_name, *args, **kwargs)
        return f"inline-{job_name}"

    try:
        retry = None
        if settings.queue_retry_max > 0:
            retry = Retry(max=settings.queue_retry_max, interval=settings.queue_retry_interval_seconds)
        job = _get_queue().enqueue(f"app.workers.jobs.{job_name}", *args, retry=retry, **kwargs)
    except RedisError:
        logger.exception("redis_enqueue_failed_falling_back_inline", extra={"job_name": job_name})
        _run_inline(job_name, *args, **kwargs)
        return f"fallback-inline-{job_name}"

    logger.info("enqueued_job", extra={"job_name": job_name, "job_id": job.id, "queue": QUEUE_NAME})
    return job.id
