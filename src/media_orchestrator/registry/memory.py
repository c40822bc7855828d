"""In-memory task registry with single-lock compare-and-set transitions."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from media_orchestrator.generators.base import GenerationEnvelope, MediaType
from media_orchestrator.registry.models import (
    TaskMetadata,
    TaskRecord,
    TaskStats,
    TaskStatus,
    TransitionResult,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: frozenset[tuple[str, str]] = frozenset(
    {
        ("pending", "processing"),
        # Handle acquisition failed before the task ever started.
        ("pending", "failed"),
        # Progress patch while running.
        ("processing", "processing"),
        ("processing", "completed"),
        ("processing", "failed"),
    }
)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class TaskSubscription:
    """Observer registration for one task id.

    ``initial`` is the snapshot at subscribe time; iterating yields every
    snapshot committed afterwards and stops after the first terminal one.
    """

    def __init__(
        self,
        registry: InMemoryTaskRegistry,
        initial: TaskRecord,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self.task_id = initial.id
        self.initial = initial
        self._registry = registry
        self._loop = loop
        self._queue: asyncio.Queue[TaskRecord] = asyncio.Queue()
        self._closed = initial.is_terminal

    def publish(self, record: TaskRecord) -> bool:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, record)
        except RuntimeError:
            # Owning event loop already closed; nobody is listening anymore.
            return False
        return True

    def __aiter__(self) -> TaskSubscription:
        return self

    async def __anext__(self) -> TaskRecord:
        if self._closed:
            raise StopAsyncIteration
        record = await self._queue.get()
        if record.is_terminal:
            self.close()
        return record

    def close(self) -> None:
        self._closed = True
        self._registry.unsubscribe(self)


class InMemoryTaskRegistry:
    """Authoritative store of task lifecycle records.

    Every mutation goes through :meth:`transition`, which holds the registry
    lock for the whole read-check-write-publish sequence, so the creating
    request and the background poller can update the same record concurrently.
    """

    def __init__(
        self,
        *,
        ttl_s: float = 3600.0,
        max_records: int = 1000,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.ttl_s = ttl_s
        self.max_records = max_records
        self._clock = clock
        self._tasks: dict[str, TaskRecord] = {}
        self._subscribers: dict[str, list[TaskSubscription]] = {}
        self._lock = threading.Lock()

    def create(self, task_type: MediaType, metadata: dict[str, Any] | None = None) -> TaskRecord:
        now = self._clock()
        record = TaskRecord(
            id=str(uuid4()),
            type=task_type,
            status="pending",
            created_at=now,
            updated_at=now,
            metadata=TaskMetadata.model_validate(metadata or {}),
        )
        with self._lock:
            evicted = self._evict_expired_locked(now)
            evicted += self._enforce_bound_locked()
            self._tasks[record.id] = record
        if evicted:
            logger.info("task event=evicted count=%d", evicted)
        logger.info("task event=created task_id=%s type=%s", record.id, task_type)
        return record

    def get(self, task_id: str) -> TaskRecord | None:
        with self._lock:
            return self._tasks.get(task_id)

    def transition(
        self,
        task_id: str,
        status: TaskStatus,
        *,
        progress: int | None = None,
        result: GenerationEnvelope | None = None,
        error: str | None = None,
        external_id: str | None = None,
    ) -> TransitionResult:
        if status == "completed" and result is None:
            raise ValueError("completed transition requires a result")
        if status == "failed" and not error:
            raise ValueError("failed transition requires an error message")

        with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                outcome = TransitionResult(applied=False, record=None, reason="not_found")
            elif (current.status, status) not in ALLOWED_TRANSITIONS:
                outcome = TransitionResult(
                    applied=False, record=current, reason="stale_transition"
                )
            else:
                updated = self._apply(
                    current,
                    status,
                    progress=progress,
                    result=result,
                    error=error,
                    external_id=external_id,
                )
                self._tasks[task_id] = updated
                # Publishing under the lock keeps subscriber order equal to commit order.
                for subscription in list(self._subscribers.get(task_id, ())):
                    if not subscription.publish(updated):
                        self._drop_subscription_locked(subscription)
                outcome = TransitionResult(applied=True, record=updated)

        if outcome.reason == "stale_transition" and outcome.record is not None:
            logger.warning(
                "task event=stale_transition task_id=%s current=%s requested=%s",
                task_id,
                outcome.record.status,
                status,
            )
        elif outcome.reason == "not_found":
            logger.warning("task event=transition_unknown task_id=%s requested=%s", task_id, status)
        elif outcome.record is not None and status != "processing":
            logger.info("task event=transition task_id=%s status=%s", task_id, status)
        return outcome

    def stats(self) -> TaskStats:
        with self._lock:
            records = list(self._tasks.values())
        stats = TaskStats(total=len(records))
        for record in records:
            setattr(stats, record.status, getattr(stats, record.status) + 1)
        return stats

    def list_tasks(
        self, *, status: TaskStatus | None = None, task_type: MediaType | None = None
    ) -> list[TaskRecord]:
        with self._lock:
            records = list(self._tasks.values())
        return sorted(
            (
                record
                for record in records
                if (status is None or record.status == status)
                and (task_type is None or record.type == task_type)
            ),
            key=lambda record: record.created_at,
        )

    def subscribe(self, task_id: str) -> TaskSubscription | None:
        loop = asyncio.get_running_loop()
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                return None
            subscription = TaskSubscription(self, current, loop)
            if not current.is_terminal:
                self._subscribers.setdefault(task_id, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: TaskSubscription) -> None:
        with self._lock:
            self._drop_subscription_locked(subscription)

    def evict_expired(self) -> int:
        with self._lock:
            removed = self._evict_expired_locked(self._clock())
        if removed:
            logger.info("task event=evicted count=%d", removed)
        return removed

    def _apply(
        self,
        current: TaskRecord,
        status: TaskStatus,
        *,
        progress: int | None,
        result: GenerationEnvelope | None,
        error: str | None,
        external_id: str | None,
    ) -> TaskRecord:
        now = max(self._clock(), current.updated_at)
        update: dict[str, Any] = {"status": status, "updated_at": now}

        if status == "processing":
            baseline = current.progress if current.progress is not None else 0
            requested = baseline if progress is None else max(0, min(100, int(progress)))
            update["progress"] = max(baseline, requested)
        elif status == "completed":
            update["progress"] = 100
            update["result"] = result
            update["completed_at"] = now
        elif status == "failed":
            update["error"] = error
            update["completed_at"] = now

        if external_id is not None:
            update["metadata"] = current.metadata.model_copy(update={"external_id": external_id})
        return current.model_copy(update=update)

    def _evict_expired_locked(self, now: datetime) -> int:
        expired = [
            task_id
            for task_id, record in self._tasks.items()
            if record.completed_at is not None
            and (now - record.completed_at).total_seconds() >= self.ttl_s
        ]
        for task_id in expired:
            del self._tasks[task_id]
            self._subscribers.pop(task_id, None)
        return len(expired)

    def _enforce_bound_locked(self) -> int:
        overflow = len(self._tasks) - self.max_records + 1
        if overflow <= 0:
            return 0
        terminal = sorted(
            (record for record in self._tasks.values() if record.completed_at is not None),
            key=lambda record: record.completed_at,
        )
        victims = terminal[:overflow]
        for record in victims:
            del self._tasks[record.id]
            self._subscribers.pop(record.id, None)
        if len(victims) < overflow:
            logger.warning(
                "task event=bound_exceeded records=%d max_records=%d",
                len(self._tasks) + 1,
                self.max_records,
            )
        return len(victims)

    def _drop_subscription_locked(self, subscription: TaskSubscription) -> None:
        listeners = self._subscribers.get(subscription.task_id)
        if not listeners:
            return
        if subscription in listeners:
            listeners.remove(subscription)
        if not listeners:
            del self._subscribers[subscription.task_id]
