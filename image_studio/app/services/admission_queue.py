"""Admission Queue

Bounded-concurrency gate in front of the image provider. Admitted jobs are
handed through an asyncio channel to a fixed pool of workers; each worker
runs one unit of work at a time and releases its slot in a `finally` block,
whatever way the unit of work exits.

Usage:
    queue = AdmissionQueue(max_concurrent=5)
    await queue.start()
    result = await queue.enqueue(generation_id, process_generation)
    ...
    await queue.shutdown()
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
from libs.result import Result, Return, Error
from image_studio.app.errors import ErrorCode
from image_studio.domain.base import utcnow

logger = logging.getLogger(__name__)


@dataclass
class QueueSlot:
    """One admitted, currently tracked job"""
    generation_id: str
    started_at: datetime = field(default_factory=utcnow)
    attempt: int = 1
    token: str = field(default_factory=lambda: uuid.uuid4().hex)
    _cancel_event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        self._cancel_event.set()

    async def wait_cancelled(self, timeout: float) -> bool:
        """Sleep up to `timeout` seconds, waking early on cancellation"""
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout)
        except asyncio.TimeoutError:
            pass
        return self.cancelled


UnitOfWorkFn = Callable[[QueueSlot], Awaitable[None]]


@dataclass(frozen=True)
class QueueStats:
    active: int
    capacity: int
    estimated_wait_ms: int


class AcquireOutcome(str, Enum):
    ACQUIRED = "acquired"
    FULL = "full"
    DUPLICATE = "duplicate"


class SlotRegistry(ABC):
    """
    Table of occupied slots

    The in-memory registry bounds one process. A shared registry (Redis)
    bounds every instance of the service together.
    """

    @abstractmethod
    async def acquire(self, generation_id: str, token: str, capacity: int) -> AcquireOutcome:
        """Occupy a slot atomically unless full or already tracked"""
        pass

    @abstractmethod
    async def release(self, generation_id: str, token: str) -> bool:
        """Free the slot only if it is still held under `token`"""
        pass

    @abstractmethod
    async def contains(self, generation_id: str) -> bool:
        pass

    @abstractmethod
    async def count(self) -> int:
        pass


class InMemorySlotRegistry(SlotRegistry):

    def __init__(self):
        self._held: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def acquire(self, generation_id: str, token: str, capacity: int) -> AcquireOutcome:
        async with self._lock:
            if generation_id in self._held:
                return AcquireOutcome.DUPLICATE
            if len(self._held) >= capacity:
                return AcquireOutcome.FULL
            self._held[generation_id] = token
            return AcquireOutcome.ACQUIRED

    async def release(self, generation_id: str, token: str) -> bool:
        async with self._lock:
            if self._held.get(generation_id) != token:
                return False
            del self._held[generation_id]
            return True

    async def contains(self, generation_id: str) -> bool:
        return generation_id in self._held

    async def count(self) -> int:
        return len(self._held)


class AdmissionQueue:
    """
    Bounded-concurrency job controller

    Rules:
    1. At most max_concurrent slots exist at any instant
    2. A generation can be tracked only once (ALREADY_QUEUED)
    3. A full queue rejects immediately (QUEUE_FULL), it never waits
    4. Slot release is guaranteed on success, error and cancellation
    """

    def __init__(
        self,
        max_concurrent: int = 5,
        average_processing_time_ms: int = 60000,
        registry: Optional[SlotRegistry] = None,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.max_concurrent = max_concurrent
        self.average_processing_time_ms = average_processing_time_ms
        self.registry = registry or InMemorySlotRegistry()
        self._slots: Dict[str, QueueSlot] = {}
        self._channel: "asyncio.Queue[Tuple[QueueSlot, UnitOfWorkFn]]" = asyncio.Queue()
        self._workers: List[asyncio.Task] = []

    @property
    def started(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"admission-worker-{index}")
            for index in range(self.max_concurrent)
        ]
        logger.info(f"AdmissionQueue started with {self.max_concurrent} workers")

    async def shutdown(self) -> None:
        for slot in list(self._slots.values()):
            slot.cancel()
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("AdmissionQueue shutdown complete")

    async def enqueue(self, generation_id: str, unit_of_work: UnitOfWorkFn) -> Result[QueueSlot]:
        """
        Admit a job and schedule its unit of work (attempt 1)

        Returns:
            Result[QueueSlot]: The allocated slot, or QUEUE_FULL / ALREADY_QUEUED
        """
        slot = QueueSlot(generation_id=generation_id)
        outcome = await self.registry.acquire(generation_id, slot.token, self.max_concurrent)

        if outcome is AcquireOutcome.DUPLICATE:
            return Return.err(
                Error(
                    code=ErrorCode.ALREADY_QUEUED,
                    message=f"Generation {generation_id} is already queued",
                )
            )
        if outcome is AcquireOutcome.FULL:
            return Return.err(
                Error(
                    code=ErrorCode.QUEUE_FULL,
                    message="Queue is full, please try again later",
                    reason=f"capacity={self.max_concurrent}",
                )
            )

        self._slots[generation_id] = slot
        self._channel.put_nowait((slot, unit_of_work))
        logger.info(f"Generation {generation_id} admitted to queue")
        return Return.ok(slot)

    async def dequeue(self, generation_id: str) -> bool:
        """
        Cancel a tracked slot and free it

        A unit of work already talking to the provider keeps running until
        its current call returns; it observes `slot.cancelled` and stops.

        Returns:
            True if a slot was tracked for the generation
        """
        slot = self._slots.pop(generation_id, None)
        if slot is None:
            return False
        slot.cancel()
        await self.registry.release(generation_id, slot.token)
        logger.info(f"Generation {generation_id} dequeued")
        return True

    def is_queued(self, generation_id: str) -> bool:
        return generation_id in self._slots

    async def has_capacity(self) -> bool:
        return await self.registry.count() < self.max_concurrent

    async def stats(self) -> QueueStats:
        active = await self.registry.count()
        return QueueStats(
            active=active,
            capacity=self.max_concurrent,
            estimated_wait_ms=active * self.average_processing_time_ms,
        )

    async def _worker(self, index: int) -> None:
        while True:
            slot, unit_of_work = await self._channel.get()
            try:
                if slot.cancelled:
                    logger.info(f"Skipping cancelled generation {slot.generation_id}")
                    continue
                await unit_of_work(slot)
            except Exception:
                logger.exception(f"Unit of work for generation {slot.generation_id} crashed")
            finally:
                try:
                    await self._release(slot)
                except Exception:
                    logger.exception(f"Failed to release slot of generation {slot.generation_id}")
                finally:
                    self._channel.task_done()

    async def _release(self, slot: QueueSlot) -> None:
        if self._slots.get(slot.generation_id) is slot:
            del self._slots[slot.generation_id]
        await self.registry.release(slot.generation_id, slot.token)

    async def join(self) -> None:
        """Wait until every admitted unit of work has finished"""
        await self._channel.join()
