# oubli_mem/store.py

from __future__ import annotations

import logging
import math
import time
import unicodedata
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional
from uuid import uuid4

if TYPE_CHECKING:
    import builtins

from .config import MAX_MEMORY_LENGTH, MAX_PENDING, STORAGE_KEY
from .models import MemoryEntity
from .storage import codec
from .storage.kv import InMemoryStore, KeyValueStore

logger = logging.getLogger(__name__)


class StoreEvent(str, Enum):
    CREATED = "created"
    DEGRADED = "degraded"
    CLOSED = "closed"


Observer = Callable[[StoreEvent, Optional[MemoryEntity]], None]


def normalize(text: str, max_length: int = MAX_MEMORY_LENGTH) -> str:
    """
    Canonical form for typed, spoken and imported input alike:
    NFC, whitespace runs collapsed to one space, stripped, capped.
    """
    text = unicodedata.normalize("NFC", text or "")
    text = " ".join(text.split())
    return text[:max_length].strip()


class MemoryStore:
    """
    In-process registry of every memory in the session.

    Responsible for:
    - identity (ids are issued here and never reused)
    - the authoritative current_text / degradation pair
    - writing the full registry to the durable layer after every mutation
    - restoring it on construction (any decode failure -> empty registry)

    Passed explicitly to every consumer; there is no global instance.
    Nothing in the public API raises: bad input is ignored, unknown ids
    are no-ops, and persistence failures are logged and swallowed.
    """

    def __init__(
        self,
        kv: KeyValueStore | None = None,
        key: str = STORAGE_KEY,
        clock: Callable[[], float] = time.time,
        max_length: int = MAX_MEMORY_LENGTH,
    ) -> None:
        self.kv = kv if kv is not None else InMemoryStore()
        self.key = key
        self.clock = clock
        self.max_length = max_length

        self._memories: dict[str, MemoryEntity] = {}
        self._issued_ids: set[str] = set()
        self._observers: list[Observer] = []
        self._events: deque[tuple[StoreEvent, MemoryEntity | None]] = deque()
        self._notifying = False
        self._closed = False
        self._batch_depth = 0
        self._dirty = False

        self._load()

    # ------------------------------------------------------------------ #
    # Durable layer
    # ------------------------------------------------------------------ #

    def _load(self) -> None:
        try:
            memories = codec.decode(self.kv.get(self.key))
        except Exception as e:
            logger.info("[MemoryStore.load] Starting with an empty registry: %s", e)
            return

        for mem in memories:
            self._memories[mem.id] = mem
            self._issued_ids.add(mem.id)
        logger.debug("[MemoryStore.load] Restored %d memories", len(memories))

    def _persist(self) -> None:
        if self._batch_depth:
            self._dirty = True
            return
        self._write()

    def _write(self) -> None:
        self._dirty = False
        try:
            self.kv.set(self.key, self.serialize())
        except Exception as e:
            logger.warning("[MemoryStore.persist] Write failed, keeping in-memory state: %s", e)

    def serialize(self) -> str:
        return codec.encode(list(self._memories.values()))

    @contextmanager
    def batch(self) -> Iterator[None]:
        """
        Defer writes to the durable layer until the block exits, then write
        the registry once if anything changed. Nests.
        """
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty and not self._closed:
                self._write()

    # ------------------------------------------------------------------ #
    # Observers
    # ------------------------------------------------------------------ #

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _emit(self, event: StoreEvent, mem: MemoryEntity | None) -> None:
        """
        Deliver an event to every observer.

        Events raised by an observer while a fan-out is running are queued
        and delivered after it, never recursively. One fan-out delivers at
        most MAX_PENDING events.
        """
        self._events.append((event, mem))
        if self._notifying:
            return

        self._notifying = True
        try:
            delivered = 0
            while self._events:
                if delivered >= MAX_PENDING:
                    logger.warning(
                        "[MemoryStore.emit] Dropping %d queued events (observer feedback loop?)",
                        len(self._events),
                    )
                    self._events.clear()
                    break
                ev, ev_mem = self._events.popleft()
                delivered += 1
                for callback in list(self._observers):
                    try:
                        callback(ev, ev_mem)
                    except Exception:
                        logger.exception("[MemoryStore.emit] Observer failed on %s", ev.value)
        finally:
            self._notifying = False

    # ------------------------------------------------------------------ #
    # Create
    # ------------------------------------------------------------------ #

    def _new_id(self) -> str:
        mem_id = uuid4().hex
        while mem_id in self._issued_ids:
            mem_id = uuid4().hex
        self._issued_ids.add(mem_id)
        return mem_id

    def create(self, text: str) -> MemoryEntity | None:
        """
        Add a memory. Empty or whitespace-only input is silently ignored.
        """
        return self._create(text, sealed_until=None)

    def create_capsule(self, text: str, unseal_at: float) -> MemoryEntity | None:
        """
        Add a memory sealed until `unseal_at` (epoch seconds).

        A sealed memory is unreadable and does not decay until the date
        passes; a date already in the past gives an ordinary memory.
        """
        sealed_until = unseal_at if unseal_at > self.clock() else None
        return self._create(text, sealed_until=sealed_until)

    def _create(self, text: str, sealed_until: float | None) -> MemoryEntity | None:
        if self._closed:
            logger.warning("[MemoryStore.create] Store is closed; ignoring input")
            return None

        clean = normalize(text, self.max_length)
        if not clean:
            logger.debug("[MemoryStore.create] Ignoring empty input")
            return None

        mem = MemoryEntity(
            id=self._new_id(),
            original_text=clean,
            current_text=clean,
            degradation=0.0,
            created_at=self.clock(),
            sealed_until=sealed_until,
        )
        self._memories[mem.id] = mem
        self._persist()
        self._emit(StoreEvent.CREATED, mem)
        return mem

    # ------------------------------------------------------------------ #
    # Read
    # ------------------------------------------------------------------ #

    def list(self) -> list[MemoryEntity]:
        return list(self._memories.values())

    def list_by_age(self) -> builtins.list[MemoryEntity]:
        """Oldest first, i.e. the most decayed memories on top."""
        return sorted(self._memories.values(), key=lambda m: m.created_at)

    def get(self, mem_id: str) -> MemoryEntity | None:
        return self._memories.get(mem_id)

    def count(self) -> int:
        return len(self._memories)

    def formatted_view(self, now: float | None = None) -> str:
        if not self._memories:
            return "no memories yet. type something and press enter."

        now = self.clock() if now is None else now
        lines = []
        for mem in self._memories.values():
            date = datetime.fromtimestamp(mem.created_at).strftime("%Y-%m-%d")
            age = math.floor(mem.age_days(now))
            pct = math.floor(mem.degradation * 100)
            lines.append(f"[{date}] {mem.display_text(now)} ({pct}% forgotten, {age}d old)")
        return "\n".join(lines)

    # ------------------------------------------------------------------ #
    # Write (scheduler only)
    # ------------------------------------------------------------------ #

    def commit(self, mem_id: str, text: str, degradation: float) -> bool:
        """
        Replace a memory's canonical text and raise its degradation.

        Degradation is clamped to [0, 1] and never lowered. Text that would
        change the memory's length is refused.
        """
        if self._closed:
            logger.warning("[MemoryStore.commit] Store is closed; dropping write for %s", mem_id)
            return False

        mem = self._memories.get(mem_id)
        if mem is None:
            logger.warning("[MemoryStore.commit] Unknown memory %s", mem_id)
            return False

        if len(text) != len(mem.original_text):
            logger.error(
                "[MemoryStore.commit] Refusing text of length %d for %s (expected %d)",
                len(text),
                mem_id,
                len(mem.original_text),
            )
            return False

        mem.current_text = text
        mem.degradation = max(mem.degradation, min(1.0, max(0.0, degradation)))
        self._persist()
        self._emit(StoreEvent.DEGRADED, mem)
        return True

    # ------------------------------------------------------------------ #
    # Teardown
    # ------------------------------------------------------------------ #

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._write()
        self._closed = True
        self._emit(StoreEvent.CLOSED, None)
        try:
            self.kv.close()
        except Exception as e:
            logger.warning("[MemoryStore.close] Durable layer did not close cleanly: %s", e)
