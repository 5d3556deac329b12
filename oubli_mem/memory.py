# oubli_mem/memory.py

from __future__ import annotations

import math
import random
from typing import Any

from . import config as defaults
from .models import MemoryEntity
from .scheduler import DegradationScheduler
from .storage.sqlite_store import SqliteStore
from .store import MemoryStore


class Memory:
    """
    Public facade.

    - add() / add_capsule() go through MemoryStore.create*
    - list() / get() return serialized snapshots for display surfaces
    - accelerate() / tick() go through DegradationScheduler
    - on construction, memories restored from disk are aged by the time
      that passed while the session was closed
    """

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        config = defaults.resolve(config)

        # Core components
        self.kv = SqliteStore(path=config["storage_path"])
        self.store = MemoryStore(
            kv=self.kv,
            key=config["storage_key"],
            max_length=config["max_length"],
        )

        seed = config["seed"]
        self.scheduler = DegradationScheduler(
            store=self.store,
            rng=random.Random(seed) if seed is not None else None,
            ambient_rate_per_day=config["ambient_rate_per_day"],
            ambient_ceiling=config["ambient_ceiling"],
            tick_interval=config["tick_interval_seconds"],
        )
        self.scheduler.catch_up()

    # ------------------------------------------------------------------ #
    # ADD
    # ------------------------------------------------------------------ #

    def add(self, text: str) -> dict[str, Any] | None:
        mem = self.store.create(text)
        return self._serialize_memory(mem) if mem else None

    def add_capsule(self, text: str, unseal_at: float) -> dict[str, Any] | None:
        mem = self.store.create_capsule(text, unseal_at)
        return self._serialize_memory(mem) if mem else None

    # ------------------------------------------------------------------ #
    # READ
    # ------------------------------------------------------------------ #

    def list(self, order: str = "insertion") -> dict[str, Any]:
        """
        order="insertion" keeps submission order; order="age" puts the
        oldest (most forgotten) first, like the archive panel.
        """
        if order == "age":
            memories = self.store.list_by_age()
        else:
            memories = self.store.list()
        return {
            "results": [self._serialize_memory(m) for m in memories],
        }

    def get(self, memory_id: str) -> dict[str, Any] | None:
        mem = self.store.get(memory_id)
        return self._serialize_memory(mem) if mem else None

    def count(self) -> int:
        return self.store.count()

    def formatted_view(self) -> str:
        return self.store.formatted_view()

    # ------------------------------------------------------------------ #
    # DECAY
    # ------------------------------------------------------------------ #

    def accelerate(self, memory_id: str, amount: float) -> bool:
        return self.scheduler.accelerate(memory_id, amount)

    def tick(self, dt_seconds: float) -> int:
        return self.scheduler.tick(dt_seconds)

    async def start(self) -> None:
        await self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()

    def close(self) -> None:
        self.store.close()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _serialize_memory(self, mem: MemoryEntity) -> dict[str, Any]:
        now = self.store.clock()
        sealed = mem.is_sealed(now)
        return {
            "id": mem.id,
            "original_text": mem.display_text(now) if sealed else mem.original_text,
            "current_text": mem.display_text(now),
            "display_text": mem.display_text(now),
            "degradation": mem.degradation,
            "forgotten_percent": math.floor(mem.degradation * 100),
            "state": mem.state.value,
            "created_at": mem.created_at,
            "age_days": mem.age_days(now),
            "sealed": sealed,
        }
