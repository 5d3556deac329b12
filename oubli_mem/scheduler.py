# oubli_mem/scheduler.py

from __future__ import annotations

import asyncio
import logging
import math
import random
from collections import deque
from collections.abc import Callable

from .config import (
    AMBIENT_CEILING,
    AMBIENT_RATE_PER_DAY,
    MAX_PENDING,
    SECONDS_PER_DAY,
    TICK_INTERVAL_SECONDS,
)
from .decay.function import decay, settle
from .decay.stability import weighted_intensity
from .models import MemoryEntity
from .store import MemoryStore, StoreEvent

logger = logging.getLogger(__name__)


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def _glyph_count(text: str) -> int:
    return sum(1 for c in text if not c.isspace())


class DegradationScheduler:
    """
    The only component that decays canonical text.

    Responsible for:
    - ambient decay over wall-clock time (tick, and the asyncio loop that
      calls it)
    - accelerate(), the single write path consumers use to "spend" a memory
    - keeping degradation monotonic and the text at least as illegible as
      its degradation (settle)

    Runs on the host's single thread. Every public call completes
    synchronously and never raises.
    """

    def __init__(
        self,
        store: MemoryStore,
        rng: random.Random | None = None,
        clock: Callable[[], float] | None = None,
        ambient_rate_per_day: float = AMBIENT_RATE_PER_DAY,
        ambient_ceiling: float = AMBIENT_CEILING,
        tick_interval: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        self.store = store
        self.rng = rng or random.Random()
        self.clock = clock or store.clock
        self.ambient_rate_per_day = ambient_rate_per_day
        self.ambient_ceiling = ambient_ceiling
        self.tick_interval = tick_interval

        self._committing = False
        self._pending: deque[tuple[str, float]] = deque()
        self._task: asyncio.Task | None = None
        self._unsubscribe = store.subscribe(self._on_store_event)

    # ------------------------------------------------------------------ #
    # Ambient decay
    # ------------------------------------------------------------------ #

    def _age_target(self, mem: MemoryEntity, now: float) -> float:
        """Degradation owed by age alone (5%/day by default, capped)."""
        age_days = max(0.0, (now - mem.decay_origin) / SECONDS_PER_DAY)
        return min(age_days * self.ambient_rate_per_day, self.ambient_ceiling)

    def _ambient(self, mem: MemoryEntity, now: float, dt_seconds: float) -> bool:
        """
        Commit only visible progress: a changed glyph, or a degradation rise
        that raises floor(N * degradation). Sub-step age growth waits for a
        later tick.
        """
        target = self._age_target(mem, now)
        stability = mem.stability

        text = mem.current_text
        changed = 0
        if dt_seconds > 0 and target > 0:
            intensity = target * (dt_seconds / SECONDS_PER_DAY)
            result = decay(text, None, weighted_intensity(intensity, stability), rng=self.rng)
            text = result.text
            changed = result.changed

        n = _glyph_count(mem.original_text)
        degradation = min(1.0, max(mem.degradation + changed / n, target))
        if changed == 0 and math.floor(n * degradation) <= math.floor(n * mem.degradation):
            return False

        text = settle(mem.original_text, text, degradation, stability)
        return self.store.commit(mem.id, text, degradation)

    def _live(self, now: float) -> list[MemoryEntity]:
        return [m for m in self.store.list() if not m.is_sealed(now) and not m.is_illegible]

    def tick(self, dt_seconds: float) -> int:
        """
        Apply `dt_seconds` worth of ambient decay to every live memory.

        Sealed and illegible memories are skipped. Returns how many
        memories were committed.
        """
        if dt_seconds <= 0 or self.store.closed:
            return 0

        now = self.clock()
        committed = 0
        with self.store.batch():
            for mem in self._live(now):
                try:
                    if self._ambient(mem, now, dt_seconds):
                        committed += 1
                except Exception:
                    logger.exception("[DegradationScheduler.tick] Ambient decay failed for %s", mem.id)

        logger.debug("[DegradationScheduler.tick] dt=%.2fs committed=%d", dt_seconds, committed)
        return committed

    def catch_up(self) -> int:
        """
        Bring every live memory up to the degradation its age implies.

        Used after restoring a registry: time kept passing while the
        session was closed.
        """
        if self.store.closed:
            return 0

        now = self.clock()
        committed = 0
        with self.store.batch():
            for mem in self._live(now):
                try:
                    if self._ambient(mem, now, 0.0):
                        committed += 1
                except Exception:
                    logger.exception("[DegradationScheduler.catch_up] Failed for %s", mem.id)

        if committed:
            logger.info("[DegradationScheduler.catch_up] Aged %d restored memories", committed)
        return committed

    # ------------------------------------------------------------------ #
    # Accelerated decay
    # ------------------------------------------------------------------ #

    def accelerate(self, mem_id: str, amount: float) -> bool:
        """
        Spend `amount` (0, 1] of a memory: one decay pass at that intensity,
        then `amount` is added to its degradation.

        Call once per discrete user action (one completed burn, one tape
        pass), not once per frame. Calls compound: two calls in the same
        tick degrade twice. A call made from inside a store observer while
        a commit is running is checked, queued and applied right after it.

        Unknown ids, sealed memories and non-positive amounts are no-ops
        and return False.
        """
        amount = self._check_accelerate(mem_id, amount)
        if amount is None:
            return False

        if self._committing:
            if len(self._pending) >= MAX_PENDING:
                logger.warning("[DegradationScheduler.accelerate] Queue full, dropping call for %s", mem_id)
                return False
            self._pending.append((mem_id, amount))
            return True

        self._committing = True
        try:
            ok = self._accelerate_one(mem_id, amount)
            while self._pending:
                queued_id, queued_amount = self._pending.popleft()
                self._accelerate_one(queued_id, queued_amount)
        finally:
            self._committing = False
        return ok

    def _check_accelerate(self, mem_id: str, amount: float) -> float | None:
        try:
            amount = _clamp(float(amount))
        except (TypeError, ValueError):
            logger.warning("[DegradationScheduler.accelerate] Ignoring non-numeric amount %r", amount)
            return None
        if amount <= 0.0:
            return None

        mem = self.store.get(mem_id)
        if mem is None:
            logger.warning("[DegradationScheduler.accelerate] Unknown memory %s", mem_id)
            return None
        if mem.is_sealed(self.clock()):
            logger.debug("[DegradationScheduler.accelerate] %s is sealed", mem_id)
            return None
        return amount

    def _accelerate_one(self, mem_id: str, amount: float) -> bool:
        mem = self.store.get(mem_id)
        if mem is None:
            return False

        try:
            result = decay(mem.current_text, None, amount, rng=self.rng)
            degradation = min(1.0, mem.degradation + amount)
            text = settle(mem.original_text, result.text, degradation, mem.stability)
        except Exception:
            logger.exception("[DegradationScheduler.accelerate] Decay failed for %s", mem_id)
            return False

        return self.store.commit(mem_id, text, degradation)

    # ------------------------------------------------------------------ #
    # Ambient loop
    # ------------------------------------------------------------------ #

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start ticking every `tick_interval` seconds on the running loop."""
        if self.store.closed:
            logger.warning("[DegradationScheduler.start] Store is closed; not starting")
            return
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._ambient_loop())
            logger.info("[DegradationScheduler.start] Ambient decay every %.1fs", self.tick_interval)

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("[DegradationScheduler.stop] Ambient decay stopped")

    async def _ambient_loop(self) -> None:
        interval = self.tick_interval
        while True:
            try:
                await asyncio.sleep(interval)
                self.tick(interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("[DegradationScheduler] Ambient tick failed: %s", e)

    def _on_store_event(self, event: StoreEvent, mem: MemoryEntity | None) -> None:
        if event is not StoreEvent.CLOSED:
            return
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._pending.clear()
        self._unsubscribe()
