"""Tests for the Memory facade and its dict config."""

import asyncio
import time

import pytest

from oubli_mem import config as defaults
from oubli_mem.memory import Memory

from .conftest import DAY


def _stable(view):
    """Drop the wall-clock dependent field so two reads compare equal."""
    return {k: v for k, v in view.items() if k != "age_days"}


@pytest.fixture
def memory(tmp_path):
    mem = Memory({"storage_path": str(tmp_path / "memories.db"), "seed": 1})
    yield mem
    mem.close()


class TestConfig:

    def test_defaults(self):
        cfg = defaults.resolve(None)
        assert cfg["storage_path"] == defaults.DEFAULT_SQLITE_PATH
        assert cfg["storage_key"] == defaults.STORAGE_KEY
        assert cfg["seed"] is None
        assert cfg["ambient_rate_per_day"] == 0.05
        assert cfg["ambient_ceiling"] == 0.95
        assert cfg["max_length"] == 120

    def test_coercion(self):
        cfg = defaults.resolve({"seed": "3", "max_length": "10", "tick_interval_seconds": "2"})
        assert cfg["seed"] == 3
        assert cfg["max_length"] == 10
        assert cfg["tick_interval_seconds"] == 2.0


class TestMemoryFacade:

    def test_add_and_read(self, memory):
        added = memory.add("the taste of something I can't place")
        assert added["state"] == "pristine"
        assert added["forgotten_percent"] == 0
        assert added["sealed"] is False

        assert memory.count() == 1
        assert _stable(memory.get(added["id"])) == _stable(memory.list()["results"][0])
        assert [m["id"] for m in memory.list()["results"]] == [added["id"]]

    def test_empty_input(self, memory):
        assert memory.add("   ") is None
        assert memory.count() == 0

    def test_get_unknown(self, memory):
        assert memory.get("missing") is None

    def test_accelerate(self, memory):
        added = memory.add("hello world")
        assert memory.accelerate(added["id"], 0.3)
        after = memory.get(added["id"])
        assert after["state"] == "decaying"
        assert after["forgotten_percent"] == 30
        assert len(after["current_text"]) == len("hello world")

        memory.accelerate(added["id"], 1.0)
        assert memory.get(added["id"])["state"] == "illegible"

    def test_accelerate_unknown(self, memory):
        memory.add("one")
        before = [_stable(r) for r in memory.list()["results"]]
        assert memory.accelerate("nonexistent", 0.5) is False
        assert [_stable(r) for r in memory.list()["results"]] == before

    def test_list_by_age(self, memory):
        first = memory.add("first")
        second = memory.add("second")
        ids = [r["id"] for r in memory.list(order="age")["results"]]
        assert set(ids) == {first["id"], second["id"]}
        assert ids == sorted(ids, key=lambda i: memory.get(i)["created_at"])

    def test_capsule_is_masked(self, memory):
        added = memory.add_capsule("secret", time.time() + DAY)
        assert added["sealed"] is True
        assert added["current_text"] == "▓▓▓▓▓▓"
        assert added["original_text"] == "▓▓▓▓▓▓"
        assert "secret" not in memory.formatted_view()

    def test_tick(self, memory):
        memory.add("too new to fade")
        assert memory.tick(5.0) == 0

    def test_persists_across_sessions(self, tmp_path):
        path = str(tmp_path / "memories.db")
        first = Memory({"storage_path": path, "seed": 2})
        added = first.add("a phone number I used to know by heart")
        first.accelerate(added["id"], 0.4)
        degraded = first.get(added["id"])
        first.close()

        second = Memory({"storage_path": path})
        restored = second.get(added["id"])
        assert restored["current_text"] == degraded["current_text"]
        assert restored["degradation"] >= degraded["degradation"]
        second.close()

    def test_ambient_loop_stops_on_close(self, tmp_path):
        mem = Memory({"storage_path": str(tmp_path / "m.db"), "tick_interval_seconds": 0.01})

        async def main():
            await mem.start()
            assert mem.scheduler.running
            mem.close()
            assert not mem.scheduler.running

        asyncio.run(main())

    def test_start_stop(self, memory):
        async def main():
            await memory.start()
            await memory.stop()
            assert not memory.scheduler.running

        asyncio.run(main())
