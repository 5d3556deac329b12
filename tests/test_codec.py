"""Tests for the persisted registry format and the sqlite key-value layer."""

import json
import random

import pytest

from oubli_mem.config import SCHEMA_VERSION, STORAGE_KEY
from oubli_mem.errors import PersistenceDecodeError, PersistenceWriteError
from oubli_mem.models import MemoryEntity
from oubli_mem.scheduler import DegradationScheduler
from oubli_mem.storage import codec
from oubli_mem.storage.kv import InMemoryStore
from oubli_mem.storage.sqlite_store import SqliteStore
from oubli_mem.store import MemoryStore

from .conftest import DAY, FakeClock


def _entity(mem_id="m1", text="hello world", current=None, degradation=0.0, sealed_until=None):
    return MemoryEntity(
        id=mem_id,
        original_text=text,
        current_text=current if current is not None else text,
        degradation=degradation,
        created_at=1_700_000_000.5,
        sealed_until=sealed_until,
    )


class TestEncode:

    def test_envelope_has_schema_version(self):
        payload = json.loads(codec.encode([_entity()]))
        assert payload["schema_version"] == SCHEMA_VERSION
        assert payload["memories"][0]["original_text"] == "hello world"

    def test_stability_is_not_persisted(self):
        payload = json.loads(codec.encode([_entity()]))
        assert "stability" not in payload["memories"][0]

    def test_round_trip(self):
        memories = [
            _entity("a", "first memory"),
            _entity("b", "second", current="s c nd", degradation=0.4),
            _entity("c", "sealed one", sealed_until=1_800_000_000.0),
        ]
        restored = codec.decode(codec.encode(memories))
        assert [m.model_dump() for m in restored] == [m.model_dump() for m in memories]


class TestDecodeFailures:

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            "",
            "{not json",
            "42",
            '"a string"',
            '{"memories": []}',
            '{"schema_version": 99, "memories": []}',
            '{"schema_version": 1, "memories": [{"id": "x"}]}',
        ],
    )
    def test_rejected(self, payload):
        with pytest.raises(PersistenceDecodeError):
            codec.decode(payload)

    def test_length_invariance_violation(self):
        payload = codec.encode([_entity(current="hello")])
        with pytest.raises(PersistenceDecodeError):
            codec.decode(payload)

    def test_degradation_out_of_range(self):
        payload = codec.encode([_entity(degradation=1.5)])
        with pytest.raises(PersistenceDecodeError):
            codec.decode(payload)

    def test_duplicate_ids(self):
        payload = codec.encode([_entity("dup"), _entity("dup", "other text")])
        with pytest.raises(PersistenceDecodeError):
            codec.decode(payload)


class TestLegacyFormat:

    def test_bare_array_accepted(self):
        payload = json.dumps(
            [
                {
                    "id": "lq2k9x",
                    "originalText": "hi there",
                    "currentText": "h_ there",
                    "timestamp": 1_700_000_000_000,
                    "degradation": 0.1,
                    "position": {"x": 1, "y": 2, "z": 3},
                    "hue": 0.12,
                }
            ]
        )
        (mem,) = codec.decode(payload)
        assert mem.id == "lq2k9x"
        assert mem.current_text == "h_ there"
        assert mem.created_at == pytest.approx(1_700_000_000.0)
        assert mem.sealed_until is None

    def test_legacy_seal_in_milliseconds(self):
        payload = json.dumps(
            [
                {
                    "id": "cap",
                    "originalText": "later",
                    "currentText": "▓▓▓▓▓",
                    "timestamp": 1_700_000_000_000,
                    "degradation": 0,
                    "sealedUntil": 1_800_000_000_000,
                }
            ]
        )
        (mem,) = codec.decode(payload)
        assert mem.sealed_until == pytest.approx(1_800_000_000.0)
        assert mem.current_text == "later"
        assert mem.degradation == 0.0

    def test_legacy_capsule_readable_after_seal(self):
        """A capsule imported from the old format shows its text once the date passes."""
        payload = json.dumps(
            [
                {
                    "id": "cap",
                    "originalText": "later",
                    "currentText": "▓▓▓▓▓",
                    "timestamp": 1_700_000_000_000,
                    "degradation": 0,
                    "sealedUntil": 1_700_000_000_000 + 86_400_000,
                }
            ]
        )
        clock = FakeClock(start=1_700_000_000.0 + 11 * DAY)
        store = MemoryStore(kv=InMemoryStore({STORAGE_KEY: payload}), clock=clock)
        DegradationScheduler(store, rng=random.Random(3)).catch_up()

        mem = store.get("cap")
        assert not mem.is_sealed(clock())
        assert "▓" not in mem.display_text(clock())
        assert any(c in "later" for c in mem.display_text(clock()) if not c.isspace())
        assert mem.degradation == pytest.approx(0.5)

    def test_empty_legacy_array(self):
        assert codec.decode("[]") == []


class TestSqliteStore:

    def test_set_get_delete(self, tmp_path):
        kv = SqliteStore(path=str(tmp_path / "kv.db"))
        assert kv.get("k") is None
        kv.set("k", "v1")
        kv.set("k", "v2")
        assert kv.get("k") == "v2"
        kv.delete("k")
        assert kv.get("k") is None
        kv.close()

    def test_persists_across_connections(self, tmp_path):
        path = str(tmp_path / "nested" / "kv.db")
        kv = SqliteStore(path=path)
        kv.set("oubli-memories", "[]")
        kv.close()

        reopened = SqliteStore(path=path)
        assert reopened.get("oubli-memories") == "[]"
        reopened.close()

    def test_in_memory_database(self):
        kv = SqliteStore(path=":memory:")
        kv.set("k", "v")
        assert kv.get("k") == "v"
        kv.close()

    def test_write_after_close_raises_write_error(self):
        kv = SqliteStore(path=":memory:")
        kv.close()
        with pytest.raises(PersistenceWriteError):
            kv.set("k", "v")

    def test_read_after_close_raises_decode_error(self):
        kv = SqliteStore(path=":memory:")
        kv.close()
        with pytest.raises(PersistenceDecodeError):
            kv.get("k")
