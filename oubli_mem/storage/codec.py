# oubli_mem/storage/codec.py

from __future__ import annotations

import json
from typing import Any, List, Optional

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..config import SCHEMA_VERSION
from ..errors import PersistenceDecodeError
from ..models import MemoryEntity, PersistedMemory, PersistedRegistry


class LegacyMemory(BaseModel):
    """
    Record shape of the unversioned journal format: a bare JSON array,
    camelCase keys, millisecond timestamps. Display-only fields such as
    position and hue are ignored.
    """

    id: str
    original_text: str = Field(alias="originalText")
    current_text: str = Field(alias="currentText")
    degradation: float = Field(default=0.0, ge=0.0, le=1.0)
    timestamp: float
    sealed_until: Optional[float] = Field(default=None, alias="sealedUntil")

    def to_persisted(self) -> PersistedMemory:
        # Legacy capsules carry their seal mask as currentText.
        sealed = self.sealed_until is not None
        return PersistedMemory(
            id=self.id,
            original_text=self.original_text,
            current_text=self.original_text if sealed else self.current_text,
            degradation=0.0 if sealed else self.degradation,
            created_at=self.timestamp / 1000.0,
            sealed_until=self.sealed_until / 1000.0 if self.sealed_until is not None else None,
        )


_legacy_adapter = TypeAdapter(List[LegacyMemory])


def _to_persisted(mem: MemoryEntity) -> PersistedMemory:
    return PersistedMemory(
        id=mem.id,
        original_text=mem.original_text,
        current_text=mem.current_text,
        degradation=mem.degradation,
        created_at=mem.created_at,
        sealed_until=mem.sealed_until,
    )


def _to_entity(rec: PersistedMemory) -> MemoryEntity:
    return MemoryEntity(
        id=rec.id,
        original_text=rec.original_text,
        current_text=rec.current_text,
        degradation=rec.degradation,
        created_at=rec.created_at,
        sealed_until=rec.sealed_until,
    )


def encode(memories: list[MemoryEntity]) -> str:
    registry = PersistedRegistry(
        schema_version=SCHEMA_VERSION,
        memories=[_to_persisted(m) for m in memories],
    )
    return registry.model_dump_json()


def _check_records(records: list[PersistedMemory]) -> None:
    seen: set[str] = set()
    for rec in records:
        if len(rec.current_text) != len(rec.original_text):
            raise PersistenceDecodeError(f"record {rec.id} breaks length invariance")
        if not 0.0 <= rec.degradation <= 1.0:
            raise PersistenceDecodeError(f"record {rec.id} has degradation {rec.degradation}")
        if rec.id in seen:
            raise PersistenceDecodeError(f"duplicate record id {rec.id}")
        seen.add(rec.id)


def decode(payload: str | None) -> list[MemoryEntity]:
    """
    Parse a stored registry payload.

    Accepts the versioned envelope and the legacy bare-array format.
    Raises PersistenceDecodeError on anything else; the store turns that
    into an empty registry.
    """
    if payload is None:
        raise PersistenceDecodeError("no stored registry")

    try:
        raw: Any = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise PersistenceDecodeError(f"malformed payload: {e}") from e

    try:
        if isinstance(raw, list):
            records = [m.to_persisted() for m in _legacy_adapter.validate_python(raw)]
        elif isinstance(raw, dict):
            version = raw.get("schema_version")
            if version != SCHEMA_VERSION:
                raise PersistenceDecodeError(f"unknown schema version {version!r}")
            records = PersistedRegistry.model_validate(raw).memories
        else:
            raise PersistenceDecodeError(f"unexpected payload type {type(raw).__name__}")
    except ValidationError as e:
        raise PersistenceDecodeError(f"invalid records: {e.error_count()} error(s)") from e

    _check_records(records)
    return [_to_entity(r) for r in records]
