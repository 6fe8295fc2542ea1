"""Storage port shared by every backend, plus the in-process volatile store.

The volatile store keeps records for the life of the process only. It exists
so the API keeps working when no database is reachable; anything written
here is gone after a restart.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Optional
from uuid import uuid4

import pydantic

from leadcaller.errors import DuplicateKeyError, ValidationError
from leadcaller.models import Appointment, Call, Entity, Lead, utcnow


@dataclass(frozen=True)
class EntityKind:
    """Describes one stored collection: its model, filterable fields and unique key."""
    name: str
    model: type[Entity]
    filter_fields: frozenset[str]
    unique_key: Optional[str] = None


LEADS = EntityKind("leads", Lead, frozenset({"status", "priority", "source"}), unique_key="phone")
CALLS = EntityKind("calls", Call, frozenset({"lead_id", "status", "outcome"}), unique_key="provider_call_id")
APPOINTMENTS = EntityKind("appointments", Appointment, frozenset({"lead_id", "call_id", "status"}))

Sort = tuple[str, str]  # (field, "asc" | "desc")


def _sort_key(value: Any) -> tuple:
    # None sorts before any value, matching NULLS FIRST on the durable side.
    return (value is not None, value if value is not None else 0)


class Collection(ABC):
    """Uniform CRUD contract for one entity kind.

    Every backend honours the same rules:
    - `find_all` returns newest first unless `sort` names a field.
    - filters are exact matches over `kind.filter_fields`; other keys and
      None values are ignored.
    - `update` never creates, always stamps `updated_at`, and re-validates
      the merged record.
    - unique keys are enforced on create and update with DuplicateKeyError.
    """

    def __init__(self, kind: EntityKind):
        self.kind = kind

    @abstractmethod
    def create(self, fields: dict[str, Any]) -> Entity: ...

    @abstractmethod
    def create_many(self, items: Iterable[dict[str, Any]]) -> list[Entity]: ...

    @abstractmethod
    def find_all(self, filters: Optional[dict[str, Any]] = None, sort: Optional[Sort] = None) -> list[Entity]: ...

    @abstractmethod
    def find_by_id(self, entity_id: str) -> Optional[Entity]: ...

    @abstractmethod
    def find_by_unique_key(self, value: str) -> Optional[Entity]: ...

    @abstractmethod
    def update(self, entity_id: str, fields: dict[str, Any]) -> Optional[Entity]: ...

    @abstractmethod
    def increment(self, entity_id: str, field: str, amount: int = 1, **fields: Any) -> Optional[Entity]: ...

    @abstractmethod
    def delete(self, entity_id: str) -> Optional[Entity]: ...

    @abstractmethod
    def count(self) -> int: ...

    @abstractmethod
    def aggregate_counts(self, field: str) -> dict[str, int]: ...

    @abstractmethod
    def average(self, field: str) -> float: ...

    def _clean_filters(self, filters: Optional[dict[str, Any]]) -> dict[str, Any]:
        cleaned = {}
        for key, value in (filters or {}).items():
            if key not in self.kind.filter_fields or value is None:
                continue
            cleaned[key] = getattr(value, "value", value)
        return cleaned

    def _validate(self, data: dict[str, Any]) -> Entity:
        try:
            return self.kind.model.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid {self.kind.name} record: {e}") from e

    def _new_record(self, fields: dict[str, Any]) -> Entity:
        now = utcnow()
        return self._validate({**fields, "id": uuid4().hex, "created_at": now, "updated_at": now})

    def _merged_record(self, current: Entity, fields: dict[str, Any]) -> Entity:
        return self._validate({
            **current.model_dump(),
            **fields,
            "id": current.id,
            "created_at": current.created_at,
            "updated_at": utcnow(),
        })

    def _duplicate(self, value: Any) -> DuplicateKeyError:
        if value is None:
            return DuplicateKeyError(f"{self.kind.name} with this {self.kind.unique_key} already exists")
        return DuplicateKeyError(f"{self.kind.name} with {self.kind.unique_key}={value} already exists")


class Store(ABC):
    """The three collections of one backend."""

    mode: str
    leads: Collection
    calls: Collection
    appointments: Collection

    def close(self) -> None:
        """Release backend resources."""


class VolatileCollection(Collection):
    """Insertion-ordered dict of records guarded by the store lock."""

    def __init__(self, kind: EntityKind, lock: threading.RLock):
        super().__init__(kind)
        self._records: dict[str, Entity] = {}
        self._lock = lock

    def create(self, fields):
        with self._lock:
            entity = self._new_record(fields)
            self._check_unique(entity)
            self._records[entity.id] = entity
            return entity.model_copy(deep=True)

    def create_many(self, items):
        with self._lock:
            batch = [self._new_record(fields) for fields in items]
            key = self.kind.unique_key
            if key:
                seen = set()
                for entity in batch:
                    value = getattr(entity, key)
                    if value is None:
                        continue
                    if value in seen:
                        raise self._duplicate(value)
                    seen.add(value)
                    self._check_unique(entity)
            for entity in batch:
                self._records[entity.id] = entity
            return [entity.model_copy(deep=True) for entity in batch]

    def find_all(self, filters=None, sort=None):
        cleaned = self._clean_filters(filters)
        with self._lock:
            items = [
                entity for entity in self._records.values()
                if all(getattr(entity, k) == v for k, v in cleaned.items())
            ]
        if sort:
            field, direction = sort
            items.sort(key=lambda e: _sort_key(getattr(e, field)), reverse=direction == "desc")
        else:
            items.reverse()
        return [entity.model_copy(deep=True) for entity in items]

    def find_by_id(self, entity_id):
        with self._lock:
            entity = self._records.get(entity_id)
            return entity.model_copy(deep=True) if entity else None

    def find_by_unique_key(self, value):
        key = self.kind.unique_key
        if not key or value is None:
            return None
        with self._lock:
            for entity in self._records.values():
                if getattr(entity, key) == value:
                    return entity.model_copy(deep=True)
        return None

    def update(self, entity_id, fields):
        with self._lock:
            current = self._records.get(entity_id)
            if current is None:
                return None
            entity = self._merged_record(current, fields)
            self._check_unique(entity)
            self._records[entity_id] = entity
            return entity.model_copy(deep=True)

    def increment(self, entity_id, field, amount=1, **fields):
        with self._lock:
            current = self._records.get(entity_id)
            if current is None:
                return None
            return self.update(entity_id, {**fields, field: (getattr(current, field) or 0) + amount})

    def delete(self, entity_id):
        with self._lock:
            return self._records.pop(entity_id, None)

    def count(self):
        with self._lock:
            return len(self._records)

    def aggregate_counts(self, field):
        counts: dict[str, int] = {}
        with self._lock:
            for entity in self._records.values():
                value = getattr(entity, field)
                if value is None:
                    continue
                counts[value] = counts.get(value, 0) + 1
        return counts

    def average(self, field):
        with self._lock:
            values = [getattr(e, field) for e in self._records.values()]
        positive = [v for v in values if v is not None and v > 0]
        return sum(positive) / len(positive) if positive else 0.0

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def _check_unique(self, entity: Entity) -> None:
        key = self.kind.unique_key
        if not key:
            return
        value = getattr(entity, key)
        if value is None:
            return
        for other in self._records.values():
            if other.id != entity.id and getattr(other, key) == value:
                raise self._duplicate(value)


class VolatileStore(Store):
    """Process-local store. Constructed once at startup and owned by `Persistence`."""

    mode = "volatile"

    def __init__(self):
        self._lock = threading.RLock()
        self.leads = VolatileCollection(LEADS, self._lock)
        self.calls = VolatileCollection(CALLS, self._lock)
        self.appointments = VolatileCollection(APPOINTMENTS, self._lock)

    def close(self) -> None:
        for collection in (self.leads, self.calls, self.appointments):
            collection.clear()
