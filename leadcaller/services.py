"""
Durable store: the storage port implemented over SQLAlchemy.
Honours exactly the contract the volatile store does (see `leadcaller.store`).
"""

from contextlib import contextmanager
from typing import Iterator, Sequence

from sqlalchemy import func, nullsfirst, nullslast
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leadcaller.database import create_session_factory
from leadcaller.db_models import DBAppointment, DBCall, DBLead
from leadcaller.logging_config import get_logger
from leadcaller.models import Entity, utcnow
from leadcaller.store import APPOINTMENTS, CALLS, LEADS, Collection, EntityKind, Store

logger = get_logger(__name__)

# Model field name -> ORM attribute name, where they differ.
_ATTRIBUTE_FOR_FIELD = {"metadata": "extra"}


def _attr(field: str) -> str:
    return _ATTRIBUTE_FOR_FIELD.get(field, field)


class SqlCollection(Collection):
    """One table behind the storage port."""

    def __init__(self, kind: EntityKind, db_model, session_factory):
        super().__init__(kind)
        self._db_model = db_model
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        finally:
            db.close()

    def _column(self, field: str):
        return getattr(self._db_model, _attr(field))

    def _to_entity(self, row) -> Entity:
        return self.kind.model.model_validate({
            field: getattr(row, _attr(field)) for field in self.kind.model.model_fields
        })

    def _to_row(self, entity: Entity):
        return self._db_model(**{_attr(field): value for field, value in entity.model_dump().items()})

    def _commit(self, db: Session, entities: Sequence[Entity] = ()) -> None:
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.info("unique_key_conflict", collection=self.kind.name, error=str(e.orig))
            raise self._duplicate(self._conflicting_value(db, entities)) from e

    def _conflicting_value(self, db: Session, entities: Sequence[Entity]):
        """The unique key value that collided, either inside the batch or with a stored row."""
        key = self.kind.unique_key
        if not key:
            return None
        values = [getattr(entity, key) for entity in entities if getattr(entity, key) is not None]
        seen = set()
        for value in values:
            if value in seen:
                return value
            seen.add(value)
        if not values:
            return None
        column = self._column(key)
        row = db.query(column).filter(column.in_(values)).first()
        return row[0] if row else None

    def _get_row(self, db: Session, entity_id: str):
        return db.query(self._db_model).filter(self._db_model.id == entity_id).first()

    def create(self, fields):
        entity = self._new_record(fields)
        with self._session() as db:
            row = self._to_row(entity)
            db.add(row)
            self._commit(db, [entity])
            return self._to_entity(row)

    def create_many(self, items):
        entities = [self._new_record(fields) for fields in items]
        with self._session() as db:
            rows = [self._to_row(entity) for entity in entities]
            db.add_all(rows)
            self._commit(db, entities)
            return [self._to_entity(row) for row in rows]

    def find_all(self, filters=None, sort=None):
        with self._session() as db:
            query = db.query(self._db_model)
            for field, value in self._clean_filters(filters).items():
                query = query.filter(self._column(field) == value)

            if sort:
                field, direction = sort
                column = self._column(field)
                if direction == "desc":
                    query = query.order_by(nullslast(column.desc()), self._db_model.pk.desc())
                else:
                    query = query.order_by(nullsfirst(column.asc()), self._db_model.pk.asc())
            else:
                query = query.order_by(self._db_model.created_at.desc(), self._db_model.pk.desc())

            return [self._to_entity(row) for row in query.all()]

    def find_by_id(self, entity_id):
        with self._session() as db:
            row = self._get_row(db, entity_id)
            return self._to_entity(row) if row else None

    def find_by_unique_key(self, value):
        key = self.kind.unique_key
        if not key or value is None:
            return None
        with self._session() as db:
            row = db.query(self._db_model).filter(self._column(key) == value).first()
            return self._to_entity(row) if row else None

    def update(self, entity_id, fields):
        with self._session() as db:
            row = self._get_row(db, entity_id)
            if row is None:
                return None

            entity = self._merged_record(self._to_entity(row), fields)
            for field, value in entity.model_dump(exclude={"id", "created_at"}).items():
                setattr(row, _attr(field), value)
            self._commit(db, [entity])
            return self._to_entity(row)

    def increment(self, entity_id, field, amount=1, **fields):
        column = self._column(field)
        values = {column: column + amount, self._db_model.updated_at: utcnow()}
        for name, value in fields.items():
            values[self._column(name)] = value

        with self._session() as db:
            # Single UPDATE so concurrent increments never lose a count.
            matched = (
                db.query(self._db_model)
                .filter(self._db_model.id == entity_id)
                .update(values, synchronize_session=False)
            )
            self._commit(db)
        if not matched:
            return None
        return self.find_by_id(entity_id)

    def delete(self, entity_id):
        with self._session() as db:
            row = self._get_row(db, entity_id)
            if row is None:
                return None
            entity = self._to_entity(row)
            db.delete(row)
            db.commit()
            return entity

    def count(self):
        with self._session() as db:
            return db.query(func.count(self._db_model.pk)).scalar() or 0

    def aggregate_counts(self, field):
        column = self._column(field)
        with self._session() as db:
            rows = (
                db.query(column, func.count(self._db_model.pk))
                .filter(column.isnot(None))
                .group_by(column)
                .all()
            )
        return {value: count for value, count in rows}

    def average(self, field):
        column = self._column(field)
        with self._session() as db:
            value = db.query(func.avg(column)).filter(column > 0).scalar()
        return float(value) if value is not None else 0.0


class DurableStore(Store):
    """SQLAlchemy-backed store."""

    mode = "durable"

    def __init__(self, engine: Engine):
        self.engine = engine
        session_factory = create_session_factory(engine)
        self.leads = SqlCollection(LEADS, DBLead, session_factory)
        self.calls = SqlCollection(CALLS, DBCall, session_factory)
        self.appointments = SqlCollection(APPOINTMENTS, DBAppointment, session_factory)

    def close(self) -> None:
        self.engine.dispose()
