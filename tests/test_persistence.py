"""Tests for backend selection and fallback."""

from types import SimpleNamespace

from leadcaller.config import Config, config
from leadcaller.database import create_db_engine
from leadcaller.persistence import Persistence
from leadcaller.services import DurableStore


def _unreachable():
    return DurableStore(create_db_engine("sqlite:////nonexistent-dir/leadcaller.db"))


def test_no_database_configured_uses_volatile():
    persistence = Persistence.from_config()

    assert persistence.durable is None
    assert persistence.start() == "volatile"
    assert persistence.try_reconnect() is False


def test_from_config_builds_durable_store(monkeypatch):
    monkeypatch.setattr(Config, "DATABASE_URL", "sqlite://")
    monkeypatch.setattr(config, "DATABASE_URL", "sqlite://")

    persistence = Persistence.from_config()
    try:
        assert persistence.start() == "durable"
        lead = persistence.store.leads.create({"name": "Anita", "phone": "+919000000001"})
        assert persistence.store.leads.find_by_id(lead.id).name == "Anita"
    finally:
        persistence.close()


def test_unreachable_database_falls_back_to_volatile():
    persistence = Persistence(durable=_unreachable())

    assert persistence.start() == "volatile"
    assert persistence.try_reconnect() is False
    assert persistence.mode == "volatile"

    # The API keeps working on the volatile store.
    lead = persistence.store.leads.create({"name": "Anita", "phone": "+919000000001"})
    assert persistence.store.leads.find_by_id(lead.id) is not None
    persistence.close()


def test_disconnect_switches_to_volatile_until_reconnect():
    persistence = Persistence(durable=DurableStore(create_db_engine("sqlite://")))
    persistence.start()
    durable_lead = persistence.store.leads.create({"name": "Durable", "phone": "+919000000001"})

    persistence.handle_disconnect()
    assert persistence.mode == "volatile"
    assert persistence.store.leads.find_by_id(durable_lead.id) is None

    assert persistence.try_reconnect() is True
    assert persistence.mode == "durable"
    assert persistence.store.leads.find_by_id(durable_lead.id).name == "Durable"
    persistence.close()


def test_disconnect_while_volatile_is_a_no_op():
    persistence = Persistence()
    persistence.start()
    store = persistence.store

    persistence.handle_disconnect()

    assert persistence.store is store


def test_close_clears_volatile_records():
    persistence = Persistence()
    persistence.start()
    persistence.store.leads.create({"name": "Anita", "phone": "+919000000001"})

    persistence.close()

    assert persistence.volatile.leads.count() == 0


def _engine_error(is_pre_ping):
    return SimpleNamespace(
        is_disconnect=True,
        is_pre_ping=is_pre_ping,
        original_exception=Exception("server closed the connection unexpectedly"),
    )


def test_pre_ping_disconnect_keeps_durable_store():
    persistence = Persistence(durable=DurableStore(create_db_engine("sqlite://")))
    persistence.start()

    persistence.durable.engine.dispatch.handle_error(_engine_error(is_pre_ping=True))

    assert persistence.mode == "durable"
    persistence.close()


def test_disconnect_reported_by_engine_switches_to_volatile():
    persistence = Persistence(durable=DurableStore(create_db_engine("sqlite://")))
    persistence.start()

    persistence.durable.engine.dispatch.handle_error(_engine_error(is_pre_ping=False))

    assert persistence.mode == "volatile"
    persistence.close()


def test_reading_store_reconnects_once_interval_elapsed():
    persistence = Persistence(durable=DurableStore(create_db_engine("sqlite://")), reconnect_interval=0)
    persistence.start()
    durable_lead = persistence.store.leads.create({"name": "Durable", "phone": "+919000000001"})
    persistence.handle_disconnect()
    assert persistence.mode == "volatile"

    # No explicit reconnect or readiness check: an ordinary read brings durable back.
    assert persistence.store.leads.find_by_id(durable_lead.id).name == "Durable"
    assert persistence.mode == "durable"
    persistence.close()


def test_reading_store_does_not_reconnect_before_interval():
    persistence = Persistence(durable=DurableStore(create_db_engine("sqlite://")), reconnect_interval=3600)
    persistence.start()
    persistence.handle_disconnect()

    assert persistence.store is persistence.volatile
    assert persistence.mode == "volatile"
    persistence.close()


def test_unreachable_database_is_retried_at_most_once_per_interval(monkeypatch):
    persistence = Persistence(durable=_unreachable(), reconnect_interval=3600)
    persistence.start()
    attempts = []
    monkeypatch.setattr(persistence, "try_reconnect", lambda: attempts.append(1) or False)
    persistence._last_reconnect_attempt -= 3600

    for _ in range(5):
        persistence.store.leads.count()

    assert attempts == [1]
    assert persistence.mode == "volatile"
    persistence.close()
