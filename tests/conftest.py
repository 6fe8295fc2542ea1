import pytest
from fastapi.testclient import TestClient

from leadcaller.calls import CallLifecycleManager
from leadcaller.database import create_db_engine
from leadcaller.errors import TransportError
from leadcaller.persistence import Persistence
from leadcaller.services import DurableStore


class FakeTransport:
    """Records initiations instead of dialling; set `error` to make them fail."""

    def __init__(self):
        self.calls = []
        self.error = None
        self._counter = 0
        # provider call id -> call record returned by get_call
        self.provider_calls = {}
        self.recordings = {}
        self.recording_error = None

    def initiate_call(self, phone_number, name, email=None, first_message=None):
        self.calls.append({
            "phone_number": phone_number,
            "name": name,
            "email": email,
            "first_message": first_message,
        })
        if self.error is not None:
            raise self.error
        self._counter += 1
        return f"vapi-call-{self._counter}"

    def get_call(self, provider_call_id):
        if self.error is not None:
            raise self.error
        if provider_call_id not in self.provider_calls:
            raise TransportError(f"Call {provider_call_id} not found")
        return self.provider_calls[provider_call_id]

    def get_recording(self, provider_call_id):
        if self.recording_error is not None:
            raise self.recording_error
        return self.recordings.get(provider_call_id)


@pytest.fixture(autouse=True)
def _safe_test_config(monkeypatch):
    """Force deterministic, offline-safe config for tests.

    The repo loads .env on import; these overrides keep tests off the real
    provider and database.
    """
    from leadcaller.config import Config, config

    for target in (Config, config):
        monkeypatch.setattr(target, "DATABASE_URL", "", raising=False)
        monkeypatch.setattr(target, "VAPI_API_KEY", "", raising=False)
        monkeypatch.setattr(target, "VAPI_PHONE_NUMBER_ID", "", raising=False)
        monkeypatch.setattr(target, "VAPI_ASSISTANT_ID", "", raising=False)
        monkeypatch.setattr(target, "API_KEY", "", raising=False)
        monkeypatch.setattr(target, "DEFAULT_COUNTRY_CODE", "91", raising=False)
        monkeypatch.setattr(target, "COMPANY_PROJECT", "Shilp City Residency", raising=False)
        monkeypatch.setattr(target, "PROPERTY_ADDRESS", "Bhubaneswar, Odisha", raising=False)
    return config


def _durable_persistence():
    persistence = Persistence(durable=DurableStore(create_db_engine("sqlite://")))
    persistence.start()
    return persistence


@pytest.fixture(params=["volatile", "durable"])
def persistence(request):
    """A started Persistence, once per backend."""
    if request.param == "volatile":
        persistence = Persistence()
        persistence.start()
    else:
        persistence = _durable_persistence()
    assert persistence.mode == request.param
    yield persistence
    persistence.close()


@pytest.fixture
def store(persistence):
    return persistence.store


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def lifecycle(persistence, transport):
    return CallLifecycleManager(persistence, transport)


@pytest.fixture
def lead(persistence):
    from leadcaller.leads import LeadService

    return LeadService(persistence).create_lead({
        "name": "Rajesh Kumar",
        "phone": "9876543210",
        "email": "Rajesh@Example.com",
    })


@pytest.fixture
def client(transport):
    """TestClient over the real app, wired to a volatile store and the fake transport."""
    from leadcaller.dependencies import get_lifecycle, get_persistence
    from leadcaller.main import app

    persistence = Persistence()
    persistence.start()
    lifecycle = CallLifecycleManager(persistence, transport)

    app.dependency_overrides[get_persistence] = lambda: persistence
    app.dependency_overrides[get_lifecycle] = lambda: lifecycle
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        persistence.close()


@pytest.fixture
def failing_transport(transport):
    transport.error = TransportError("Customer number is invalid")
    return transport
