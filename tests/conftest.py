"""
Pytest configuration and fixtures for the AgriTrace test suite.
"""

import pytest

from agritrace.app import create_app
from agritrace.models import drop_db, init_db, make_engine, make_session_factory
from agritrace.services.audit import AuditChain
from agritrace.services.epcis import Event, EventStore, EventType
from agritrace.services.mass_balance import MassBalanceValidator
from agritrace.services.provenance import ProvenanceService
from agritrace.services.traceability import TracebackEngine

from tests.factories import E1, E2, at


# ============================================================================
# Persistence Fixtures
# ============================================================================

@pytest.fixture
def db_engine():
    """In-memory SQLite engine with all tables."""
    engine = make_engine("sqlite:///:memory:")
    init_db(engine)
    yield engine
    drop_db(engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return make_session_factory(db_engine)


@pytest.fixture
def store(session_factory):
    return EventStore(session_factory)


@pytest.fixture
def chain(session_factory):
    return AuditChain(session_factory, grace_seconds=5)


@pytest.fixture
def mass_balance():
    return MassBalanceValidator()


@pytest.fixture
def traceback_engine(store):
    return TracebackEngine.for_store(store)


@pytest.fixture
def provenance(session_factory, store, chain, mass_balance):
    return ProvenanceService(session_factory, store, chain, mass_balance)


# ============================================================================
# Event Fixtures
# ============================================================================

@pytest.fixture
def make_event():
    """Build an Event with sensible defaults."""

    def _make(event_type=EventType.OBJECT, hours=0.0, **kwargs):
        kwargs.setdefault('action', 'OBSERVE' if event_type is not EventType.TRANSFORMATION else None)
        kwargs.setdefault('biz_step', 'observing')
        kwargs.setdefault('read_point', 'urn:epc:id:sgln:0614141.00001.0')
        return Event(event_type=event_type, event_time=at(hours), **kwargs)

    return _make


@pytest.fixture
def scenario_a(store, make_event):
    """
    Harvest(out E1, 08:00) -> Transform(in E1, out E2, 10:00) -> Ship(epc E2, 12:00).

    Returns the stored events keyed by role.
    """
    harvest = store.insert(make_event(
        EventType.OBJECT, 0,
        action='ADD',
        biz_step='commissioning',
        output_epc_list=[E1],
    ))
    transform = store.insert(make_event(
        EventType.TRANSFORMATION, 2,
        biz_step='transforming',
        input_epc_list=[E1],
        output_epc_list=[E2],
    ))
    ship = store.insert(make_event(
        EventType.OBJECT, 4,
        biz_step='shipping',
        epc_list=[E2],
        biz_location='urn:epc:id:sgln:0614141.00002.0',
    ))
    return {'harvest': harvest, 'transform': transform, 'ship': ship}


# ============================================================================
# Flask Fixtures
# ============================================================================

@pytest.fixture
def app():
    """Flask app on a fresh in-memory database."""
    app = create_app('testing')
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions['agritrace']
