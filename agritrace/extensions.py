"""
Service wiring for the Flask app.

``create_app`` builds one AgriTraceServices bundle per app and stores it in
``app.extensions["agritrace"]``; routes fetch it with ``get_services()``.
"""

from dataclasses import dataclass

from flask import current_app
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .models import init_db, make_engine, make_session_factory
from .services.audit import AuditChain
from .services.epcis import EventStore, EventValidator
from .services.mass_balance import MassBalanceValidator, STANDARD_CONVERSION_FACTORS
from .services.provenance import ProvenanceService
from .services.traceability import TracebackEngine

EXTENSION_KEY = "agritrace"


@dataclass
class AgriTraceServices:
    engine: Engine
    session_factory: sessionmaker
    store: EventStore
    chain: AuditChain
    mass_balance: MassBalanceValidator
    traceback: TracebackEngine
    provenance: ProvenanceService


def build_services(config) -> AgriTraceServices:
    """Build the service graph from a Flask config mapping."""
    engine = make_engine(config['DATABASE_URL'], echo=config.get('SQL_ECHO', False))
    init_db(engine)
    session_factory = make_session_factory(engine)

    store = EventStore(session_factory, validator=EventValidator())
    chain = AuditChain(
        session_factory,
        grace_seconds=config['AUDIT_GRACE_SECONDS'],
        verify_on_startup=config.get('AUDIT_VERIFY_ON_STARTUP', False),
    )
    mass_balance = MassBalanceValidator(
        factor_table=STANDARD_CONVERSION_FACTORS,
        default_tolerance=config['MASS_BALANCE_DEFAULT_TOLERANCE'],
    )
    traceback = TracebackEngine.for_store(
        store,
        time_budget_seconds=config['TRACE_TIME_BUDGET_SECONDS'],
        default_max_depth=config['TRACE_DEFAULT_MAX_DEPTH'],
        max_depth_limit=config['TRACE_MAX_DEPTH_LIMIT'],
    )

    return AgriTraceServices(
        engine=engine,
        session_factory=session_factory,
        store=store,
        chain=chain,
        mass_balance=mass_balance,
        traceback=traceback,
        provenance=ProvenanceService(session_factory, store, chain, mass_balance),
    )


def get_services() -> AgriTraceServices:
    return current_app.extensions[EXTENSION_KEY]
