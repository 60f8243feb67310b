"""
AgriTrace Database Models

SQLAlchemy models for the provenance core.

Modules:
- base: Engine/session construction and declarative base
- event: EPCIS events, EPC memberships, lineage index
- audit: Hash-linked audit blocks
"""

from .base import (
    Base,
    JSON_TYPE,
    drop_db,
    init_db,
    make_engine,
    make_session_factory,
    session_scope,
    utcnow,
)
from .event import EventRecord, EventEpc, LineageEdge
from .audit import AuditBlockRecord

__all__ = [
    # Base
    'Base',
    'JSON_TYPE',
    'drop_db',
    'init_db',
    'make_engine',
    'make_session_factory',
    'session_scope',
    'utcnow',

    # Events
    'EventRecord',
    'EventEpc',
    'LineageEdge',

    # Audit
    'AuditBlockRecord',
]
