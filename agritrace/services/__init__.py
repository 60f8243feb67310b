"""
AgriTrace Services
==================

Provenance and integrity core:
- epcis: event model, producer-contract validation, event store
- traceability: traceback engine with live walk and index fallback
- mass_balance: transformation yield validation
- audit: tamper-evident audit chain
- provenance: audited write orchestration
"""

from .errors import (
    AuditAppendError,
    ChainIntegrityViolation,
    InvalidInput,
    LineageSourceError,
    LineageUnavailable,
    NotFound,
    TraceabilityError,
)
from .epcis import Event, EventStore, EventValidator
from .mass_balance import MassBalanceValidator, STANDARD_CONVERSION_FACTORS
from .audit import AuditChain, AuditEntry
from .traceability import TracebackEngine
from .provenance import ProvenanceService

__all__ = [
    # Errors
    'AuditAppendError',
    'ChainIntegrityViolation',
    'InvalidInput',
    'LineageSourceError',
    'LineageUnavailable',
    'NotFound',
    'TraceabilityError',
    # Services
    'Event',
    'EventStore',
    'EventValidator',
    'MassBalanceValidator',
    'STANDARD_CONVERSION_FACTORS',
    'AuditChain',
    'AuditEntry',
    'TracebackEngine',
    'ProvenanceService',
]
