"""
EPCIS Services - Events, Validation, Storage
============================================

- Event / QuantityItem domain model (EPCIS 2.0 field names on the wire)
- Producer-contract validation
- EPC URN parsing for display and warnings
- SQLAlchemy event store with a materialized lineage index
- Lineage rules shared by the store index and the live walk
"""

from .epc import EPC, EPCKind, format_epc, is_epc_urn, parse_epc
from .event import (
    Event,
    EventType,
    QuantityItem,
    SourceType,
    parse_event_time,
    parse_quantities,
)
from .validator import EventValidationReport, EventValidator, ValidationWarning
from .lineage import (
    EpcIndex,
    PredecessorSelection,
    linking_epcs,
    provided_epcs,
    select_predecessors,
)
from .store import EventStore, record_to_event

__all__ = [
    # EPC
    "EPC",
    "EPCKind",
    "format_epc",
    "is_epc_urn",
    "parse_epc",
    # Events
    "Event",
    "EventType",
    "QuantityItem",
    "SourceType",
    "parse_event_time",
    "parse_quantities",
    # Validation
    "EventValidationReport",
    "EventValidator",
    "ValidationWarning",
    # Lineage
    "EpcIndex",
    "PredecessorSelection",
    "linking_epcs",
    "provided_epcs",
    "select_predecessors",
    # Store
    "EventStore",
    "record_to_event",
]
