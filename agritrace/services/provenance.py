"""
Provenance Service - Audited Event Writes

Write-side orchestration for the provenance core. Every write validates
the event, persists it and appends its audit block inside one database
transaction, so an event never exists without its audit block.
"""

import logging
from typing import Any, Dict, Optional, Tuple, Union

from sqlalchemy.orm import sessionmaker

from ..models import session_scope
from .audit import AuditBlock, AuditChain, AuditEntry, build_diff
from .epcis import Event, EventStore
from .errors import InvalidInput
from .mass_balance import MassBalanceValidator, MassBalanceVerdict

logger = logging.getLogger(__name__)

ENTITY_EVENT = "event"
ACTION_CREATE = "create"
ACTION_UPDATE = "update"

EventInput = Union[Event, Dict[str, Any]]

# Metadata keys only the core writes (mass-balance verdict, validator warnings)
RESERVED_METADATA_KEYS = ('massBalance', 'validation')


def _to_event(payload: EventInput) -> Event:
    """Parse the payload and drop caller-supplied values for reserved metadata keys."""
    event = payload if isinstance(payload, Event) else Event.from_dict(payload)
    for key in RESERVED_METADATA_KEYS:
        if key in event.metadata:
            logger.warning(f"Ignoring caller-supplied metadata.{key}")
            event.metadata.pop(key)
    return event


class ProvenanceService:
    """
    Records events with their audit trail.

    Usage:
        service = ProvenanceService(session_factory, store, chain, MassBalanceValidator())
        event, block = service.record_event(payload, actor="ops@farm", reason="harvest intake")
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        store: EventStore,
        chain: AuditChain,
        mass_balance: Optional[MassBalanceValidator] = None,
    ):
        self._session_factory = session_factory
        self.store = store
        self.chain = chain
        self.mass_balance = mass_balance or MassBalanceValidator()

    def record_event(
        self,
        payload: EventInput,
        actor: Optional[str] = None,
        reason: str = "",
    ) -> Tuple[Event, AuditBlock]:
        """
        Validate, persist and audit one event.

        Transformations are rejected here; they go through
        ``record_transformation`` so that they always carry a computed
        mass-balance verdict.
        """
        event = _to_event(payload)
        if event.is_transformation:
            raise InvalidInput("TransformationEvent must be recorded with its mass-balance check")
        return self._persist(event, actor, reason)

    def record_transformation(
        self,
        payload: EventInput,
        product_type: Optional[str] = None,
        custom_factor: Optional[float] = None,
        tolerance: Optional[float] = None,
        actor: Optional[str] = None,
        reason: str = "",
    ) -> Tuple[Event, MassBalanceVerdict, AuditBlock]:
        """
        Record a transformation with its mass-balance verdict.

        The verdict is stored under ``metadata.massBalance``. An anomalous
        verdict does not block the write; it flags the event.
        """
        event = _to_event(payload)
        if not event.is_transformation:
            raise InvalidInput(f"Expected TransformationEvent, got {event.event_type.value}")

        verdict = self.mass_balance.validate_transformation(
            event.input_quantity_list,
            event.output_quantity_list,
            product_type=product_type,
            custom_factor=custom_factor,
            tolerance=tolerance,
        )
        event.metadata['massBalance'] = verdict.to_dict()

        stored, block = self._persist(event, actor, reason)
        if not verdict.valid:
            logger.warning(
                f"Transformation {stored.id} recorded with mass balance anomalies: "
                f"{[a.code for a in verdict.anomalies]}"
            )
        return stored, verdict, block

    def annotate_event(
        self,
        event_id: str,
        key: str,
        value: Any,
        actor: Optional[str] = None,
        reason: str = "",
    ) -> Tuple[Event, AuditBlock]:
        """Audited write to an event's metadata side-channel."""
        if not isinstance(key, str) or not key.strip():
            raise InvalidInput("metadata key is required")
        if key in RESERVED_METADATA_KEYS:
            raise InvalidInput(f"metadata.{key} is written by the provenance core only")

        with session_scope(self._session_factory) as session:
            old_value, new_value = self.store.update_metadata(event_id, key, value, session=session)
            block = self.chain.append(
                AuditEntry(
                    entity_type=ENTITY_EVENT,
                    entity_id=event_id,
                    action_type=ACTION_UPDATE,
                    diff={f"metadata.{key}": {'old': old_value, 'new': new_value}},
                    reason=reason,
                    actor=actor,
                ),
                session=session,
            )
            event = self.store.get(event_id, session=session)

        logger.info(f"Annotated event {event_id} ({key}) in audit block {block.block_number}")
        return event, block

    def _persist(
        self,
        event: Event,
        actor: Optional[str],
        reason: str,
    ) -> Tuple[Event, AuditBlock]:
        with session_scope(self._session_factory) as session:
            stored = self.store.insert(event, session=session)
            block = self.chain.append(
                AuditEntry(
                    entity_type=ENTITY_EVENT,
                    entity_id=stored.id,
                    action_type=ACTION_CREATE,
                    diff=build_diff(None, stored.to_dict()),
                    reason=reason,
                    actor=actor,
                ),
                session=session,
            )

        logger.info(f"Recorded {stored} in audit block {block.block_number}")
        return stored, block
