"""
Event Store - Durable EPCIS Event Collection

Append-mostly storage for EPCIS events on SQLAlchemy.

Provides:
- Insert with server-assigned immutable id and timestamp
- Query by EPC-list containment and by time range
- Metadata side-channel updates (the only mutation)
- Materialized lineage index, maintained incrementally on insert

Every method accepts an optional outer ``session`` so that callers can run
an event write and its audit block inside one transaction.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from ...models import EventEpc, EventRecord, LineageEdge, session_scope, utcnow
from ..errors import NotFound
from .lineage import linking_epcs, provided_epcs, select_predecessors
from .event import Event, EventType, QuantityItem
from .validator import EventValidator

logger = logging.getLogger(__name__)

EPC_ROLES = ('epc', 'input', 'output')
PROVIDER_ROLES = ('epc', 'output')


def record_to_event(record: EventRecord) -> Event:
    """Map a stored row to the domain event."""
    return Event(
        id=record.id,
        event_type=EventType(record.event_type),
        event_time=record.event_time,
        recorded_at=record.recorded_at,
        action=record.action,
        biz_step=record.biz_step,
        disposition=record.disposition,
        epc_list=list(record.epc_list or []),
        input_epc_list=list(record.input_epc_list or []),
        output_epc_list=list(record.output_epc_list or []),
        quantity_list=[QuantityItem.from_dict(q) for q in record.quantity_list or []],
        input_quantity_list=[QuantityItem.from_dict(q) for q in record.input_quantity_list or []],
        output_quantity_list=[QuantityItem.from_dict(q) for q in record.output_quantity_list or []],
        read_point=record.read_point,
        biz_location=record.biz_location,
        source_type=record.source_type,
        metadata=dict(record.metadata_ or {}),
    )


class EventStore:
    """
    SQLAlchemy-backed event store.

    Usage:
        store = EventStore(session_factory)
        stored = store.insert(Event.from_dict(payload))
        events = store.query_by_epc("urn:epc:id:sgtin:0614141.107346.2017")
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        validator: Optional[EventValidator] = None,
    ):
        self._session_factory = session_factory
        self.validator = validator or EventValidator()

    # ===========================
    # Writes
    # ===========================

    def insert(self, event: Event, session: Optional[Session] = None) -> Event:
        """
        Validate and persist a new event.

        The caller's ``id``/``recorded_at`` are ignored; the store assigns
        both. Raises InvalidInput for malformed events.
        """
        report = self.validator.validate(event)

        metadata = dict(event.metadata)
        if report.warnings:
            metadata['validation'] = report.to_dict()

        record = EventRecord(
            id=str(uuid4()),
            event_type=event.event_type.value,
            action=event.action,
            event_time=event.event_time,
            recorded_at=utcnow(),
            biz_step=event.biz_step,
            disposition=event.disposition,
            read_point=event.read_point,
            biz_location=event.biz_location,
            source_type=event.source_type,
            epc_list=list(event.epc_list),
            input_epc_list=list(event.input_epc_list),
            output_epc_list=list(event.output_epc_list),
            quantity_list=[q.to_dict() for q in event.quantity_list],
            input_quantity_list=[q.to_dict() for q in event.input_quantity_list],
            output_quantity_list=[q.to_dict() for q in event.output_quantity_list],
            metadata_=metadata,
        )

        with session_scope(self._session_factory, session) as s:
            s.add(record)
            for role, epcs in (
                ('epc', event.epc_list),
                ('input', event.input_epc_list),
                ('output', event.output_epc_list),
            ):
                for epc in dict.fromkeys(epcs):
                    s.add(EventEpc(event_id=record.id, epc=epc, role=role))
            s.flush()

            stored = record_to_event(record)
            self._index_event(s, stored)

        logger.debug(f"Stored {stored}")
        return stored

    def update_metadata(
        self,
        event_id: str,
        key: str,
        value: Any,
        session: Optional[Session] = None,
    ) -> Tuple[Any, Any]:
        """
        Set one metadata key on a stored event.

        Returns (old_value, new_value) so the caller can audit the change.
        """
        with session_scope(self._session_factory, session) as s:
            record = s.get(EventRecord, event_id)
            if record is None:
                raise NotFound(f"Event {event_id} not found")

            metadata = dict(record.metadata_ or {})
            old_value = metadata.get(key)
            metadata[key] = value
            # Reassign so the JSON column is flagged dirty
            record.metadata_ = metadata
            s.flush()

        return old_value, value

    # ===========================
    # Reads
    # ===========================

    def get(self, event_id: str, session: Optional[Session] = None) -> Event:
        with session_scope(self._session_factory, session) as s:
            record = s.get(EventRecord, event_id)
            if record is None:
                raise NotFound(f"Event {event_id} not found")
            return record_to_event(record)

    def query_by_epc(
        self,
        epc: str,
        roles: Iterable[str] = EPC_ROLES,
        session: Optional[Session] = None,
    ) -> List[Event]:
        """Events containing the EPC in any of the given lists, most recent first."""
        with session_scope(self._session_factory, session) as s:
            return self._query_by_epc(s, epc, tuple(roles))

    def query_by_time_range(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        event_type: Optional[EventType] = None,
        limit: Optional[int] = None,
        session: Optional[Session] = None,
    ) -> List[Event]:
        """Events with start <= eventTime <= end, oldest first."""
        with session_scope(self._session_factory, session) as s:
            query = s.query(EventRecord)
            if start is not None:
                query = query.filter(EventRecord.event_time >= start)
            if end is not None:
                query = query.filter(EventRecord.event_time <= end)
            if event_type is not None:
                query = query.filter(EventRecord.event_type == event_type.value)
            query = query.order_by(EventRecord.event_time.asc(), EventRecord.id.asc())
            if limit:
                query = query.limit(limit)
            return [record_to_event(r) for r in query.all()]

    def all_events(self, session: Optional[Session] = None) -> List[Event]:
        """Broad scan used by the live lineage walk."""
        return self.query_by_time_range(session=session)

    def count(self, session: Optional[Session] = None) -> int:
        with session_scope(self._session_factory, session) as s:
            return s.query(EventRecord).count()

    # ===========================
    # Lineage index
    # ===========================

    def lineage_parents(
        self,
        event_ids: Iterable[str],
        session: Optional[Session] = None,
    ) -> Dict[str, List[Tuple[str, str]]]:
        """Indexed predecessors: child id -> [(parent id, via EPC)]."""
        ids = list(event_ids)
        result: Dict[str, List[Tuple[str, str]]] = {event_id: [] for event_id in ids}
        if not ids:
            return result

        with session_scope(self._session_factory, session) as s:
            rows = (
                s.query(LineageEdge)
                .filter(LineageEdge.child_event_id.in_(ids))
                .order_by(LineageEdge.id.asc())
                .all()
            )
            for row in rows:
                result[row.child_event_id].append((row.parent_event_id, row.via_epc))
        return result

    def get_many(self, event_ids: Iterable[str], session: Optional[Session] = None) -> Dict[str, Event]:
        ids = list(event_ids)
        if not ids:
            return {}
        with session_scope(self._session_factory, session) as s:
            rows = s.query(EventRecord).filter(EventRecord.id.in_(ids)).all()
            return {row.id: record_to_event(row) for row in rows}

    def refresh_lineage_index(self, session: Optional[Session] = None) -> int:
        """Rebuild every lineage edge from scratch. Returns the edge count."""
        with session_scope(self._session_factory, session) as s:
            s.query(LineageEdge).delete(synchronize_session=False)
            providers = self._provider_cache(s)
            edges = 0
            for record in s.query(EventRecord).all():
                edges += self._write_edges(s, record_to_event(record), providers)
            s.flush()

        logger.info(f"Lineage index rebuilt: {edges} edges")
        return edges

    def _index_event(self, session: Session, event: Event) -> None:
        """
        Link a new event and re-link later events sharing one of its EPCs.

        A late-arriving event can become the closest predecessor of events
        already in the index, so their edges are recomputed as well.
        """
        providers = self._provider_cache(session)
        self._write_edges(session, event, providers)

        affected: Dict[str, Event] = {}
        for epc in provided_epcs(event):
            for other in self._query_by_epc(session, epc, ('epc', 'input')):
                if other.id != event.id and other.event_time > event.event_time:
                    if epc in linking_epcs(other):
                        affected[other.id] = other

        for other in affected.values():
            session.query(LineageEdge).filter(
                LineageEdge.child_event_id == other.id
            ).delete(synchronize_session=False)
            self._write_edges(session, other, providers)

        if affected:
            logger.debug(f"Re-linked {len(affected)} event(s) after inserting {event.id}")
        session.flush()

    def _write_edges(self, session: Session, event: Event, providers) -> int:
        selection = select_predecessors(event, providers)
        for parent, via_epc in selection.predecessors:
            session.add(LineageEdge(
                child_event_id=event.id,
                parent_event_id=parent.id,
                via_epc=via_epc,
            ))
        return len(selection.predecessors)

    def _provider_cache(self, session: Session):
        cache: Dict[str, List[Event]] = {}

        def providers_for(epc: str) -> List[Event]:
            if epc not in cache:
                cache[epc] = self._query_by_epc(session, epc, PROVIDER_ROLES)
            return cache[epc]

        return providers_for

    def _query_by_epc(self, session: Session, epc: str, roles: Tuple[str, ...]) -> List[Event]:
        event_ids = (
            select(EventEpc.event_id)
            .where(EventEpc.epc == epc, EventEpc.role.in_(roles))
            .distinct()
        )
        rows = (
            session.query(EventRecord)
            .filter(EventRecord.id.in_(event_ids))
            .order_by(EventRecord.event_time.desc(), EventRecord.id.desc())
            .all()
        )
        return [record_to_event(r) for r in rows]
