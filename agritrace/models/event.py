"""
EPCIS Event Models

Event rows are immutable once written; only the metadata column is
updated afterwards (validation verdicts). EPC memberships are kept in a
separate indexed table so that containment queries stay portable between
SQLite and PostgreSQL.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text

from .base import Base, JSON_TYPE, utcnow


class EventRecord(Base):
    """
    EPCIS event.

    Lists (EPCs and quantities) are stored as JSON arrays in their original
    order; membership lookups go through EventEpc.
    """
    __tablename__ = 'events'

    id = Column(String(36), primary_key=True)
    event_type = Column(String(32), nullable=False, index=True)
    action = Column(String(16))
    event_time = Column(DateTime, nullable=False, index=True)
    recorded_at = Column(DateTime, default=utcnow, nullable=False)

    biz_step = Column(String(100))
    disposition = Column(String(100))
    read_point = Column(String(255))
    biz_location = Column(String(255))
    source_type = Column(String(32))

    epc_list = Column(JSON_TYPE, default=list)
    input_epc_list = Column(JSON_TYPE, default=list)
    output_epc_list = Column(JSON_TYPE, default=list)
    quantity_list = Column(JSON_TYPE, default=list)
    input_quantity_list = Column(JSON_TYPE, default=list)
    output_quantity_list = Column(JSON_TYPE, default=list)

    # Validation side-channel, the only mutable column
    metadata_ = Column('metadata', JSON_TYPE, default=dict)

    def __repr__(self):
        return f"<EventRecord(id={self.id}, type={self.event_type}, time={self.event_time})>"


class EventEpc(Base):
    """Membership of an EPC in one of an event's lists."""
    __tablename__ = 'event_epcs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), ForeignKey('events.id'), nullable=False, index=True)
    epc = Column(String(255), nullable=False)
    role = Column(String(8), nullable=False)  # epc | input | output

    __table_args__ = (
        Index('idx_event_epcs_epc_role', 'epc', 'role'),
    )


class LineageEdge(Base):
    """
    Materialized lineage index.

    One row per (event, predecessor) pair, maintained by the event store
    on insert and rebuilt by a full refresh.
    """
    __tablename__ = 'lineage_edges'

    id = Column(Integer, primary_key=True, autoincrement=True)
    child_event_id = Column(String(36), ForeignKey('events.id'), nullable=False, index=True)
    parent_event_id = Column(String(36), ForeignKey('events.id'), nullable=False, index=True)
    via_epc = Column(Text)
