"""
Audit Chain Model

Append-only table of hash-linked audit blocks. Rows are never updated by
the application; verification recomputes hashes from the stored fields.
"""

from sqlalchemy import Column, DateTime, Index, Integer, String

from .base import Base, JSON_TYPE, utcnow


class AuditBlockRecord(Base):
    """One block of the audit chain."""
    __tablename__ = 'audit_blocks'

    block_number = Column(Integer, primary_key=True, autoincrement=False)

    # What
    entity_type = Column(String(64), nullable=False)
    entity_id = Column(String(255), nullable=False)
    action_type = Column(String(32), nullable=False)
    payload = Column(JSON_TYPE, nullable=False)

    # Who (informational, not hashed)
    actor = Column(String(255))

    # Chain
    previous_hash = Column(String(64), nullable=False)
    current_hash = Column(String(64))
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
    )

    def __repr__(self):
        return f"<AuditBlockRecord(block={self.block_number}, entity={self.entity_type}:{self.entity_id})>"
