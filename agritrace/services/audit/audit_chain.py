"""
Audit Chain - Hash-Linked Audit Trail

Tamper-evident record of every mutating action on the provenance store.

Features:
- SHA-256 hash chain, genesis linked to a fixed seed hash
- Append inside the caller's transaction (event write and audit block
  commit or roll back together)
- Whole-chain and single-block verification, never auto-repaired
- Entity trail, statistics and JSON export
"""

import json
import logging
import threading
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ...models import AuditBlockRecord, session_scope, utcnow
from ..errors import AuditAppendError, ChainIntegrityViolation
from .audit_block import (
    GENESIS_HASH,
    AuditBlock,
    AuditEntry,
    ChainVerificationReport,
    InvalidBlock,
)

logger = logging.getLogger(__name__)

REASON_HASH_MISMATCH = "hash_mismatch"
REASON_BROKEN_LINK = "broken_link"
REASON_AFTER_BREAK = "after_break"
REASON_INCOMPLETE = "incomplete"


def record_to_block(record: AuditBlockRecord) -> AuditBlock:
    return AuditBlock(
        block_number=record.block_number,
        entity_type=record.entity_type,
        entity_id=record.entity_id,
        action_type=record.action_type,
        payload=record.payload,
        previous_hash=record.previous_hash,
        current_hash=record.current_hash,
        created_at=record.created_at,
        actor=record.actor,
    )


class AuditChain:
    """
    Append-only audit chain on SQLAlchemy.

    Appends are serialized by a process-level lock, a row lock on the chain
    head and the primary key on ``block_number``.

    Usage:
        chain = AuditChain(session_factory)
        chain.append(AuditEntry("event", event_id, "create", diff, "harvest intake"))
        report = chain.verify_chain()
    """

    GENESIS_HASH = GENESIS_HASH

    def __init__(
        self,
        session_factory: sessionmaker,
        grace_seconds: float = 5,
        verify_on_startup: bool = False,
    ):
        self._session_factory = session_factory
        self.grace_seconds = grace_seconds
        self._lock = threading.RLock()

        if verify_on_startup:
            self.assert_intact()
            logger.info("Audit chain verified on startup")

    # ===========================
    # Append
    # ===========================

    def append(self, entry: AuditEntry, session: Optional[Session] = None) -> AuditBlock:
        """
        Append one block for a mutating action.

        Args:
            entry: The action with its diff and reason
            session: Outer session; the block commits with the caller's write

        Raises:
            InvalidInput: Malformed entry or diff
            AuditAppendError: The block could not be written
        """
        entry.validate()
        payload = entry.payload()

        with self._lock:
            try:
                with session_scope(self._session_factory, session) as s:
                    head = (
                        s.query(AuditBlockRecord)
                        .order_by(AuditBlockRecord.block_number.desc())
                        .with_for_update()
                        .first()
                    )
                    if head is None:
                        block_number, previous_hash = 1, GENESIS_HASH
                    else:
                        if head.current_hash is None:
                            raise AuditAppendError(
                                f"Chain head block {head.block_number} has no hash"
                            )
                        block_number, previous_hash = head.block_number + 1, head.current_hash

                    block = AuditBlock(
                        block_number=block_number,
                        entity_type=entry.entity_type,
                        entity_id=entry.entity_id,
                        action_type=entry.action_type,
                        payload=payload,
                        previous_hash=previous_hash,
                        actor=entry.actor,
                    )
                    block.current_hash = block.compute_hash()

                    s.add(AuditBlockRecord(
                        block_number=block.block_number,
                        entity_type=block.entity_type,
                        entity_id=block.entity_id,
                        action_type=block.action_type,
                        payload=block.payload,
                        actor=block.actor,
                        previous_hash=block.previous_hash,
                        current_hash=block.current_hash,
                        created_at=block.created_at,
                    ))
                    s.flush()
            except SQLAlchemyError as e:
                logger.error(f"Audit append failed for {entry.entity_type}:{entry.entity_id}: {e}")
                raise AuditAppendError(f"Failed to append audit block: {e}") from e

        logger.debug(f"Appended {block} ({block.current_hash[:16]}...)")
        return block

    # ===========================
    # Verification
    # ===========================

    def verify_chain(self, session: Optional[Session] = None) -> ChainVerificationReport:
        """
        Verify the whole chain.

        Recomputes each block's hash and checks its link to the previous
        block. The first bad block is reported with its reason and every
        block after it as ``after_break``. A trailing block without a hash
        younger than the grace window is still being written and is left
        out of the counts.
        """
        report = ChainVerificationReport()

        with session_scope(self._session_factory, session) as s:
            blocks = [
                record_to_block(r)
                for r in s.query(AuditBlockRecord).order_by(AuditBlockRecord.block_number.asc())
            ]

        cutoff = utcnow() - timedelta(seconds=self.grace_seconds)
        while blocks and blocks[-1].current_hash is None and blocks[-1].created_at > cutoff:
            blocks.pop()
            report.pending_blocks += 1

        report.total_blocks = len(blocks)

        expected_prev = GENESIS_HASH
        expected_number = 1
        broken = False

        for block in blocks:
            if broken:
                reason = REASON_AFTER_BREAK
            elif block.current_hash is None:
                reason = REASON_INCOMPLETE
            elif block.block_number != expected_number or block.previous_hash != expected_prev:
                reason = REASON_BROKEN_LINK
            elif not block.verify_hash():
                reason = REASON_HASH_MISMATCH
            else:
                reason = None

            if reason is None:
                report.valid_blocks += 1
            else:
                if not broken:
                    logger.error(f"Audit chain broken at block {block.block_number}: {reason}")
                broken = True
                report.invalid.append(InvalidBlock(
                    block_number=block.block_number,
                    entity_type=block.entity_type,
                    entity_id=block.entity_id,
                    reason=reason,
                ))

            expected_prev = block.current_hash
            expected_number = block.block_number + 1

        logger.info(
            f"Chain verification complete: {report.valid_blocks}/{report.total_blocks} blocks valid"
        )
        return report

    def verify_block(self, block_number: int, session: Optional[Session] = None) -> bool:
        """
        Recompute one block and check its link to the block before it.

        This is a local check: blocks further back are not verified, so a
        block after a tampered one still passes here while ``verify_chain``
        reports it as ``after_break``. Use ``verify_chain`` for integrity.
        """
        with session_scope(self._session_factory, session) as s:
            record = s.get(AuditBlockRecord, block_number)
            if record is None:
                return False
            block = record_to_block(record)

            if block_number == 1:
                expected_prev = GENESIS_HASH
            else:
                previous = s.get(AuditBlockRecord, block_number - 1)
                if previous is None or previous.current_hash is None:
                    return False
                expected_prev = previous.current_hash

        return block.verify_hash() and block.previous_hash == expected_prev

    def assert_intact(self, session: Optional[Session] = None) -> None:
        """Raise ChainIntegrityViolation for the first invalid block."""
        report = self.verify_chain(session=session)
        if report.invalid:
            first = report.invalid[0]
            raise ChainIntegrityViolation(first.block_number, first.reason)

    # ===========================
    # Queries
    # ===========================

    def get_block(self, block_number: int, session: Optional[Session] = None) -> Optional[AuditBlock]:
        with session_scope(self._session_factory, session) as s:
            record = s.get(AuditBlockRecord, block_number)
            return record_to_block(record) if record else None

    def get_trail(
        self,
        entity_type: str,
        entity_id: str,
        session: Optional[Session] = None,
    ) -> List[AuditBlock]:
        """Every block about one entity, oldest first."""
        with session_scope(self._session_factory, session) as s:
            rows = (
                s.query(AuditBlockRecord)
                .filter(
                    AuditBlockRecord.entity_type == entity_type,
                    AuditBlockRecord.entity_id == entity_id,
                )
                .order_by(AuditBlockRecord.block_number.asc())
                .all()
            )
            return [record_to_block(r) for r in rows]

    def recent(
        self,
        limit: int = 50,
        entity_type: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> List[AuditBlock]:
        """Most recent blocks, newest first."""
        with session_scope(self._session_factory, session) as s:
            query = s.query(AuditBlockRecord)
            if entity_type:
                query = query.filter(AuditBlockRecord.entity_type == entity_type)
            rows = query.order_by(AuditBlockRecord.block_number.desc()).limit(limit).all()
            return [record_to_block(r) for r in rows]

    def statistics(self, session: Optional[Session] = None) -> Dict[str, Any]:
        """Get statistics about the audit chain."""
        with session_scope(self._session_factory, session) as s:
            total = s.query(func.count(AuditBlockRecord.block_number)).scalar() or 0

            by_entity = dict(
                s.query(AuditBlockRecord.entity_type, func.count(AuditBlockRecord.block_number))
                .group_by(AuditBlockRecord.entity_type)
                .all()
            )
            by_action = dict(
                s.query(AuditBlockRecord.action_type, func.count(AuditBlockRecord.block_number))
                .group_by(AuditBlockRecord.action_type)
                .all()
            )
            first, last = s.query(
                func.min(AuditBlockRecord.created_at),
                func.max(AuditBlockRecord.created_at),
            ).one()
            head = (
                s.query(AuditBlockRecord)
                .order_by(AuditBlockRecord.block_number.desc())
                .first()
            )

        return {
            'totalBlocks': total,
            'blocksByEntityType': by_entity,
            'blocksByActionType': by_action,
            'headBlockNumber': head.block_number if head else 0,
            'headHash': head.current_hash if head else GENESIS_HASH,
            'firstBlockAt': first.isoformat() if first else None,
            'lastBlockAt': last.isoformat() if last else None,
            'genesisHash': GENESIS_HASH,
        }

    def export_chain(self, output_path: str, session: Optional[Session] = None) -> int:
        """
        Export the audit chain to a JSON file.

        Returns:
            Number of blocks exported
        """
        with session_scope(self._session_factory, session) as s:
            blocks = [
                record_to_block(r).to_dict()
                for r in s.query(AuditBlockRecord).order_by(AuditBlockRecord.block_number.asc())
            ]

        export_data = {
            'exportedAt': utcnow().isoformat(),
            'genesisHash': GENESIS_HASH,
            'totalBlocks': len(blocks),
            'blocks': blocks,
        }

        with open(output_path, 'w') as f:
            json.dump(export_data, f, indent=2, default=str)

        logger.info(f"Exported {len(blocks)} audit blocks to {output_path}")
        return len(blocks)
