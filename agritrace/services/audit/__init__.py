"""
Audit Services
==============

Tamper-evident audit chain for every mutating action:
- AuditEntry: action + field-level diff + reason
- AuditBlock: hash-linked block
- AuditChain: append, verify, trail, statistics, export
"""

from .audit_block import (
    FLAG_MISSING_REASON,
    GENESIS_HASH,
    AuditBlock,
    AuditEntry,
    ChainVerificationReport,
    InvalidBlock,
    build_diff,
    canonical_json,
)
from .audit_chain import (
    REASON_AFTER_BREAK,
    REASON_BROKEN_LINK,
    REASON_HASH_MISMATCH,
    REASON_INCOMPLETE,
    AuditChain,
)

__all__ = [
    'FLAG_MISSING_REASON',
    'GENESIS_HASH',
    'AuditBlock',
    'AuditEntry',
    'ChainVerificationReport',
    'InvalidBlock',
    'build_diff',
    'canonical_json',
    'REASON_AFTER_BREAK',
    'REASON_BROKEN_LINK',
    'REASON_HASH_MISMATCH',
    'REASON_INCOMPLETE',
    'AuditChain',
]
