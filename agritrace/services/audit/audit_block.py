"""
Audit Block - Tamper-Evident Audit Trail Entries

Each mutating action on the provenance store appends one block. A block's
hash covers its number, subject, action, payload and the previous block's
hash, so editing any stored block breaks every later link.

Payload shape:
    {"diff": {field: {"old": ..., "new": ...}}, "reason": "..."}
"""

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ...models import utcnow
from ..errors import InvalidInput

GENESIS_HASH = hashlib.sha256(b"AGRITRACE_AUDIT_GENESIS_V1").hexdigest()

FLAG_MISSING_REASON = "missing_reason"


def canonical_json(data: Any) -> str:
    """Deterministic JSON used for hashing."""
    return json.dumps(data, sort_keys=True, separators=(',', ':'), default=str)


def normalize_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Round-trip through JSON so the hashed payload equals what gets stored."""
    return json.loads(canonical_json(payload))


def build_diff(old: Optional[Dict[str, Any]], new: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Field-level diff between two flat dictionaries.

    Unchanged fields are left out. ``old=None`` diffs every field of ``new``
    against null, as for a create.
    """
    old = old or {}
    diff = {}
    for key in sorted(set(old) | set(new)):
        before = old.get(key)
        after = new.get(key)
        if before != after or key not in old:
            diff[key] = {'old': before, 'new': after}
    return diff


@dataclass
class AuditEntry:
    """A mutating action to be recorded; the chain turns it into a block."""
    entity_type: str
    entity_id: str
    action_type: str
    diff: Dict[str, Dict[str, Any]]
    reason: str = ""
    actor: Optional[str] = None

    def validate(self) -> None:
        errors = []
        for name in ('entity_type', 'entity_id', 'action_type'):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                errors.append(f"{name} is required")

        if not isinstance(self.diff, dict):
            errors.append("diff must be an object of {field: {old, new}}")
        else:
            for key, change in self.diff.items():
                if not isinstance(key, str) or not key:
                    errors.append(f"diff field names must be non-empty strings, got {key!r}")
                elif not isinstance(change, dict) or set(change) != {'old', 'new'}:
                    errors.append(f"diff entry for {key!r} must have exactly 'old' and 'new'")

        if self.reason is not None and not isinstance(self.reason, str):
            errors.append("reason must be a string")

        if errors:
            raise InvalidInput(errors=errors)

    def payload(self) -> Dict[str, Any]:
        return normalize_payload({'diff': self.diff, 'reason': self.reason or ""})


@dataclass
class AuditBlock:
    """
    One linked block of the audit chain.

    Never mutated after append; verification recomputes the hash from the
    stored fields.
    """
    block_number: int
    entity_type: str
    entity_id: str
    action_type: str
    payload: Dict[str, Any]
    previous_hash: str
    current_hash: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    actor: Optional[str] = None

    def compute_hash(self) -> str:
        """
        Compute SHA-256 hash of the block data.

        ``actor`` and ``created_at`` are informational and not hashed.
        """
        hash_input = {
            'blockNumber': self.block_number,
            'entityType': self.entity_type,
            'entityId': self.entity_id,
            'actionType': self.action_type,
            'payload': self.payload,
            'previousHash': self.previous_hash,
        }
        return hashlib.sha256(canonical_json(hash_input).encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        """True if the stored hash matches the computed hash."""
        return self.current_hash is not None and self.current_hash == self.compute_hash()

    @property
    def reason(self) -> str:
        return (self.payload or {}).get('reason') or ""

    @property
    def flags(self) -> List[str]:
        flags = []
        if not self.reason.strip():
            flags.append(FLAG_MISSING_REASON)
        return flags

    def to_dict(self) -> Dict[str, Any]:
        return {
            'blockNumber': self.block_number,
            'entityType': self.entity_type,
            'entityId': self.entity_id,
            'actionType': self.action_type,
            'payload': self.payload,
            'actor': self.actor,
            'previousHash': self.previous_hash,
            'currentHash': self.current_hash,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'flags': self.flags,
        }

    def __str__(self) -> str:
        return (
            f"Block {self.block_number}: {self.action_type} "
            f"{self.entity_type}:{self.entity_id}"
        )


@dataclass
class InvalidBlock:
    """A block that failed verification."""
    block_number: int
    entity_type: str
    entity_id: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'blockNumber': self.block_number,
            'entityType': self.entity_type,
            'entityId': self.entity_id,
            'reason': self.reason,
        }


@dataclass
class ChainVerificationReport:
    """Status of audit chain verification."""
    total_blocks: int = 0
    valid_blocks: int = 0
    invalid: List[InvalidBlock] = field(default_factory=list)
    pending_blocks: int = 0
    verified_at: datetime = field(default_factory=utcnow)

    @property
    def invalid_blocks(self) -> int:
        return len(self.invalid)

    @property
    def is_valid(self) -> bool:
        return not self.invalid

    def to_dict(self) -> Dict[str, Any]:
        return {
            'isValid': self.is_valid,
            'totalBlocks': self.total_blocks,
            'validBlocks': self.valid_blocks,
            'invalidBlocks': self.invalid_blocks,
            'invalid': [i.to_dict() for i in self.invalid],
            'pendingBlocks': self.pending_blocks,
            'verifiedAt': self.verified_at.isoformat(),
        }
