"""
Provenance Core Errors

Every error carries a stable ``kind`` so that callers and the HTTP layer
branch on type, never on message text.
"""

from typing import Any, Dict, List, Optional

# LineageSourceError reasons
REASON_SOURCE_ERROR = "source_error"
REASON_STORE_ERROR = "store_error"
REASON_TIME_BUDGET = "time_budget"


class TraceabilityError(Exception):
    """Base class for provenance core errors."""

    kind = "TraceabilityError"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': False,
            'error': self.kind,
            'message': self.message,
        }


class NotFound(TraceabilityError):
    """No event or record matches the identifier."""

    kind = "NotFound"


class InvalidInput(TraceabilityError):
    """Request rejected before any computation."""

    kind = "InvalidInput"

    def __init__(self, message: str = "", errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])
        if not self.message and self.errors:
            self.message = "; ".join(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['errors'] = self.errors
        return result


class ChainIntegrityViolation(TraceabilityError):
    """Stored audit block no longer matches its hash or link."""

    kind = "ChainIntegrityViolation"

    def __init__(self, block_number: int, reason: str = "hash_mismatch"):
        super().__init__(f"Audit chain integrity violated at block {block_number}: {reason}")
        self.block_number = block_number
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['blockNumber'] = self.block_number
        result['reason'] = self.reason
        return result


class AuditAppendError(TraceabilityError):
    """Appending an audit block failed; the enclosing write must abort."""

    kind = "AuditAppendError"


class LineageSourceError(TraceabilityError):
    """A lineage source could not produce a result (triggers fallback)."""

    kind = "LineageSourceError"

    def __init__(self, message: str = "", reason: str = REASON_SOURCE_ERROR):
        super().__init__(message)
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['reason'] = self.reason
        return result


class LineageUnavailable(TraceabilityError):
    """Every lineage source failed."""

    kind = "LineageUnavailable"
