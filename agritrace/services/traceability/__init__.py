"""
Traceability Services - Traceback Engine
========================================

Backward lineage reconstruction for items and batches:
- TracebackEngine with try-then-fallback lineage sources
- LiveGraphWalk (tree) and MaterializedIndexLookup (flat chain)
- TraceNode / TraceResult response model
"""

from .engine import DEFAULT_MAX_DEPTH, MAX_DEPTH_LIMIT, TracebackEngine
from .sources import LineageSource, LiveGraphWalk, MaterializedIndexLookup
from .trace_result import (
    SOURCE_INDEX,
    SOURCE_LIVE_WALK,
    FallbackReason,
    IndexedLineageEntry,
    TraceNode,
    TraceResult,
)

__all__ = [
    'DEFAULT_MAX_DEPTH',
    'MAX_DEPTH_LIMIT',
    'TracebackEngine',
    'LineageSource',
    'LiveGraphWalk',
    'MaterializedIndexLookup',
    'SOURCE_INDEX',
    'SOURCE_LIVE_WALK',
    'FallbackReason',
    'IndexedLineageEntry',
    'TraceNode',
    'TraceResult',
]
