"""
Traceback Engine - Item Lineage Reconstruction

Given an item or batch identifier, reconstructs the custody and
transformation events that produced and moved it.

Lineage sources are tried in order: the live walk first, then the
materialized index. A source failure (store error, time budget) falls
through to the next source and the result is tagged with the source that
answered. NotFound is final.
"""

import logging
from typing import List, Optional, Sequence

from ..epcis import EventStore
from ..errors import InvalidInput, LineageSourceError, LineageUnavailable
from .sources import LineageSource, LiveGraphWalk, MaterializedIndexLookup
from .trace_result import FallbackReason, TraceResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10
MAX_DEPTH_LIMIT = 50


class TracebackEngine:
    """
    Trace query entry point.

    Usage:
        engine = TracebackEngine.for_store(store)
        result = engine.trace("urn:epc:id:sgtin:0614141.107346.2017", max_depth=5)
        result.to_dict()
    """

    def __init__(
        self,
        sources: Sequence[LineageSource],
        default_max_depth: int = DEFAULT_MAX_DEPTH,
        max_depth_limit: int = MAX_DEPTH_LIMIT,
    ):
        if not sources:
            raise ValueError("TracebackEngine needs at least one lineage source")
        self.sources: List[LineageSource] = list(sources)
        self.default_max_depth = default_max_depth
        self.max_depth_limit = max_depth_limit

    @classmethod
    def for_store(
        cls,
        store: EventStore,
        time_budget_seconds: Optional[float] = None,
        default_max_depth: int = DEFAULT_MAX_DEPTH,
        max_depth_limit: int = MAX_DEPTH_LIMIT,
    ) -> 'TracebackEngine':
        """Live walk with the materialized index as fallback."""
        return cls(
            sources=[
                LiveGraphWalk(store, time_budget_seconds=time_budget_seconds),
                MaterializedIndexLookup(store),
            ],
            default_max_depth=default_max_depth,
            max_depth_limit=max_depth_limit,
        )

    def trace(
        self,
        identifier: str,
        max_depth: Optional[int] = None,
        include_location: bool = True,
    ) -> TraceResult:
        """
        Reconstruct the lineage of an identifier.

        Args:
            identifier: EPC or batch identifier, matched exactly
            max_depth: Depth limit, 0 returns only the most recent event
            include_location: Include readPoint/bizLocation in serialized events

        Raises:
            InvalidInput: Empty identifier or out-of-range max_depth
            NotFound: No event carries the identifier
            LineageUnavailable: Every lineage source failed
        """
        identifier = self._check_identifier(identifier)
        max_depth = self._check_max_depth(max_depth)

        failures: List[FallbackReason] = []
        for source in self.sources:
            try:
                result = source.trace(identifier, max_depth)
            except LineageSourceError as e:
                logger.warning(f"Lineage source {source.name} failed for {identifier}: {e.message}")
                failures.append(FallbackReason(source=source.name, reason=e.reason, message=e.message))
                continue

            result.include_location = include_location
            result.fallback_reasons = failures
            if failures:
                logger.info(f"Trace for {identifier} answered by fallback source {source.name}")
            return result

        logger.error(f"No lineage source could trace {identifier}")
        details = '; '.join(f"{f.source}: {f.message}" for f in failures)
        raise LineageUnavailable(f"All lineage sources failed: {details}")

    def _check_identifier(self, identifier) -> str:
        if not isinstance(identifier, str) or not identifier.strip():
            raise InvalidInput("identifier is required")
        return identifier.strip()

    def _check_max_depth(self, max_depth) -> int:
        if max_depth is None:
            return self.default_max_depth
        if isinstance(max_depth, bool) or not isinstance(max_depth, int):
            raise InvalidInput(f"maxDepth must be an integer, got {max_depth!r}")
        if max_depth < 0 or max_depth > self.max_depth_limit:
            raise InvalidInput(f"maxDepth must be between 0 and {self.max_depth_limit}")
        return max_depth
