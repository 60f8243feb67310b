"""
Lineage Sources

Two ways of answering a trace query:

- LiveGraphWalk: one broad scan of the event store, an in-memory EPC
  index, and a depth-first walk that builds the full tree. Accurate even
  when the materialized index is stale, but bounded by a time budget.
- MaterializedIndexLookup: breadth-first over the lineage edges the event
  store maintains on insert. Cheap, returns a flat chain.

Both use the same predecessor rules (``epcis.lineage``).
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from ..epcis import EpcIndex, Event, EventStore
from ..errors import REASON_STORE_ERROR, REASON_TIME_BUDGET, LineageSourceError, NotFound
from .trace_result import IndexedLineageEntry, TraceNode, TraceResult

logger = logging.getLogger(__name__)

SEED_ROLES = ('epc', 'output')


class LineageSource(ABC):
    """Produces a TraceResult or raises NotFound / LineageSourceError."""

    name = "lineageSource"

    @abstractmethod
    def trace(self, identifier: str, max_depth: int) -> TraceResult:
        ...


class LiveGraphWalk(LineageSource):
    """Walk the lineage graph from a fresh scan of the event store."""

    name = "liveWalk"

    def __init__(self, store: EventStore, time_budget_seconds: Optional[float] = None):
        self.store = store
        self.time_budget_seconds = time_budget_seconds

    def trace(self, identifier: str, max_depth: int) -> TraceResult:
        deadline = None
        if self.time_budget_seconds is not None:
            deadline = time.monotonic() + self.time_budget_seconds

        try:
            events = self.store.all_events()
        except SQLAlchemyError as e:
            raise LineageSourceError(f"Event scan failed: {e}", reason=REASON_STORE_ERROR) from e

        index = EpcIndex(events)
        seeds = index.seeds(identifier)
        if not seeds:
            raise NotFound(f"No events found for {identifier}")

        root_event = seeds[0]
        visited: Set[str] = {root_event.id}
        discarded: Set[str] = set()

        def check_budget():
            if deadline is not None and time.monotonic() >= deadline:
                raise LineageSourceError(
                    f"Live walk exceeded its {self.time_budget_seconds}s time budget",
                    reason=REASON_TIME_BUDGET,
                )

        def build(event: Event, depth: int, via_epc: Optional[str]) -> TraceNode:
            check_budget()
            selection = index.predecessors(event)
            discarded.update(selection.discarded_ids)

            node = TraceNode(
                event=event,
                depth=depth,
                via_epc=via_epc,
                has_predecessors=bool(selection.predecessors),
            )
            if depth >= max_depth:
                return node

            for parent, epc in selection.predecessors:
                if parent.id in visited:
                    continue
                visited.add(parent.id)
                node.children.append(build(parent, depth + 1, epc))
            return node

        root = build(root_event, 0, None)
        result = TraceResult.from_tree(identifier, root, len(discarded))
        logger.debug(
            f"Live walk for {identifier}: {result.total_events} events over {len(index)} scanned"
        )
        return result


class MaterializedIndexLookup(LineageSource):
    """Breadth-first lookup over the stored lineage edges."""

    name = "index"

    def __init__(self, store: EventStore):
        self.store = store

    def trace(self, identifier: str, max_depth: int) -> TraceResult:
        try:
            return self._trace(identifier, max_depth)
        except SQLAlchemyError as e:
            raise LineageSourceError(f"Lineage index lookup failed: {e}", reason=REASON_STORE_ERROR) from e

    def _trace(self, identifier: str, max_depth: int) -> TraceResult:
        seeds = self.store.query_by_epc(identifier, roles=SEED_ROLES)
        if not seeds:
            raise NotFound(f"No events found for {identifier}")

        chain: List[IndexedLineageEntry] = []
        visited: Set[str] = {seeds[0].id}
        frontier: List[Event] = [seeds[0]]
        depth = 0

        while frontier:
            parents = self.store.lineage_parents([e.id for e in frontier])
            next_ids: List[str] = []

            for event in frontier:
                parent_ids = [parent_id for parent_id, _ in parents.get(event.id, [])]
                chain.append(IndexedLineageEntry(event=event, depth=depth, parent_event_ids=parent_ids))
                if depth >= max_depth:
                    continue
                for parent_id in parent_ids:
                    if parent_id not in visited:
                        visited.add(parent_id)
                        next_ids.append(parent_id)

            if not next_ids:
                break
            fetched = self.store.get_many(next_ids)
            frontier = [fetched[i] for i in next_ids if i in fetched]
            depth += 1

        return TraceResult.from_chain(identifier, chain)
