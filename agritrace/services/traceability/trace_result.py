"""
Trace Results - Lineage Tree and Flat Chain

A live walk returns a tree of TraceNodes rooted at the most recent event
for the identifier. The materialized index returns a flat, depth-tagged
chain of IndexedLineageEntry records. Both serialize into one response
shape tagged with ``source``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from ..epcis import Event

SOURCE_LIVE_WALK = "liveWalk"
SOURCE_INDEX = "index"


@dataclass
class TraceNode:
    """One event in the lineage tree; children are its predecessors."""
    event: Event
    depth: int
    children: List['TraceNode'] = field(default_factory=list)
    via_epc: Optional[str] = None
    has_predecessors: bool = False

    @property
    def is_origin(self) -> bool:
        return not self.has_predecessors

    def walk(self) -> Iterator['TraceNode']:
        """Depth-first, pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self, include_location: bool = True) -> Dict[str, Any]:
        return {
            'event': self.event.to_dict(include_location=include_location),
            'depth': self.depth,
            'viaEpc': self.via_epc,
            'isOrigin': self.is_origin,
            'children': [c.to_dict(include_location) for c in self.children],
        }


@dataclass
class IndexedLineageEntry:
    event: Event
    depth: int
    parent_event_ids: List[str] = field(default_factory=list)

    @property
    def is_origin(self) -> bool:
        return not self.parent_event_ids

    def to_dict(self, include_location: bool = True) -> Dict[str, Any]:
        return {
            'event': self.event.to_dict(include_location=include_location),
            'depth': self.depth,
            'parentEventIds': list(self.parent_event_ids),
            'isOrigin': self.is_origin,
        }


@dataclass
class FallbackReason:
    """Why a lineage source was skipped."""
    source: str
    reason: str
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {'source': self.source, 'reason': self.reason, 'message': self.message}


@dataclass
class TraceResult:
    """Outcome of a trace query from one lineage source."""
    identifier: str
    source: str
    root_node: Optional[TraceNode] = None
    chain: List[IndexedLineageEntry] = field(default_factory=list)
    total_events: int = 0
    max_depth_reached: int = 0
    origin_events: List[Event] = field(default_factory=list)
    discarded_candidates: Optional[int] = None
    include_location: bool = True
    fallback_reasons: List[FallbackReason] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.fallback_reasons)

    @classmethod
    def from_tree(cls, identifier: str, root: TraceNode, discarded: int) -> 'TraceResult':
        nodes = list(root.walk())
        return cls(
            identifier=identifier,
            source=SOURCE_LIVE_WALK,
            root_node=root,
            total_events=len(nodes),
            max_depth_reached=max(n.depth for n in nodes),
            origin_events=[n.event for n in nodes if n.is_origin],
            discarded_candidates=discarded,
        )

    @classmethod
    def from_chain(cls, identifier: str, chain: List[IndexedLineageEntry]) -> 'TraceResult':
        return cls(
            identifier=identifier,
            source=SOURCE_INDEX,
            chain=chain,
            total_events=len(chain),
            max_depth_reached=max((e.depth for e in chain), default=0),
            origin_events=[e.event for e in chain if e.is_origin],
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'identifier': self.identifier,
            'source': self.source,
            'totalEvents': self.total_events,
            'maxDepthReached': self.max_depth_reached,
            'originEvents': [e.to_dict(include_location=self.include_location) for e in self.origin_events],
            'discardedCandidates': self.discarded_candidates,
            'degraded': self.degraded,
        }
        if self.root_node is not None:
            result['rootNode'] = self.root_node.to_dict(self.include_location)
        else:
            result['chain'] = [e.to_dict(self.include_location) for e in self.chain]
        if self.fallback_reasons:
            result['fallbackReasons'] = [r.to_dict() for r in self.fallback_reasons]
        return result
