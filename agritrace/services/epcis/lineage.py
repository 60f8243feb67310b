"""
Lineage rules.

Pure predecessor selection shared by the live graph walk and the
materialized lineage index, so both sources link events identically.

Rules:
- A transformation depends on its input EPCs; any other event depends on
  the EPCs in its epcList.
- An event can be a predecessor under an EPC when that EPC is in its
  epcList or outputEpcList.
- Per EPC, the candidate with the latest eventTime strictly before the
  current event wins; equal times fall back to the greater event id.
  Candidates at or after the current event are discarded.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Set, Tuple

from .event import Event


def linking_epcs(event: Event) -> List[str]:
    """EPCs whose provenance this event depends on."""
    if event.is_transformation:
        return list(event.input_epc_list)
    return list(event.epc_list)


def provided_epcs(event: Event) -> List[str]:
    """EPCs under which this event can be someone's predecessor."""
    result = list(event.epc_list)
    for epc in event.output_epc_list:
        if epc not in result:
            result.append(epc)
    return result


def recency_key(event: Event) -> Tuple:
    return (event.event_time, event.id or "")


def order_most_recent_first(events: Iterable[Event]) -> List[Event]:
    return sorted(events, key=recency_key, reverse=True)


@dataclass
class PredecessorSelection:
    """Predecessors of one event, most recent first."""
    predecessors: List[Tuple[Event, str]] = field(default_factory=list)
    discarded_ids: Set[str] = field(default_factory=set)

    @property
    def events(self) -> List[Event]:
        return [event for event, _ in self.predecessors]

    @property
    def discarded(self) -> int:
        return len(self.discarded_ids)


def select_predecessors(
    event: Event,
    providers_for: Callable[[str], Iterable[Event]],
) -> PredecessorSelection:
    """
    Pick at most one predecessor per linking EPC.

    Args:
        event: The event being traced backward
        providers_for: Returns every event that provides the given EPC
    """
    selection = PredecessorSelection()
    chosen: Dict[str, Tuple[Event, str]] = {}

    for epc in linking_epcs(event):
        best = None
        for candidate in providers_for(epc):
            if candidate.id == event.id:
                continue
            if candidate.event_time >= event.event_time:
                selection.discarded_ids.add(candidate.id)
                continue
            if best is None or recency_key(candidate) > recency_key(best):
                best = candidate

        if best is not None and best.id not in chosen:
            chosen[best.id] = (best, epc)

    selection.predecessors = sorted(
        chosen.values(), key=lambda pair: recency_key(pair[0]), reverse=True
    )
    return selection


class EpcIndex:
    """In-memory EPC → providing events index over one scan of the store."""

    def __init__(self, events: Iterable[Event]):
        self._providers: Dict[str, List[Event]] = defaultdict(list)
        self._events: Dict[str, Event] = {}
        for event in events:
            self._events[event.id] = event
            for epc in provided_epcs(event):
                self._providers[epc].append(event)

    def __len__(self) -> int:
        return len(self._events)

    def providers(self, epc: str) -> List[Event]:
        return self._providers.get(epc, [])

    def seeds(self, identifier: str) -> List[Event]:
        """Events whose epcList/outputEpcList contains the identifier, most recent first."""
        return order_most_recent_first(self._providers.get(identifier, []))

    def predecessors(self, event: Event) -> PredecessorSelection:
        return select_predecessors(event, self.providers)
