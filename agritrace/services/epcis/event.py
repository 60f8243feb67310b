"""
EPCIS Event - Domain Model

Plain value objects for EPCIS 2.0 style events as the provenance core sees
them. Wire dictionaries use the EPCIS camelCase field names; a few aliases
produced by the ingestion pipelines (``uom``, ``gtin``, ``quantity``,
``inputEPCList``) are accepted on input.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import InvalidInput


class EventType(Enum):
    """EPCIS event types."""
    OBJECT = "ObjectEvent"
    AGGREGATION = "AggregationEvent"
    TRANSACTION = "TransactionEvent"
    TRANSFORMATION = "TransformationEvent"

    @classmethod
    def parse(cls, value: Any) -> 'EventType':
        """Accept ``ObjectEvent`` or the short ``Object`` spelling."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip()
            for member in cls:
                if text == member.value or text == member.value[:-len("Event")]:
                    return member
        raise InvalidInput(f"Unknown event type: {value!r}")


class SourceType(Enum):
    """Producer of an event."""
    MANUAL = "manual"
    VOICE_AI = "voice_ai"
    VISION_AI = "vision_ai"
    IOT = "iot"
    SYSTEM = "system"


KNOWN_SOURCE_TYPES = {s.value for s in SourceType}


def parse_event_time(value: Any) -> datetime:
    """
    Parse an event time into naive UTC.

    Accepts datetimes (aware ones are converted) and ISO 8601 strings,
    including a trailing ``Z``.
    """
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidInput(f"Invalid event time: {value!r}")
    else:
        raise InvalidInput("Event time is required")

    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def _first(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class QuantityItem:
    """Quantity attached to one of an event's quantity lists."""
    value: float
    unit_of_measure: str
    product_identifier: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QuantityItem':
        if isinstance(data, QuantityItem):
            return data
        if not isinstance(data, dict):
            raise InvalidInput(f"Quantity item must be an object, got {type(data).__name__}")

        raw_value = _first(data, 'value', 'quantity')
        if isinstance(raw_value, bool) or not isinstance(raw_value, (int, float)):
            raise InvalidInput(f"Quantity value must be numeric, got {raw_value!r}")
        value = float(raw_value)
        if not math.isfinite(value) or value < 0:
            raise InvalidInput(f"Quantity value must be a finite non-negative number, got {raw_value!r}")

        unit = _first(data, 'unitOfMeasure', 'uom', 'unit')
        if not isinstance(unit, str) or not unit.strip():
            raise InvalidInput("Quantity unit of measure is required")

        return cls(
            value=value,
            unit_of_measure=unit.strip(),
            product_identifier=_first(data, 'productIdentifier', 'gtin', 'epcClass'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'value': self.value,
            'unitOfMeasure': self.unit_of_measure,
            'productIdentifier': self.product_identifier,
        }


def parse_quantities(items: Any, field_name: str) -> List[QuantityItem]:
    if items is None:
        return []
    if not isinstance(items, (list, tuple)):
        raise InvalidInput(f"{field_name} must be a list")
    return [QuantityItem.from_dict(item) for item in items]


def _parse_epcs(items: Any, field_name: str) -> List[str]:
    if items is None:
        return []
    if not isinstance(items, (list, tuple)):
        raise InvalidInput(f"{field_name} must be a list")
    result = []
    for item in items:
        if not isinstance(item, str) or not item.strip():
            raise InvalidInput(f"{field_name} entries must be non-empty strings")
        result.append(item.strip())
    return result


@dataclass
class Event:
    """
    EPCIS event.

    Immutable once stored, except ``metadata`` which carries validation
    verdicts. ``id`` and ``recorded_at`` are assigned by the event store.
    """
    event_type: EventType
    event_time: datetime
    id: Optional[str] = None
    action: Optional[str] = None
    biz_step: Optional[str] = None
    disposition: Optional[str] = None
    epc_list: List[str] = field(default_factory=list)
    input_epc_list: List[str] = field(default_factory=list)
    output_epc_list: List[str] = field(default_factory=list)
    quantity_list: List[QuantityItem] = field(default_factory=list)
    input_quantity_list: List[QuantityItem] = field(default_factory=list)
    output_quantity_list: List[QuantityItem] = field(default_factory=list)
    read_point: Optional[str] = None
    biz_location: Optional[str] = None
    source_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    recorded_at: Optional[datetime] = None

    @property
    def is_transformation(self) -> bool:
        return self.event_type is EventType.TRANSFORMATION

    @property
    def all_epcs(self) -> List[str]:
        """Every EPC the event mentions, in list order, without duplicates."""
        seen = []
        for epc in self.epc_list + self.input_epc_list + self.output_epc_list:
            if epc not in seen:
                seen.append(epc)
        return seen

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Event':
        """Build an event from a wire dictionary."""
        if not isinstance(data, dict):
            raise InvalidInput("Event payload must be an object")

        return cls(
            id=data.get('id'),
            event_type=EventType.parse(_first(data, 'eventType', 'type')),
            event_time=parse_event_time(data.get('eventTime')),
            action=data.get('action'),
            biz_step=data.get('bizStep'),
            disposition=data.get('disposition'),
            epc_list=_parse_epcs(data.get('epcList'), 'epcList'),
            input_epc_list=_parse_epcs(_first(data, 'inputEpcList', 'inputEPCList'), 'inputEpcList'),
            output_epc_list=_parse_epcs(_first(data, 'outputEpcList', 'outputEPCList'), 'outputEpcList'),
            quantity_list=parse_quantities(data.get('quantityList'), 'quantityList'),
            input_quantity_list=parse_quantities(data.get('inputQuantityList'), 'inputQuantityList'),
            output_quantity_list=parse_quantities(data.get('outputQuantityList'), 'outputQuantityList'),
            read_point=data.get('readPoint'),
            biz_location=data.get('bizLocation'),
            source_type=data.get('sourceType'),
            metadata=dict(data.get('metadata') or {}),
        )

    def to_dict(self, include_location: bool = True) -> Dict[str, Any]:
        """Convert event to a wire dictionary."""
        result = {
            'id': self.id,
            'eventType': self.event_type.value,
            'action': self.action,
            'eventTime': self.event_time.isoformat(),
            'recordedAt': self.recorded_at.isoformat() if self.recorded_at else None,
            'bizStep': self.biz_step,
            'disposition': self.disposition,
            'epcList': list(self.epc_list),
            'inputEpcList': list(self.input_epc_list),
            'outputEpcList': list(self.output_epc_list),
            'quantityList': [q.to_dict() for q in self.quantity_list],
            'inputQuantityList': [q.to_dict() for q in self.input_quantity_list],
            'outputQuantityList': [q.to_dict() for q in self.output_quantity_list],
            'sourceType': self.source_type,
            'metadata': dict(self.metadata),
        }
        if include_location:
            result['readPoint'] = self.read_point
            result['bizLocation'] = self.biz_location
        return result

    def __str__(self) -> str:
        return f"{self.event_type.value}[{self.id}] at {self.event_time.isoformat()}"
