"""
EPC URN helpers.

EPCs are opaque to the provenance core: lineage matching always uses exact
string equality. These helpers only split a URN into its scheme and fields
for display and well-formedness warnings.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

_EPC_URN = re.compile(r'^urn:epc:(id|class):([A-Za-z0-9]+):(.+)$')


class EPCKind(Enum):
    """What a scheme identifies."""
    ITEM_INSTANCE = "item_instance"
    LOT = "lot"
    LOCATION = "location"
    SHIPMENT = "shipment"
    ASSET = "asset"
    UNKNOWN = "unknown"


SCHEME_KINDS = {
    'sgtin': EPCKind.ITEM_INSTANCE,
    'lgtin': EPCKind.LOT,
    'sgln': EPCKind.LOCATION,
    'sscc': EPCKind.SHIPMENT,
    'grai': EPCKind.ASSET,
    'giai': EPCKind.ASSET,
    'gsrn': EPCKind.ASSET,
    'gdti': EPCKind.ASSET,
}

# Schemes rendered as "prefix / rest"
_SPLIT_SCHEMES = {'sgtin', 'lgtin', 'sgln'}


@dataclass(frozen=True)
class EPC:
    """Parsed EPC URN."""
    raw: str
    scheme: str
    kind: EPCKind
    fields: List[str] = field(default_factory=list)

    @property
    def company_prefix(self) -> Optional[str]:
        return self.fields[0] if self.fields else None

    @property
    def serial(self) -> Optional[str]:
        """Serial or lot, the last hierarchical field."""
        return self.fields[-1] if len(self.fields) > 1 else None


def parse_epc(value: str) -> Optional[EPC]:
    """
    Parse ``urn:epc:id:<scheme>:<a.b.c>`` (or ``urn:epc:class:``).

    Returns None for anything that is not an EPC URN.
    """
    if not isinstance(value, str):
        return None
    match = _EPC_URN.match(value.strip())
    if not match:
        return None
    _, scheme, identifier = match.groups()
    scheme = scheme.lower()
    return EPC(
        raw=value,
        scheme=scheme,
        kind=SCHEME_KINDS.get(scheme, EPCKind.UNKNOWN),
        fields=identifier.split('.'),
    )


def is_epc_urn(value: str) -> bool:
    return parse_epc(value) is not None


def format_epc(value: str) -> str:
    """
    Human-readable label.

    urn:epc:id:sgtin:8412345678901.1769783103318 -> "SGTIN: 8412345678901 / 1769783103318"
    """
    epc = parse_epc(value)
    if epc is None:
        return value

    label = epc.scheme.upper()
    if epc.scheme in _SPLIT_SCHEMES and len(epc.fields) >= 2:
        return f"{label}: {epc.fields[0]} / {'.'.join(epc.fields[1:])}"
    return f"{label}: {'.'.join(epc.fields)}"
