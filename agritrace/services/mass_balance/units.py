"""
Unit normalization for mass balance.

Mass is normalized to kg and volume to L with fixed multiplicative
factors. Units outside both families pass through unchanged.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


class UnitFamily(Enum):
    MASS = "mass"
    VOLUME = "volume"
    OTHER = "other"


MASS_UNITS: Dict[str, float] = {
    'kg': 1.0,
    'g': 0.001,
    'mg': 0.000001,
    'ton': 1000.0,
    't': 1000.0,
    'lb': 0.453592,
    'oz': 0.0283495,
    # UN/CEFACT Rec. 20 codes used in EPCIS quantity lists
    'kgm': 1.0,
    'grm': 0.001,
    'mgm': 0.000001,
    'tne': 1000.0,
    'lbr': 0.453592,
    'onz': 0.0283495,
}

VOLUME_UNITS: Dict[str, float] = {
    'l': 1.0,
    'ml': 0.001,
    'gal': 3.78541,
    'fl_oz': 0.0295735,
    'ltr': 1.0,
    'mlt': 0.001,
    'gll': 3.78541,
}

BASE_UNITS = {
    UnitFamily.MASS: 'kg',
    UnitFamily.VOLUME: 'L',
}


@dataclass(frozen=True)
class NormalizedQuantity:
    value: float
    base_unit: str
    family: UnitFamily


def unit_family(unit: str) -> Tuple[UnitFamily, float]:
    """Family and multiplier for a unit (case-insensitive)."""
    key = unit.strip().lower()
    if key in MASS_UNITS:
        return UnitFamily.MASS, MASS_UNITS[key]
    if key in VOLUME_UNITS:
        return UnitFamily.VOLUME, VOLUME_UNITS[key]
    return UnitFamily.OTHER, 1.0


def normalize(value: float, unit: str) -> NormalizedQuantity:
    family, factor = unit_family(unit)
    if family is UnitFamily.OTHER:
        return NormalizedQuantity(value=value, base_unit=unit, family=family)
    return NormalizedQuantity(value=value * factor, base_unit=BASE_UNITS[family], family=family)
