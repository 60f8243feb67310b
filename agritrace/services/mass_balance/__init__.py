"""
Mass Balance Services
=====================

Transformation yield validation against immutable conversion factor tables.
"""

from .factors import ConversionFactor, ConversionFactorTable, STANDARD_CONVERSION_FACTORS
from .units import NormalizedQuantity, UnitFamily, normalize, unit_family
from .validator import (
    DEFAULT_TOLERANCE_PERCENT,
    FindingSeverity,
    MassBalanceFinding,
    MassBalanceValidator,
    MassBalanceVerdict,
)

__all__ = [
    "ConversionFactor",
    "ConversionFactorTable",
    "STANDARD_CONVERSION_FACTORS",
    "NormalizedQuantity",
    "UnitFamily",
    "normalize",
    "unit_family",
    "DEFAULT_TOLERANCE_PERCENT",
    "FindingSeverity",
    "MassBalanceFinding",
    "MassBalanceValidator",
    "MassBalanceVerdict",
]
