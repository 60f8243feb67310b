"""
Conversion factor reference data.

A conversion factor is the expected yield C% = output / input x 100 of a
transformation, with a symmetric tolerance in percentage points.
Tables are immutable and injected into the validator so that callers and
tests can substitute their own.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Union

from ..errors import InvalidInput


@dataclass(frozen=True)
class ConversionFactor:
    """Expected yield for one product transformation."""
    product_key: str
    input_unit: str
    output_unit: str
    expected_factor_percent: float
    tolerance_percent: float
    description: str = ""

    @property
    def expected_range(self) -> Dict[str, float]:
        return {
            'min': self.expected_factor_percent - self.tolerance_percent,
            'max': self.expected_factor_percent + self.tolerance_percent,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'productKey': self.product_key,
            'description': self.description,
            'inputUnit': self.input_unit,
            'outputUnit': self.output_unit,
            'expectedFactorPercent': self.expected_factor_percent,
            'tolerancePercent': self.tolerance_percent,
        }

    @classmethod
    def from_dict(cls, product_key: str, data: Dict[str, Any]) -> 'ConversionFactor':
        try:
            return cls(
                product_key=product_key,
                input_unit=data.get('inputUnit', 'kg'),
                output_unit=data.get('outputUnit', 'kg'),
                expected_factor_percent=float(data['expectedFactorPercent']),
                tolerance_percent=float(data.get('tolerancePercent', 0.0)),
                description=data.get('description', ''),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInput(f"Invalid conversion factor {product_key!r}: {e}")


class ConversionFactorTable(Mapping):
    """Read-only product key -> ConversionFactor mapping."""

    def __init__(self, factors: Union[Mapping[str, ConversionFactor], None] = None):
        self._factors = MappingProxyType(dict(factors or {}))

    def __getitem__(self, key: str) -> ConversionFactor:
        return self._factors[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._factors)

    def __len__(self) -> int:
        return len(self._factors)

    def lookup(self, product_key: Optional[str]) -> Optional[ConversionFactor]:
        if not product_key:
            return None
        return self._factors.get(product_key)

    def with_factors(self, *factors: ConversionFactor) -> 'ConversionFactorTable':
        """New table with the given factors added or replaced."""
        merged = dict(self._factors)
        for factor in factors:
            merged[factor.product_key] = factor
        return ConversionFactorTable(merged)

    def to_dict(self) -> Dict[str, Any]:
        return {key: factor.to_dict() for key, factor in self._factors.items()}

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> 'ConversionFactorTable':
        """Load a table from ``{productKey: {expectedFactorPercent, tolerancePercent, ...}}``."""
        with open(path, 'r') as f:
            raw = json.load(f)
        return cls({key: ConversionFactor.from_dict(key, value) for key, value in raw.items()})


STANDARD_CONVERSION_FACTORS = ConversionFactorTable({
    'fresh_to_dried_fruit': ConversionFactor(
        product_key='fresh_to_dried_fruit',
        description='Fruit (Fresh to Dried)',
        input_unit='kg',
        output_unit='kg',
        expected_factor_percent=15.0,  # ~85% water loss
        tolerance_percent=5.0,
    ),
    'raw_to_processed_meat': ConversionFactor(
        product_key='raw_to_processed_meat',
        description='Meat (Raw to Processed)',
        input_unit='kg',
        output_unit='kg',
        expected_factor_percent=75.0,
        tolerance_percent=8.0,
    ),
    'raw_coffee_to_roasted': ConversionFactor(
        product_key='raw_coffee_to_roasted',
        description='Coffee (Raw to Roasted)',
        input_unit='kg',
        output_unit='kg',
        expected_factor_percent=85.0,  # ~15% moisture loss
        tolerance_percent=3.0,
    ),
    'fresh_mango_to_juice': ConversionFactor(
        product_key='fresh_mango_to_juice',
        description='Mango (Fresh to Juice)',
        input_unit='kg',
        output_unit='L',
        expected_factor_percent=60.0,
        tolerance_percent=10.0,
    ),
})
