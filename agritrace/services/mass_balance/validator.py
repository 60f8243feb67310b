"""
Mass Balance Validator - Transformation Yield Checks

Checks that the outputs of a transformation are physically plausible
given its inputs:

    C% = (sum of normalized outputs / sum of normalized inputs) x 100

and compares C% against an expected conversion factor with a tolerance
band. Over-yield is always critical (undeclared input / fraud indicator);
under-yield is a warning unless the shortfall exceeds twice the tolerance.

Pure computation: no I/O, no shared state.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..epcis.event import QuantityItem
from ..errors import InvalidInput
from .factors import ConversionFactorTable, STANDARD_CONVERSION_FACTORS
from .units import UnitFamily, normalize

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_PERCENT = 10.0

# Slack in percentage points for band edges, absorbs binary float error
BAND_EPSILON = 1e-9

QuantityInput = Union[QuantityItem, Dict[str, Any]]


class FindingSeverity(Enum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class MassBalanceFinding:
    """One anomaly or warning on a transformation."""
    code: str
    severity: FindingSeverity
    message: str
    deviation: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code,
            'severity': self.severity.value,
            'message': self.message,
            'deviation': self.deviation,
        }


@dataclass
class MassBalanceVerdict:
    """Result of a mass-balance check. Anomalies block ``valid``; warnings do not."""
    valid: bool
    conversion_factor: Optional[float]
    anomalies: List[MassBalanceFinding] = field(default_factory=list)
    warnings: List[MassBalanceFinding] = field(default_factory=list)
    expected_factor: Optional[float] = None
    tolerance: Optional[float] = None
    product_type: Optional[str] = None
    total_input: float = 0.0
    total_output: float = 0.0

    @property
    def expected_range(self) -> Optional[Dict[str, float]]:
        if self.expected_factor is None or self.tolerance is None:
            return None
        return {
            'min': self.expected_factor - self.tolerance,
            'max': self.expected_factor + self.tolerance,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'valid': self.valid,
            'conversionFactor': self.conversion_factor,
            'expectedFactor': self.expected_factor,
            'tolerance': self.tolerance,
            'expectedRange': self.expected_range,
            'productType': self.product_type,
            'totalInput': self.total_input,
            'totalOutput': self.total_output,
            'anomalies': [a.to_dict() for a in self.anomalies],
            'warnings': [w.to_dict() for w in self.warnings],
        }


class MassBalanceValidator:
    """
    Validates transformation yields against a conversion factor table.

    Usage:
        validator = MassBalanceValidator()
        verdict = validator.validate_transformation(
            [{"value": 100, "unitOfMeasure": "kg"}],
            [{"value": 90, "unitOfMeasure": "kg"}],
            product_type="raw_coffee_to_roasted",
        )
        verdict.valid   # False, over-yield
    """

    def __init__(
        self,
        factor_table: Optional[ConversionFactorTable] = None,
        default_tolerance: float = DEFAULT_TOLERANCE_PERCENT,
    ):
        self.factor_table = factor_table if factor_table is not None else STANDARD_CONVERSION_FACTORS
        self.default_tolerance = default_tolerance

    def validate_transformation(
        self,
        input_quantities: Sequence[QuantityInput],
        output_quantities: Sequence[QuantityInput],
        product_type: Optional[str] = None,
        custom_factor: Optional[float] = None,
        tolerance: Optional[float] = None,
    ) -> MassBalanceVerdict:
        """
        Check one transformation.

        Args:
            input_quantities: Consumed quantities
            output_quantities: Produced quantities
            product_type: Key into the conversion factor table
            custom_factor: Expected C%, overrides the table
            tolerance: Band half-width in percentage points, overrides the table

        Raises:
            InvalidInput: Empty lists, negative or non-numeric values
        """
        inputs = self._coerce(input_quantities, 'inputQuantities')
        outputs = self._coerce(output_quantities, 'outputQuantities')
        custom_factor = self._coerce_number(custom_factor, 'customConversionFactor')
        tolerance = self._coerce_number(tolerance, 'tolerance')
        if tolerance is not None and tolerance < 0:
            raise InvalidInput("tolerance must be non-negative")

        warnings: List[MassBalanceFinding] = []
        total_input = self._sum_side(inputs, 'input', warnings)
        total_output = self._sum_side(outputs, 'output', warnings)

        expected, band = self._resolve_expected(product_type, custom_factor, tolerance, warnings)

        verdict = MassBalanceVerdict(
            valid=True,
            conversion_factor=None,
            warnings=warnings,
            expected_factor=expected,
            tolerance=band if expected is not None else None,
            product_type=product_type,
            total_input=total_input,
            total_output=total_output,
        )

        if total_input == 0:
            verdict.anomalies.append(MassBalanceFinding(
                code='zero_input',
                severity=FindingSeverity.CRITICAL,
                message='Total input is zero; conversion factor is undefined',
            ))
            verdict.valid = False
            return verdict

        actual = (total_output / total_input) * 100
        verdict.conversion_factor = actual

        if expected is not None:
            self._check_band(actual, expected, band, verdict)

        verdict.valid = not verdict.anomalies
        if not verdict.valid:
            logger.info(
                f"Mass balance anomaly: C%={actual:.1f} expected {expected}±{band} "
                f"({product_type or 'custom'})"
            )
        return verdict

    def expected_output(
        self,
        input_quantities: Sequence[QuantityInput],
        conversion_factor: float,
    ) -> float:
        """Expected normalized output for the given inputs and C%."""
        inputs = self._coerce(input_quantities, 'inputQuantities')
        total_input = math.fsum(normalize(q.value, q.unit_of_measure).value for q in inputs)
        return (total_input * conversion_factor) / 100

    # ===========================
    # Helpers
    # ===========================

    def _resolve_expected(
        self,
        product_type: Optional[str],
        custom_factor: Optional[float],
        tolerance: Optional[float],
        warnings: List[MassBalanceFinding],
    ) -> Tuple[Optional[float], float]:
        reference = self.factor_table.lookup(product_type)
        if product_type and reference is None:
            warnings.append(MassBalanceFinding(
                code='unknown_product_type',
                severity=FindingSeverity.WARNING,
                message=f"No conversion factor for product type {product_type!r}",
            ))

        if custom_factor is not None:
            expected = custom_factor
        elif reference is not None:
            expected = reference.expected_factor_percent
        else:
            expected = None

        if tolerance is not None:
            band = tolerance
        elif reference is not None:
            band = reference.tolerance_percent
        else:
            band = self.default_tolerance

        return expected, band

    def _check_band(
        self,
        actual: float,
        expected: float,
        band: float,
        verdict: MassBalanceVerdict,
    ) -> None:
        low = expected - band - BAND_EPSILON
        high = expected + band + BAND_EPSILON

        if actual < low:
            shortfall = expected - actual
            critical = shortfall > 2 * band + BAND_EPSILON
            finding = MassBalanceFinding(
                code='under_yield',
                severity=FindingSeverity.CRITICAL if critical else FindingSeverity.WARNING,
                message=f"Output is {shortfall:.1f}% below expected (possible waste or quality issues)",
                deviation=-shortfall,
            )
            if critical:
                verdict.anomalies.append(finding)
            else:
                verdict.warnings.append(finding)
        elif actual > high:
            excess = actual - expected
            verdict.anomalies.append(MassBalanceFinding(
                code='over_yield',
                severity=FindingSeverity.CRITICAL,
                message=f"Output is {excess:.1f}% above expected (possible undeclared input, fraud indicator)",
                deviation=excess,
            ))

    def _sum_side(
        self,
        quantities: Iterable[QuantityItem],
        side: str,
        warnings: List[MassBalanceFinding],
    ) -> float:
        values: List[float] = []
        families = set()
        for quantity in quantities:
            normalized = normalize(quantity.value, quantity.unit_of_measure)
            if normalized.family is UnitFamily.OTHER:
                warnings.append(MassBalanceFinding(
                    code='unrecognized_unit',
                    severity=FindingSeverity.WARNING,
                    message=f"Unrecognized {side} unit {quantity.unit_of_measure!r}; value used as-is",
                ))
            families.add(normalized.family)
            values.append(normalized.value)

        if len(families) > 1:
            warnings.append(MassBalanceFinding(
                code='mixed_unit_families',
                severity=FindingSeverity.WARNING,
                message=f"{side.capitalize()} quantities mix unit families: "
                        f"{', '.join(sorted(f.value for f in families))}",
            ))
        return math.fsum(values)

    @staticmethod
    def _coerce(items: Sequence[QuantityInput], field_name: str) -> List[QuantityItem]:
        if items is None or not isinstance(items, (list, tuple)):
            raise InvalidInput(f"{field_name} must be a list")
        if not items:
            raise InvalidInput(f"No {field_name} provided")
        return [QuantityItem.from_dict(item) for item in items]

    @staticmethod
    def _coerce_number(value: Any, field_name: str) -> Optional[float]:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidInput(f"{field_name} must be numeric")
        value = float(value)
        if not math.isfinite(value):
            raise InvalidInput(f"{field_name} must be a finite number")
        return value
