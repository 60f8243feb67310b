"""
EPCIS Event Validator

Enforces the producer contract on events before they reach the store:
structural errors reject the event, missing recommended fields only
produce warnings. Producer authenticity is not checked here.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..errors import InvalidInput
from .epc import is_epc_urn
from .event import Event, EventType, KNOWN_SOURCE_TYPES

logger = logging.getLogger(__name__)


@dataclass
class ValidationWarning:
    """Non-blocking finding on an accepted event."""
    code: str
    message: str
    field: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {'code': self.code, 'message': self.message, 'field': self.field}


@dataclass
class EventValidationReport:
    """Outcome of validating an accepted event."""
    warnings: List[ValidationWarning] = field(default_factory=list)
    rules_applied: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'warnings': [w.to_dict() for w in self.warnings],
            'rulesApplied': list(self.rules_applied),
        }


class EventValidator:
    """
    Structural validation for EPCIS events.

    Usage:
        report = EventValidator().validate(event)   # raises InvalidInput
    """

    def validate(self, event: Event) -> EventValidationReport:
        errors: List[str] = []
        report = EventValidationReport()

        self._check_structure(event, errors)
        report.rules_applied.append('EPCIS_STRUCTURE')

        self._check_recommended(event, report.warnings)
        report.rules_applied.append('RECOMMENDED_FIELDS')

        self._check_identifiers(event, report.warnings)
        report.rules_applied.append('EPC_IDENTIFIERS')

        if errors:
            logger.info(f"Rejected {event.event_type.value}: {len(errors)} error(s)")
            raise InvalidInput(errors=errors)

        return report

    def _check_structure(self, event: Event, errors: List[str]) -> None:
        if not event.all_epcs:
            errors.append("Event must reference at least one EPC")

        if event.event_type is EventType.TRANSFORMATION:
            if not event.output_epc_list:
                errors.append("TransformationEvent requires non-empty outputEpcList")
            if event.epc_list:
                errors.append("TransformationEvent uses inputEpcList/outputEpcList, not epcList")
        elif event.event_type in (EventType.OBJECT, EventType.AGGREGATION, EventType.TRANSACTION):
            # Commissioning object events may declare created EPCs as outputs
            if not event.epc_list and not event.output_epc_list:
                errors.append(f"{event.event_type.value} requires non-empty epcList")
            if event.input_epc_list:
                errors.append(f"{event.event_type.value} cannot carry inputEpcList")

        if event.action is not None and event.action not in ('ADD', 'OBSERVE', 'DELETE'):
            errors.append(f"Invalid action: {event.action!r}")

    def _check_recommended(self, event: Event, warnings: List[ValidationWarning]) -> None:
        if not event.biz_step:
            warnings.append(ValidationWarning(
                code='MISSING_BIZ_STEP',
                message='Business step (bizStep) is recommended',
                field='bizStep',
            ))

        if not event.read_point and not event.biz_location:
            warnings.append(ValidationWarning(
                code='MISSING_LOCATION',
                message='Either readPoint or bizLocation should be specified',
                field='readPoint',
            ))

        if event.source_type and event.source_type not in KNOWN_SOURCE_TYPES:
            warnings.append(ValidationWarning(
                code='UNKNOWN_SOURCE_TYPE',
                message=f"Unknown source type {event.source_type!r}",
                field='sourceType',
            ))

        if event.is_transformation and event.input_epc_list and not event.input_quantity_list:
            warnings.append(ValidationWarning(
                code='MISSING_INPUT_QUANTITIES',
                message='Transformation has inputs but no inputQuantityList; mass balance cannot be checked',
                field='inputQuantityList',
            ))

    def _check_identifiers(self, event: Event, warnings: List[ValidationWarning]) -> None:
        for epc in event.all_epcs:
            if not is_epc_urn(epc):
                warnings.append(ValidationWarning(
                    code='NON_URN_EPC',
                    message=f"EPC {epc!r} is not an urn:epc URN",
                    field='epcList',
                ))
