"""
Event Routes - Audited EPCIS Event Recording

Provides:
- Event recording (every write appends an audit block)
- Transformation recording with mass-balance verdict
- Event lookup and metadata annotation
"""

from flask import Blueprint, jsonify, request

from ..extensions import get_services
from ..services.errors import InvalidInput

events_bp = Blueprint('events', __name__, url_prefix='/events')


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInput("JSON body required")
    return data


def _audit_fields(data):
    return data.get('actor'), data.get('reason') or ""


@events_bp.route('', methods=['POST'])
def record_event():
    """
    Record one EPCIS event.

    TransformationEvents are refused with 400; post them to
    /transformation so they are stored with their mass-balance verdict.

    Request body:
    {
        "event": {"eventType": "ObjectEvent", "eventTime": "...", "epcList": [...]},
        "actor": "ops@farm",
        "reason": "harvest intake"
    }
    """
    data = _json_body()
    actor, reason = _audit_fields(data)

    event, block = get_services().provenance.record_event(
        data.get('event', data), actor=actor, reason=reason,
    )
    return jsonify({
        'success': True,
        'data': event.to_dict(),
        'auditBlock': block.block_number,
    }), 201


@events_bp.route('/transformation', methods=['POST'])
def record_transformation():
    """
    Record a transformation with its mass-balance verdict.

    Request body:
    {
        "event": {"eventType": "TransformationEvent", ...},
        "productType": "raw_coffee_to_roasted",
        "customConversionFactor": null,
        "tolerance": null,
        "actor": "...",
        "reason": "..."
    }
    """
    data = _json_body()
    actor, reason = _audit_fields(data)

    event, verdict, block = get_services().provenance.record_transformation(
        data.get('event', data),
        product_type=data.get('productType'),
        custom_factor=data.get('customConversionFactor'),
        tolerance=data.get('tolerance'),
        actor=actor,
        reason=reason,
    )
    return jsonify({
        'success': True,
        'data': event.to_dict(),
        'massBalance': verdict.to_dict(),
        'auditBlock': block.block_number,
    }), 201


@events_bp.route('/<event_id>', methods=['GET'])
def get_event(event_id):
    event = get_services().store.get(event_id)
    return jsonify({'success': True, 'data': event.to_dict()})


@events_bp.route('/<event_id>/metadata', methods=['PATCH'])
def annotate_event(event_id):
    """
    Set one metadata key on an event (audited).

    Request body: {"key": "...", "value": ..., "actor": "...", "reason": "..."}
    """
    data = _json_body()
    actor, reason = _audit_fields(data)

    event, block = get_services().provenance.annotate_event(
        event_id, data.get('key'), data.get('value'), actor=actor, reason=reason,
    )
    return jsonify({
        'success': True,
        'data': event.to_dict(),
        'auditBlock': block.block_number,
    })
