"""
Audit Routes - Audit Chain Integrity API

Provides:
- Whole-chain and single-block verification
- Entity audit trail
- Chain statistics and recent blocks
"""

from flask import Blueprint, jsonify, request

from ..extensions import get_services
from ..services.errors import InvalidInput

audit_bp = Blueprint('audit', __name__, url_prefix='/audit')


@audit_bp.route('/verify', methods=['GET'])
def verify_chain():
    """Verify the whole chain; mismatches are reported, never repaired."""
    report = get_services().chain.verify_chain()
    return jsonify({'success': True, 'data': report.to_dict()})


@audit_bp.route('/blocks/<int:block_number>/verify', methods=['GET'])
def verify_block(block_number):
    """Local check of one block against its predecessor; /verify covers the whole chain."""
    is_valid = get_services().chain.verify_block(block_number)
    return jsonify({
        'success': True,
        'data': {'blockNumber': block_number, 'isValid': is_valid},
    })


@audit_bp.route('/trail', methods=['GET'])
def get_trail():
    """Audit trail for one entity, oldest first."""
    entity_type = request.args.get('entityType')
    entity_id = request.args.get('entityId')
    if not entity_type or not entity_id:
        raise InvalidInput("entityType and entityId are required")

    blocks = get_services().chain.get_trail(entity_type, entity_id)
    return jsonify({
        'success': True,
        'data': [b.to_dict() for b in blocks],
        'count': len(blocks),
    })


@audit_bp.route('/stats', methods=['GET'])
def get_stats():
    return jsonify({'success': True, 'data': get_services().chain.statistics()})


@audit_bp.route('/recent', methods=['GET'])
def get_recent():
    try:
        limit = int(request.args.get('limit', 50))
    except ValueError:
        raise InvalidInput("limit must be an integer")
    if limit < 1:
        raise InvalidInput("limit must be positive")

    blocks = get_services().chain.recent(limit=limit, entity_type=request.args.get('entityType'))
    return jsonify({
        'success': True,
        'data': [b.to_dict() for b in blocks],
        'count': len(blocks),
    })
