"""
Traceability Routes - Item Lineage API

Provides:
- Backward trace for an item or batch identifier
- Lineage index rebuild
"""

from flask import Blueprint, jsonify, request

from ..extensions import get_services
from ..services.errors import InvalidInput

traceability_bp = Blueprint('traceability', __name__, url_prefix='/traceability')

FALSE_VALUES = ('false', '0', 'no')


def parse_max_depth(raw):
    if raw is None or raw == '':
        return None
    try:
        return int(raw)
    except ValueError:
        raise InvalidInput(f"maxDepth must be an integer, got {raw!r}")


@traceability_bp.route('/<path:identifier>', methods=['GET'])
def trace_identifier(identifier):
    """
    Trace an identifier back to its origins.

    Query params:
        maxDepth: Depth limit (default 10)
        includeLocation: "false" drops readPoint/bizLocation

    Returns:
        JSON with the lineage tree (liveWalk) or flat chain (index)
    """
    max_depth = parse_max_depth(request.args.get('maxDepth'))
    include_location = request.args.get('includeLocation', 'true').lower() not in FALSE_VALUES

    result = get_services().traceback.trace(
        identifier,
        max_depth=max_depth,
        include_location=include_location,
    )
    return jsonify({'success': True, 'data': result.to_dict()})


@traceability_bp.route('/index/refresh', methods=['POST'])
def refresh_index():
    """Rebuild the materialized lineage index from every stored event."""
    edges = get_services().store.refresh_lineage_index()
    return jsonify({'success': True, 'edges': edges})
