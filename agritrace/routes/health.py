"""
Health Routes
"""

from flask import Blueprint, jsonify

from .. import __version__
from ..extensions import get_services

health_bp = Blueprint('health', __name__)


@health_bp.route('/health', methods=['GET'])
def health():
    services = get_services()
    return jsonify({
        'status': 'ok',
        'version': __version__,
        'events': services.store.count(),
    })
