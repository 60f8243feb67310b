"""
AgriTrace - Provenance & Integrity API

Flask application exposing trace queries, mass-balance checks, audited
event recording and audit chain verification.
"""

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .config import get_config
from .extensions import EXTENSION_KEY, build_services
from .routes import register_blueprints
from .services.errors import TraceabilityError

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    'InvalidInput': 400,
    'NotFound': 404,
    'ChainIntegrityViolation': 409,
    'LineageUnavailable': 503,
    'AuditAppendError': 500,
}


def create_app(config_name=None, **overrides):
    """Application factory."""

    app = Flask(__name__)

    app.config.from_object(get_config(config_name))
    app.config.update(overrides)

    logging.basicConfig(
        level=getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    app.extensions[EXTENSION_KEY] = build_services(app.config)

    register_blueprints(app)
    register_error_handlers(app)

    logger.info(f"AgriTrace started ({config_name or 'default'} config)")
    return app


def register_error_handlers(app):
    """JSON error bodies: {success: false, error: <kind>, message}."""

    @app.errorhandler(TraceabilityError)
    def handle_traceability_error(e):
        status = ERROR_STATUS.get(e.kind, 500)
        if status >= 500:
            logger.error(f"{e.kind}: {e.message}")
        return jsonify(e.to_dict()), status

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({
            'success': False,
            'error': e.name,
            'message': e.description,
        }), e.code
