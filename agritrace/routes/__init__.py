"""
AgriTrace API Routes

Blueprints:
- traceability: /api/traceability
- mass_balance: /api/mass-balance
- events: /api/events
- audit: /api/audit
- health: /health
"""

from .audit import audit_bp
from .events import events_bp
from .health import health_bp
from .mass_balance import mass_balance_bp
from .traceability import traceability_bp

API_PREFIX = '/api'


def register_blueprints(app):
    """Register every blueprint on the app."""
    app.register_blueprint(traceability_bp, url_prefix=f"{API_PREFIX}/traceability")
    app.register_blueprint(mass_balance_bp, url_prefix=f"{API_PREFIX}/mass-balance")
    app.register_blueprint(events_bp, url_prefix=f"{API_PREFIX}/events")
    app.register_blueprint(audit_bp, url_prefix=f"{API_PREFIX}/audit")
    app.register_blueprint(health_bp)


__all__ = [
    'audit_bp',
    'events_bp',
    'health_bp',
    'mass_balance_bp',
    'traceability_bp',
    'register_blueprints',
]
