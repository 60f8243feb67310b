"""
Mass Balance Routes - Transformation Yield Checks
"""

from flask import Blueprint, jsonify, request

from ..extensions import get_services
from ..services.errors import InvalidInput

mass_balance_bp = Blueprint('mass_balance', __name__, url_prefix='/mass-balance')


@mass_balance_bp.route('/check', methods=['POST'])
def check_mass_balance():
    """
    Check a transformation's yield.

    Request body:
    {
        "inputQuantities": [{"value": 100, "unitOfMeasure": "kg"}],
        "outputQuantities": [{"value": 85, "unitOfMeasure": "kg"}],
        "productType": "raw_coffee_to_roasted",
        "customConversionFactor": 85,
        "tolerance": 3
    }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInput("JSON body required")

    verdict = get_services().mass_balance.validate_transformation(
        data.get('inputQuantities'),
        data.get('outputQuantities'),
        product_type=data.get('productType'),
        custom_factor=data.get('customConversionFactor'),
        tolerance=data.get('tolerance'),
    )
    return jsonify({'success': True, 'data': verdict.to_dict()})


@mass_balance_bp.route('/factors', methods=['GET'])
def list_factors():
    """Conversion factor reference table."""
    return jsonify({
        'success': True,
        'data': get_services().mass_balance.factor_table.to_dict(),
    })
