"""Shipping selection API: store the quote the customer picked and read it back validated."""
import logging

from flask import Blueprint, request, jsonify, current_app

from app.database import get_session
from app.exceptions import BusinessLogicError
from app.services.shipping_selection_service import (
    ShippingQuote, get_validated_selection, save_shipping_selection, selection_to_dict
)

logger = logging.getLogger(__name__)

shipping_bp = Blueprint('shipping', __name__, url_prefix='/api/shipping')


def _cart_session_id() -> str:
    session_id = request.cookies.get(current_app.config.get('CART_SESSION_COOKIE', 'session_id'))
    if not session_id:
        raise BusinessLogicError('No cart session')
    return session_id


@shipping_bp.route('/selection', methods=['POST'])
def save_selection():
    session_id = _cart_session_id()
    data = request.get_json(silent=True) or {}

    quote = ShippingQuote.from_dict(data)
    session = get_session()
    selection = save_shipping_selection(session, session_id, quote, data.get('shipping_address'))

    return jsonify({
        'status': 'success',
        'selection': {
            'rate_id': selection.rate_id,
            'carrier_name': selection.carrier_name,
            'service_name': selection.service_name,
            'price_cents': selection.price_cents,
        },
    }), 200


@shipping_bp.route('/selection', methods=['GET'])
def get_selection():
    session_id = _cart_session_id()
    validated = get_validated_selection(get_session(), session_id)
    if validated is None:
        return jsonify({'selection': None, 'shipping_address': None}), 200
    return jsonify(selection_to_dict(validated)), 200
