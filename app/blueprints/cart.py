"""
Cart API.

The guest cart is identified by the session cookie set by the storefront.
"""
import logging

from flask import Blueprint, request, jsonify, current_app

from app.database import get_session
from app.exceptions import BusinessLogicError
from app.services.cart_service import (
    add_to_cart, cart_total_cents, get_cart_items, remove_cart_item, update_cart_item
)

logger = logging.getLogger(__name__)

cart_bp = Blueprint('cart', __name__, url_prefix='/api/cart')


def _cart_session_id() -> str:
    session_id = request.cookies.get(current_app.config.get('CART_SESSION_COOKIE', 'session_id'))
    if not session_id:
        raise BusinessLogicError('No cart session')
    return session_id


def _quantity(data: dict, default=None) -> int:
    try:
        return int(data.get('quantity', default))
    except (TypeError, ValueError):
        raise BusinessLogicError('Invalid quantity')


def _cart_response(session, session_id: str, status_code: int = 200):
    items = get_cart_items(session, session_id=session_id)
    return jsonify({
        'items': [item.to_dict() for item in items],
        'total_cents': cart_total_cents(items),
    }), status_code


@cart_bp.route('', methods=['GET'])
def get_cart():
    session_id = request.cookies.get(current_app.config.get('CART_SESSION_COOKIE', 'session_id'))
    if not session_id:
        return jsonify({'items': [], 'total_cents': 0}), 200
    return _cart_response(get_session(), session_id)


@cart_bp.route('/items', methods=['POST'])
def add_item():
    session_id = _cart_session_id()
    data = request.get_json(silent=True) or {}

    product_id = data.get('product_id')
    if not product_id:
        raise BusinessLogicError('product_id is required')

    session = get_session()
    add_to_cart(session, session_id, str(product_id), _quantity(data, 1))
    return _cart_response(session, session_id, 201)


@cart_bp.route('/items/<int:item_id>', methods=['PATCH'])
def update_item(item_id):
    session_id = _cart_session_id()
    data = request.get_json(silent=True) or {}

    session = get_session()
    update_cart_item(session, session_id, item_id, _quantity(data))
    return _cart_response(session, session_id)


@cart_bp.route('/items/<int:item_id>', methods=['DELETE'])
def delete_item(item_id):
    session_id = _cart_session_id()
    session = get_session()
    remove_cart_item(session, session_id, item_id)
    return _cart_response(session, session_id)
