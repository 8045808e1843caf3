"""
Checkout return page.

Stripe redirects the customer here after payment. The webhook usually wins
the race and the order already exists; if not, the same idempotent pipeline
runs here so the customer always lands on their order.
"""
import logging

from flask import Blueprint, request, jsonify, redirect
from sqlalchemy.exc import SQLAlchemyError

from app.blueprints.metrics import orders_created_total
from app.database import get_session
from app.exceptions import StorefrontError
from app.services.email_service import get_dispatcher
from app.services.order_service import finalize_checkout
from app.services.stripe_client import get_stripe_client

logger = logging.getLogger(__name__)

checkout_bp = Blueprint('checkout', __name__, url_prefix='/checkout')


@checkout_bp.route('/success', methods=['GET'])
def success():
    checkout_session_id = request.args.get('session_id', '').strip()
    if not checkout_session_id:
        return jsonify({'status': 'error', 'message': 'Missing session_id'}), 400

    stripe_client = get_stripe_client()
    if stripe_client is None:
        logger.error("[CHECKOUT] Success page hit but Stripe is not configured")
        return jsonify({'status': 'error', 'message': 'Payments are not configured'}), 500

    session = get_session()
    try:
        checkout_object = stripe_client.get_checkout_session(checkout_session_id)
        order, created = finalize_checkout(
            session,
            checkout_object,
            stripe_client=stripe_client,
            notifier=get_dispatcher(),
        )
    except StorefrontError as e:
        logger.error(f"[CHECKOUT] Failed to finalize {checkout_session_id}: {e.message}")
        return jsonify({'status': 'error', 'message': 'Could not complete your order'}), 500
    except (ValueError, SQLAlchemyError) as e:
        session.rollback()
        logger.exception(f"[CHECKOUT] Failed to finalize {checkout_session_id}: {e}")
        return jsonify({'status': 'error', 'message': 'Could not complete your order'}), 500

    if created:
        orders_created_total.inc()
        logger.info(f"[CHECKOUT] Order {order.id} created from success page for {checkout_session_id}")

    return redirect(f'/account/orders/{order.id}')
