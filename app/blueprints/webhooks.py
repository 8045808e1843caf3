"""
Webhooks Blueprint for Stripe notifications.
Turns completed checkout sessions into orders.
"""

import json
import logging

import stripe
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError

from app.blueprints.metrics import orders_created_total, webhook_events_total
from app.database import get_session
from app.exceptions import OrderPersistenceError, WebhookVerificationError
from app.services.email_service import get_dispatcher
from app.services.order_service import finalize_checkout
from app.services.stripe_client import get_stripe_client

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint('webhooks', __name__, url_prefix='/webhooks')


def parse_stripe_event(payload: bytes, sig_header: str, secret: str) -> dict:
    """
    Authenticate and decode a Stripe event body.

    With no secret configured the body is parsed unverified (local
    development with the Stripe CLI).

    Raises:
        WebhookVerificationError: Bad signature, bad encoding or bad JSON
    """
    try:
        body = payload.decode('utf-8')
    except UnicodeDecodeError as e:
        raise WebhookVerificationError('Invalid payload encoding') from e

    if secret:
        if not sig_header:
            raise WebhookVerificationError('Missing Stripe-Signature header')
        try:
            stripe.WebhookSignature.verify_header(
                body, sig_header, secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
            )
        except stripe.SignatureVerificationError as e:
            logger.warning(f"[WEBHOOK] Invalid Stripe signature: {e}")
            raise WebhookVerificationError('Invalid signature') from e
    else:
        logger.warning("[WEBHOOK] STRIPE_WEBHOOK_SECRET not set, skipping signature verification")

    try:
        event = json.loads(body)
    except json.JSONDecodeError as e:
        raise WebhookVerificationError('Invalid JSON payload') from e

    if not isinstance(event, dict):
        raise WebhookVerificationError('Invalid event payload')

    data = event.get('data')
    if not isinstance(data, dict) or not isinstance(data.get('object'), dict):
        raise WebhookVerificationError('Event has no data object')
    return event


@webhooks_bp.route('/stripe', methods=['POST'])
def stripe_webhook():
    """
    Handle Stripe webhook notifications.

    Expected events:
    - checkout.session.completed (creates the order)
    - payment_intent.succeeded
    - payment_intent.payment_failed
    """
    try:
        event = parse_stripe_event(
            request.get_data(),
            request.headers.get('Stripe-Signature', ''),
            current_app.config.get('STRIPE_WEBHOOK_SECRET', ''),
        )
    except WebhookVerificationError as e:
        webhook_events_total.labels(event_type='unknown', outcome='invalid').inc()
        return jsonify(e.to_dict()), e.status_code

    event_type = str(event.get('type') or 'unknown')
    event_object = event['data']['object']

    logger.info(f"[WEBHOOK] Received Stripe event: type={event_type}, id={event.get('id')}")

    if event_type == 'checkout.session.completed':
        return handle_checkout_completed(event_object)

    if event_type == 'payment_intent.succeeded':
        logger.info(f"[WEBHOOK] Payment intent succeeded: {event_object.get('id')}")
        outcome = 'acknowledged'
    elif event_type == 'payment_intent.payment_failed':
        logger.warning(f"[WEBHOOK] Payment intent failed: {event_object.get('id')}")
        outcome = 'acknowledged'
    else:
        logger.debug(f"[WEBHOOK] Unhandled event type: {event_type}")
        outcome = 'ignored'

    webhook_events_total.labels(event_type=event_type, outcome=outcome).inc()
    return jsonify({'status': outcome, 'type': event_type}), 200


def handle_checkout_completed(checkout_object: dict) -> tuple:
    """
    Finalize the order for a completed checkout session.

    Args:
        checkout_object: The checkout session from the event

    Returns:
        tuple: (response, status_code)
    """
    event_type = 'checkout.session.completed'
    session = get_session()

    try:
        order, created = finalize_checkout(
            session,
            checkout_object,
            stripe_client=get_stripe_client(),
            notifier=get_dispatcher(),
        )
    except ValueError as e:
        logger.warning(f"[WEBHOOK] Undecodable checkout session: {e}")
        webhook_events_total.labels(event_type=event_type, outcome='invalid').inc()
        return jsonify({'status': 'error', 'message': 'Invalid checkout session'}), 400
    except OrderPersistenceError as e:
        webhook_events_total.labels(event_type=event_type, outcome='error').inc()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception(f"[WEBHOOK] Database error processing checkout {checkout_object.get('id')}: {e}")
        webhook_events_total.labels(event_type=event_type, outcome='error').inc()
        return jsonify({'status': 'error', 'message': 'Processing failed'}), 500

    if created:
        orders_created_total.inc()
        webhook_events_total.labels(event_type=event_type, outcome='processed').inc()
        return jsonify({'status': 'processed', 'order_id': order.id}), 200

    webhook_events_total.labels(event_type=event_type, outcome='duplicate').inc()
    return jsonify({'status': 'already_processed', 'order_id': order.id}), 200
