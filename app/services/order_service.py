"""
Order service: turns a completed Stripe checkout session into an Order.

Pipeline for one checkout:
    idempotency guard -> re-fetch when data is missing -> shipping selection
    -> financial totals -> discount attribution -> persist (one transaction)
    -> notifications.

Replays of the same checkout (webhook retries, the success page racing the
webhook) are absorbed twice: by the read guard and by the unique constraint
on ``orders.stripe_checkout_session_id`` at insert time.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.exceptions import OrderPersistenceError, PaymentProviderError
from app.models import Order, OrderItem, OrderStatus
from app.services.cart_service import clear_cart
from app.services.checkout_payload import Address, CheckoutSessionData
from app.services.promotion_service import (
    PromotionAttribution, get_promotion_code_by_code, reconcile_discount, resolve_code_string
)
from app.services.shipping_selection_service import (
    build_order_shipping_selection, selection_for_checkout
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinancialTotals:
    """Order money breakdown in cents."""
    total_cents: int
    tax_cents: int
    shipping_cents: int
    subtotal_cents: int
    discount_cents: int
    original_subtotal_cents: int


def reconcile_totals(
    total: Optional[int],
    tax: Optional[int] = None,
    discount: Optional[int] = None,
    quoted_shipping: Optional[int] = None
) -> FinancialTotals:
    """
    Derive the subtotal from what Stripe charged.

    subtotal = total - tax - shipping
    original_subtotal = subtotal + discount

    Examples:
        reconcile_totals(1275, 0, 225, 0) -> subtotal 1275, original 1500
        reconcile_totals(2500, 200, None, 300) -> subtotal 2000, original 2000
    """
    total_cents = int(total or 0)
    tax_cents = int(tax or 0)
    shipping_cents = int(quoted_shipping or 0)
    discount_cents = int(discount or 0)

    subtotal_cents = total_cents - tax_cents - shipping_cents

    return FinancialTotals(
        total_cents=total_cents,
        tax_cents=tax_cents,
        shipping_cents=shipping_cents,
        subtotal_cents=subtotal_cents,
        discount_cents=discount_cents,
        original_subtotal_cents=subtotal_cents + discount_cents,
    )


def find_order_by_checkout_session(session, checkout_session_id: str) -> Optional[Order]:
    """
    Existing order for a checkout session, or None.

    Raises:
        SQLAlchemyError: On lookup failure (callers must not assume "absent")
    """
    return session.query(Order).filter(
        Order.stripe_checkout_session_id == checkout_session_id
    ).first()


def _apply_address(order: Order, prefix: str, address: Optional[Address]) -> None:
    if address is None:
        return
    setattr(order, f'{prefix}_address_line1', address.line1)
    setattr(order, f'{prefix}_address_line2', address.line2 or None)
    setattr(order, f'{prefix}_city', address.city)
    setattr(order, f'{prefix}_state', address.state)
    setattr(order, f'{prefix}_postal_code', address.postal_code)
    if address.country:
        setattr(order, f'{prefix}_country', address.country)


def build_order(
    checkout: CheckoutSessionData,
    totals: FinancialTotals,
    attribution: PromotionAttribution,
    shipment_id: Optional[str] = None
) -> Order:
    order = Order(
        user_id=checkout.user_id,
        customer_email=checkout.customer_email,
        customer_name=checkout.customer_name,
        customer_phone=checkout.customer_phone,
        subtotal_cents=totals.subtotal_cents,
        tax_cents=totals.tax_cents,
        shipping_cents=totals.shipping_cents,
        total_cents=totals.total_cents,
        stripe_checkout_session_id=checkout.id,
        stripe_payment_intent_id=checkout.payment_intent_id,
        stripe_customer_id=checkout.customer_id,
        easypost_shipment_id=shipment_id,
        status=OrderStatus.RECEIVED.value,
    )

    _apply_address(order, 'billing', checkout.billing_address)
    # Shipping falls back to billing when Stripe did not collect one
    _apply_address(order, 'shipping', checkout.shipping_address or checkout.billing_address)

    if totals.discount_cents > 0:
        order.discount_cents = totals.discount_cents
        order.original_subtotal_cents = totals.original_subtotal_cents
        order.promotion_code = attribution.promotion_code
        order.promotion_code_id = attribution.promotion_code_id

    return order


def build_order_items(checkout: CheckoutSessionData) -> list:
    """
    One OrderItem per line item that maps to a catalog product.

    Lines without ``price.product.metadata.product_id`` (shipping lines,
    ad-hoc charges) are skipped.
    """
    items = []
    for line in checkout.line_items or []:
        if not line.product_id:
            logger.info(f"[CHECKOUT] Skipping line item without product id: '{line.description}'")
            continue
        items.append(OrderItem(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price_cents=line.unit_amount,
            total_price_cents=line.total_cents,
            product_name=line.description,
            product_sku=line.product_sku,
        ))
    return items


def persist_order(session, checkout: CheckoutSessionData, order: Order, shipping_selection=None) -> Tuple[Order, bool]:
    """
    Write the order, its shipping record and items, and clear the cart, in one commit.

    Returns:
        (order, created). created is False when a concurrent delivery inserted
        the order first; the winner's row is returned.

    Raises:
        OrderPersistenceError: If anything fails to write; nothing is kept
    """
    try:
        if shipping_selection is not None:
            order.shipping_selection = build_order_shipping_selection(shipping_selection)
        order.items = build_order_items(checkout)

        session.add(order)
        session.flush()

        cleared = clear_cart(session, session_id=checkout.session_id, user_id=checkout.user_id)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        existing = find_order_by_checkout_session(session, checkout.id)
        if existing is not None:
            logger.info(f"[CHECKOUT] Order for {checkout.id} created concurrently (order {existing.id})")
            return existing, False
        logger.exception(f"[CHECKOUT] Integrity error persisting order for {checkout.id}")
        raise OrderPersistenceError(f"Failed to persist order: {e.orig}", checkout.id) from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception(f"[CHECKOUT] Failed to persist order for {checkout.id}")
        raise OrderPersistenceError(f"Failed to persist order: {e}", checkout.id) from e

    logger.info(
        f"[CHECKOUT] Order {order.id} created for {checkout.id}: "
        f"{len(order.items)} item(s), total {order.total_cents}, cleared {cleared} cart line(s)"
    )
    return order, True


def _refetch_if_incomplete(checkout: CheckoutSessionData, stripe_client) -> CheckoutSessionData:
    """Retrieve the fully expanded session when discounts or line items are missing."""
    if not (checkout.needs_discount_breakdown or checkout.line_items is None):
        return checkout

    if stripe_client is None:
        logger.warning(f"[CHECKOUT] Session {checkout.id} is incomplete and no Stripe client is configured")
        return checkout

    try:
        return CheckoutSessionData.from_dict(stripe_client.get_checkout_session(checkout.id))
    except (PaymentProviderError, ValueError) as e:
        logger.warning(f"[CHECKOUT] Could not re-fetch session {checkout.id}, using webhook payload: {e}")
        return checkout


def finalize_checkout(
    session,
    checkout: Union[CheckoutSessionData, Dict[str, Any]],
    stripe_client=None,
    notifier=None
) -> Tuple[Order, bool]:
    """
    Create the order for a completed checkout session, exactly once.

    Args:
        session: SQLAlchemy session
        checkout: Parsed checkout session, or the raw Stripe object
        stripe_client: Client for follow-up reads (optional)
        notifier: Object with ``send_order_emails(order)`` (optional)

    Returns:
        (order, created). created is False when the order already existed.

    Raises:
        ValueError: If the raw object is not a checkout session
        SQLAlchemyError: If the idempotency lookup fails
        OrderPersistenceError: If the order cannot be written
    """
    if not isinstance(checkout, CheckoutSessionData):
        checkout = CheckoutSessionData.from_dict(checkout)

    existing = find_order_by_checkout_session(session, checkout.id)
    if existing:
        logger.info(f"[CHECKOUT] Order {existing.id} already exists for {checkout.id}, skipping")
        return existing, False

    checkout = _refetch_if_incomplete(checkout, stripe_client)

    selection = selection_for_checkout(session, checkout.session_id)
    totals = reconcile_totals(
        checkout.amount_total,
        checkout.amount_tax,
        checkout.amount_discount,
        selection.price_cents if selection else 0,
    )

    attribution = reconcile_discount(session, checkout, stripe_client)
    if totals.discount_cents > 0 and attribution.promotion_code_id is None:
        logger.warning(f"[CHECKOUT] Discount of {totals.discount_cents} on {checkout.id} has no linked promotion code")

    order = build_order(checkout, totals, attribution, selection.shipment_id if selection else None)
    order, created = persist_order(session, checkout, order, selection)

    if created and notifier is not None:
        notifier.send_order_emails(order)

    return order, created


def orders_missing_discount_data(session) -> list:
    """Orders with a Stripe session but no recorded discount."""
    return session.query(Order).filter(
        Order.stripe_checkout_session_id.isnot(None),
        or_(Order.discount_cents.is_(None), Order.discount_cents == 0)
    ).order_by(Order.id).all()


def backfill_order_discount(session, order: Order, stripe_client, dry_run: bool = False) -> bool:
    """
    Fill discount columns of an older order from its Stripe session.

    Codes are only matched against existing local records, never created.
    Does not commit.

    Returns:
        True if the session carried a discount (and, unless dry_run, the order was updated)

    Raises:
        PaymentProviderError: If the session cannot be retrieved
    """
    checkout = CheckoutSessionData.from_dict(stripe_client.get_checkout_session(
        order.stripe_checkout_session_id,
        expand=('total_details.breakdown',)
    ))
    if checkout.amount_discount <= 0:
        return False

    code = None
    code_id = None
    discount = checkout.first_discount
    if discount is not None:
        code = resolve_code_string(discount, stripe_client)
        if code:
            record = get_promotion_code_by_code(session, code)
            code_id = record.id if record else None

    logger.info(
        f"[CHECKOUT] Order {order.id}: discount {checkout.amount_discount}, "
        f"code {code or '-'} (linked: {code_id is not None})"
    )

    if not dry_run:
        order.discount_cents = checkout.amount_discount
        order.original_subtotal_cents = order.subtotal_cents + checkout.amount_discount
        order.promotion_code = code
        order.promotion_code_id = code_id

    return True
