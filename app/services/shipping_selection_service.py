"""
Shipping selection service.

A session's shipping quote is stored together with a snapshot of the cart it
was quoted for. Each read re-snapshots the live cart; when the two differ the
selection is invalidated in storage right away, so checkout can only consume
a quote that still describes what is being bought.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from app.exceptions import BusinessLogicError
from app.models import OrderShippingSelection, SessionShippingSelection
from app.services.cart_service import get_cart_items

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartSnapshot:
    """Content fingerprint of a cart: (product_id, quantity) pairs plus total."""
    items: Tuple[Tuple[str, int], ...]
    total_cents: int

    def to_json(self) -> str:
        return json.dumps({
            'items': [{'product_id': pid, 'quantity': qty} for pid, qty in self.items],
            'total_cents': self.total_cents,
        })

    @classmethod
    def from_json(cls, raw: str) -> 'CartSnapshot':
        """
        Raises:
            ValueError: If the stored JSON is not a snapshot
        """
        try:
            data = json.loads(raw)
            items = tuple(
                (str(item['product_id']), int(item['quantity']))
                for item in data.get('items') or []
            )
            return cls(items=items, total_cents=int(data['total_cents']))
        except (TypeError, KeyError, AttributeError, json.JSONDecodeError) as e:
            raise ValueError(f'Invalid cart snapshot: {e}') from e


def build_cart_snapshot(session, session_id: str) -> CartSnapshot:
    """Snapshot of the guest cart identified by session_id."""
    items = get_cart_items(session, session_id=session_id)
    return CartSnapshot(
        items=tuple((item.product_id, item.quantity) for item in items),
        total_cents=sum(item.line_total_cents for item in items),
    )


def compare_snapshots(current: CartSnapshot, stored: CartSnapshot) -> bool:
    """True when both snapshots describe the same cart (line order irrelevant)."""
    if current.total_cents != stored.total_cents:
        return False
    if len(current.items) != len(stored.items):
        return False

    current_map = dict(current.items)
    for product_id, quantity in stored.items:
        if current_map.get(product_id) != quantity:
            return False

    return True


@dataclass(frozen=True)
class ShippingQuote:
    """Rate picked by the customer, with its cost breakdown."""
    rate_id: str
    shipment_id: str
    carrier_name: str
    service_name: str
    price_cents: int
    shipping_amount_cents: int = 0
    box_cost_cents: int = 0
    handling_cost_cents: int = 0
    box_sku: str = 'UNKNOWN'
    delivery_days: Optional[int] = None
    estimated_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ShippingQuote':
        """
        Raises:
            BusinessLogicError: If a required field is missing or malformed
        """
        required = ('rate_id', 'shipment_id', 'carrier_name', 'service_name')
        if any(not data.get(key) for key in required):
            raise BusinessLogicError('Missing required shipping fields')

        try:
            price_cents = int(data.get('price_cents') or 0)
            delivery_days = data.get('delivery_days')
            return cls(
                rate_id=str(data['rate_id']),
                shipment_id=str(data['shipment_id']),
                carrier_name=str(data['carrier_name']),
                service_name=str(data['service_name']),
                price_cents=price_cents,
                # Older clients only send the total price
                shipping_amount_cents=int(data.get('shipping_amount_cents') or price_cents),
                box_cost_cents=int(data.get('box_cost_cents') or 0),
                handling_cost_cents=int(data.get('handling_cost_cents') or 0),
                box_sku=data.get('box_sku') or 'UNKNOWN',
                delivery_days=int(delivery_days) if delivery_days not in (None, '') else None,
                estimated_date=data.get('estimated_date') or None,
            )
        except (TypeError, ValueError) as e:
            raise BusinessLogicError(f'Invalid shipping selection: {e}')


@dataclass
class ValidatedSelection:
    selection: SessionShippingSelection
    is_valid: bool


def get_shipping_selection(session, session_id: str) -> Optional[SessionShippingSelection]:
    return session.query(SessionShippingSelection).filter_by(session_id=session_id).first()


def save_shipping_selection(
    session,
    session_id: str,
    quote: ShippingQuote,
    shipping_address: Optional[Dict[str, Any]] = None
) -> SessionShippingSelection:
    """Create or supersede the session's selection with a fresh cart snapshot."""
    snapshot = build_cart_snapshot(session, session_id)

    selection = get_shipping_selection(session, session_id)
    if selection is None:
        selection = SessionShippingSelection(session_id=session_id)
        session.add(selection)
        logger.info(f"[SHIPPING] Creating shipping selection for session {session_id}")
    else:
        logger.info(f"[SHIPPING] Replacing shipping selection for session {session_id}")

    selection.rate_id = quote.rate_id
    selection.shipment_id = quote.shipment_id
    selection.carrier_name = quote.carrier_name
    selection.service_name = quote.service_name
    selection.price_cents = quote.price_cents
    selection.shipping_amount_cents = quote.shipping_amount_cents
    selection.box_cost_cents = quote.box_cost_cents
    selection.handling_cost_cents = quote.handling_cost_cents
    selection.box_sku = quote.box_sku
    selection.delivery_days = quote.delivery_days
    selection.estimated_date = quote.estimated_date
    selection.cart_snapshot_json = snapshot.to_json()
    selection.shipping_address_json = json.dumps(shipping_address or {})
    selection.is_valid = True

    session.commit()
    return selection


def invalidate_shipping_selection(session, session_id: str) -> bool:
    """Mark the session's selection invalid. Caller commits."""
    if not session_id:
        return False
    updated = session.query(SessionShippingSelection).filter(
        SessionShippingSelection.session_id == session_id,
        SessionShippingSelection.is_valid.is_(True)
    ).update({'is_valid': False}, synchronize_session='fetch')
    return updated > 0


def get_validated_selection(session, session_id: str) -> Optional[ValidatedSelection]:
    """
    Read the session's selection and check it against the live cart.

    A mismatch (or an unreadable stored snapshot) invalidates the row and
    commits that change before returning.
    """
    selection = get_shipping_selection(session, session_id)
    if selection is None:
        return None

    current = build_cart_snapshot(session, session_id)
    try:
        stored = CartSnapshot.from_json(selection.cart_snapshot_json)
        matches = compare_snapshots(current, stored)
    except ValueError as e:
        logger.warning(f"[SHIPPING] Unreadable cart snapshot for session {session_id}: {e}")
        matches = False

    was_valid = bool(selection.is_valid)
    is_valid = matches and was_valid

    if was_valid and not is_valid:
        logger.info(f"[SHIPPING] Cart changed since quote, invalidating selection for session {session_id}")
        selection.is_valid = False
        session.commit()

    return ValidatedSelection(selection=selection, is_valid=is_valid)


def selection_for_checkout(session, session_id: Optional[str]) -> Optional[SessionShippingSelection]:
    """
    Selection that may be consumed by an order, or None.

    None means shipping is recorded as zero on the order; that is logged as a
    data-quality warning rather than treated as a failure.
    """
    if not session_id:
        return None

    validated = get_validated_selection(session, session_id)
    if validated is None:
        logger.warning(f"[SHIPPING] No shipping selection for session {session_id}; shipping recorded as 0")
        return None
    if not validated.is_valid:
        logger.warning(f"[SHIPPING] Shipping selection for session {session_id} no longer matches the cart; shipping recorded as 0")
        return None
    if not validated.selection.shipment_id:
        logger.warning(f"[SHIPPING] Shipping selection for session {session_id} has no shipment id; shipping recorded as 0")
        return None

    return validated.selection


def build_order_shipping_selection(selection: SessionShippingSelection) -> OrderShippingSelection:
    """Copy a consumed session quote into an order shipping record."""
    return OrderShippingSelection(
        candidate_box_sku=selection.box_sku,
        rate_id=selection.rate_id,
        carrier_id=selection.carrier_name,
        service_code=selection.service_name,
        service_name=selection.service_name,
        quoted_shipping_amount_cents=selection.shipping_amount_cents,
        quoted_box_cost_cents=selection.box_cost_cents,
        quoted_handling_cost_cents=selection.handling_cost_cents,
        quoted_total_cents=selection.price_cents,
        delivery_days=selection.delivery_days,
        estimated_delivery_date=selection.estimated_date,
        packing_solution_json='{}',
        shipment_id=selection.shipment_id,
    )


def selection_to_dict(validated: ValidatedSelection) -> Dict[str, Any]:
    selection = validated.selection
    try:
        address = json.loads(selection.shipping_address_json or '{}')
    except json.JSONDecodeError:
        address = None

    return {
        'selection': {
            'rate_id': selection.rate_id,
            'shipment_id': selection.shipment_id,
            'carrier_name': selection.carrier_name,
            'service_name': selection.service_name,
            'price_cents': selection.price_cents,
            'delivery_days': selection.delivery_days or 0,
            'estimated_date': selection.estimated_date or '',
            'is_valid': validated.is_valid,
        },
        'shipping_address': address,
    }
