"""
Cart service.

Carts belong either to a guest session (cookie) or to a user. Every mutation
invalidates the session's quoted shipping selection so a stale quote can
never be consumed at checkout.
"""
import logging
from typing import List, Optional

from sqlalchemy import or_

from app.exceptions import BusinessLogicError, NotFoundError
from app.models import CartItem, Product

logger = logging.getLogger(__name__)


def get_cart_items(session, session_id: Optional[str] = None, user_id: Optional[str] = None) -> List[CartItem]:
    """Cart lines for a guest session or a user (user wins when both are given)."""
    query = session.query(CartItem)
    if user_id:
        query = query.filter(CartItem.user_id == user_id)
    elif session_id:
        query = query.filter(CartItem.session_id == session_id)
    else:
        return []
    return query.order_by(CartItem.id).all()


def cart_total_cents(items: List[CartItem]) -> int:
    return sum(item.line_total_cents for item in items)


def add_to_cart(session, session_id: str, product_id: str, quantity: int = 1) -> CartItem:
    """
    Add a product to a guest cart, merging with an existing line.

    Raises:
        BusinessLogicError: If quantity is not positive or the product is inactive
        NotFoundError: If the product does not exist
    """
    if quantity <= 0:
        raise BusinessLogicError('Quantity must be greater than 0')

    product = session.get(Product, product_id)
    if not product:
        raise NotFoundError(f'Product {product_id} not found')
    if not product.active:
        raise BusinessLogicError(f'Product "{product.name}" is not available')

    item = session.query(CartItem).filter_by(session_id=session_id, product_id=product_id).first()
    if item:
        item.quantity += quantity
    else:
        item = CartItem(session_id=session_id, product_id=product_id, quantity=quantity)
        session.add(item)

    _invalidate_shipping(session, session_id)
    session.commit()
    return item


def update_cart_item(session, session_id: str, item_id: int, quantity: int) -> Optional[CartItem]:
    """Set a line's quantity; zero removes the line. Returns None when removed."""
    if quantity < 0:
        raise BusinessLogicError('Invalid quantity')

    item = _get_owned_item(session, session_id, item_id)
    if quantity == 0:
        session.delete(item)
        item = None
    else:
        item.quantity = quantity

    _invalidate_shipping(session, session_id)
    session.commit()
    return item


def remove_cart_item(session, session_id: str, item_id: int) -> None:
    item = _get_owned_item(session, session_id, item_id)
    session.delete(item)
    _invalidate_shipping(session, session_id)
    session.commit()


def clear_cart(session, session_id: Optional[str] = None, user_id: Optional[str] = None) -> int:
    """
    Delete every cart line of the session and/or user.

    Does not commit; checkout clears the cart inside the order transaction.

    Returns:
        Number of deleted lines
    """
    filters = []
    if session_id:
        filters.append(CartItem.session_id == session_id)
    if user_id:
        filters.append(CartItem.user_id == user_id)
    if not filters:
        return 0

    return session.query(CartItem).filter(or_(*filters)).delete(synchronize_session=False)


def _get_owned_item(session, session_id: str, item_id: int) -> CartItem:
    item = session.query(CartItem).filter_by(id=item_id, session_id=session_id).first()
    if not item:
        raise NotFoundError('Cart item not found')
    return item


def _invalidate_shipping(session, session_id: str) -> None:
    from app.services.shipping_selection_service import invalidate_shipping_selection
    invalidate_shipping_selection(session, session_id)
