"""
Typed view over Stripe checkout session payloads.

Stripe returns nested objects either expanded (a dict) or collapsed to their
id (a string), and omits whole sections depending on the expansion depth of
the request. Everything is resolved here, once, into dataclasses with explicit
``Optional`` fields so the checkout pipeline never digs through raw dicts.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _ref_id(value: Any) -> Optional[str]:
    """Id of a Stripe reference that may be expanded or collapsed."""
    if not value:
        return None
    if isinstance(value, dict):
        return value.get('id') or None
    return str(value)


def _node(value: Any, name: str) -> Dict[str, Any]:
    """Nested object that must be a dict when present.

    Raises:
        ValueError: If the node is present with any other shape.
    """
    if not value:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"Expected an object for '{name}', got {type(value).__name__}")
    return value


def _as_int(value: Any) -> int:
    if value is None or value == '':
        return 0
    try:
        return int(value)
    except TypeError as e:
        raise ValueError(f"Expected an integer, got {type(value).__name__}") from e


@dataclass(frozen=True)
class Address:
    line1: str = ''
    line2: str = ''
    city: str = ''
    state: str = ''
    postal_code: str = ''
    country: str = ''

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['Address']:
        data = _node(data, 'address')
        if not data:
            return None
        return cls(
            line1=data.get('line1') or '',
            line2=data.get('line2') or '',
            city=data.get('city') or '',
            state=data.get('state') or '',
            postal_code=data.get('postal_code') or '',
            country=data.get('country') or '',
        )


@dataclass(frozen=True)
class CouponInfo:
    id: Optional[str]
    percent_off: Optional[float]
    amount_off: Optional[int]
    currency: Optional[str]

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['CouponInfo']:
        if not data or not isinstance(data, dict):
            return None
        percent_off = data.get('percent_off')
        amount_off = data.get('amount_off')
        return cls(
            id=data.get('id'),
            percent_off=float(percent_off) if percent_off is not None else None,
            amount_off=int(amount_off) if amount_off is not None else None,
            currency=data.get('currency'),
        )


@dataclass(frozen=True)
class DiscountRef:
    """One entry of ``total_details.breakdown.discounts``."""
    amount: int
    coupon: Optional[CouponInfo]
    promotion_code_id: Optional[str]
    promotion_code: Optional[str]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DiscountRef':
        data = _node(data, 'discounts[]')
        discount = _node(data.get('discount'), 'discount')
        coupon = discount.get('coupon')
        if coupon is None:
            # Newer API versions nest the coupon under ``source``
            coupon = _node(discount.get('source'), 'discount.source').get('coupon')

        promo = discount.get('promotion_code')
        promo_code = promo.get('code') if isinstance(promo, dict) else None

        return cls(
            amount=_as_int(data.get('amount')),
            coupon=CouponInfo.from_dict(coupon),
            promotion_code_id=_ref_id(promo),
            promotion_code=promo_code or None,
        )


@dataclass(frozen=True)
class LineItemData:
    description: str
    quantity: int
    unit_amount: int
    product_id: Optional[str]
    product_sku: Optional[str]

    @property
    def total_cents(self) -> int:
        return self.unit_amount * self.quantity

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LineItemData':
        data = _node(data, 'line_items.data[]')
        price = _node(data.get('price'), 'price')
        product = price.get('product')
        metadata = _node(product.get('metadata'), 'product.metadata') if isinstance(product, dict) else {}

        return cls(
            description=data.get('description') or '',
            quantity=_as_int(data.get('quantity')),
            unit_amount=_as_int(price.get('unit_amount')),
            product_id=metadata.get('product_id') or None,
            product_sku=metadata.get('sku') or None,
        )


@dataclass(frozen=True)
class CheckoutSessionData:
    id: str
    amount_total: int
    amount_tax: int
    amount_discount: int
    customer_email: str
    customer_name: str
    customer_phone: Optional[str]
    billing_address: Optional[Address]
    shipping_address: Optional[Address]
    payment_intent_id: Optional[str]
    customer_id: Optional[str]
    metadata: Dict[str, str] = field(default_factory=dict)
    # None when the payload did not include the breakdown / line items at all
    discounts: Optional[List[DiscountRef]] = None
    line_items: Optional[List[LineItemData]] = None

    @property
    def session_id(self) -> Optional[str]:
        """Storefront cart session that started this checkout."""
        return self.metadata.get('session_id') or None

    @property
    def user_id(self) -> Optional[str]:
        return self.metadata.get('user_id') or None

    @property
    def needs_discount_breakdown(self) -> bool:
        return self.amount_discount > 0 and self.discounts is None

    @property
    def first_discount(self) -> Optional[DiscountRef]:
        if not self.discounts:
            return None
        return self.discounts[0]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CheckoutSessionData':
        """Build from a checkout session object.

        Raises:
            ValueError: If the object is not a checkout session with an id.
        """
        if not isinstance(data, dict) or not data.get('id'):
            raise ValueError('Checkout session payload has no id')

        details = _node(data.get('customer_details'), 'customer_details')
        totals = _node(data.get('total_details'), 'total_details')

        shipping_details = data.get('shipping_details')
        if shipping_details is None:
            collected = _node(data.get('collected_information'), 'collected_information')
            shipping_details = collected.get('shipping_details')
        shipping_details = _node(shipping_details, 'shipping_details')

        breakdown = totals.get('breakdown')
        discounts = None
        if breakdown is not None:
            raw_discounts = _node(breakdown, 'breakdown').get('discounts') or []
            if not isinstance(raw_discounts, list):
                raise ValueError("Expected a list for 'breakdown.discounts'")
            discounts = [DiscountRef.from_dict(d) for d in raw_discounts]

        line_items = None
        raw_items = data.get('line_items')
        if isinstance(raw_items, dict):
            raw_data = raw_items.get('data') or []
            if not isinstance(raw_data, list):
                raise ValueError("Expected a list for 'line_items.data'")
            line_items = [LineItemData.from_dict(item) for item in raw_data]

        return cls(
            id=data['id'],
            amount_total=_as_int(data.get('amount_total')),
            amount_tax=_as_int(totals.get('amount_tax')),
            amount_discount=_as_int(totals.get('amount_discount')),
            customer_email=details.get('email') or '',
            customer_name=details.get('name') or '',
            customer_phone=details.get('phone') or None,
            billing_address=Address.from_dict(details.get('address')),
            shipping_address=Address.from_dict(shipping_details.get('address')),
            payment_intent_id=_ref_id(data.get('payment_intent')),
            customer_id=_ref_id(data.get('customer')),
            metadata={k: str(v) for k, v in _node(data.get('metadata'), 'metadata').items()},
            discounts=discounts,
            line_items=line_items,
        )
