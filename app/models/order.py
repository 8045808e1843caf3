"""Order model."""
import enum

from sqlalchemy import Column, BigInteger, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntegerPK


class OrderStatus(str, enum.Enum):
    """Order lifecycle status. Checkout only ever writes RECEIVED."""
    RECEIVED = 'received'
    PROCESSING = 'processing'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'


class Order(Base):
    """Order created from a completed Stripe checkout session."""

    __tablename__ = 'orders'

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    user_id = Column(String(100), nullable=True, index=True)

    customer_email = Column(String(255), nullable=False)
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)

    # Addresses are denormalized at time of purchase
    billing_address_line1 = Column(String(255), nullable=False, default='')
    billing_address_line2 = Column(String(255), nullable=True)
    billing_city = Column(String(100), nullable=False, default='')
    billing_state = Column(String(100), nullable=False, default='')
    billing_postal_code = Column(String(20), nullable=False, default='')
    billing_country = Column(String(2), nullable=False, default='US')
    shipping_address_line1 = Column(String(255), nullable=False, default='')
    shipping_address_line2 = Column(String(255), nullable=True)
    shipping_city = Column(String(100), nullable=False, default='')
    shipping_state = Column(String(100), nullable=False, default='')
    shipping_postal_code = Column(String(20), nullable=False, default='')
    shipping_country = Column(String(2), nullable=False, default='US')

    # Money (integer cents)
    subtotal_cents = Column(BigInteger, nullable=False)
    tax_cents = Column(BigInteger, nullable=False, default=0)
    shipping_cents = Column(BigInteger, nullable=False, default=0)
    total_cents = Column(BigInteger, nullable=False)
    original_subtotal_cents = Column(BigInteger, nullable=True)
    discount_cents = Column(BigInteger, nullable=True)

    # Promotion attribution
    promotion_code = Column(String(100), nullable=True)
    promotion_code_id = Column(BigInteger, ForeignKey('promotion_code.id', ondelete='SET NULL'), nullable=True)

    # Provider references
    stripe_checkout_session_id = Column(String(255), nullable=True, unique=True)
    stripe_payment_intent_id = Column(String(255), nullable=True)
    stripe_customer_id = Column(String(255), nullable=True)
    easypost_shipment_id = Column(String(255), nullable=True)

    status = Column(String(20), nullable=False, default=OrderStatus.RECEIVED.value, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan')
    shipping_selection = relationship(
        'OrderShippingSelection', back_populates='order', uselist=False, cascade='all, delete-orphan'
    )
    promotion = relationship('PromotionCode')

    @property
    def has_discount(self) -> bool:
        return bool(self.discount_cents)

    def to_dict(self):
        return {
            'id': self.id,
            'status': self.status,
            'customer_email': self.customer_email,
            'customer_name': self.customer_name,
            'subtotal_cents': self.subtotal_cents,
            'tax_cents': self.tax_cents,
            'shipping_cents': self.shipping_cents,
            'total_cents': self.total_cents,
            'original_subtotal_cents': self.original_subtotal_cents,
            'discount_cents': self.discount_cents,
            'promotion_code': self.promotion_code,
            'stripe_checkout_session_id': self.stripe_checkout_session_id,
            'items': [item.to_dict() for item in self.items],
        }

    def __repr__(self):
        return f"<Order(id={self.id}, session='{self.stripe_checkout_session_id}', total={self.total_cents})>"
