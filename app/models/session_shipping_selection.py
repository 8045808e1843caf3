"""Session shipping selection model."""
from sqlalchemy import Column, BigInteger, String, Text, Boolean, DateTime
from sqlalchemy.sql import func
from app.database import Base, BigIntegerPK


class SessionShippingSelection(Base):
    """Shipping rate picked by a cart session, with the cart snapshot taken at quote time."""

    __tablename__ = 'session_shipping_selection'

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    session_id = Column(String(100), nullable=False, unique=True)

    # Shipping rate details
    rate_id = Column(String(255), nullable=False)
    shipment_id = Column(String(255), nullable=False)
    carrier_name = Column(String(100), nullable=False)
    service_name = Column(String(255), nullable=False)
    price_cents = Column(BigInteger, nullable=False)
    shipping_amount_cents = Column(BigInteger, nullable=False, default=0)
    box_cost_cents = Column(BigInteger, nullable=False, default=0)
    handling_cost_cents = Column(BigInteger, nullable=False, default=0)
    box_sku = Column(String(100), nullable=False, default='UNKNOWN')
    delivery_days = Column(BigInteger, nullable=True)
    estimated_date = Column(String(50), nullable=True)

    # Cart state snapshot (for validation)
    cart_snapshot_json = Column(Text, nullable=False)
    # Address info (for pre-fill)
    shipping_address_json = Column(Text, nullable=False, default='{}')

    is_valid = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<SessionShippingSelection(session='{self.session_id}', carrier='{self.carrier_name}', valid={self.is_valid})>"
