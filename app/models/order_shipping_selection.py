"""Order shipping selection model."""
from sqlalchemy import Column, BigInteger, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntegerPK


class OrderShippingSelection(Base):
    """Shipping quote consumed by an order at checkout."""

    __tablename__ = 'order_shipping_selection'

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, unique=True)
    candidate_box_sku = Column(String(100), nullable=False)
    rate_id = Column(String(255), nullable=False)
    carrier_id = Column(String(100), nullable=False)
    service_code = Column(String(100), nullable=False)
    service_name = Column(String(255), nullable=False)
    quoted_shipping_amount_cents = Column(BigInteger, nullable=False)
    quoted_box_cost_cents = Column(BigInteger, nullable=False, default=0)
    quoted_handling_cost_cents = Column(BigInteger, nullable=False, default=0)
    quoted_total_cents = Column(BigInteger, nullable=False)
    delivery_days = Column(BigInteger, nullable=True)
    estimated_delivery_date = Column(String(50), nullable=True)
    packing_solution_json = Column(Text, nullable=True)
    shipment_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    order = relationship('Order', back_populates='shipping_selection')

    def __repr__(self):
        return f"<OrderShippingSelection(order_id={self.order_id}, carrier='{self.carrier_id}', total={self.quoted_total_cents})>"
