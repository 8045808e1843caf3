"""Order Item model."""
from sqlalchemy import Column, BigInteger, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntegerPK


class OrderItem(Base):
    """Order line, priced as quoted by the payment provider."""

    __tablename__ = 'order_item'

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(String(64), ForeignKey('product.id'), nullable=False, index=True)
    quantity = Column(BigInteger, nullable=False, default=1)
    unit_price_cents = Column(BigInteger, nullable=False)
    total_price_cents = Column(BigInteger, nullable=False)
    # Snapshot of the product at time of purchase
    product_name = Column(String(255), nullable=False)
    product_sku = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    order = relationship('Order', back_populates='items')
    product = relationship('Product')

    def to_dict(self):
        return {
            'product_id': self.product_id,
            'product_name': self.product_name,
            'quantity': self.quantity,
            'unit_price_cents': self.unit_price_cents,
            'total_price_cents': self.total_price_cents,
        }

    def __repr__(self):
        return f"<OrderItem(id={self.id}, product_id='{self.product_id}', qty={self.quantity})>"
