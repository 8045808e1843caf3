"""Cart item model."""
from sqlalchemy import Column, BigInteger, String, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntegerPK


class CartItem(Base):
    """Shopping cart line, owned by a guest session or by a user."""

    __tablename__ = 'cart_item'
    __table_args__ = (
        CheckConstraint('(session_id IS NULL) != (user_id IS NULL)', name='ck_cart_item_owner'),
        CheckConstraint('quantity > 0', name='ck_cart_item_quantity'),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    session_id = Column(String(100), nullable=True, index=True)
    user_id = Column(String(100), nullable=True, index=True)
    product_id = Column(String(64), ForeignKey('product.id', ondelete='CASCADE'), nullable=False, index=True)
    quantity = Column(BigInteger, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    product = relationship('Product')

    @property
    def line_total_cents(self) -> int:
        price = self.product.price_cents if self.product else 0
        return (price or 0) * self.quantity

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else None,
            'quantity': self.quantity,
            'unit_price_cents': self.product.price_cents if self.product else 0,
            'line_total_cents': self.line_total_cents,
        }

    def __repr__(self):
        return f"<CartItem(id={self.id}, product_id='{self.product_id}', qty={self.quantity})>"
