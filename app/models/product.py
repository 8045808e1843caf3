"""Product model (reference data for carts and order items)."""
from sqlalchemy import Column, BigInteger, String, Boolean, DateTime
from sqlalchemy.sql import func
from app.database import Base


class Product(Base):
    """Catalog product.

    The id is shared with the ``product_id`` metadata attached to the
    payment provider's product objects, so it is a string key.
    """

    __tablename__ = 'product'

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(100), nullable=True)
    price_cents = Column(BigInteger, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Product(id='{self.id}', name='{self.name}', price_cents={self.price_cents})>"
