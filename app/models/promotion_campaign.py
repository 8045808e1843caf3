"""Promotion campaign model."""
import enum

from sqlalchemy import Column, BigInteger, String, Text, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntegerPK


class DiscountType(str, enum.Enum):
    """Discount shape of a campaign."""
    PERCENTAGE = 'percentage'
    AMOUNT = 'amount'


class PromotionCampaign(Base):
    """A class of discount ("15% off"). Not redeemable by itself."""

    __tablename__ = 'promotion_campaign'

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    # Looked up by name, but not enforced unique
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    discount_type = Column(String(20), nullable=False)
    discount_value = Column(BigInteger, nullable=False)
    stripe_promotion_id = Column(String(255), nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    end_date = Column(DateTime(timezone=True), nullable=True)
    max_uses = Column(BigInteger, nullable=True)
    current_uses = Column(BigInteger, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    codes = relationship('PromotionCode', back_populates='campaign', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<PromotionCampaign(id={self.id}, name='{self.name}', type='{self.discount_type}')>"
