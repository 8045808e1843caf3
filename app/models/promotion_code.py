"""Promotion code model."""
from sqlalchemy import Column, BigInteger, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntegerPK


class PromotionCode(Base):
    """Redeemable code belonging to a campaign.

    ``code`` is unique at the storage layer; concurrent creation of the same
    external code relies on that constraint to pick a single winner.
    """

    __tablename__ = 'promotion_code'

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    campaign_id = Column(BigInteger, ForeignKey('promotion_campaign.id', ondelete='CASCADE'), nullable=False, index=True)
    code = Column(String(100), nullable=False, unique=True)
    stripe_promotion_code_id = Column(String(255), nullable=True, unique=True)
    email = Column(String(255), nullable=True, index=True)
    user_id = Column(String(100), nullable=True)
    max_uses = Column(BigInteger, nullable=True)
    current_uses = Column(BigInteger, nullable=False, default=0)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    first_used_at = Column(DateTime(timezone=True), nullable=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    campaign = relationship('PromotionCampaign', back_populates='codes')

    def __repr__(self):
        return f"<PromotionCode(id={self.id}, code='{self.code}', campaign_id={self.campaign_id})>"
