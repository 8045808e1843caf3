"""
Promotion reconciliation for completed checkouts.

Turns the discount reported by Stripe into a local promotion code reference.
The code string may need a follow-up read (Stripe collapses nested objects
past its expansion depth), and the code itself may have been created directly
in Stripe, in which case a local campaign/code pair is materialized on the fly.

Failures here never fail the order: the discount amount is already captured
numerically, so the worst case is an order without code attribution.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.exceptions import PaymentProviderError
from app.models import DiscountType, PromotionCampaign, PromotionCode
from app.services.checkout_payload import CheckoutSessionData, CouponInfo, DiscountRef
from app.utils.formatters import format_cents, format_percent

logger = logging.getLogger(__name__)

EXTERNAL_CAMPAIGN_PREFIX = "External Stripe"
EXTERNAL_CAMPAIGN_DESCRIPTION = "Promotion codes created externally in Stripe"


@dataclass(frozen=True)
class PromotionAttribution:
    """Promotion reference recorded on an order (both fields may be None)."""
    promotion_code_id: Optional[int] = None
    promotion_code: Optional[str] = None


NO_ATTRIBUTION = PromotionAttribution()


def classify_coupon(coupon: Optional[CouponInfo]) -> Tuple[str, int, str]:
    """
    Derive (discount_type, discount_value, campaign_name) for an external coupon.

    Examples:
        15% off     -> ('percentage', 15, 'External Stripe - 15% Off')
        500 cents   -> ('amount', 500, 'External Stripe - $5.00 Off')
        neither set -> ('percentage', 0, 'External Stripe - Variable Discount')
    """
    if coupon and coupon.percent_off and coupon.percent_off > 0:
        value = int(round(coupon.percent_off))
        return (
            DiscountType.PERCENTAGE.value,
            value,
            f"{EXTERNAL_CAMPAIGN_PREFIX} - {format_percent(value)} Off",
        )

    if coupon and coupon.amount_off and coupon.amount_off > 0:
        return (
            DiscountType.AMOUNT.value,
            coupon.amount_off,
            f"{EXTERNAL_CAMPAIGN_PREFIX} - {format_cents(coupon.amount_off)} Off",
        )

    return DiscountType.PERCENTAGE.value, 0, f"{EXTERNAL_CAMPAIGN_PREFIX} - Variable Discount"


def get_promotion_code_by_code(session, code: str) -> Optional[PromotionCode]:
    return session.query(PromotionCode).filter(PromotionCode.code == code).first()


def get_or_create_campaign_for_discount(session, discount: DiscountRef) -> PromotionCampaign:
    """
    Campaign matching the discount shape, looked up by its synthesized name.

    Raises:
        ValueError: If the discount carries no coupon
        SQLAlchemyError: If the campaign cannot be read or created
    """
    if discount is None or discount.coupon is None:
        raise ValueError("invalid discount structure")

    discount_type, discount_value, campaign_name = classify_coupon(discount.coupon)

    campaign = session.query(PromotionCampaign).filter(
        PromotionCampaign.name == campaign_name
    ).order_by(PromotionCampaign.id).first()

    if campaign:
        logger.debug(f"[PROMO] Found campaign {campaign.id} for external discount '{campaign_name}'")
        return campaign

    logger.info(f"[PROMO] Creating campaign '{campaign_name}' ({discount_type}={discount_value})")
    campaign = PromotionCampaign(
        name=campaign_name,
        description=EXTERNAL_CAMPAIGN_DESCRIPTION,
        discount_type=discount_type,
        discount_value=discount_value,
        stripe_promotion_id=discount.coupon.id,
        start_date=datetime.now(timezone.utc),
        active=True,
    )
    try:
        session.add(campaign)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise

    return campaign


def create_external_promotion_code(session, code: str, discount: DiscountRef) -> PromotionCode:
    """
    Materialize a code that exists in Stripe but not locally.

    Two deliveries of the same checkout can both get here for the same code;
    the unique constraint on ``code`` lets exactly one insert win and the other
    re-reads the winner's row.

    Raises:
        ValueError: If the discount carries no coupon
        SQLAlchemyError: On any storage error other than the duplicate-code race
    """
    campaign = get_or_create_campaign_for_discount(session, discount)

    logger.info(
        f"[PROMO] Creating external promotion code '{code}' "
        f"(campaign {campaign.id}, stripe id {discount.promotion_code_id})"
    )

    promo = PromotionCode(
        campaign_id=campaign.id,
        code=code,
        stripe_promotion_code_id=discount.promotion_code_id,
    )

    try:
        session.add(promo)
        session.commit()
    except IntegrityError:
        # Race condition: another delivery created it first
        session.rollback()
        logger.info(f"[PROMO] Promotion code '{code}' already exists (race), using existing record")
        existing = get_promotion_code_by_code(session, code)
        if existing is None:
            raise
        return existing
    except SQLAlchemyError:
        session.rollback()
        raise

    logger.info(f"[PROMO] Created external promotion code '{code}' -> {promo.id}")
    return promo


def resolve_code_string(discount: DiscountRef, stripe_client=None) -> Optional[str]:
    """Literal code of the discount, fetching it from Stripe when only the id is known."""
    if discount.promotion_code:
        return discount.promotion_code

    if not discount.promotion_code_id:
        return None

    if stripe_client is None:
        logger.warning(
            f"[PROMO] Promotion code {discount.promotion_code_id} needs a Stripe lookup but no client is configured"
        )
        return None

    logger.debug(f"[PROMO] Code string missing, retrieving promotion code {discount.promotion_code_id}")
    try:
        promo = stripe_client.get_promotion_code(discount.promotion_code_id)
    except PaymentProviderError as e:
        logger.error(f"[PROMO] Failed to retrieve promotion code {discount.promotion_code_id}: {e.message}")
        return None

    return (promo or {}).get('code') or None


def reconcile_discount(session, checkout: CheckoutSessionData, stripe_client=None) -> PromotionAttribution:
    """
    Resolve the checkout's first discount to a local promotion code.

    Never raises for data or storage problems; returns the best attribution it
    could establish (possibly none).
    """
    if checkout.amount_discount <= 0:
        return NO_ATTRIBUTION

    discount = checkout.first_discount
    if discount is None:
        logger.warning(f"[PROMO] Discount of {checkout.amount_discount} on {checkout.id} has no breakdown; no code attribution")
        return NO_ATTRIBUTION

    code = resolve_code_string(discount, stripe_client)
    if not code:
        logger.warning(
            f"[PROMO] Could not resolve a promotion code string for {checkout.id} "
            f"(promotion code id {discount.promotion_code_id})"
        )
        return NO_ATTRIBUTION

    try:
        record = get_promotion_code_by_code(session, code)
    except SQLAlchemyError as e:
        session.rollback()
        logger.warning(f"[PROMO] Failed to look up promotion code '{code}': {e}")
        return PromotionAttribution(promotion_code=code)

    if record:
        logger.debug(f"[PROMO] Promotion code '{code}' matched local record {record.id}")
        return PromotionAttribution(promotion_code_id=record.id, promotion_code=code)

    try:
        record = create_external_promotion_code(session, code, discount)
    except (ValueError, SQLAlchemyError) as e:
        logger.error(f"[PROMO] Failed to create external promotion code '{code}' for {checkout.id}: {e}")
        return PromotionAttribution(promotion_code=code)

    return PromotionAttribution(promotion_code_id=record.id, promotion_code=code)
