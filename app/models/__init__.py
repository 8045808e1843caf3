"""Models package - exports all SQLAlchemy models."""
# Catalog / cart
from app.models.product import Product
from app.models.cart_item import CartItem

# Orders
from app.models.order import Order, OrderStatus
from app.models.order_item import OrderItem
from app.models.order_shipping_selection import OrderShippingSelection

# Promotions
from app.models.promotion_campaign import PromotionCampaign, DiscountType
from app.models.promotion_code import PromotionCode

# Shipping
from app.models.session_shipping_selection import SessionShippingSelection

__all__ = [
    'Product', 'CartItem',
    'Order', 'OrderStatus', 'OrderItem', 'OrderShippingSelection',
    'PromotionCampaign', 'DiscountType', 'PromotionCode',
    'SessionShippingSelection',
]
