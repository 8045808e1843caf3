"""
Email service for order notifications.
Uses Flask-Mail for SMTP delivery and Jinja templates for the HTML bodies.

Sends run on a small bounded thread pool so a slow SMTP server never holds
up the webhook response.
"""
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from flask import current_app, render_template
from flask_mail import Mail, Message

from app.utils.formatters import format_cents, order_datetime

logger = logging.getLogger(__name__)

mail = Mail()


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def _mail_enabled() -> bool:
    """
    Check if mail is properly configured and enabled.
    Under TESTING Flask-Mail records messages instead of delivering them.
    """
    cfg = current_app.config
    if current_app.testing:
        return True
    return bool(
        not cfg.get("MAIL_SUPPRESS_SEND", False)
        and cfg.get("MAIL_SERVER")
        and cfg.get("MAIL_USERNAME")
    )


@dataclass(frozen=True)
class OrderEmailItem:
    name: str
    quantity: int
    unit_price_cents: int
    total_price_cents: int


@dataclass(frozen=True)
class OrderEmailData:
    """Plain snapshot of an order, safe to hand to another thread."""
    order_id: int
    customer_name: str
    customer_email: str
    subtotal_cents: int
    tax_cents: int
    shipping_cents: int
    total_cents: int
    discount_cents: int = 0
    original_subtotal_cents: Optional[int] = None
    promotion_code: Optional[str] = None
    shipping_address: List[str] = field(default_factory=list)
    items: List[OrderEmailItem] = field(default_factory=list)
    created_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order) -> 'OrderEmailData':
        address = [
            order.shipping_address_line1,
            order.shipping_address_line2,
            ' '.join(p for p in (order.shipping_city, order.shipping_state, order.shipping_postal_code) if p),
            order.shipping_country,
        ]
        return cls(
            order_id=order.id,
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            subtotal_cents=order.subtotal_cents,
            tax_cents=order.tax_cents or 0,
            shipping_cents=order.shipping_cents or 0,
            total_cents=order.total_cents,
            discount_cents=order.discount_cents or 0,
            original_subtotal_cents=order.original_subtotal_cents,
            promotion_code=order.promotion_code,
            shipping_address=[line for line in address if line],
            items=[
                OrderEmailItem(
                    name=item.product_name,
                    quantity=item.quantity,
                    unit_price_cents=item.unit_price_cents,
                    total_price_cents=item.total_price_cents,
                )
                for item in order.items
            ],
            created_at=order.created_at,
        )


def _text_body(data: OrderEmailData, heading: str) -> str:
    lines = [heading, '', f"Order #{data.order_id} - {order_datetime(data.created_at)}", '']
    for item in data.items:
        lines.append(f"  {item.quantity} x {item.name}  {format_cents(item.total_price_cents)}")
    lines.append('')
    if data.discount_cents:
        lines.append(f"Discount ({data.promotion_code or 'promotion'}): -{format_cents(data.discount_cents)}")
    lines.append(f"Subtotal: {format_cents(data.subtotal_cents)}")
    lines.append(f"Shipping: {format_cents(data.shipping_cents)}")
    lines.append(f"Tax: {format_cents(data.tax_cents)}")
    lines.append(f"Total: {format_cents(data.total_cents)}")
    return '\n'.join(lines)


def send_order_confirmation(data: OrderEmailData) -> bool:
    """
    Send the order confirmation to the customer.

    Returns:
        True if sent (or skipped because mail is disabled), False on error
    """
    try:
        if not data.customer_email:
            logger.warning(f"[EMAIL] Order {data.order_id} has no customer email, confirmation skipped")
            return False

        if not _mail_enabled():
            logger.warning(f"[MAIL DISABLED] Order confirmation skipped for {data.customer_email}")
            return True

        store_name = current_app.config.get('STORE_NAME', 'Storefront')
        msg = Message(
            subject=f"Order Confirmation #{data.order_id} - {store_name}",
            recipients=[data.customer_email],
            body=_text_body(data, f"Thank you for your order, {data.customer_name}!"),
            html=render_template('emails/order_confirmation.html', order=data, store_name=store_name),
        )
        mail.send(msg)
        logger.info(f"[EMAIL] Order confirmation sent to {data.customer_email} for order {data.order_id}")
        return True

    except Exception as e:
        logger.exception(f"[EMAIL] Failed to send order confirmation for order {data.order_id}: {e}")
        return False


def send_order_notification_to_admin(data: OrderEmailData) -> bool:
    """Notify the store admin of a new order. Skipped when ADMIN_EMAIL is unset."""
    try:
        admin_email = current_app.config.get('ADMIN_EMAIL')
        if not admin_email:
            logger.info(f"[EMAIL] ADMIN_EMAIL not set, admin notification skipped for order {data.order_id}")
            return True

        if not _mail_enabled():
            logger.warning(f"[MAIL DISABLED] Admin notification skipped for order {data.order_id}")
            return True

        store_name = current_app.config.get('STORE_NAME', 'Storefront')
        msg = Message(
            subject=f"New Order #{data.order_id} - {format_cents(data.total_cents)}",
            recipients=[admin_email],
            body=_text_body(data, f"New order from {data.customer_name} <{data.customer_email}>"),
            html=render_template('emails/admin_order_notification.html', order=data, store_name=store_name),
        )
        mail.send(msg)
        logger.info(f"[EMAIL] Admin notification sent for order {data.order_id}")
        return True

    except Exception as e:
        logger.exception(f"[EMAIL] Failed to send admin notification for order {data.order_id}: {e}")
        return False


class NotificationDispatcher:
    """
    Runs order emails on a bounded thread pool inside an app context.

    With EMAIL_SYNC_SEND (tests, CLI) sends run inline in the caller's
    context and the returned futures are already resolved.
    """

    def __init__(self, app=None):
        self.app = None
        self.sync = False
        self._executor: Optional[ThreadPoolExecutor] = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        self.sync = bool(app.config.get('EMAIL_SYNC_SEND', False))
        if not self.sync:
            self._executor = ThreadPoolExecutor(
                max_workers=max(1, int(app.config.get('EMAIL_WORKERS', 2))),
                thread_name_prefix='order-email',
            )
        app.extensions['email_dispatcher'] = self

    def _run_in_context(self, fn, *args):
        with self.app.app_context():
            try:
                return fn(*args)
            except Exception:
                logger.exception(f"[EMAIL] Background send {fn.__name__} failed")
                return False

    def submit(self, fn, *args) -> Future:
        if self.sync or self._executor is None:
            future = Future()
            try:
                future.set_result(fn(*args))
            except Exception as e:
                logger.exception(f"[EMAIL] Send {fn.__name__} failed")
                future.set_exception(e)
            return future
        return self._executor.submit(self._run_in_context, fn, *args)

    def send_order_emails(self, order) -> List[Future]:
        """Queue the customer confirmation and the admin notification.

        The order is already committed here, so a failure to snapshot it is
        logged and no emails are queued.
        """
        try:
            data = OrderEmailData.from_order(order)
        except Exception:
            logger.exception(f"[EMAIL] Could not build email data for order {getattr(order, 'id', None)}")
            return []
        logger.info(f"[EMAIL] Queueing order emails for order {data.order_id}")
        return [
            self.submit(send_order_confirmation, data),
            self.submit(send_order_notification_to_admin, data),
        ]

    def shutdown(self, wait: bool = True):
        if self._executor is not None:
            self._executor.shutdown(wait=wait)


def get_dispatcher() -> Optional[NotificationDispatcher]:
    return current_app.extensions.get('email_dispatcher')
