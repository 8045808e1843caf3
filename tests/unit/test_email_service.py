"""
Unit tests for order emails and the notification dispatcher.
"""

from concurrent.futures import ThreadPoolExecutor

from flask import current_app

from app.models import Order, OrderItem
from app.services import email_service
from app.services.email_service import (
    NotificationDispatcher, OrderEmailData, OrderEmailItem, mail,
    send_order_confirmation, send_order_notification_to_admin
)


def _email_data(**overrides):
    values = dict(
        order_id=7,
        customer_name='Jane Doe',
        customer_email='jane@example.com',
        subtotal_cents=1275,
        tax_cents=0,
        shipping_cents=0,
        total_cents=1275,
        discount_cents=225,
        original_subtotal_cents=1500,
        promotion_code='WELCOME15',
        shipping_address=['123 Main St', 'Springfield IL 62701', 'US'],
        items=[OrderEmailItem(name='Widget', quantity=1, unit_price_cents=1500, total_price_cents=1500)],
    )
    values.update(overrides)
    return OrderEmailData(**values)


class TestOrderEmails:

    def test_confirmation_sent_to_customer(self, app):
        with mail.record_messages() as outbox:
            assert send_order_confirmation(_email_data()) is True

        assert len(outbox) == 1
        msg = outbox[0]
        assert msg.recipients == ['jane@example.com']
        assert 'Order Confirmation #7' in msg.subject
        assert '$12.75' in msg.html
        assert 'WELCOME15' in msg.html
        assert 'Widget' in msg.body

    def test_admin_notification(self, app):
        with mail.record_messages() as outbox:
            assert send_order_notification_to_admin(_email_data()) is True

        assert outbox[0].recipients == ['admin@example.com']
        assert '$12.75' in outbox[0].subject

    def test_admin_notification_skipped_without_address(self, app, monkeypatch):
        monkeypatch.setitem(app.config, 'ADMIN_EMAIL', '')
        with mail.record_messages() as outbox:
            assert send_order_notification_to_admin(_email_data()) is True
        assert outbox == []

    def test_confirmation_without_customer_email(self, app):
        with mail.record_messages() as outbox:
            assert send_order_confirmation(_email_data(customer_email='')) is False
        assert outbox == []

    def test_send_failure_is_logged_not_raised(self, app, monkeypatch):
        def boom(msg):
            raise ConnectionRefusedError('smtp down')
        monkeypatch.setattr(email_service.mail, 'send', boom)

        assert send_order_confirmation(_email_data()) is False


class TestOrderEmailData:

    def test_from_order(self, session, products):
        order = Order(
            customer_email='jane@example.com', customer_name='Jane Doe',
            subtotal_cents=3000, tax_cents=0, shipping_cents=500, total_cents=3500,
            shipping_address_line1='123 Main St', shipping_city='Springfield',
            shipping_state='IL', shipping_postal_code='62701', shipping_country='US',
            stripe_checkout_session_id='cs_email',
        )
        order.items = [OrderItem(
            product_id='widget', quantity=2, unit_price_cents=1500,
            total_price_cents=3000, product_name='Widget'
        )]
        session.add(order)
        session.commit()

        data = OrderEmailData.from_order(order)
        assert data.order_id == order.id
        assert data.discount_cents == 0
        assert data.shipping_address == ['123 Main St', 'Springfield IL 62701', 'US']
        assert data.items[0].total_price_cents == 3000


class TestNotificationDispatcher:

    def test_sync_mode_resolves_immediately(self, app, session, products):
        dispatcher = app.extensions['email_dispatcher']
        assert dispatcher.sync is True

        order = Order(
            customer_email='jane@example.com', customer_name='Jane Doe',
            subtotal_cents=1500, total_cents=1500, stripe_checkout_session_id='cs_sync',
        )
        session.add(order)
        session.commit()

        with mail.record_messages() as outbox:
            futures = dispatcher.send_order_emails(order)

        assert all(f.done() for f in futures)
        assert [f.result() for f in futures] == [True, True]
        assert len(outbox) == 2

    def test_background_send_runs_in_app_context(self, app):
        dispatcher = NotificationDispatcher()
        dispatcher.app = app
        dispatcher._executor = ThreadPoolExecutor(max_workers=1)

        def app_name():
            return current_app.name

        try:
            assert dispatcher.submit(app_name).result(timeout=5) == app.name
        finally:
            dispatcher.shutdown()

    def test_background_failure_is_swallowed(self, app):
        dispatcher = NotificationDispatcher()
        dispatcher.app = app
        dispatcher._executor = ThreadPoolExecutor(max_workers=1)

        def failing():
            raise RuntimeError('boom')

        try:
            assert dispatcher.submit(failing).result(timeout=5) is False
        finally:
            dispatcher.shutdown()

    def test_snapshot_failure_queues_nothing(self, app, monkeypatch):
        def broken(order):
            raise RuntimeError('instance is detached')
        monkeypatch.setattr(OrderEmailData, 'from_order', broken)
        dispatcher = app.extensions['email_dispatcher']

        with mail.record_messages() as outbox:
            assert dispatcher.send_order_emails(Order(id=9)) == []
        assert outbox == []
