"""
Integration tests for the checkout return page and the CLI maintenance commands.
"""

from app.models import Order, PromotionCampaign, PromotionCode

from factories import build_checkout_session, promotion_discount


class TestCheckoutSuccess:

    def test_missing_session_id(self, client, fake_stripe):
        assert client.get('/checkout/success').status_code == 400

    def test_creates_order_when_webhook_is_late(self, client, session, cart, fake_stripe):
        fake_stripe.sessions['cs_test_123'] = build_checkout_session()

        response = client.get('/checkout/success?session_id=cs_test_123')

        order = session.query(Order).one()
        assert response.status_code == 302
        assert response.location.endswith(f'/account/orders/{order.id}')

    def test_existing_order_reused(self, client, session, cart, fake_stripe):
        fake_stripe.sessions['cs_test_123'] = build_checkout_session()
        client.get('/checkout/success?session_id=cs_test_123')
        response = client.get('/checkout/success?session_id=cs_test_123')

        assert response.status_code == 302
        assert session.query(Order).count() == 1

    def test_provider_failure(self, client, session, fake_stripe):
        response = client.get('/checkout/success?session_id=cs_unknown')

        assert response.status_code == 500
        assert session.query(Order).count() == 0

    def test_stripe_not_configured(self, client):
        assert client.get('/checkout/success?session_id=cs_test_123').status_code == 500


class TestBackfillCommand:

    def _legacy_order(self, session, checkout_session_id='cs_test_123'):
        order = Order(
            customer_email='jane@example.com', customer_name='Jane Doe',
            subtotal_cents=1275, tax_cents=0, shipping_cents=0, total_cents=1275,
            stripe_checkout_session_id=checkout_session_id,
        )
        session.add(order)
        session.commit()
        return order

    def test_fills_discount_and_links_code(self, app, session, fake_stripe):
        campaign = PromotionCampaign(name='Welcome', discount_type='percentage', discount_value=15)
        campaign.codes = [PromotionCode(code='WELCOME15')]
        session.add(campaign)
        order = self._legacy_order(session)
        fake_stripe.sessions['cs_test_123'] = build_checkout_session(
            amount_total=1275, amount_discount=225, discounts=[promotion_discount(225)]
        )

        result = app.test_cli_runner().invoke(args=['backfill-order-discounts', '--delay', '0'])

        assert result.exit_code == 0
        assert '1 updated' in result.output
        session.expire_all()
        assert order.discount_cents == 225
        assert order.original_subtotal_cents == 1500
        assert order.promotion_code == 'WELCOME15'
        assert order.promotion_code_id == campaign.codes[0].id

    def test_dry_run_writes_nothing(self, app, session, fake_stripe):
        order = self._legacy_order(session)
        fake_stripe.sessions['cs_test_123'] = build_checkout_session(
            amount_total=1275, amount_discount=225, discounts=[promotion_discount(225)]
        )

        result = app.test_cli_runner().invoke(args=['backfill-order-discounts', '--dry-run', '--delay', '0'])

        assert result.exit_code == 0
        assert 'DRY RUN' in result.output
        session.expire_all()
        assert order.discount_cents is None

    def test_provider_errors_counted(self, app, session, fake_stripe):
        self._legacy_order(session, 'cs_missing')

        result = app.test_cli_runner().invoke(args=['backfill-order-discounts', '--delay', '0'])

        assert result.exit_code == 0
        assert '1 error(s)' in result.output

    def test_requires_stripe(self, app):
        result = app.test_cli_runner().invoke(args=['backfill-order-discounts'])
        assert result.exit_code == 1
