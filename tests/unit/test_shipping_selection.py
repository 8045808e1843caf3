"""
Unit tests for cart snapshots and the shipping selection lifecycle.
"""

import json

import pytest

from app.exceptions import BusinessLogicError
from app.models import CartItem
from app.services.cart_service import add_to_cart, update_cart_item
from app.services.shipping_selection_service import (
    CartSnapshot, ShippingQuote, build_cart_snapshot, build_order_shipping_selection,
    compare_snapshots, get_shipping_selection, get_validated_selection,
    save_shipping_selection, selection_for_checkout
)

from factories import CART_SESSION_ID


def _quote(**overrides):
    data = {
        'rate_id': 'rate_1',
        'shipment_id': 'shp_1',
        'carrier_name': 'USPS',
        'service_name': 'Priority',
        'price_cents': 895,
        'shipping_amount_cents': 700,
        'box_cost_cents': 95,
        'handling_cost_cents': 100,
        'box_sku': 'BOX-S',
        'delivery_days': 2,
    }
    data.update(overrides)
    return ShippingQuote.from_dict(data)


class TestCompareSnapshots:

    def test_order_of_lines_is_irrelevant(self):
        a = CartSnapshot(items=(('widget', 2), ('gadget', 1)), total_cents=3500)
        b = CartSnapshot(items=(('gadget', 1), ('widget', 2)), total_cents=3500)
        assert compare_snapshots(a, b) is True

    def test_quantity_change_detected(self):
        a = CartSnapshot(items=(('widget', 3), ('gadget', 1)), total_cents=3500)
        b = CartSnapshot(items=(('widget', 2), ('gadget', 1)), total_cents=3500)
        assert compare_snapshots(a, b) is False

    def test_total_change_detected(self):
        a = CartSnapshot(items=(('widget', 2),), total_cents=3000)
        b = CartSnapshot(items=(('widget', 2),), total_cents=2800)
        assert compare_snapshots(a, b) is False

    def test_extra_line_detected(self):
        a = CartSnapshot(items=(('widget', 2), ('gadget', 1)), total_cents=3000)
        b = CartSnapshot(items=(('widget', 2),), total_cents=3000)
        assert compare_snapshots(a, b) is False

    def test_json_shape(self):
        snapshot = CartSnapshot(items=(('widget', 2),), total_cents=3000)
        assert json.loads(snapshot.to_json()) == {
            'items': [{'product_id': 'widget', 'quantity': 2}],
            'total_cents': 3000,
        }
        assert CartSnapshot.from_json(snapshot.to_json()) == snapshot

    def test_unreadable_json(self):
        with pytest.raises(ValueError):
            CartSnapshot.from_json('not json')
        with pytest.raises(ValueError):
            CartSnapshot.from_json('{"items": []}')


class TestShippingQuote:

    def test_required_fields(self):
        with pytest.raises(BusinessLogicError):
            ShippingQuote.from_dict({'rate_id': 'rate_1', 'carrier_name': 'USPS', 'service_name': 'Priority'})

    def test_shipping_amount_defaults_to_price(self):
        quote = ShippingQuote.from_dict({
            'rate_id': 'r', 'shipment_id': 's', 'carrier_name': 'c', 'service_name': 'n', 'price_cents': 650
        })
        assert quote.shipping_amount_cents == 650
        assert quote.box_sku == 'UNKNOWN'


class TestSelectionLifecycle:

    def test_build_cart_snapshot(self, session, cart):
        snapshot = build_cart_snapshot(session, CART_SESSION_ID)

        assert snapshot.total_cents == 3500
        assert sorted(snapshot.items) == [('gadget', 1), ('widget', 2)]

    def test_saved_selection_is_valid(self, session, cart):
        save_shipping_selection(session, CART_SESSION_ID, _quote(), {'city': 'Springfield'})

        validated = get_validated_selection(session, CART_SESSION_ID)
        assert validated.is_valid is True
        assert validated.selection.price_cents == 895

    def test_save_supersedes_previous_selection(self, session, cart):
        save_shipping_selection(session, CART_SESSION_ID, _quote())
        save_shipping_selection(session, CART_SESSION_ID, _quote(rate_id='rate_2', price_cents=1200))

        selection = get_shipping_selection(session, CART_SESSION_ID)
        assert selection.rate_id == 'rate_2'
        assert selection.price_cents == 1200

    def test_cart_change_invalidates_eagerly(self, session, cart):
        save_shipping_selection(session, CART_SESSION_ID, _quote())

        # Bypass the cart service so only the snapshot comparison can notice
        item = session.query(CartItem).filter_by(product_id='widget').first()
        item.quantity = 5
        session.commit()

        validated = get_validated_selection(session, CART_SESSION_ID)
        assert validated.is_valid is False

        session.expire_all()
        assert get_shipping_selection(session, CART_SESSION_ID).is_valid is False

    def test_invalid_selection_stays_invalid(self, session, cart):
        save_shipping_selection(session, CART_SESSION_ID, _quote())
        item = session.query(CartItem).filter_by(product_id='widget').first()

        item.quantity = 5
        session.commit()
        get_validated_selection(session, CART_SESSION_ID)

        item.quantity = 2
        session.commit()
        assert get_validated_selection(session, CART_SESSION_ID).is_valid is False

    def test_corrupt_snapshot_invalidates(self, session, cart):
        selection = save_shipping_selection(session, CART_SESSION_ID, _quote())
        selection.cart_snapshot_json = '{broken'
        session.commit()

        assert get_validated_selection(session, CART_SESSION_ID).is_valid is False

    def test_cart_mutations_invalidate(self, session, cart):
        save_shipping_selection(session, CART_SESSION_ID, _quote())
        add_to_cart(session, CART_SESSION_ID, 'gadget', 1)
        session.expire_all()
        assert get_shipping_selection(session, CART_SESSION_ID).is_valid is False

        save_shipping_selection(session, CART_SESSION_ID, _quote())
        item = session.query(CartItem).filter_by(product_id='widget').first()
        update_cart_item(session, CART_SESSION_ID, item.id, 1)
        session.expire_all()
        assert get_shipping_selection(session, CART_SESSION_ID).is_valid is False


class TestSelectionForCheckout:

    def test_valid_selection_is_consumed(self, session, cart):
        save_shipping_selection(session, CART_SESSION_ID, _quote())

        selection = selection_for_checkout(session, CART_SESSION_ID)
        assert selection is not None

        record = build_order_shipping_selection(selection)
        assert record.quoted_total_cents == 895
        assert record.quoted_shipping_amount_cents == 700
        assert record.candidate_box_sku == 'BOX-S'
        assert record.shipment_id == 'shp_1'

    def test_absent_selection(self, session, cart):
        assert selection_for_checkout(session, CART_SESSION_ID) is None
        assert selection_for_checkout(session, None) is None

    def test_stale_selection_not_consumed(self, session, cart):
        save_shipping_selection(session, CART_SESSION_ID, _quote())
        item = session.query(CartItem).filter_by(product_id='gadget').first()
        session.delete(item)
        session.commit()

        assert selection_for_checkout(session, CART_SESSION_ID) is None

    def test_selection_without_shipment_not_consumed(self, session, cart):
        selection = save_shipping_selection(session, CART_SESSION_ID, _quote())
        selection.shipment_id = ''
        session.commit()

        assert selection_for_checkout(session, CART_SESSION_ID) is None
