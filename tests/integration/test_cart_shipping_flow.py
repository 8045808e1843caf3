"""
Integration tests for the cart and shipping selection APIs.
"""

from app.models import CartItem

from factories import CART_SESSION_ID

SELECTION = {
    'rate_id': 'rate_1',
    'shipment_id': 'shp_1',
    'carrier_name': 'USPS',
    'service_name': 'Priority',
    'price_cents': 895,
    'delivery_days': 2,
    'estimated_date': '2026-10-20',
    'shipping_address': {'city': 'Springfield', 'state': 'IL'},
}


class TestCartApi:

    def test_empty_cart_without_cookie(self, client):
        response = client.get('/api/cart')

        assert response.status_code == 200
        assert response.get_json() == {'items': [], 'total_cents': 0}

    def test_add_and_merge_lines(self, cart_client, products):
        cart_client.post('/api/cart/items', json={'product_id': 'widget', 'quantity': 1})
        response = cart_client.post('/api/cart/items', json={'product_id': 'widget', 'quantity': 2})

        assert response.status_code == 201
        data = response.get_json()
        assert len(data['items']) == 1
        assert data['items'][0]['quantity'] == 3
        assert data['total_cents'] == 4500

    def test_add_unknown_product(self, cart_client, products):
        response = cart_client.post('/api/cart/items', json={'product_id': 'nope'})
        assert response.status_code == 404

    def test_add_inactive_product(self, cart_client, session, products):
        products['gadget'].active = False
        session.commit()

        response = cart_client.post('/api/cart/items', json={'product_id': 'gadget'})
        assert response.status_code == 400

    def test_mutation_requires_cart_cookie(self, client, products):
        response = client.post('/api/cart/items', json={'product_id': 'widget'})
        assert response.status_code == 400

    def test_update_and_delete(self, cart_client, session, cart):
        widget = session.query(CartItem).filter_by(product_id='widget').first()
        gadget = session.query(CartItem).filter_by(product_id='gadget').first()

        response = cart_client.patch(f'/api/cart/items/{widget.id}', json={'quantity': 1})
        assert response.get_json()['total_cents'] == 2000

        response = cart_client.delete(f'/api/cart/items/{gadget.id}')
        assert response.get_json()['total_cents'] == 1500

        response = cart_client.patch(f'/api/cart/items/{widget.id}', json={'quantity': 0})
        assert response.get_json()['items'] == []

    def test_cannot_touch_other_session_items(self, client, session, cart):
        client.set_cookie('session_id', 'someone-else')
        widget = session.query(CartItem).filter_by(session_id=CART_SESSION_ID, product_id='widget').first()

        response = client.delete(f'/api/cart/items/{widget.id}')
        assert response.status_code == 404


class TestShippingSelectionApi:

    def test_save_and_read_back(self, cart_client, cart):
        response = cart_client.post('/api/shipping/selection', json=SELECTION)
        assert response.status_code == 200

        data = cart_client.get('/api/shipping/selection').get_json()
        assert data['selection']['rate_id'] == 'rate_1'
        assert data['selection']['is_valid'] is True
        assert data['shipping_address'] == {'city': 'Springfield', 'state': 'IL'}

    def test_missing_fields(self, cart_client, cart):
        response = cart_client.post('/api/shipping/selection', json={'rate_id': 'rate_1'})

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Missing required shipping fields'

    def test_no_selection(self, cart_client, cart):
        data = cart_client.get('/api/shipping/selection').get_json()
        assert data['selection'] is None

    def test_cart_change_invalidates_selection(self, cart_client, cart):
        cart_client.post('/api/shipping/selection', json=SELECTION)
        cart_client.post('/api/cart/items', json={'product_id': 'gadget', 'quantity': 1})

        data = cart_client.get('/api/shipping/selection').get_json()
        assert data['selection']['is_valid'] is False


class TestCsrfExemption:

    def test_json_apis_work_with_csrf_enabled(self, app, cart_client, session, cart, monkeypatch):
        monkeypatch.setitem(app.config, 'WTF_CSRF_ENABLED', True)
        widget = session.query(CartItem).filter_by(product_id='widget').first()

        assert cart_client.post('/api/cart/items', json={'product_id': 'gadget'}).status_code == 201
        assert cart_client.patch(f'/api/cart/items/{widget.id}', json={'quantity': 1}).status_code == 200
        assert cart_client.post('/api/shipping/selection', json=SELECTION).status_code == 200

        data = cart_client.get('/api/shipping/selection').get_json()
        assert data['selection']['is_valid'] is True
