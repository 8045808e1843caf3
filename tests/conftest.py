import copy
import json

import pytest

from app import create_app
from app.database import create_all, drop_all, get_session
from app.exceptions import PaymentProviderError
from app.models import CartItem, Product
from app.services.stripe_client import CHECKOUT_SESSION_EXPAND

from factories import CART_SESSION_ID, sign_payload


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestingConfig')
    return app


@pytest.fixture(autouse=True)
def database(app):
    """Fresh schema per test, inside an app context."""
    with app.app_context():
        create_all()
        yield
        get_session().rollback()
    get_session().remove()
    drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def cart_client(client):
    """Test client carrying the storefront cart cookie."""
    client.set_cookie('session_id', CART_SESSION_ID)
    return client


@pytest.fixture(scope='function')
def session():
    """Database session for testing."""
    return get_session()


@pytest.fixture(scope='function')
def products(session):
    """Two active catalog products."""
    widget = Product(id='widget', name='Widget', sku='W-1', price_cents=1500, active=True)
    gadget = Product(id='gadget', name='Gadget', sku='G-1', price_cents=500, active=True)
    session.add_all([widget, gadget])
    session.commit()
    return {'widget': widget, 'gadget': gadget}


@pytest.fixture(scope='function')
def cart(session, products):
    """Guest cart: 2 x widget + 1 x gadget = 3500 cents."""
    items = [
        CartItem(session_id=CART_SESSION_ID, product_id='widget', quantity=2),
        CartItem(session_id=CART_SESSION_ID, product_id='gadget', quantity=1),
    ]
    session.add_all(items)
    session.commit()
    return items


class FakeStripeClient:
    """In-memory stand-in for StripeClient."""

    def __init__(self, sessions=None, promotion_codes=None):
        self.sessions = sessions or {}
        self.promotion_codes = promotion_codes or {}
        self.calls = []

    def get_checkout_session(self, session_id, expand=CHECKOUT_SESSION_EXPAND):
        self.calls.append(('checkout_session', session_id, tuple(expand)))
        if session_id not in self.sessions:
            raise PaymentProviderError(f'No such checkout session: {session_id}', {'status_code': 404})
        return copy.deepcopy(self.sessions[session_id])

    def get_promotion_code(self, promotion_code_id):
        self.calls.append(('promotion_code', promotion_code_id))
        if promotion_code_id not in self.promotion_codes:
            raise PaymentProviderError(f'No such promotion code: {promotion_code_id}', {'status_code': 404})
        return copy.deepcopy(self.promotion_codes[promotion_code_id])


@pytest.fixture(scope='function')
def fake_stripe(app):
    """Replace the app's Stripe client for the duration of a test."""
    original = app.extensions.get('stripe_client')
    fake = FakeStripeClient()
    app.extensions['stripe_client'] = fake
    yield fake
    app.extensions['stripe_client'] = original


@pytest.fixture
def post_event(client):
    """POST an event to the Stripe webhook, optionally signed."""
    def _post(event, secret=None, signature=None):
        body = json.dumps(event)
        headers = {'Content-Type': 'application/json'}
        if signature is not None:
            headers['Stripe-Signature'] = signature
        elif secret:
            headers['Stripe-Signature'] = sign_payload(body, secret)
        return client.post('/webhooks/stripe', data=body, headers=headers)
    return _post
