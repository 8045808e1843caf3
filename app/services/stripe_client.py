"""Stripe API client for the reads the checkout pipeline needs."""
import logging
from typing import Any, Dict, Iterable, Optional

import requests
from flask import current_app

from app.exceptions import PaymentProviderError

logger = logging.getLogger(__name__)

# Expansions needed to reconcile discounts and line items of a checkout session
CHECKOUT_SESSION_EXPAND = (
    'total_details.breakdown',
    'line_items',
    'line_items.data.price.product',
)


class StripeClient:
    """Thin client for the Stripe REST endpoints the checkout pipeline reads."""

    DEFAULT_BASE_URL = "https://api.stripe.com"

    def __init__(self, api_key: str, base_url: Optional[str] = None, timeout: int = 10):
        """
        Initialize Stripe client.

        Args:
            api_key: Stripe secret key
            base_url: API root (overridable for stripe-mock)
            timeout: Per-request timeout in seconds
        """
        if not api_key:
            raise ValueError("STRIPE_SECRET_KEY is required")

        self.api_key = api_key
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip('/')
        self.timeout = timeout
        self.headers = {
            'Authorization': f'Bearer {self.api_key}',
        }

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = requests.get(url, params=params, headers=self.headers, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as e:
            logger.error(f"[STRIPE] GET {path} failed: {e.response.status_code} {e.response.text}")
            raise PaymentProviderError(f"Stripe GET {path} failed", {'status_code': e.response.status_code}) from e
        except requests.RequestException as e:
            logger.error(f"[STRIPE] GET {path} transport error: {e}")
            raise PaymentProviderError(f"Stripe GET {path} failed") from e

    def get_checkout_session(
        self,
        session_id: str,
        expand: Iterable[str] = CHECKOUT_SESSION_EXPAND
    ) -> Dict[str, Any]:
        """
        Retrieve a checkout session.

        Args:
            session_id: Checkout session id (cs_...)
            expand: Fields to expand in the response

        Returns:
            Checkout session object as a dict

        Raises:
            PaymentProviderError: If Stripe returns an error or is unreachable
        """
        logger.info(f"[STRIPE] Retrieving checkout session {session_id}")
        return self._get(
            f"/v1/checkout/sessions/{session_id}",
            params={'expand[]': list(expand)}
        )

    def get_promotion_code(self, promotion_code_id: str) -> Dict[str, Any]:
        """
        Retrieve a promotion code by its id (promo_...).

        Raises:
            PaymentProviderError: If Stripe returns an error or is unreachable
        """
        logger.info(f"[STRIPE] Retrieving promotion code {promotion_code_id}")
        return self._get(f"/v1/promotion_codes/{promotion_code_id}")


def init_stripe_client(app) -> None:
    """Build the shared client from app config, if a key is configured."""
    api_key = app.config.get('STRIPE_SECRET_KEY')
    if not api_key:
        app.logger.warning("[STRIPE] STRIPE_SECRET_KEY not set; provider reads are disabled")
        app.extensions['stripe_client'] = None
        return

    app.extensions['stripe_client'] = StripeClient(
        api_key=api_key,
        base_url=app.config.get('STRIPE_API_BASE'),
        timeout=app.config.get('STRIPE_TIMEOUT', 10),
    )


def get_stripe_client() -> Optional[StripeClient]:
    """Client bound to the current app, or None when unconfigured."""
    return current_app.extensions.get('stripe_client')
