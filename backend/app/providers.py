"""
Payment provider adapters.

Every adapter turns a generic donation request into a single provider call
(or none) and hands back the reference to store plus any provider-specific
fields for the response. Adapters are looked up by PaymentMethod through the
table returned by build_providers().
"""
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Dict, Optional
import asyncio
import logging
import math

import httpx
import stripe

from .config import Settings
from .errors import ProviderCallError, ProviderNotConfiguredError, UnsupportedMethodError
from .references import ReferenceGenerator

logger = logging.getLogger(__name__)

DEFAULT_DONOR_EMAIL = 'donor@example.com'


class PaymentMethod(str, Enum):
    STRIPE = 'stripe'
    CHAPA = 'chapa'
    TELEBIRR = 'telebirr'
    MANUAL = 'manual'

    @classmethod
    def parse(cls, value: str) -> 'PaymentMethod':
        key = value.strip().lower()
        key = METHOD_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise UnsupportedMethodError() from None


METHOD_ALIASES = {'bank': 'manual'}


@dataclass
class ProviderResult:
    reference: str
    fields: Dict[str, Any] = field(default_factory=dict)


class PaymentProvider:
    method: PaymentMethod

    async def initiate(self, name: str, amount: float, payment_method_data: Optional[dict]) -> ProviderResult:
        raise NotImplementedError


def to_minor_units(amount: float) -> int:
    # round half up, amounts are always positive here
    return int(math.floor(amount * 100 + 0.5))


class StripeProvider(PaymentProvider):
    method = PaymentMethod.STRIPE

    def __init__(self, secret_key: Optional[str], currency: str = 'usd'):
        self.secret_key = secret_key
        self.currency = currency

    def _create_intent(self, name: str, amount: float):
        return stripe.PaymentIntent.create(
            api_key=self.secret_key,
            amount=to_minor_units(amount),
            currency=self.currency,
            metadata={'donor': name},
        )

    async def initiate(self, name, amount, payment_method_data):
        if not self.secret_key:
            raise ProviderNotConfiguredError('Stripe')
        loop = asyncio.get_running_loop()
        try:
            intent = await loop.run_in_executor(None, partial(self._create_intent, name, amount))
        except stripe.StripeError as e:
            msg = getattr(e, 'user_message', None) or str(e)
            raise ProviderCallError(f'Stripe error creating intent: {msg}') from e
        intent_id = getattr(intent, 'id', None)
        if not intent_id:
            raise ProviderCallError('Stripe did not return an intent id')
        return ProviderResult(reference=intent_id, fields={'clientSecret': getattr(intent, 'client_secret', None)})


class ChapaProvider(PaymentProvider):
    method = PaymentMethod.CHAPA

    def __init__(
        self,
        secret_key: Optional[str],
        references: ReferenceGenerator,
        currency: str = 'ETB',
        base_url: str = 'https://api.chapa.co/v1',
        frontend_url: str = '',
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.references = references
        self.currency = currency
        self.base_url = base_url
        self.frontend_url = frontend_url
        self.timeout = timeout
        self.transport = transport

    def build_payload(self, name: str, amount: float, payment_method_data: Optional[dict]) -> dict:
        data = payment_method_data or {}
        return {
            'amount': amount,
            'currency': self.currency,
            'email': data.get('email') or DEFAULT_DONOR_EMAIL,
            'first_name': name,
            'callback_url': data.get('callback_url') or f"{self.frontend_url}/donation-success",
            'reference': self.references.next('chapa'),
        }

    async def initiate(self, name, amount, payment_method_data):
        if not self.secret_key:
            raise ProviderNotConfiguredError('Chapa')
        payload = self.build_payload(name, amount, payment_method_data)
        url = f"{self.base_url}/transaction/initialize"
        headers = {'Authorization': f'Bearer {self.secret_key}'}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise ProviderCallError(f'Chapa request failed: {e}') from e
        try:
            chapa_res = resp.json()
        except ValueError as e:
            raise ProviderCallError(f'Chapa returned a non-JSON body (status {resp.status_code})') from e

        # Non-2xx responses are still recorded; the checkout url is simply absent.
        if not resp.is_success:
            logger.warning('Chapa initialize returned %s for reference %s', resp.status_code, payload['reference'])

        checkout_url = None
        if isinstance(chapa_res, dict) and isinstance(chapa_res.get('data'), dict):
            checkout_url = chapa_res['data'].get('checkout_url')
        return ProviderResult(reference=checkout_url or payload['reference'], fields={'chapa': chapa_res})


class TelebirrProvider(PaymentProvider):
    """Placeholder: donors transfer through the Telebirr app and are confirmed by hand."""
    method = PaymentMethod.TELEBIRR

    def __init__(self, references: ReferenceGenerator, instructions: str):
        self.references = references
        self.instructions = instructions

    async def initiate(self, name, amount, payment_method_data):
        return ProviderResult(reference=self.references.next('telebirr'), fields={'message': self.instructions})


class ManualProvider(PaymentProvider):
    method = PaymentMethod.MANUAL

    def __init__(self, references: ReferenceGenerator):
        self.references = references

    async def initiate(self, name, amount, payment_method_data):
        return ProviderResult(reference=self.references.next('manual'))


def build_providers(
    settings: Settings,
    references: Optional[ReferenceGenerator] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[PaymentMethod, PaymentProvider]:
    references = references or ReferenceGenerator()
    providers = [
        StripeProvider(settings.stripe_secret_key, settings.stripe_currency),
        ChapaProvider(
            settings.chapa_secret_key,
            references,
            currency=settings.chapa_currency,
            base_url=settings.chapa_base_url,
            frontend_url=settings.frontend_url,
            timeout=settings.chapa_timeout,
            transport=transport,
        ),
        TelebirrProvider(references, settings.telebirr_instructions),
        ManualProvider(references),
    ]
    table = {p.method: p for p in providers}
    missing = set(PaymentMethod) - set(table)
    if missing:
        raise RuntimeError(f"No provider registered for: {', '.join(sorted(m.value for m in missing))}")
    return table
