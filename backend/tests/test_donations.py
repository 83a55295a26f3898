import datetime
import re
from types import SimpleNamespace

import httpx
import pytest
import stripe
from sqlalchemy.exc import OperationalError

from app import donation_models
from conftest import count_donations


@pytest.mark.parametrize('payload', [
    {},
    {'amount': 10, 'method': 'manual'},
    {'name': 'Jane', 'method': 'manual'},
    {'name': 'Jane', 'amount': 10},
    {'name': '', 'amount': 10, 'method': 'manual'},
    {'name': 'Jane', 'amount': 0, 'method': 'manual'},
    {'name': 'Jane', 'amount': 10, 'method': ''},
])
def test_missing_fields_rejected(client, payload):
    resp = client.post('/api/donate', json=payload)
    assert resp.status_code == 400
    assert resp.json() == {'error': 'Missing required fields: name, amount, method'}
    assert count_donations(client) == 0


def test_empty_body_is_missing_fields(client):
    resp = client.post('/api/donate')
    assert resp.status_code == 400
    assert resp.json()['error'] == 'Missing required fields: name, amount, method'


def test_non_object_body_rejected(client):
    resp = client.post('/api/donate', json=['Jane', 10, 'manual'])
    assert resp.status_code == 400
    assert resp.json() == {'error': 'Invalid request body'}


@pytest.mark.parametrize('amount', [-5, 'abc', True])
def test_bad_amount_rejected(client, amount):
    resp = client.post('/api/donate', json={'name': 'Jane', 'amount': amount, 'method': 'manual'})
    assert resp.status_code == 400
    assert resp.json() == {'error': 'Amount must be a positive number'}
    assert count_donations(client) == 0


def test_unknown_method_rejected(client):
    resp = client.post('/api/donate', json={'name': 'Jane', 'amount': 10, 'method': 'unknown'})
    assert resp.status_code == 400
    assert resp.json() == {'error': 'Unsupported payment method'}
    assert count_donations(client) == 0


def test_manual_donation_created(client):
    resp = client.post('/api/donate', json={'name': 'Jane', 'amount': 50, 'method': 'manual'})
    assert resp.status_code == 200
    data = resp.json()
    assert data['success'] is True
    assert data['provider'] == 'manual'
    donation = data['donation']
    assert donation['method'] == 'manual'
    assert donation['name'] == 'Jane'
    assert donation['amount'] == 50
    assert re.fullmatch(r'manual_\d+', donation['reference'])
    assert 'createdAt' in donation
    assert count_donations(client) == 1


def test_bank_is_stored_as_manual(client):
    resp = client.post('/api/donate', json={'name': 'Jane', 'amount': '25.5', 'method': 'Bank'})
    assert resp.status_code == 200
    data = resp.json()
    assert data['provider'] == 'manual'
    assert data['donation']['method'] == 'manual'
    assert data['donation']['amount'] == 25.5


def test_telebirr_donation(make_client):
    client = make_client(clock=lambda: 1700000000000)
    resp = client.post('/api/donate', json={'name': 'Abebe', 'amount': 100, 'method': 'TeleBirr'})
    assert resp.status_code == 200
    data = resp.json()
    assert data['provider'] == 'telebirr'
    assert data['message'] == 'Use Telebirr app to transfer to account XYZ'
    assert data['donation']['reference'] == 'telebirr_1700000000000'


def test_stripe_not_configured(client):
    resp = client.post('/api/donate', json={'name': 'Jane', 'amount': 10, 'method': 'STRIPE'})
    assert resp.status_code == 500
    assert resp.json() == {'error': 'Stripe not configured'}
    assert count_donations(client) == 0


def test_stripe_donation(make_client, monkeypatch):
    calls = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(id='pi_123', client_secret='pi_123_secret_abc')

    monkeypatch.setattr(stripe.PaymentIntent, 'create', fake_create)
    client = make_client(stripe_secret_key='sk_test_x', stripe_currency='eur')
    resp = client.post('/api/donate', json={'name': 'Jane', 'amount': 19.99, 'method': 'Stripe'})
    assert resp.status_code == 200
    data = resp.json()
    assert data['provider'] == 'stripe'
    assert data['clientSecret'] == 'pi_123_secret_abc'
    assert data['donation']['reference'] == 'pi_123'
    assert calls[0]['amount'] == 1999
    assert calls[0]['currency'] == 'eur'
    assert calls[0]['metadata'] == {'donor': 'Jane'}
    assert calls[0]['api_key'] == 'sk_test_x'


def test_stripe_failure_creates_no_record(make_client, monkeypatch):
    def fake_create(**kwargs):
        raise stripe.StripeError('card declined')

    monkeypatch.setattr(stripe.PaymentIntent, 'create', fake_create)
    client = make_client(stripe_secret_key='sk_test_x')
    resp = client.post('/api/donate', json={'name': 'Jane', 'amount': 10, 'method': 'stripe'})
    assert resp.status_code == 500
    assert resp.json() == {'error': 'Server error'}
    assert count_donations(client) == 0


def test_chapa_not_configured(client):
    resp = client.post('/api/donate', json={'name': 'Jane', 'amount': 10, 'method': 'chapa'})
    assert resp.status_code == 500
    assert resp.json() == {'error': 'Chapa not configured'}
    assert count_donations(client) == 0


def test_chapa_donation_uses_checkout_url(make_client):
    seen = {}

    def handler(request):
        seen['url'] = str(request.url)
        seen['auth'] = request.headers['authorization']
        seen['body'] = request.read()
        return httpx.Response(200, json={
            'status': 'success',
            'data': {'checkout_url': 'https://checkout.chapa.co/pay/abc'},
        })

    client = make_client(
        transport=httpx.MockTransport(handler),
        clock=lambda: 1700000000000,
        chapa_secret_key='CHASECK_TEST',
    )
    resp = client.post('/api/donate', json={
        'name': 'Abebe', 'amount': 300, 'method': 'chapa',
        'paymentMethodData': {'email': 'abebe@example.com'},
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data['provider'] == 'chapa'
    assert data['chapa']['status'] == 'success'
    assert data['donation']['reference'] == 'https://checkout.chapa.co/pay/abc'
    assert seen['url'] == 'https://api.chapa.co/v1/transaction/initialize'
    assert seen['auth'] == 'Bearer CHASECK_TEST'
    assert b'"reference":"chapa_1700000000000"' in seen['body'].replace(b' ', b'')
    assert b'abebe@example.com' in seen['body']
    assert b'https://frontend.example/donation-success' in seen['body']


def test_chapa_error_response_still_recorded(make_client):
    def handler(request):
        return httpx.Response(400, json={'status': 'failed', 'message': 'Invalid currency', 'data': None})

    client = make_client(
        transport=httpx.MockTransport(handler),
        clock=lambda: 1700000000123,
        chapa_secret_key='CHASECK_TEST',
    )
    resp = client.post('/api/donate', json={'name': 'Abebe', 'amount': 300, 'method': 'chapa'})
    assert resp.status_code == 200
    data = resp.json()
    assert data['chapa']['status'] == 'failed'
    assert data['donation']['reference'] == 'chapa_1700000000123'
    assert count_donations(client) == 1


def test_chapa_transport_error_creates_no_record(make_client):
    def handler(request):
        raise httpx.ConnectError('connection refused', request=request)

    client = make_client(transport=httpx.MockTransport(handler), chapa_secret_key='CHASECK_TEST')
    resp = client.post('/api/donate', json={'name': 'Abebe', 'amount': 300, 'method': 'chapa'})
    assert resp.status_code == 500
    assert resp.json() == {'error': 'Server error'}
    assert count_donations(client) == 0


class FailingSession:
    def __init__(self):
        self.rolled_back = False

    def add(self, item):
        pass

    def commit(self):
        raise OperationalError('INSERT INTO donations', {}, Exception('disk I/O error'))

    def rollback(self):
        self.rolled_back = True

    def close(self):
        pass


def test_persistence_failure_returns_server_error(client, monkeypatch):
    session = FailingSession()
    monkeypatch.setattr(client.app.state.db, 'session', lambda: session)
    resp = client.post('/api/donate', json={'name': 'Jane', 'amount': 10, 'method': 'manual'})
    assert resp.status_code == 500
    assert resp.json() == {'error': 'Server error'}
    assert session.rolled_back


def test_list_donations_newest_first(client):
    for i in range(3):
        assert client.post('/api/donate', json={'name': f'donor{i}', 'amount': 10 + i, 'method': 'manual'}).status_code == 200

    # older record inserted last
    session = client.app.state.db.session()
    session.add(donation_models.Donation(
        name='early', amount=1, method='manual', reference='manual_1',
        created_at=datetime.datetime(2020, 1, 1),
    ))
    session.commit()
    session.close()

    resp = client.get('/api/donate')
    assert resp.status_code == 200
    data = resp.json()
    assert data['success'] is True
    donations = data['donations']
    assert len(donations) == 4
    stamps = [d['createdAt'] for d in donations]
    assert stamps == sorted(stamps, reverse=True)
    assert donations[-1]['name'] == 'early'


def test_list_donations_empty(client):
    resp = client.get('/api/donate')
    assert resp.json() == {'success': True, 'donations': []}
