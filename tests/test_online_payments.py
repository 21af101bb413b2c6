"""
Online payment tests for Razorpay
Tests order creation, checkout signature verification and webhooks
"""
import hashlib
import hmac
import json
from decimal import Decimal

import pytest
import requests
from sqlalchemy.exc import OperationalError

from fixitnow import db
from fixitnow.errors import StateConflictError
from fixitnow.models import WebhookEvent, save_changes
from fixitnow.services import online_payments
from fixitnow.services.ledger import compute_balance

KEY_SECRET = 'rzp_test_secret'
WEBHOOK_SECRET = 'rzp_webhook_secret'


def checkout_signature(order_id, payment_id, secret=KEY_SECRET):
    return hmac.new(secret.encode(), f'{order_id}|{payment_id}'.encode(), hashlib.sha256).hexdigest()


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload
        self.content = json.dumps(payload).encode()

    def json(self):
        return self._payload


@pytest.fixture
def razorpay_orders(monkeypatch):
    """Patch the Orders API; records calls"""
    calls = []

    def fake_post(url, auth=None, json=None, timeout=None):
        calls.append({'url': url, 'auth': auth, 'json': json})
        return FakeResponse(200, {
            'id': 'order_TEST123',
            'amount': json['amount'],
            'currency': json['currency'],
            'receipt': json['receipt'],
            'status': 'created',
        })

    monkeypatch.setattr(online_payments.requests, 'post', fake_post)
    return calls


class TestSignatures:
    """HMAC helpers"""

    def test_valid_checkout_signature(self):
        sig = checkout_signature('order_1', 'pay_1')
        assert online_payments.verify_payment_signature('order_1', 'pay_1', sig, KEY_SECRET)

    def test_swapped_ids_fail(self):
        sig = checkout_signature('order_1', 'pay_1')
        assert not online_payments.verify_payment_signature('pay_1', 'order_1', sig, KEY_SECRET)

    def test_missing_secret_fails(self):
        sig = checkout_signature('order_1', 'pay_1')
        assert not online_payments.verify_payment_signature('order_1', 'pay_1', sig, '')

    def test_webhook_signature_over_raw_body(self):
        body = b'{"event":"payment.captured"}'
        sig = hmac.new(WEBHOOK_SECRET.encode(), body, hashlib.sha256).hexdigest()
        assert online_payments.verify_webhook_signature(body, sig, WEBHOOK_SECRET)
        assert not online_payments.verify_webhook_signature(body + b' ', sig, WEBHOOK_SECRET)


class TestCreateOrder:
    """Gateway order creation"""

    def test_order_in_paise(self, client, customer_headers, online_job, razorpay_orders):
        response = client.post(f'/api/payments/{online_job.id}/order', headers=customer_headers)

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data['order']['id'] == 'order_TEST123'
        assert razorpay_orders[0]['json']['amount'] == 100000
        assert razorpay_orders[0]['json']['currency'] == 'INR'
        assert razorpay_orders[0]['auth'] == ('rzp_test_mock', KEY_SECRET)
        assert online_job.gateway_order_id == 'order_TEST123'

    def test_existing_order_reused(self, client, customer_headers, online_job, razorpay_orders):
        client.post(f'/api/payments/{online_job.id}/order', headers=customer_headers)
        client.post(f'/api/payments/{online_job.id}/order', headers=customer_headers)
        assert len(razorpay_orders) == 1

    def test_dev_order_without_keys(self, app, customer, online_job):
        app.config['RAZORPAY_KEY_ID'] = ''
        order = online_payments.create_order(online_job, customer)
        assert order['id'].startswith('order_dev_')
        assert order['amount'] == 100000

    def test_gateway_failure_is_502(self, client, customer_headers, online_job, monkeypatch):
        def boom(*args, **kwargs):
            raise requests.exceptions.ConnectionError('down')
        monkeypatch.setattr(online_payments.requests, 'post', boom)

        response = client.post(f'/api/payments/{online_job.id}/order', headers=customer_headers)

        assert response.status_code == 502
        assert json.loads(response.data)['kind'] == 'gateway_error'
        assert online_job.gateway_order_id is None

    def test_cash_job_cannot_be_paid_online(self, client, customer_headers, cash_job, razorpay_orders):
        response = client.post(f'/api/payments/{cash_job.id}/order', headers=customer_headers)
        assert response.status_code == 409
        assert razorpay_orders == []


class TestVerifyPayment:
    """Online completion scenario"""

    def test_verify_marks_paid_and_credits_ledger(self, client, customer_headers, professional,
                                                  online_job, razorpay_orders):
        client.post(f'/api/payments/{online_job.id}/order', headers=customer_headers)
        assert online_job.payment_status == 'pending'
        assert compute_balance(professional.id)['total_earnings'] == Decimal('0.00')

        response = client.post(f'/api/payments/{online_job.id}/verify', headers=customer_headers, json={
            'order_id': 'order_TEST123',
            'payment_id': 'pay_ABC',
            'signature': checkout_signature('order_TEST123', 'pay_ABC'),
        })

        assert response.status_code == 200
        assert online_job.payment_status == 'paid'
        assert online_job.gateway_payment_id == 'pay_ABC'
        assert online_job.paid_at is not None
        assert compute_balance(professional.id)['total_earnings'] == Decimal('900.00')

    def test_bad_signature_rejected(self, client, customer_headers, online_job, razorpay_orders):
        client.post(f'/api/payments/{online_job.id}/order', headers=customer_headers)

        response = client.post(f'/api/payments/{online_job.id}/verify', headers=customer_headers, json={
            'order_id': 'order_TEST123',
            'payment_id': 'pay_X',
            'signature': 'deadbeef',
        })

        assert response.status_code == 400
        assert json.loads(response.data)['kind'] == 'invalid_signature'
        assert online_job.payment_status == 'pending'

    def test_foreign_order_id_rejected(self, client, customer_headers, online_job, razorpay_orders):
        client.post(f'/api/payments/{online_job.id}/order', headers=customer_headers)

        response = client.post(f'/api/payments/{online_job.id}/verify', headers=customer_headers, json={
            'order_id': 'order_OTHER',
            'payment_id': 'pay_X',
            'signature': checkout_signature('order_OTHER', 'pay_X'),
        })
        assert response.status_code == 400
        assert online_job.payment_status == 'pending'

    def test_already_paid_conflicts(self, client, customer_headers, online_job, razorpay_orders):
        client.post(f'/api/payments/{online_job.id}/order', headers=customer_headers)
        payload = {
            'order_id': 'order_TEST123',
            'payment_id': 'pay_A',
            'signature': checkout_signature('order_TEST123', 'pay_A'),
        }
        first = client.post(f'/api/payments/{online_job.id}/verify', headers=customer_headers, json=payload)
        assert first.status_code == 200
        response = client.post(f'/api/payments/{online_job.id}/verify', headers=customer_headers, json=payload)
        assert response.status_code == 409

    def test_missing_fields(self, client, customer_headers, online_job):
        response = client.post(f'/api/payments/{online_job.id}/verify', headers=customer_headers,
                               json={'order_id': 'order_A'})
        assert response.status_code == 400

    def test_verify_requires_an_open_order(self, client, customer_headers, online_job):
        response = client.post(f'/api/payments/{online_job.id}/verify', headers=customer_headers, json={
            'order_id': 'order_A',
            'payment_id': 'pay_A',
            'signature': checkout_signature('order_A', 'pay_A'),
        })

        assert response.status_code == 409
        assert online_job.payment_status == 'pending'
        assert online_job.gateway_payment_id is None


class TestCheckoutReplay:
    """A settled checkout triple cannot pay for a different job"""

    @pytest.fixture
    def paid_cheap_job(self, client, customer_headers, completed_job, razorpay_orders):
        job = completed_job(100, 'online')
        client.post(f'/api/payments/{job.id}/order', headers=customer_headers)
        client.post(f'/api/payments/{job.id}/verify', headers=customer_headers, json={
            'order_id': 'order_TEST123',
            'payment_id': 'pay_cheap',
            'signature': checkout_signature('order_TEST123', 'pay_cheap'),
        })
        assert job.payment_status == 'paid'
        return job

    def test_replay_on_job_without_order(self, client, customer_headers, professional,
                                         completed_job, paid_cheap_job):
        expensive = completed_job(5000, 'online')

        response = client.post(f'/api/payments/{expensive.id}/verify', headers=customer_headers, json={
            'order_id': 'order_TEST123',
            'payment_id': 'pay_cheap',
            'signature': checkout_signature('order_TEST123', 'pay_cheap'),
        })

        assert response.status_code == 409
        assert expensive.payment_status == 'pending'
        assert compute_balance(professional.id)['total_earnings'] == Decimal('90.00')

    def test_replay_against_other_order(self, client, customer_headers, completed_job, paid_cheap_job):
        expensive = completed_job(5000, 'online')
        expensive.gateway_order_id = 'order_BIG'
        db.session.commit()

        response = client.post(f'/api/payments/{expensive.id}/verify', headers=customer_headers, json={
            'order_id': 'order_TEST123',
            'payment_id': 'pay_cheap',
            'signature': checkout_signature('order_TEST123', 'pay_cheap'),
        })

        assert response.status_code == 400
        assert expensive.payment_status == 'pending'

    def test_payment_id_settles_one_job_only(self, client, customer_headers, completed_job, paid_cheap_job):
        expensive = completed_job(5000, 'online')
        expensive.gateway_order_id = 'order_BIG'
        db.session.commit()

        response = client.post(f'/api/payments/{expensive.id}/verify', headers=customer_headers, json={
            'order_id': 'order_BIG',
            'payment_id': 'pay_cheap',
            'signature': checkout_signature('order_BIG', 'pay_cheap'),
        })

        assert response.status_code == 409
        assert expensive.payment_status == 'pending'
        assert expensive.gateway_payment_id is None


class TestWebhook:
    """Razorpay webhook deliveries"""

    def _signed(self, event, order_id, payment_id='pay_W1', secret=WEBHOOK_SECRET):
        payload = {
            'event': event,
            'payload': {
                'payment': {'entity': {'id': payment_id, 'order_id': order_id, 'notes': {}}},
            },
        }
        body = json.dumps(payload).encode()
        return payload, body, hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()

    def _post(self, client, event, order_id, payment_id='pay_W1', event_id='evt_1', secret=WEBHOOK_SECRET):
        _, body, sig = self._signed(event, order_id, payment_id, secret)
        return client.post('/api/webhooks/razorpay', data=body, content_type='application/json', headers={
            'X-Razorpay-Signature': sig,
            'X-Razorpay-Event-Id': event_id,
        })

    def test_captured_marks_paid(self, client, online_job, razorpay_orders, customer):
        online_payments.create_order(online_job, customer)

        response = self._post(client, 'payment.captured', 'order_TEST123')

        assert response.status_code == 200
        assert json.loads(response.data)['status'] == 'processed'
        assert online_job.payment_status == 'paid'
        assert online_job.gateway_payment_id == 'pay_W1'

    def test_duplicate_delivery_is_acknowledged_once(self, client, online_job, razorpay_orders, customer):
        online_payments.create_order(online_job, customer)

        self._post(client, 'payment.captured', 'order_TEST123')
        response = self._post(client, 'payment.captured', 'order_TEST123')

        assert response.status_code == 200
        assert WebhookEvent.query.filter_by(event_id='evt_1').count() == 1

    def test_failed_then_captured(self, client, online_job, razorpay_orders, customer):
        online_payments.create_order(online_job, customer)

        self._post(client, 'payment.failed', 'order_TEST123', event_id='evt_f')
        assert online_job.payment_status == 'failed'

        self._post(client, 'payment.captured', 'order_TEST123', payment_id='pay_W2', event_id='evt_c')
        assert online_job.payment_status == 'paid'
        assert online_job.gateway_payment_id == 'pay_W2'

    def test_failed_after_paid_is_ignored(self, client, online_job, razorpay_orders, customer):
        online_payments.create_order(online_job, customer)

        self._post(client, 'payment.captured', 'order_TEST123', event_id='evt_c')
        response = self._post(client, 'payment.failed', 'order_TEST123', event_id='evt_f')

        assert json.loads(response.data)['status'] == 'ignored'
        assert online_job.payment_status == 'paid'

    def test_bad_signature_rejected(self, client, online_job):
        response = self._post(client, 'payment.captured', 'order_TEST123', secret='wrong')

        assert response.status_code == 400
        assert json.loads(response.data)['kind'] == 'invalid_signature'
        assert WebhookEvent.query.count() == 0

    def test_unknown_event_ignored(self, client):
        response = self._post(client, 'refund.created', 'order_none')

        assert response.status_code == 200
        assert json.loads(response.data)['status'] == 'ignored'


class TestWebhookRedelivery:
    """A delivery that could not be applied is applied when the gateway retries it"""

    @pytest.fixture
    def ordered_job(self, online_job, razorpay_orders, customer):
        online_payments.create_order(online_job, customer)
        return online_job

    def _signed(self, event_id):
        payload = {
            'event': 'payment.captured',
            'payload': {
                'payment': {'entity': {'id': 'pay_R1', 'order_id': 'order_TEST123', 'notes': {}}},
            },
        }
        body = json.dumps(payload).encode()
        sig = hmac.new(WEBHOOK_SECRET.encode(), body, hashlib.sha256).hexdigest()
        return body, sig, event_id, payload

    def test_retry_after_lost_race(self, ordered_job, professional, monkeypatch):
        def lost_race():
            db.session.rollback()
            raise StateConflictError('The record was modified by another request')

        delivery = self._signed('evt_race')
        monkeypatch.setattr(online_payments, 'save_changes', lost_race)
        event = online_payments.handle_webhook(*delivery)

        assert event.status == 'failed'
        assert ordered_job.payment_status == 'pending'

        monkeypatch.setattr(online_payments, 'save_changes', save_changes)
        event = online_payments.handle_webhook(*delivery)

        assert event.status == 'processed'
        assert event.error_message is None
        assert ordered_job.payment_status == 'paid'
        assert WebhookEvent.query.filter_by(event_id='evt_race').count() == 1
        assert compute_balance(professional.id)['total_earnings'] == Decimal('900.00')

    def test_retry_after_unfinished_attempt(self, ordered_job, monkeypatch):
        def database_down():
            db.session.rollback()
            raise OperationalError('UPDATE jobs', {}, Exception('connection lost'))

        delivery = self._signed('evt_down')
        monkeypatch.setattr(online_payments, 'save_changes', database_down)
        with pytest.raises(OperationalError):
            online_payments.handle_webhook(*delivery)

        assert WebhookEvent.query.filter_by(event_id='evt_down').one().status == 'received'

        monkeypatch.setattr(online_payments, 'save_changes', save_changes)
        event = online_payments.handle_webhook(*delivery)

        assert event.status == 'processed'
        assert ordered_job.payment_status == 'paid'

    def test_processed_delivery_not_reapplied(self, ordered_job, monkeypatch):
        delivery = self._signed('evt_done')
        online_payments.handle_webhook(*delivery)

        calls = []
        monkeypatch.setattr(online_payments, '_apply_event', lambda *args: calls.append(args))
        event = online_payments.handle_webhook(*delivery)

        assert event.status == 'processed'
        assert calls == []
