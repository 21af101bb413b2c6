"""
Payout workflow tests for FixItNow
Tests bank details, request preconditions, snapshots and admin disbursement
"""
import json
from decimal import Decimal

import pytest
from sqlalchemy import text

from fixitnow import db
from fixitnow.errors import (
    BelowMinimumPayout, InsufficientBalance, MissingBankDetails, PayoutAlreadyPending,
    StateConflictError, ValidationError,
)
from fixitnow.models import Notification, Payout
from fixitnow.services import payouts as payout_service
from fixitnow.services.ledger import compute_balance


@pytest.fixture
def earn(completed_job):
    """Give the professional verified cash earnings of ``amount``"""
    def _earn(amount):
        job = completed_job(amount, 'cash')
        job.payment_status = 'cash_verified'
        db.session.commit()
        return job
    return _earn


class TestBankAccount:
    """Bank account details"""

    def test_update_bank_account(self, client, user_factory, headers_for):
        user = user_factory('professional')

        response = client.put('/api/payouts/bank-account', headers=headers_for(user), json={
            'account_holder_name': 'Ravi Kumar',
            'account_number': '000123456789',
            'ifsc_code': 'sbin0001234',
            'bank_name': 'State Bank of India',
            'account_type': 'current',
        })

        assert response.status_code == 200
        profile = user.professional_profile
        assert profile.bank_account_number == '000123456789'
        assert profile.bank_ifsc_code == 'SBIN0001234'
        assert profile.bank_account_type == 'current'
        # Masked on the way out
        assert json.loads(response.data)['professional']['bank_account_number'] == '********6789'

    @pytest.mark.parametrize('field,value', [
        ('account_number', '1234567'),
        ('account_number', '1' * 21),
        ('ifsc_code', 'SBIN000123'),
        ('account_type', 'salary'),
        ('account_holder_name', ''),
    ])
    def test_invalid_bank_details(self, professional, field, value):
        data = {
            'account_holder_name': 'Ravi Kumar',
            'account_number': '000123456789',
            'ifsc_code': 'SBIN0001234',
            'bank_name': 'State Bank of India',
            'account_type': 'savings',
        }
        data[field] = value
        with pytest.raises(ValidationError):
            payout_service.update_bank_account(professional, data)


class TestPayoutPreconditions:
    """Checked in order; first failure wins"""

    def test_missing_bank_details_first(self, user_factory):
        profile = user_factory('professional').professional_profile
        with pytest.raises(MissingBankDetails):
            payout_service.request_payout(profile, 50)

    def test_pending_payout_before_minimum(self, professional, earn):
        earn(1000)
        payout_service.request_payout(professional, 150)

        # 50 is also below the minimum, but the open payout is reported first
        with pytest.raises(PayoutAlreadyPending):
            payout_service.request_payout(professional, 50)

    def test_below_minimum(self, professional, earn):
        earn(1000)
        with pytest.raises(BelowMinimumPayout):
            payout_service.request_payout(professional, '99.99')

    def test_premature_payout_insufficient_balance(self, professional, earn):
        earn(300)

        with pytest.raises(InsufficientBalance) as exc:
            payout_service.request_payout(professional, 400)

        assert exc.value.details['available_balance'] == 300.0
        assert Payout.query.count() == 0

    def test_unconfirmed_cash_cannot_be_withdrawn(self, professional, completed_job):
        completed_job(500, 'cash')
        with pytest.raises(InsufficientBalance):
            payout_service.request_payout(professional, 200)

    @pytest.mark.parametrize('amount', ['ten', None, 'NaN', 'Infinity'])
    def test_amount_must_be_a_number(self, professional, amount):
        with pytest.raises(ValidationError):
            payout_service.request_payout(professional, amount)

    @pytest.mark.parametrize('amount', [0, -5])
    def test_non_positive_amount_is_below_minimum(self, professional, earn, amount):
        earn(1000)
        with pytest.raises(BelowMinimumPayout):
            payout_service.request_payout(professional, amount)

    @pytest.mark.parametrize('amount', [0, -5, 50, 150])
    def test_open_payout_wins_regardless_of_amount(self, professional, earn, amount):
        earn(1000)
        payout_service.request_payout(professional, 150)

        with pytest.raises(PayoutAlreadyPending):
            payout_service.request_payout(professional, amount)

    def test_notes_length_limit(self, professional, earn):
        earn(1000)
        with pytest.raises(ValidationError):
            payout_service.request_payout(professional, 200, notes='x' * 501)


class TestPayoutRequests:
    """Successful requests over HTTP"""

    def test_duplicate_payout_scenario(self, client, professional_headers, earn):
        earn(1000)

        response = client.post('/api/payouts', headers=professional_headers,
                               json={'amount': 150, 'notes': 'Weekly withdrawal'})
        assert response.status_code == 201
        data = json.loads(response.data)
        assert data['payout']['status'] == 'pending'
        assert data['payout']['amount'] == 150.0
        assert data['payout']['net_amount'] == 150.0
        assert data['payout']['notes'] == 'Weekly withdrawal'

        response = client.post('/api/payouts', headers=professional_headers, json={'amount': 50})
        assert response.status_code == 409
        assert json.loads(response.data)['kind'] == 'payout_already_pending'

    def test_insufficient_balance_over_http(self, client, professional_headers, earn):
        earn(300)
        response = client.post('/api/payouts', headers=professional_headers, json={'amount': 400})

        assert response.status_code == 400
        data = json.loads(response.data)
        assert data['kind'] == 'insufficient_balance'
        assert data['available_balance'] == 300.0

    def test_payout_notifies_professional(self, professional, professional_user, earn):
        earn(1000)
        payout_service.request_payout(professional, 200)
        assert Notification.query.filter_by(
            user_id=professional_user.id, type='payout_requested'
        ).count() == 1

    def test_bank_snapshot_is_immutable(self, professional, earn):
        earn(1000)
        payout = payout_service.request_payout(professional, 200)

        payout_service.update_bank_account(professional, {
            'account_holder_name': 'New Holder',
            'account_number': '999988887777',
            'ifsc_code': 'ICIC0000001',
            'bank_name': 'ICICI Bank',
            'account_type': 'savings',
        })

        db.session.expire_all()
        assert payout.account_number == '123456789012'
        assert payout.ifsc_code == 'HDFC0001234'
        assert payout.bank_name == 'HDFC Bank'
        assert professional.bank_account_number == '999988887777'

    def test_history_paginated(self, client, professional_headers, professional, earn):
        earn(1000)
        first = payout_service.request_payout(professional, 100)
        payout_service.advance_payout(first, 'failed', failure_reason='Bank rejected')
        payout_service.request_payout(professional, 120)

        response = client.get('/api/payouts?page=1&per_page=1', headers=professional_headers)

        data = json.loads(response.data)
        assert data['total'] == 2
        assert len(data['items']) == 1
        assert data['items'][0]['bank_account']['ifsc_code'] == 'HDFC0001234'

    def test_concurrent_request_loses_race(self, professional, earn):
        earn(1000)
        loaded_version = professional.version
        # Another request bumped the professional row after we loaded it
        db.session.execute(
            text('UPDATE professionals SET version = version + 1 WHERE id = :id'),
            {'id': professional.id},
        )

        with pytest.raises(StateConflictError):
            payout_service.request_payout(professional, 200)

        assert Payout.query.count() == 0
        assert professional.version == loaded_version


class TestAdminPayouts:
    """Disbursement administration"""

    def test_full_disbursement(self, client, admin_headers, professional, professional_user, earn):
        earn(1000)
        payout = payout_service.request_payout(professional, 500)

        response = client.patch(f'/api/admin/payouts/{payout.id}', headers=admin_headers,
                                json={'status': 'processing'})
        assert response.status_code == 200
        assert payout.processed_at is not None

        response = client.patch(f'/api/admin/payouts/{payout.id}', headers=admin_headers, json={
            'status': 'completed',
            'transaction_reference': 'UTR123456',
            'processing_fee': 5,
        })
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['payout']['status'] == 'completed'
        assert data['payout']['net_amount'] == 495.0
        assert payout.transaction_reference == 'UTR123456'
        assert Notification.query.filter_by(
            user_id=professional_user.id, type='payout_processed'
        ).count() == 1

    def test_failed_payout_releases_balance(self, professional, earn):
        earn(1000)
        payout = payout_service.request_payout(professional, 600)
        assert compute_balance(professional.id)['available_balance'] == Decimal('400.00')

        payout_service.advance_payout(payout, 'failed', failure_reason='Invalid IFSC')

        assert compute_balance(professional.id)['available_balance'] == Decimal('1000.00')
        # And a new request is allowed again
        payout_service.request_payout(professional, 600)

    def test_illegal_transition(self, client, admin_headers, professional, earn):
        earn(1000)
        payout = payout_service.request_payout(professional, 200)

        response = client.patch(f'/api/admin/payouts/{payout.id}', headers=admin_headers,
                                json={'status': 'completed'})
        assert response.status_code == 409

    def test_unknown_status_rejected(self, professional, earn):
        earn(1000)
        payout = payout_service.request_payout(professional, 200)
        with pytest.raises(ValidationError):
            payout_service.advance_payout(payout, 'cancelled')
        assert payout.status == 'pending'

    def test_failure_requires_reason(self, professional, earn):
        earn(1000)
        payout = payout_service.request_payout(professional, 200)
        with pytest.raises(ValidationError):
            payout_service.advance_payout(payout, 'failed')

    def test_admin_only(self, client, professional_headers, professional, earn):
        earn(1000)
        payout = payout_service.request_payout(professional, 200)
        response = client.patch(f'/api/admin/payouts/{payout.id}', headers=professional_headers,
                                json={'status': 'processing'})
        assert response.status_code == 403

    def test_admin_list_filters_by_status(self, client, admin_headers, professional, earn):
        earn(1000)
        payout_service.request_payout(professional, 200)

        response = client.get('/api/admin/payouts?status=pending', headers=admin_headers)
        data = json.loads(response.data)
        assert data['total'] == 1
        assert data['items'][0]['status'] == 'pending'
