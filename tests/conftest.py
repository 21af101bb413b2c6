"""
Pytest configuration and fixtures for FixItNow backend tests
"""
import uuid

import pytest

from fixitnow import create_app, db
from fixitnow.models import Job, Professional, User
from fixitnow.services import jobs as job_service
from fixitnow.utils.auth import generate_token


@pytest.fixture(scope='function')
def app():
    """Create application instance for testing (fresh in-memory database per test)"""
    app = create_app('testing')

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture
def user_factory(app):
    """Factory for creating users; professionals get a profile"""
    def _create_user(role='customer', city='Mumbai', bank=False, **kwargs):
        defaults = {
            'email': f'{role}_{uuid.uuid4().hex[:8]}@example.com',
            'name': f'Test {role.title()}',
            'phone': '9876543210',
            'role': role,
        }
        defaults.update(kwargs)

        user = User(**defaults)
        user.set_password('TestPass123!')
        db.session.add(user)

        if role == 'professional':
            profile = Professional(user=user, city=city, services=['plumbing'])
            if bank:
                profile.bank_account_holder_name = user.name
                profile.bank_account_number = '123456789012'
                profile.bank_ifsc_code = 'HDFC0001234'
                profile.bank_name = 'HDFC Bank'
                profile.bank_branch_name = 'Andheri'
                profile.bank_account_type = 'savings'
            db.session.add(profile)

        db.session.commit()
        return user

    return _create_user


@pytest.fixture
def customer(user_factory):
    return user_factory('customer', name='Asha Customer')


@pytest.fixture
def professional_user(user_factory):
    return user_factory('professional', name='Ravi Plumber', bank=True)


@pytest.fixture
def professional(professional_user):
    """Professional profile of ``professional_user``"""
    return professional_user.professional_profile


@pytest.fixture
def admin(user_factory):
    return user_factory('admin', name='Ops Admin')


@pytest.fixture
def headers_for(app):
    """Build JSON + bearer-token headers for a user"""
    def _headers(user):
        return {
            'Authorization': f'Bearer {generate_token(user.id, user.role)}',
            'Content-Type': 'application/json',
        }
    return _headers


@pytest.fixture
def customer_headers(headers_for, customer):
    return headers_for(customer)


@pytest.fixture
def professional_headers(headers_for, professional_user):
    return headers_for(professional_user)


@pytest.fixture
def admin_headers(headers_for, admin):
    return headers_for(admin)


@pytest.fixture
def job_factory(customer):
    """Factory for creating jobs in any lifecycle state"""
    def _create_job(professional=None, **kwargs):
        defaults = {
            'customer_id': customer.id,
            'title': 'Fix kitchen sink',
            'category': 'plumbing',
            'address': '12 MG Road',
            'city': 'Mumbai',
            'status': 'pending',
            'payment_status': 'pending',
            'receipt_photos': [],
        }
        if professional is not None:
            defaults['professional_id'] = professional.id
            defaults['status'] = 'in_progress'
        defaults.update(kwargs)

        job = Job(**defaults)
        db.session.add(job)
        db.session.commit()
        return job

    return _create_job


@pytest.fixture
def completed_job(job_factory, professional):
    """Complete a fresh in-progress job through the service layer"""
    def _complete(price, method, **kwargs):
        job = job_factory(professional=professional, **kwargs)
        return job_service.complete_job(job, professional, price, method)
    return _complete


@pytest.fixture
def cash_job(completed_job):
    """A completed ₹500 cash job awaiting confirmation"""
    return completed_job(500, 'cash')


@pytest.fixture
def online_job(completed_job):
    """A completed ₹1000 online job awaiting payment"""
    return completed_job(1000, 'online')
