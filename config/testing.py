"""
Testing configuration for the FixItNow backend
"""
import os
from config.settings import Config


class TestingConfig(Config):
    """Testing configuration with isolated database and safe defaults"""

    TESTING = True
    DEBUG = False

    # Use in-memory SQLite for fast tests
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'TEST_DATABASE_URL',
        'sqlite:///:memory:'
    )

    SECRET_KEY = 'test-secret-key'
    JWT_SECRET = 'test-jwt-secret'
    JWT_EXPIRES_DAYS = 1

    # Gateway: key id and secrets set, API calls never leave the process
    # because the test suite patches the order client.
    RAZORPAY_KEY_ID = 'rzp_test_mock'
    RAZORPAY_KEY_SECRET = 'rzp_test_secret'
    RAZORPAY_WEBHOOK_SECRET = 'rzp_webhook_secret'

    PLATFORM_COMMISSION_RATE = '0.10'
    MINIMUM_PAYOUT_AMOUNT = '100'

    # Disable rate limiting in tests
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = 'memory://'

    SENTRY_DSN = ''

    # Logging
    LOG_LEVEL = 'WARNING'

    # CORS - allow local dev servers in tests
    CORS_ORIGINS = ['http://localhost:5173', 'http://localhost:3000']
