"""
Commission calculator.

Splits a job's final price between the platform and the professional. Cash
jobs carry no platform fee; online jobs pay the platform rate. The platform
fee is rounded half-up to paise and the professional's share is whatever
remains, so ``company_fee + provider_earnings == total`` holds exactly.
"""
from collections import namedtuple
from decimal import Decimal

from fixitnow.errors import ValidationError
from fixitnow.models.job import PAYMENT_METHODS
from fixitnow.utils.helpers import quantize_money, to_decimal

DEFAULT_ONLINE_RATE = Decimal('0.10')

Commission = namedtuple(
    'Commission',
    ['total', 'company_fee', 'provider_earnings', 'commission_rate', 'payment_method'],
)


def commission_rate_for(payment_method, online_rate=DEFAULT_ONLINE_RATE):
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f'Unsupported payment method: {payment_method}', field='payment_method'
        )
    return Decimal('0') if payment_method == 'cash' else to_decimal(online_rate, 'online_rate')


def calculate_commission(final_price, payment_method, online_rate=DEFAULT_ONLINE_RATE):
    """
    Compute the commission split for a completed job.

    Args:
        final_price: Price charged for the job (int, float, str or Decimal)
        payment_method (str): 'cash' or 'online'
        online_rate: Platform share for online payments

    Returns:
        Commission: total, company_fee, provider_earnings, commission_rate,
        payment_method

    Raises:
        ValidationError: negative or non-finite price, unknown method
    """
    price = to_decimal(final_price, 'final_price')
    if price < 0:
        raise ValidationError('final_price cannot be negative', field='final_price')
    price = quantize_money(price)

    rate = commission_rate_for(payment_method, online_rate)
    company_fee = quantize_money(price * rate)

    return Commission(
        total=price,
        company_fee=company_fee,
        provider_earnings=price - company_fee,
        commission_rate=rate,
        payment_method=payment_method,
    )
