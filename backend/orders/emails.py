"""
Transactional email through an HTTP-invoked email function.

Email is never allowed to break checkout: every failure is logged and
reported in the returned dict instead of raised.
"""
import logging
import time

import requests
from django.conf import settings

from backend.core.utils import format_inr

logger = logging.getLogger(__name__)


def _message_id(prefix):
    return f"{prefix}-{int(time.time() * 1000)}"


def _log_would_send(email_data, reason):
    customer = email_data.get('customer', {})
    logger.info(
        f"Email {reason} - order confirmation would be sent to {customer.get('email')} "
        f"(order={email_data.get('order_id')}, items={len(email_data.get('items', []))})"
    )


def _post(payload):
    headers = {'Content-Type': 'application/json'}
    if settings.EMAIL_FUNCTION_KEY:
        headers['Authorization'] = f"Bearer {settings.EMAIL_FUNCTION_KEY}"
    return requests.post(
        settings.EMAIL_FUNCTION_URL,
        json=payload,
        headers=headers,
        timeout=settings.EMAIL_FUNCTION_TIMEOUT,
    )


def _send(payload, email_data, dev_prefix='dev'):
    if not settings.EMAIL_FUNCTION_URL:
        _log_would_send(email_data, 'service not configured')
        return {
            'success': True,
            'message_id': _message_id(dev_prefix),
            'message': 'Email logged (email function not configured)',
        }

    try:
        response = _post(payload)
        if response.status_code == 404:
            _log_would_send(email_data, 'function not deployed')
            return {
                'success': True,
                'message_id': _message_id('fallback'),
                'message': 'Email logged (email function not available)',
            }
        response.raise_for_status()
        result = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"Email service error (non-critical): {e}")
        return {'success': False, 'error': str(e)}

    if not result.get('success'):
        error = result.get('error') or 'Failed to send email'
        logger.warning(f"Email service rejected message for order {email_data.get('order_id')}: {error}")
        return {'success': False, 'error': error}

    logger.info(f"Email sent for order {email_data.get('order_id')}: {result.get('messageId')}")
    return {
        'success': True,
        'message_id': result.get('messageId'),
        'message': 'Email sent successfully',
    }


def send_order_confirmation_email(email_data):
    """Send the order confirmation; email_data comes from order_email_data()"""
    customer = email_data['customer']
    order = email_data['order']
    payload = {
        'type': 'order_confirmation',
        'to_email': customer['email'],
        'to_name': customer.get('name') or customer['email'],
        'order_id': email_data['order_id'],
        'order_data': {
            **{k: v for k, v in order.items() if k != 'total_amount'},
            'total_amount': format_inr(order['total_amount']),
            'items': [
                {**item, 'price': str(item['price'])}
                for item in email_data.get('items', [])
            ],
        },
    }
    return _send(payload, email_data)


def send_order_status_update_email(email_data, new_status):
    """Notify the customer that an order moved to new_status"""
    customer = email_data['customer']
    payload = {
        'type': 'status_update',
        'to_email': customer['email'],
        'to_name': customer.get('name') or customer['email'],
        'order_id': email_data['order_id'],
        'new_status': new_status,
        'order_data': {
            'total_amount': format_inr(email_data['order']['total_amount']),
        },
    }
    return _send(payload, email_data, dev_prefix='dev-status')
