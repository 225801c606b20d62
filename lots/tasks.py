"""
Lots — Celery Tasks

Periodic expiry sweep over the lot ledger. Delivery of the alerts
(email, push, dashboards) is left to the consumers of the task result.

@file lots/tasks.py
"""

import logging

from celery import shared_task

logger = logging.getLogger('manchengo')


@shared_task(name='lots.scan_expiring_lots')
def scan_expiring_lots_task(within_days=None):
    """
    Daily task: report active lots that are expired or expiring soon.
    Registered with Celery Beat to run once per day at 06:00.
    """
    from .services import ExpiryAlertScanner

    result = ExpiryAlertScanner.scan(within_days, use_cache=False)
    expired = sum(
        1 for info in result.raw + result.finished if info.status == 'EXPIRED'
    )
    logger.info(
        'scan_expiring_lots_task completed: %d raw-material lot(s), %d finished-good lot(s), %d expired.',
        len(result.raw), len(result.finished), expired,
    )
    return {
        'raw': len(result.raw),
        'finished': len(result.finished),
        'expired': expired,
    }
