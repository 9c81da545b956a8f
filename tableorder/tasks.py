"""
Celery Tasks
Background bookkeeping for created orders.
"""

import logging
import time

from tableorder.celery_worker import celery_app
from tableorder.services.ledger import OrderLedger

logger = logging.getLogger(__name__)


class LedgerBusy(Exception):
    """The ledger lock could not be acquired in time."""


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(LedgerBusy, OSError),
    retry_backoff=True
)
def append_order_to_ledger(self, order_record: dict) -> dict:
    """
    Append a created order to the Excel ledger.

    Args:
        order_record: Flat order record (see ``services.export.order_to_record``)

    Returns:
        dict: Result of the ledger write
    """
    task_id = self.request.id
    order_id = order_record.get('order_id', 'unknown')

    logger.info(f"Task {task_id}: appending order #{order_id} to ledger")
    start_time = time.time()

    result = OrderLedger().append_order(order_record)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if not result['success']:
        logger.warning(f"Task {task_id}: order #{order_id} not written - {result['message']}")
        raise LedgerBusy(result['message'])

    logger.info(f"Task {task_id}: order #{order_id} written in {elapsed}s")
    return result
