"""Warranty expiry alert job."""

import logging
from datetime import date
from typing import Optional

from servicedesk.models.customer import Customer
from servicedesk.models.machine import Machine
from servicedesk.models.service_record import ServiceRecord
from servicedesk.services.notification_service import NotificationDispatcher
from servicedesk.services.service_record_service import list_warranty_expiring
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


async def run_warranty_expiry_alerts(
    db: AsyncSession, dispatcher: NotificationDispatcher, window_days: int, today: Optional[date] = None
) -> int:
    """
    Send the warranty-expiring notification for every ACTIVE service record
    whose warranty ends within window_days.

    A failure for one record is logged and the remaining records still go out.

    Returns:
        Number of service records alerted
    """
    records = await list_warranty_expiring(db, window_days, today)
    logger.info(f"Found {len(records)} service records with warranty expiring within {window_days} days")

    # Ids are captured up front; a rollback below expires the loaded records
    record_ids = [record.id for record in records]

    alerted = 0
    for record_id in record_ids:
        try:
            record = await db.get(ServiceRecord, record_id)
            customer = await db.get(Customer, record.customer_id)
            machine = await db.get(Machine, record.machine_id)
            await dispatcher.send_warranty_expiry_notification(db, record, customer, machine)
            alerted += 1
        except Exception as e:
            logger.error(f"Failed to send warranty alert for service record {record_id}: {e}")
            await db.rollback()

    return alerted


async def warranty_expiry_job(session_maker: async_sessionmaker, dispatcher: NotificationDispatcher, window_days: int):
    """Scheduler entry point: runs the alerts in their own session."""
    logger.info("Running warranty expiry alert job...")
    try:
        async with session_maker() as db:
            alerted = await run_warranty_expiry_alerts(db, dispatcher, window_days)
        logger.info(f"Warranty expiry alert job completed: {alerted} records alerted")
    except Exception as e:
        logger.error(f"Error in warranty expiry alert job: {e}", exc_info=True)
