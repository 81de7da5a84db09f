from apscheduler.schedulers.background import BackgroundScheduler
from app.database import SessionLocal
from app.crud import notification as crud_notification
import logging
import os

logger = logging.getLogger(__name__)
scheduler = BackgroundScheduler()

PURGE_INTERVAL_MINUTES = int(os.getenv("NOTIFICATION_PURGE_INTERVAL_MINUTES", "60"))

def purge_expired_notifications():
    """
    Deletes notifications older than the retention window. Reads already
    hide them, so this only reclaims storage.
    """
    db = SessionLocal()
    try:
        purged = crud_notification.purge_expired_notifications(db)
        if purged > 0:
            logger.info(f"Purged {purged} expired notifications")
        else:
            logger.info("No expired notifications to purge")
    except Exception as e:
        logger.error(f"Scheduler Error in purge_expired_notifications: {e}")
        db.rollback()
    finally:
        db.close()

def start_scheduler():
    scheduler.add_job(
        purge_expired_notifications,
        'interval',
        minutes=PURGE_INTERVAL_MINUTES,
        id="purge_expired_notifications",
        replace_existing=True
    )
    scheduler.start()
    logger.info("Background Scheduler started.")

def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background Scheduler stopped.")
