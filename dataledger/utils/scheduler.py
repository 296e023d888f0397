"""Background scheduler for periodic reconciliation jobs"""
from apscheduler.schedulers.background import BackgroundScheduler
import logging

logger = logging.getLogger(__name__)

# Process-wide scheduler; one per deployment alongside the event listener
scheduler = None


def init_scheduler(app):
    """Initialize APScheduler with Flask app context"""
    global scheduler

    if scheduler is not None:
        return

    scheduler = BackgroundScheduler()
    scheduler.configure(
        jobstores={'default': {'type': 'memory'}},
        job_defaults={'coalesce': True, 'max_instances': 1}
    )

    scheduler.add_job(
        repair_orphan_events,
        'interval',
        minutes=app.config.get('ORPHAN_REPAIR_INTERVAL_MINUTES', 10),
        args=[app],
        id='repair_orphan_events',
        name='Replay orphaned ledger events',
        replace_existing=True
    )

    if not scheduler.running:
        scheduler.start()
        logger.info("Background scheduler started")


def repair_orphan_events(app):
    """Replay ledger events that had no off-chain record when first seen."""
    with app.app_context():
        from dataledger import db
        reconciler = app.extensions['reconciler']
        try:
            summary = reconciler.retry_orphans()
            if summary['resolved'] or summary['open']:
                logger.info(f"Orphan repair: {summary['resolved']} resolved, {summary['open']} still open")
        except Exception as e:
            logger.error(f"Error during orphan repair: {e}")
            db.session.rollback()
        finally:
            db.session.remove()


def shutdown_scheduler():
    """Shutdown the scheduler gracefully"""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown()
        logger.info("Background scheduler stopped")
    scheduler = None
