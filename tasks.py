"""
Background tasks for the Shopee Seller Dashboard
"""

import logging
from celery_app import celery
from models import ALL_STATUSES
from sync_service import run_auto_sync, sync_orders, sync_products

logger = logging.getLogger(__name__)

def _flask_app():
    # imported here because app.py imports this module to queue tasks
    from app import app
    return app

@celery.task(bind=True)
def auto_sync_task(self):
    """Scheduled sync of the trailing window for every active shop"""
    try:
        self.update_state(state='PROGRESS', meta={'status': 'Syncing all shops...'})

        with _flask_app().app_context():
            result = run_auto_sync()

        logger.info(f"Auto sync finished: {result['summary']}")
        return result

    except Exception as e:
        logger.error(f"Error in auto_sync_task: {e}")
        raise

@celery.task(bind=True)
def sync_orders_task(self, shop_id, start_time=None, end_time=None, order_status=ALL_STATUSES):
    """Background task to sync one shop's orders from Shopee"""
    def report(progress):
        self.update_state(
            state='PROGRESS',
            meta={'status': f"Synced {progress['current']}/{progress['total']} orders...", **progress}
        )

    try:
        self.update_state(state='PROGRESS', meta={'status': 'Starting order sync...'})

        with _flask_app().app_context():
            synced_count = sync_orders(
                shop_id,
                start_time=start_time,
                end_time=end_time,
                order_status=order_status,
                on_progress=report
            )

        return {
            'status': 'completed',
            'synced_count': synced_count
        }

    except Exception as e:
        logger.error(f"Error in sync_orders_task: {e}")
        raise

@celery.task(bind=True)
def sync_products_task(self, shop_id):
    """Background task to sync one shop's items, variations and models"""
    def report(progress):
        self.update_state(
            state='PROGRESS',
            meta={'status': f"Synced {progress['current']}/{progress['total']} products...", **progress}
        )

    try:
        self.update_state(state='PROGRESS', meta={'status': 'Starting product sync...'})

        with _flask_app().app_context():
            synced_count = sync_products(shop_id, on_progress=report)

        return {
            'status': 'completed',
            'synced_count': synced_count
        }

    except Exception as e:
        logger.error(f"Error in sync_products_task: {e}")
        raise
