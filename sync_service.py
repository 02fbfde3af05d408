"""
Synchronization of Shopee orders and products into the local store
"""

import time
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from flask import current_app

from models import db, Order, Item, ItemVariation, ItemModel, ORDER_STATUSES, ALL_STATUSES, upsert
from shop_registry import get_all_shops, get_shop, shop_label
from shopee_client import ShopeeClient, iter_pages

logger = logging.getLogger(__name__)

TIME_RANGE_FIELDS = ('create_time', 'update_time')

# Orders that have a shipping label and therefore a tracking number
TRACKABLE_STATUSES = {'PROCESSED', 'SHIPPED', 'TO_CONFIRM_RECEIVE', 'COMPLETED'}

ProgressCallback = Callable[[Dict[str, int]], None]
ErrorCallback = Callable[[Exception], None]

def sync_window(hours: int = 24, now: Optional[float] = None):
    """Trailing window ``(start_time, end_time)`` in unix seconds"""
    end_time = int(now if now is not None else time.time())
    return end_time - hours * 60 * 60, end_time

def _batches(values: List[Any], size: int):
    for index in range(0, len(values), size):
        yield values[index:index + size]

def _report(on_progress: Optional[ProgressCallback], current: int, total: int):
    if on_progress:
        on_progress({'current': current, 'total': total})

def _sku_qty(item_list: List[Dict[str, Any]]) -> str:
    parts = []
    for line in item_list:
        sku = line.get('model_sku') or line.get('item_sku') or line.get('item_name') or '-'
        parts.append(f"{sku} x{line.get('model_quantity_purchased', 0)}")
    return ', '.join(parts)

def normalize_order(order: Dict[str, Any], shop, tracking_number: str = None) -> Dict[str, Any]:
    """Map a get_order_detail record onto Order columns"""
    packages = order.get('package_list') or []
    carrier = order.get('shipping_carrier')
    if not carrier and packages:
        carrier = packages[0].get('shipping_carrier')

    return {
        'order_sn': order['order_sn'],
        'shop_id': shop.shop_id,
        'shop_name': shop.shop_name,
        'order_status': order.get('order_status'),
        'cancel_reason': order.get('cancel_reason') or None,
        'buyer_username': order.get('buyer_username'),
        'total_amount': order.get('total_amount'),
        'currency': order.get('currency'),
        'sku_qty': _sku_qty(order.get('item_list') or []),
        'tracking_number': tracking_number,
        'shipping_carrier': carrier,
        'payment_method': order.get('payment_method'),
        'cod': bool(order.get('cod')),
        'create_time': order.get('create_time'),
        'update_time': order.get('update_time'),
    }

def normalize_item(item: Dict[str, Any], shop_id: int) -> Dict[str, Any]:
    """Map a get_item_base_info record onto Item columns"""
    return {
        'item_id': item['item_id'],
        'shop_id': shop_id,
        'category_id': item.get('category_id'),
        'item_name': item.get('item_name') or '',
        'description': item.get('description'),
        'item_sku': item.get('item_sku'),
        'create_time': item.get('create_time'),
        'update_time': item.get('update_time'),
        'weight': str(item['weight']) if item.get('weight') is not None else None,
        'image': item.get('image'),
        'logistic_info': item.get('logistic_info'),
        'pre_order': item.get('pre_order'),
        'condition': item.get('condition'),
        'item_status': item.get('item_status'),
        'has_model': bool(item.get('has_model')),
        'brand': item.get('brand'),
        'item_dangerous': item.get('item_dangerous'),
        'description_type': item.get('description_type'),
        'size_chart_id': item.get('size_chart_id'),
        'promotion_image': item.get('promotion_image'),
        'deboost': str(item.get('deboost', 'FALSE')).upper() != 'FALSE',
        'authorised_brand_id': item.get('authorised_brand_id'),
    }

def normalize_variation(item_id: int, variation: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'item_id': item_id,
        'variation_id': variation['variation_id'],
        'variation_name': variation.get('variation_name'),
        'variation_option': {
            'group_id': variation.get('variation_group_id') or None,
            'options': [
                {
                    'id': option.get('variation_option_id'),
                    'name': option.get('variation_option_name'),
                    'image_url': option.get('image_url') or None,
                }
                for option in variation.get('variation_option_list') or []
            ],
        },
    }

def normalize_model(item_id: int, model: Dict[str, Any]) -> Dict[str, Any]:
    # price_info is a list in get_model_list and an object elsewhere
    price_info = model.get('price_info') or {}
    if isinstance(price_info, list):
        price_info = price_info[0] if price_info else {}

    return {
        'item_id': item_id,
        'model_id': model['model_id'],
        'model_name': model.get('model_name') or model.get('model_sku'),
        'current_price': price_info.get('current_price'),
        'original_price': price_info.get('original_price'),
        'stock_info': model.get('stock_info_v2') or model.get('stock_info'),
        'model_status': model.get('model_status'),
    }

def sync_orders(shop_id, time_range_field: str = 'create_time', start_time: int = None,
                end_time: int = None, order_status: str = ALL_STATUSES,
                on_progress: ProgressCallback = None, on_error: ErrorCallback = None,
                client: ShopeeClient = None) -> int:
    """Pull every order of one shop inside ``[start_time, end_time]`` and upsert it.

    The order list is walked first so the total is known; each list page is
    then resolved through get_order_detail, persisted and reported through
    ``on_progress``. Any failure rolls back the open batch, is handed to
    ``on_error`` and re-raised. Returns the number of orders synced.
    """
    try:
        config = current_app.config
        if start_time is None or end_time is None:
            start_time, end_time = sync_window(config['SYNC_WINDOW_HOURS'])
        if start_time > end_time:
            raise ValueError(f"start_time {start_time} is after end_time {end_time}")
        if time_range_field not in TIME_RANGE_FIELDS:
            raise ValueError(f"Unsupported time_range_field: {time_range_field}")
        if order_status != ALL_STATUSES and order_status not in ORDER_STATUSES:
            raise ValueError(f"Unsupported order_status: {order_status}")

        shop = get_shop(shop_id)
        client = client or ShopeeClient.for_shop(shop, config)
        status_param = None if order_status == ALL_STATUSES else order_status

        def fetch_page(cursor):
            page = client.get_order_list(
                time_range_field, start_time, end_time,
                cursor=cursor,
                page_size=config['ORDER_LIST_PAGE_SIZE'],
                order_status=status_param
            )
            return page['orders'], page['next_cursor']

        seen = set()
        order_pages = []
        for page in iter_pages(fetch_page, max_pages=config['SYNC_MAX_PAGES']):
            order_sns = [o['order_sn'] for o in page.records if o['order_sn'] not in seen]
            seen.update(order_sns)
            if order_sns:
                order_pages.append(order_sns)

        total = len(seen)
        current = 0
        if not total:
            _report(on_progress, 0, 0)

        for order_sns in order_pages:
            for batch in _batches(order_sns, config['ORDER_DETAIL_BATCH_SIZE']):
                for detail in client.get_order_detail(batch):
                    tracking_number = None
                    if detail.get('order_status') in TRACKABLE_STATUSES:
                        tracking_number = client.get_tracking_number(detail['order_sn'])
                    upsert(Order, ('order_sn',), normalize_order(detail, shop, tracking_number))

            db.session.commit()
            current += len(order_sns)
            _report(on_progress, current, total)

        logger.info(f"Successfully synced {total} orders for shop {shop_label(shop)}")
        return total

    except Exception as e:
        db.session.rollback()
        logger.error(f"Error syncing orders for shop {shop_id}: {e}")
        if on_error:
            on_error(e)
        raise

def sync_products(shop_id, on_progress: ProgressCallback = None,
                  on_error: ErrorCallback = None, client: ShopeeClient = None) -> int:
    """Pull every listed item of one shop with its variations and models"""
    try:
        config = current_app.config
        shop = get_shop(shop_id)
        client = client or ShopeeClient.for_shop(shop, config)
        total = 0

        def fetch_page(offset):
            nonlocal total
            page = client.get_item_list(offset=offset or 0, page_size=config['ITEM_LIST_PAGE_SIZE'])
            total = max(total, page['total'])
            return page['items'], page['next_offset']

        current = 0
        for page in iter_pages(fetch_page, max_pages=config['SYNC_MAX_PAGES']):
            item_ids = [entry['item_id'] for entry in page.records]

            for batch in _batches(item_ids, config['ITEM_BASE_INFO_BATCH_SIZE']):
                for item in client.get_item_base_info(batch):
                    item_id = item['item_id']
                    upsert(Item, ('item_id',), normalize_item(item, shop.shop_id))

                    if not item.get('has_model'):
                        continue

                    model_list = client.get_model_list(item_id)
                    for variation in model_list['variations']:
                        upsert(ItemVariation, ('item_id', 'variation_id'),
                               normalize_variation(item_id, variation))
                    for model in model_list['models']:
                        upsert(ItemModel, ('item_id', 'model_id'), normalize_model(item_id, model))

            db.session.commit()
            current += len(item_ids)
            _report(on_progress, current, max(total, current))

        logger.info(f"Successfully synced {current} products for shop {shop_label(shop)}")
        return current

    except Exception as e:
        db.session.rollback()
        logger.error(f"Error syncing products for shop {shop_id}: {e}")
        if on_error:
            on_error(e)
        raise

def sync_all_shops(start_time: int, end_time: int, order_status: str = ALL_STATUSES,
                   time_range_field: str = 'create_time', max_workers: int = None) -> Dict[str, str]:
    """Sync every active shop concurrently and settle all of them.

    Each shop runs in its own worker and application context, so a failing
    shop never stops its siblings. Returns ``{label: 'fulfilled'|'rejected'}``.
    """
    app = current_app._get_current_object()
    shops = [(shop.shop_id, shop_label(shop)) for shop in get_all_shops()]
    if not shops:
        logger.info("No active shops to sync")
        return {}

    def run(shop_id, label):
        with app.app_context():
            return sync_orders(
                shop_id,
                time_range_field=time_range_field,
                start_time=start_time,
                end_time=end_time,
                order_status=order_status,
                on_progress=lambda p: logger.info(f"Shop {label}: {p['current']}/{p['total']}"),
                on_error=lambda e: logger.error(f"Error syncing shop {label}: {e}")
            )

    workers = min(max_workers or app.config['SYNC_MAX_WORKERS'], len(shops))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [(label, executor.submit(run, shop_id, label)) for shop_id, label in shops]

    return {
        label: 'rejected' if future.exception() else 'fulfilled'
        for label, future in futures
    }

def run_auto_sync(now: Optional[float] = None) -> Dict[str, Any]:
    """Sync the trailing window for all shops and build the response body"""
    start_time, end_time = sync_window(current_app.config['SYNC_WINDOW_HOURS'], now)
    logger.info(f"Starting auto sync: {datetime.utcfromtimestamp(start_time)} - "
                f"{datetime.utcfromtimestamp(end_time)} UTC")

    summary = sync_all_shops(start_time, end_time)
    return {
        'success': True,
        'message': 'Sync completed',
        'summary': summary
    }
