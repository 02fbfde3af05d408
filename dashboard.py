"""
Order and product views for the dashboard: filters, counters, date presets,
search guard and incremental reveal over already-loaded records
"""

import calendar
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

FAILED_DELIVERY = 'Failed Delivery'
MIN_SEARCH_LENGTH = 4
SEARCH_TYPES = ('order_sn', 'tracking_number', 'buyer_username')

STATUS_FILTERS = {
    'pending': 'UNPAID',
    'process': 'PROCESSED',
    'shipping': 'SHIPPED',
    'cancel': 'CANCELLED',
}
FILTER_KEYS = tuple(STATUS_FILTERS) + ('total', 'failed')

# Statuses counted in the "total" card besides processing and shipping
TOTAL_ONLY_STATUSES = ('COMPLETED', 'IN_CANCEL', 'TO_CONFIRM_RECEIVE')

THIS_MONTH = -1
LAST_MONTH = -2

def _failed_delivery(order: Dict[str, Any]) -> bool:
    return order.get('cancel_reason') == FAILED_DELIVERY

def matches_status(order: Dict[str, Any], status_filter: Optional[str]) -> bool:
    if not status_filter:
        return True
    if status_filter == 'failed':
        return _failed_delivery(order)
    if status_filter == 'total':
        return not _failed_delivery(order) and order.get('order_status') != 'CANCELLED'
    if status_filter in STATUS_FILTERS:
        return order.get('order_status') == STATUS_FILTERS[status_filter]
    return True

def filter_orders(orders: Iterable[Dict[str, Any]], status_filter: str = None,
                  shops: Iterable[str] = None, date_range=None) -> List[Dict[str, Any]]:
    """Orders matching a status card, a shop-name subset and a create-time range.

    ``date_range`` is a ``(from, to)`` pair of datetimes or unix seconds.
    """
    shops = set(shops or [])
    start, end = _as_timestamps(date_range)

    result = []
    for order in orders:
        if not matches_status(order, status_filter):
            continue
        if shops and order.get('shop_name') not in shops:
            continue
        create_time = order.get('create_time') or 0
        if start is not None and create_time < start:
            continue
        if end is not None and create_time > end:
            continue
        result.append(order)
    return result

def _as_timestamps(date_range):
    if not date_range:
        return None, None
    return tuple(
        None if value is None else int(value.timestamp()) if isinstance(value, datetime) else int(value)
        for value in date_range
    )

def order_stats(orders: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    """Counts shown on the status cards"""
    stats = {key: 0 for key in FILTER_KEYS}
    for order in orders:
        if _failed_delivery(order):
            stats['failed'] += 1
            continue

        status = order.get('order_status')
        if status == 'UNPAID':
            stats['pending'] += 1
        elif status == 'PROCESSED':
            stats['process'] += 1
            stats['total'] += 1
        elif status == 'SHIPPED':
            stats['shipping'] += 1
            stats['total'] += 1
        elif status in TOTAL_ONLY_STATUSES:
            stats['total'] += 1
        elif status == 'CANCELLED':
            stats['cancel'] += 1
    return stats

def unique_shops(orders: Iterable[Dict[str, Any]]) -> List[str]:
    return sorted({order['shop_name'] for order in orders if order.get('shop_name')})

def date_preset(days: int, now: datetime = None):
    """Date range for a preset button.

    ``THIS_MONTH`` and ``LAST_MONTH`` cover whole calendar months, ``1`` is
    yesterday and any other value the last ``days`` days up to today.
    """
    now = now or datetime.now()

    if days == THIS_MONTH:
        start = now.replace(day=1)
        end = now.replace(day=calendar.monthrange(now.year, now.month)[1])
    elif days == LAST_MONTH:
        end = now.replace(day=1) - timedelta(days=1)
        start = end.replace(day=1)
    elif days == 1:
        start = end = now - timedelta(days=1)
    else:
        start = now - timedelta(days=days)
        end = now

    start = start.replace(hour=0, minute=0, second=0, microsecond=0)
    end = end.replace(hour=23, minute=59, second=59, microsecond=999999)
    return start, end

def is_searchable(query: Optional[str], min_length: int = MIN_SEARCH_LENGTH) -> bool:
    return bool(query) and len(query.strip()) >= min_length

def search_orders(search_type: str, query: str, fetch: Callable[[Dict[str, str]], List[Dict[str, Any]]],
                  min_length: int = MIN_SEARCH_LENGTH) -> Optional[List[Dict[str, Any]]]:
    """Run ``fetch({search_type: query})`` unless the query is too short.

    Returns None without calling ``fetch`` for short queries.
    """
    if search_type not in SEARCH_TYPES:
        raise ValueError(f"Unsupported search type: {search_type}")
    if not is_searchable(query, min_length):
        logger.debug(f"Search for {search_type} skipped: query shorter than {min_length}")
        return None
    return fetch({search_type: query.strip()})

class IncrementalReveal:
    """Page-by-page reveal of an in-memory collection"""

    def __init__(self, items: Iterable[Any] = (), page_size: int = 20):
        self.page_size = page_size
        self.reset(items)

    def reset(self, items: Iterable[Any]):
        self.items = list(items)
        self.visible: List[Any] = []
        self.page = 1
        self.has_more = bool(self.items)

    def load_more(self) -> List[Any]:
        if not self.has_more:
            return []

        start = (self.page - 1) * self.page_size
        end = start + self.page_size
        batch = self.items[start:end]

        if batch:
            self.visible.extend(batch)
            self.page += 1
        if end >= len(self.items):
            self.has_more = False
        return batch

def paginate(items: List[Any], page: int, page_size: int = 20) -> Dict[str, Any]:
    """The batch revealed by the ``page``-th scroll step"""
    reveal = IncrementalReveal(items, page_size)
    batch = []
    for _ in range(max(page, 1)):
        batch = reveal.load_more()
        if not batch:
            break
    return {
        'items': batch,
        'page': page,
        'has_more': reveal.has_more,
        'total': len(items),
    }
