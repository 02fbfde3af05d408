"""
Shopee Open Platform API client for order, product and chat endpoints
"""

import hmac
import hashlib
import time
import logging
from collections import namedtuple
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import requests

logger = logging.getLogger(__name__)

# One page of a paginated listing; next_cursor is None on the last page
Page = namedtuple('Page', ['records', 'cursor', 'next_cursor'])

class ShopeeAPIError(Exception):
    """Error reported in the body of a Shopee API response"""

    def __init__(self, error: str, message: str = '', request_id: str = None):
        self.error = error
        self.message = message
        self.request_id = request_id
        super().__init__(f"{error}: {message}" if message else error)

def sign(partner_key: str, *parts) -> str:
    """HMAC-SHA256 signature over the concatenated parts"""
    base_string = ''.join(str(part) for part in parts if part is not None)
    return hmac.new(
        partner_key.encode('utf-8'),
        base_string.encode('utf-8'),
        hashlib.sha256
    ).hexdigest()

def iter_pages(fetch_page: Callable[[Any], Tuple[List[Any], Any]],
               start_cursor: Any = None,
               max_pages: Optional[int] = None) -> Iterator[Page]:
    """Lazily walk a cursor-paginated listing.

    ``fetch_page(cursor)`` returns ``(records, next_cursor)``. Iteration ends
    when the next cursor is empty, when it does not advance past the cursor
    just requested, or after ``max_pages`` pages. Passing a cursor seen in an
    earlier walk as ``start_cursor`` resumes from that page.
    """
    cursor = start_cursor
    pages = 0

    while True:
        records, next_cursor = fetch_page(cursor)
        pages += 1

        if next_cursor in (None, ''):
            yield Page(records, cursor, None)
            return

        if next_cursor == cursor:
            logger.warning(f"Pagination cursor did not advance ({cursor!r}); stopping")
            yield Page(records, cursor, None)
            return

        if max_pages is not None and pages >= max_pages:
            logger.warning(f"Pagination stopped after {pages} pages at cursor {next_cursor!r}")
            yield Page(records, cursor, next_cursor)
            return

        yield Page(records, cursor, next_cursor)
        cursor = next_cursor

class ShopeeClient:
    """Client for the shop-level Shopee Open Platform v2 API"""

    def __init__(self, shop_id: int, access_token: str, partner_id: int, partner_key: str,
                 base_url: str = 'https://partner.shopeemobile.com', timeout: int = 30):
        self.shop_id = int(shop_id)
        self.access_token = access_token
        self.partner_id = int(partner_id)
        self.partner_key = partner_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    @classmethod
    def for_shop(cls, shop, config) -> 'ShopeeClient':
        """Build a client from a ShopeeToken row and a Flask config mapping"""
        return cls(
            shop.shop_id,
            shop.access_token,
            config['SHOPEE_PARTNER_ID'],
            config['SHOPEE_PARTNER_KEY'],
            base_url=config['SHOPEE_API_BASE'],
            timeout=config['SHOPEE_REQUEST_TIMEOUT'],
        )

    def _common_params(self, path: str) -> Dict[str, Any]:
        timestamp = int(time.time())
        return {
            'partner_id': self.partner_id,
            'timestamp': timestamp,
            'access_token': self.access_token,
            'shop_id': self.shop_id,
            'sign': sign(self.partner_key, self.partner_id, path, timestamp,
                         self.access_token, self.shop_id),
        }

    def request(self, method: str, path: str, params: Dict[str, Any] = None,
                body: Dict[str, Any] = None) -> Dict[str, Any]:
        """Issue a signed call and return the ``response`` object of the body"""
        query = self._common_params(path)
        query.update({k: v for k, v in (params or {}).items() if v is not None})

        response = requests.request(
            method,
            self.base_url + path,
            params=query,
            json=body,
            timeout=self.timeout
        )

        try:
            payload = response.json()
        except ValueError:
            response.raise_for_status()
            raise ShopeeAPIError('invalid_response', f"Non-JSON response from {path}")

        if payload.get('error'):
            logger.error(f"Shopee {path} failed for shop {self.shop_id}: "
                         f"{payload.get('error')} {payload.get('message')}")
            raise ShopeeAPIError(payload['error'], payload.get('message', ''),
                                 payload.get('request_id'))

        response.raise_for_status()
        return payload.get('response') or {}

    # Orders

    def get_order_list(self, time_range_field: str, time_from: int, time_to: int,
                       cursor: str = None, page_size: int = 100,
                       order_status: str = None) -> Dict[str, Any]:
        """One page of order numbers inside a time window"""
        data = self.request('GET', '/api/v2/order/get_order_list', {
            'time_range_field': time_range_field,
            'time_from': time_from,
            'time_to': time_to,
            'page_size': page_size,
            'cursor': cursor or '',
            'order_status': order_status,
            'response_optional_fields': 'order_status',
        })

        return {
            'orders': data.get('order_list', []),
            'has_next_page': bool(data.get('more')),
            'next_cursor': data.get('next_cursor') if data.get('more') else None,
        }

    def get_order_detail(self, order_sn_list: List[str]) -> List[Dict[str, Any]]:
        if not order_sn_list:
            return []

        data = self.request('GET', '/api/v2/order/get_order_detail', {
            'order_sn_list': ','.join(order_sn_list),
            'response_optional_fields': ','.join([
                'buyer_username', 'item_list', 'cancel_reason', 'total_amount',
                'shipping_carrier', 'payment_method', 'package_list',
            ]),
        })
        return data.get('order_list', [])

    def get_tracking_number(self, order_sn: str) -> Optional[str]:
        data = self.request('GET', '/api/v2/logistics/get_tracking_number', {
            'order_sn': order_sn,
        })
        return data.get('tracking_number') or None

    # Products

    def get_item_list(self, offset: int = 0, page_size: int = 100,
                      item_status: str = 'NORMAL') -> Dict[str, Any]:
        data = self.request('GET', '/api/v2/product/get_item_list', {
            'offset': offset,
            'page_size': page_size,
            'item_status': item_status,
        })

        return {
            'items': data.get('item', []),
            'total': data.get('total_count', 0),
            'has_next_page': bool(data.get('has_next_page')),
            'next_offset': data.get('next_offset') if data.get('has_next_page') else None,
        }

    def get_item_base_info(self, item_id_list: List[int]) -> List[Dict[str, Any]]:
        if not item_id_list:
            return []

        data = self.request('GET', '/api/v2/product/get_item_base_info', {
            'item_id_list': ','.join(str(item_id) for item_id in item_id_list),
        })
        return data.get('item_list', [])

    def get_model_list(self, item_id: int) -> Dict[str, Any]:
        data = self.request('GET', '/api/v2/product/get_model_list', {
            'item_id': item_id,
        })

        return {
            'variations': data.get('standardise_tier_variation', []),
            'models': data.get('model', []),
        }

    # Seller chat

    def get_message(self, conversation_id: str, page_size: int = 25,
                    offset: str = None) -> Dict[str, Any]:
        return self.request('GET', '/api/v2/sellerchat/get_message', {
            'conversation_id': conversation_id,
            'page_size': page_size,
            'offset': offset,
        })

    def get_conversation_list(self, page_size: int = 25,
                              next_timestamp_nano: int = None) -> Dict[str, Any]:
        data = self.request('GET', '/api/v2/sellerchat/get_conversation_list', {
            'direction': 'older',
            'type': 'all',
            'page_size': page_size,
            'next_timestamp_nano': next_timestamp_nano,
        })
        page_result = data.get('page_result') or {}
        next_cursor = page_result.get('next_cursor') or {}

        return {
            'conversations': data.get('conversations', []),
            'has_next_page': bool(page_result.get('more')),
            'next_timestamp_nano': next_cursor.get('next_message_time_nano') if page_result.get('more') else None,
        }
