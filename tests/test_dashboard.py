"""
Test cases for dashboard filters, counters and paging
"""

import pytest
from datetime import datetime
from unittest.mock import MagicMock

from dashboard import (LAST_MONTH, THIS_MONTH, IncrementalReveal, date_preset, filter_orders,
                       is_searchable, order_stats, paginate, search_orders, unique_shops)

ORDERS = [
    {'order_sn': 'O1', 'order_status': 'UNPAID', 'shop_name': 'Shop A', 'create_time': 100},
    {'order_sn': 'O2', 'order_status': 'PROCESSED', 'shop_name': 'Shop A', 'create_time': 200},
    {'order_sn': 'O3', 'order_status': 'SHIPPED', 'shop_name': 'Shop B', 'create_time': 300},
    {'order_sn': 'O4', 'order_status': 'COMPLETED', 'shop_name': 'Shop B', 'create_time': 400},
    {'order_sn': 'O5', 'order_status': 'CANCELLED', 'shop_name': 'Shop A', 'create_time': 500},
    {'order_sn': 'O6', 'order_status': 'CANCELLED', 'shop_name': 'Shop B', 'create_time': 600,
     'cancel_reason': 'Failed Delivery'},
]

def sns(orders):
    return [o['order_sn'] for o in orders]

def test_order_stats():
    assert order_stats(ORDERS) == {
        'pending': 1,
        'process': 1,
        'shipping': 1,
        'cancel': 1,
        'total': 3,
        'failed': 1,
    }

def test_filter_by_status_card():
    assert sns(filter_orders(ORDERS, 'pending')) == ['O1']
    assert sns(filter_orders(ORDERS, 'cancel')) == ['O5', 'O6']
    assert sns(filter_orders(ORDERS, 'failed')) == ['O6']
    assert sns(filter_orders(ORDERS, 'total')) == ['O1', 'O2', 'O3', 'O4']
    assert len(filter_orders(ORDERS)) == 6

def test_filter_by_shop_and_date():
    assert sns(filter_orders(ORDERS, shops=['Shop B'])) == ['O3', 'O4', 'O6']
    assert sns(filter_orders(ORDERS, date_range=(200, 400))) == ['O2', 'O3', 'O4']
    assert sns(filter_orders(ORDERS, 'total', shops=['Shop A'], date_range=(150, None))) == ['O2']

def test_unique_shops():
    assert unique_shops(ORDERS) == ['Shop A', 'Shop B']

def test_date_presets():
    now = datetime(2026, 10, 19, 14, 30)

    assert date_preset(THIS_MONTH, now) == (
        datetime(2026, 10, 1), datetime(2026, 10, 31, 23, 59, 59, 999999)
    )
    assert date_preset(LAST_MONTH, now) == (
        datetime(2026, 9, 1), datetime(2026, 9, 30, 23, 59, 59, 999999)
    )
    assert date_preset(1, now) == (
        datetime(2026, 10, 18), datetime(2026, 10, 18, 23, 59, 59, 999999)
    )
    assert date_preset(7, now) == (
        datetime(2026, 10, 12), datetime(2026, 10, 19, 23, 59, 59, 999999)
    )

def test_last_month_in_january():
    start, end = date_preset(LAST_MONTH, datetime(2027, 1, 5))
    assert start == datetime(2026, 12, 1)
    assert end.date() == datetime(2026, 12, 31).date()

def test_search_requires_four_characters():
    fetch = MagicMock(return_value=[{'order_sn': '2410ABCD'}])

    assert search_orders('order_sn', 'abc', fetch) is None
    fetch.assert_not_called()

    assert search_orders('order_sn', ' abcd ', fetch) == [{'order_sn': '2410ABCD'}]
    fetch.assert_called_once_with({'order_sn': 'abcd'})

def test_search_rejects_unknown_type():
    with pytest.raises(ValueError):
        search_orders('phone', 'abcd', MagicMock())

def test_is_searchable():
    assert not is_searchable(None)
    assert not is_searchable('   abc ')
    assert is_searchable('SPX1')

def test_incremental_reveal():
    reveal = IncrementalReveal(range(45), page_size=20)

    assert reveal.load_more() == list(range(20))
    assert reveal.load_more() == list(range(20, 40))
    assert reveal.has_more
    assert reveal.load_more() == list(range(40, 45))
    assert not reveal.has_more
    assert reveal.load_more() == []
    assert len(reveal.visible) == 45

    reveal.reset([1, 2])
    assert reveal.visible == []
    assert reveal.load_more() == [1, 2]
    assert not reveal.has_more

def test_incremental_reveal_empty():
    reveal = IncrementalReveal([])
    assert not reveal.has_more
    assert reveal.load_more() == []

def test_paginate():
    items = list(range(45))

    assert paginate(items, 1) == {'items': list(range(20)), 'page': 1, 'has_more': True, 'total': 45}
    assert paginate(items, 3)['items'] == list(range(40, 45))
    assert paginate(items, 3)['has_more'] is False
    assert paginate(items, 4)['items'] == []
