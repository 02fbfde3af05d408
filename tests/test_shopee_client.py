"""
Test cases for the Shopee API client and pagination helper
"""

import hmac
import hashlib
import pytest
from unittest.mock import patch, MagicMock

from shopee_client import Page, ShopeeAPIError, ShopeeClient, iter_pages, sign

def make_client():
    return ShopeeClient(123, 'shop-token', 2001234, 'partner-key', base_url='https://api.test/')

def mock_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response

def test_sign_matches_hmac_sha256():
    expected = hmac.new(
        b'partner-key',
        b'2001234/api/v2/order/get_order_list1700000000shop-token123',
        hashlib.sha256
    ).hexdigest()
    assert sign('partner-key', 2001234, '/api/v2/order/get_order_list', 1700000000, 'shop-token', 123) == expected

@patch('shopee_client.time.time', return_value=1700000000)
@patch('shopee_client.requests.request')
def test_request_sends_signed_common_params(mock_request, mock_time):
    mock_request.return_value = mock_response({'error': '', 'response': {'tracking_number': 'SPX123'}})

    assert make_client().get_tracking_number('240101ABC') == 'SPX123'

    args, kwargs = mock_request.call_args
    assert args == ('GET', 'https://api.test/api/v2/logistics/get_tracking_number')
    params = kwargs['params']
    assert params['partner_id'] == 2001234
    assert params['shop_id'] == 123
    assert params['timestamp'] == 1700000000
    assert params['order_sn'] == '240101ABC'
    assert params['sign'] == sign('partner-key', 2001234, '/api/v2/logistics/get_tracking_number',
                                  1700000000, 'shop-token', 123)
    assert kwargs['timeout'] == 30

@patch('shopee_client.requests.request')
def test_request_raises_api_error(mock_request):
    mock_request.return_value = mock_response(
        {'error': 'invalid_acceess_token', 'message': 'Invalid access_token.', 'request_id': 'r-1'},
        status_code=403
    )

    with pytest.raises(ShopeeAPIError) as excinfo:
        make_client().get_order_detail(['240101ABC'])

    assert excinfo.value.error == 'invalid_acceess_token'
    assert excinfo.value.request_id == 'r-1'

@patch('shopee_client.requests.request')
def test_get_order_list_maps_cursor(mock_request):
    mock_request.return_value = mock_response({'response': {
        'more': True,
        'next_cursor': '20',
        'order_list': [{'order_sn': 'A1', 'order_status': 'UNPAID'}],
    }})

    page = make_client().get_order_list('create_time', 1, 2, cursor=None, page_size=20)

    assert page == {
        'orders': [{'order_sn': 'A1', 'order_status': 'UNPAID'}],
        'has_next_page': True,
        'next_cursor': '20',
    }
    params = mock_request.call_args[1]['params']
    assert params['cursor'] == ''
    assert 'order_status' not in params

@patch('shopee_client.requests.request')
def test_get_order_list_last_page_has_no_cursor(mock_request):
    mock_request.return_value = mock_response({'response': {
        'more': False, 'next_cursor': '', 'order_list': [],
    }})

    assert make_client().get_order_list('create_time', 1, 2)['next_cursor'] is None

def test_get_order_detail_skips_empty_batch():
    with patch('shopee_client.requests.request') as mock_request:
        assert make_client().get_order_detail([]) == []
        mock_request.assert_not_called()

def test_iter_pages_stops_on_empty_cursor():
    responses = {None: ([1, 2], 'a'), 'a': ([3], 'b'), 'b': ([4], None)}

    pages = list(iter_pages(lambda cursor: responses[cursor]))

    assert pages == [Page([1, 2], None, 'a'), Page([3], 'a', 'b'), Page([4], 'b', None)]

def test_iter_pages_stops_on_repeated_cursor():
    calls = []

    def fetch(cursor):
        calls.append(cursor)
        return [cursor], 'same'

    pages = list(iter_pages(fetch))

    assert calls == [None, 'same']
    assert pages[-1].next_cursor is None

def test_iter_pages_respects_max_pages_and_resumes():
    responses = {None: ([1], 1), 1: ([2], 2), 2: ([3], 3), 3: ([4], None)}

    first = list(iter_pages(lambda cursor: responses[cursor], max_pages=2))
    assert [p.records for p in first] == [[1], [2]]
    assert first[-1].next_cursor == 2

    rest = list(iter_pages(lambda cursor: responses[cursor], start_cursor=first[-1].next_cursor))
    assert [p.records for p in rest] == [[3], [4]]

def test_iter_pages_is_lazy():
    calls = []

    def fetch(cursor):
        calls.append(cursor)
        return [], (cursor or 0) + 1

    pages = iter_pages(fetch)
    next(pages)
    next(pages)
    assert calls == [None, 1]

@patch('shopee_client.requests.request')
def test_get_conversation_list_cursor(mock_request):
    mock_request.return_value = mock_response({'response': {
        'conversations': [{'conversation_id': '111'}],
        'page_result': {'more': True, 'next_cursor': {'next_message_time_nano': '1700000000000000000'}},
    }})

    result = make_client().get_conversation_list(page_size=10)

    assert result['conversations'] == [{'conversation_id': '111'}]
    assert result['next_timestamp_nano'] == '1700000000000000000'
    assert mock_request.call_args[1]['params']['direction'] == 'older'
