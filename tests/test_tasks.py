"""
Test cases for the background sync tasks
"""

import pytest
from unittest.mock import patch

from shopee_client import ShopeeAPIError
from tasks import auto_sync_task, sync_orders_task, sync_products_task

@patch.object(sync_orders_task, 'update_state')
@patch('tasks.sync_orders')
def test_sync_orders_task_reports_progress(mock_sync, mock_update_state, app):
    """Progress callbacks are forwarded as task state"""
    def fake_sync(shop_id, start_time=None, end_time=None, order_status=None, on_progress=None):
        on_progress({'current': 5, 'total': 10})
        return 10
    mock_sync.side_effect = fake_sync

    result = sync_orders_task.run(123)

    assert result == {'status': 'completed', 'synced_count': 10}
    meta = mock_update_state.call_args_list[-1][1]['meta']
    assert meta['current'] == 5
    assert meta['total'] == 10
    assert meta['status'] == 'Synced 5/10 orders...'

@patch.object(sync_products_task, 'update_state')
@patch('tasks.sync_products', side_effect=ShopeeAPIError('error_auth', 'Invalid token'))
def test_sync_products_task_raises(mock_sync, mock_update_state, app):
    with pytest.raises(ShopeeAPIError):
        sync_products_task.run(123)

@patch.object(auto_sync_task, 'update_state')
@patch('tasks.run_auto_sync')
def test_auto_sync_task(mock_run, mock_update_state, app):
    mock_run.return_value = {'success': True, 'message': 'Sync completed', 'summary': {}}

    assert auto_sync_task.run()['success'] is True
    mock_run.assert_called_once_with()
