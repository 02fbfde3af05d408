"""
Shopee Seller Dashboard - Main Application
Handles order/product sync triggers, dashboard reads, seller chat and the
Shopee push relay
"""

import os
import logging

from flask import Flask, Response, request, jsonify
from flask_migrate import Migrate
from dotenv import load_dotenv

from config import config

# Load environment variables
load_dotenv()

# Configure logging early (before other components that might use logger)
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)
app.config.from_object(config[os.getenv('APP_CONFIG', 'default')])

# Initialize extensions (use the shared db from models)
from models import db, Order, Item, ItemModel
db.init_app(app)
migrate = Migrate(app, db)

from dashboard import (SEARCH_TYPES, date_preset, filter_orders, order_stats, paginate,
                       search_orders, unique_shops)
from event_relay import EventRelay, verify_push_signature
from shop_registry import ShopNotFound, get_all_shops, get_shop
from shopee_client import ShopeeAPIError, ShopeeClient
from sync_service import run_auto_sync
from tasks import sync_orders_task, sync_products_task

relay = EventRelay(
    heartbeat_interval=app.config['RELAY_HEARTBEAT_INTERVAL'],
    queue_size=app.config['RELAY_QUEUE_SIZE']
)

# Utility functions
def verify_webhook(data, signature):
    """Verify Shopee push signature"""
    callback_url = app.config.get('SHOPEE_PUSH_CALLBACK_URL')
    partner_key = app.config.get('SHOPEE_PARTNER_KEY')
    if not callback_url or not partner_key:
        return True  # Skip verification in development

    return verify_push_signature(callback_url, data, signature, partner_key)

def _shop_from_body():
    payload = request.get_json(silent=True) or {}
    shop_id = payload.get('shop_id')
    if not shop_id:
        return None, (jsonify({'error': 'shop_id is required'}), 400)

    try:
        return get_shop(shop_id), None
    except (ShopNotFound, ValueError):
        return None, (jsonify({'error': 'Shop not found'}), 404)

# Routes
@app.route('/')
def index():
    """Health check"""
    return jsonify({'name': 'Shopee Seller Dashboard', 'status': 'ok'})

@app.route('/api/auto-sync', methods=['GET'])
def auto_sync():
    """Sync the last 24 hours of orders for every active shop"""
    try:
        logger.info("Starting sync...")
        return jsonify(run_auto_sync())

    except Exception as e:
        logger.error(f"Auto sync failed: {e}")
        return jsonify({
            'success': False,
            'error': str(e) or 'Unknown error occurred'
        }), 500

@app.route('/api/sync/orders', methods=['POST'])
def sync_orders():
    """Queue an order sync for one shop"""
    shop, error = _shop_from_body()
    if error:
        return error

    task = sync_orders_task.delay(shop.shop_id)
    return jsonify({'message': 'Order sync started', 'task_id': getattr(task, 'id', None)})

@app.route('/api/sync/products', methods=['POST'])
def sync_products():
    """Queue a product sync for one shop"""
    shop, error = _shop_from_body()
    if error:
        return error

    task = sync_products_task.delay(shop.shop_id)
    return jsonify({'message': 'Product sync started', 'task_id': getattr(task, 'id', None)})

@app.route('/api/orders', methods=['GET'])
def get_orders():
    """Stored orders of active shops, filtered and revealed page by page"""
    try:
        page = request.args.get('page', 1, type=int)
        status_filter = request.args.get('filter')
        shops = request.args.getlist('shop')

        preset = request.args.get('preset', type=int)
        if preset is not None:
            date_range = date_preset(preset)
        else:
            date_range = (request.args.get('from', type=int), request.args.get('to', type=int))

        shop_ids = [shop.shop_id for shop in get_all_shops()]
        orders = [
            order.to_dict() for order in
            Order.query.filter(Order.shop_id.in_(shop_ids)).order_by(Order.create_time.desc()).all()
        ]

        filtered = filter_orders(orders, status_filter, shops, date_range)
        result = paginate(filtered, page, app.config['ORDERS_PER_PAGE'])

        return jsonify({
            'orders': result['items'],
            'page': result['page'],
            'has_more': result['has_more'],
            'total': result['total'],
            'stats': order_stats(orders),
            'shops': unique_shops(orders)
        })

    except Exception as e:
        logger.error(f"Error loading orders: {e}")
        return jsonify({'error': 'Failed to load orders'}), 500

@app.route('/api/orders/search', methods=['GET'])
def search_orders_route():
    """Search stored orders by order number, tracking number or buyer"""
    search_type = next((name for name in SEARCH_TYPES if name in request.args), None)
    if not search_type:
        return jsonify({'error': f"One of {', '.join(SEARCH_TYPES)} is required"}), 400

    def fetch(params):
        field, value = next(iter(params.items()))
        column = getattr(Order, field)
        rows = Order.query.filter(column.ilike(f"%{value}%")).order_by(Order.create_time.desc()).limit(100).all()
        return [row.to_dict() for row in rows]

    min_length = app.config['MIN_SEARCH_LENGTH']
    results = search_orders(search_type, request.args.get(search_type, ''), fetch, min_length)
    if results is None:
        return jsonify({'error': f'Search query must be at least {min_length} characters'}), 400

    return jsonify({'orders': results, 'count': len(results)})

@app.route('/api/products', methods=['GET'])
def get_products():
    """Stored items of active shops"""
    shops = {shop.shop_id: shop.shop_name for shop in get_all_shops()}
    items = Item.query.filter(Item.shop_id.in_(list(shops))).order_by(Item.update_time.desc()).all()

    products = []
    for item in items:
        product = item.to_dict()
        product['shopee_tokens'] = [{'shop_id': item.shop_id, 'shop_name': shops[item.shop_id]}]
        products.append(product)

    return jsonify({
        'products': products,
        'count': len(products)
    })

@app.route('/api/products/<int:item_id>/models', methods=['GET'])
def get_stock_prices(item_id):
    """Stock and price per model of one item"""
    models = ItemModel.query.filter_by(item_id=item_id).order_by(ItemModel.model_id).all()
    return jsonify([model.to_dict() for model in models])

@app.route('/api/msg/get_message', methods=['GET'])
def get_message():
    """Proxy one page of a conversation's messages"""
    conversation_id = request.args.get('conversationId')
    shop_id = request.args.get('shopId')
    if not conversation_id or not shop_id:
        return jsonify({'error': 'conversationId and shopId are required'}), 400

    try:
        shop = get_shop(shop_id)
    except (ShopNotFound, ValueError):
        return jsonify({'error': 'Shop not found'}), 404

    try:
        client = ShopeeClient.for_shop(shop, app.config)
        data = client.get_message(
            conversation_id,
            page_size=request.args.get('pageSize', app.config['MESSAGE_PAGE_SIZE'], type=int),
            offset=request.args.get('offset') or None
        )
        return jsonify({'response': data})

    except Exception as e:
        logger.error(f"Error fetching messages for {conversation_id}: {e}")
        return jsonify({'error': 'Failed to fetch messages'}), 500

@app.route('/api/msg/get_conversation_list', methods=['GET'])
def get_conversation_list():
    """Latest conversations across all active shops, newest first"""
    conversations = []

    for shop in get_all_shops():
        try:
            client = ShopeeClient.for_shop(shop, app.config)
            result = client.get_conversation_list(page_size=app.config['MESSAGE_PAGE_SIZE'])
        except (ShopeeAPIError, OSError) as e:
            logger.error(f"Error fetching conversations for shop {shop.shop_id}: {e}")
            continue

        for conversation in result['conversations']:
            conversation['shop_id'] = shop.shop_id
            conversation['shop_name'] = shop.shop_name
            conversations.append(conversation)

    conversations.sort(key=lambda c: c.get('last_message_timestamp') or 0, reverse=True)
    relay.conversations.replace(conversations)
    return jsonify(conversations)

@app.route('/api/webhook', methods=['GET'])
def webhook_stream():
    """Server-sent event stream of chat updates"""
    session = relay.connect(
        request.args.get('connectionId'),
        request.args.getlist('shopId', type=int) or None
    )

    return Response(
        relay.stream(session),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'}
    )

@app.route('/api/webhook', methods=['POST'])
def webhook_push():
    """Receive Shopee push notifications"""
    data = request.get_data()
    signature = request.headers.get('Authorization')

    if not verify_webhook(data, signature):
        return jsonify({'error': 'Invalid signature'}), 401

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({'error': 'Invalid payload'}), 400

    update = relay.handle_push(payload)
    return jsonify({'status': 'success', 'relayed': update['type'] if update else None})

if __name__ == '__main__':
    with app.app_context():
        db.create_all()
    app.run(debug=True, host='0.0.0.0', port=8000, threaded=True)
