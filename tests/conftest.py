"""
Shared fixtures for the Shopee Seller Dashboard tests
"""

import os

os.environ['APP_CONFIG'] = 'testing'

import pytest

from app import app as flask_app, db, relay
from models import ShopeeToken

@pytest.fixture
def app():
    """Application context with a fresh in-memory database"""
    with flask_app.app_context():
        db.create_all()
        relay.conversations.replace([])
        yield flask_app
        db.session.remove()
        db.drop_all()

@pytest.fixture
def client(app):
    """Test client fixture"""
    with app.test_client() as client:
        yield client

@pytest.fixture
def sample_shop(app):
    """Sample shop fixture"""
    shop = ShopeeToken(
        shop_id=123,
        shop_name='Toko Satu',
        access_token='test_access_token'
    )
    db.session.add(shop)
    db.session.commit()
    return shop

@pytest.fixture
def two_shops(app):
    """Two active shops and one inactive shop"""
    shops = [
        ShopeeToken(shop_id=1, shop_name='Shop A', access_token='token-a'),
        ShopeeToken(shop_id=2, shop_name='Shop B', access_token='token-b'),
        ShopeeToken(shop_id=3, shop_name='Shop C', access_token='token-c', is_active=False),
    ]
    db.session.add_all(shops)
    db.session.commit()
    return shops[:2]
