"""
Configuration settings for the Shopee Seller Dashboard
"""

import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Base configuration class"""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///shopee_dashboard.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Route paths
    API_PREFIX = '/api'
    WEBHOOK_PATH = API_PREFIX + '/webhook'

    # Shopee Open Platform
    SHOPEE_PARTNER_ID = int(os.getenv('SHOPEE_PARTNER_ID', '0'))
    SHOPEE_PARTNER_KEY = os.getenv('SHOPEE_PARTNER_KEY', '')
    SHOPEE_API_BASE = os.getenv('SHOPEE_API_BASE', 'https://partner.shopeemobile.com')
    SHOPEE_REQUEST_TIMEOUT = 30
    # Public URL Shopee pushes to; part of the push signature base string
    SHOPEE_PUSH_CALLBACK_URL = os.getenv('SHOPEE_PUSH_CALLBACK_URL')

    # Celery Configuration
    CELERY_BROKER_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    CELERY_RESULT_BACKEND = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    AUTO_SYNC_INTERVAL_MINUTES = int(os.getenv('AUTO_SYNC_INTERVAL_MINUTES', '60'))

    # Sync Configuration (Shopee limits: 100 per list page, 50 per detail call)
    SYNC_WINDOW_HOURS = 24
    SYNC_MAX_WORKERS = int(os.getenv('SYNC_MAX_WORKERS', '8'))
    SYNC_MAX_PAGES = 500
    ORDER_LIST_PAGE_SIZE = 100
    ORDER_DETAIL_BATCH_SIZE = 50
    ITEM_LIST_PAGE_SIZE = 100
    ITEM_BASE_INFO_BATCH_SIZE = 50

    # Event relay
    RELAY_HEARTBEAT_INTERVAL = 30
    RELAY_QUEUE_SIZE = 100

    # Dashboard
    MIN_SEARCH_LENGTH = 4
    ORDERS_PER_PAGE = 20
    MESSAGE_PAGE_SIZE = 25

    @classmethod
    def shopee_url(cls, path: str) -> str:
        return cls.SHOPEE_API_BASE.rstrip('/') + path

class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False

class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SHOPEE_PARTNER_ID = 2001234
    SHOPEE_PARTNER_KEY = 'test-partner-key'
    SHOPEE_PUSH_CALLBACK_URL = None
    # in-memory SQLite shares one connection, so shops run one at a time
    SYNC_MAX_WORKERS = 1
    RELAY_HEARTBEAT_INTERVAL = 0.05

# Configuration mapping
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
