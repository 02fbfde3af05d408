"""
Lookup of authorized Shopee shops
"""

import logging
from models import ShopeeToken

logger = logging.getLogger(__name__)

class ShopNotFound(Exception):
    """Raised when a shop id has no active token"""

def get_all_shops():
    """Active shops ordered by shop_id"""
    return ShopeeToken.query.filter_by(is_active=True).order_by(ShopeeToken.shop_id).all()

def get_shop(shop_id):
    shop = ShopeeToken.query.filter_by(shop_id=int(shop_id), is_active=True).first()
    if not shop:
        logger.warning(f"Lookup for unknown or inactive shop {shop_id}")
        raise ShopNotFound(f"Shop {shop_id} not found or inactive")
    return shop

def shop_label(shop) -> str:
    return f"{shop.shop_name} ({shop.shop_id})"
