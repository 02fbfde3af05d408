"""
Database models for the Shopee Seller Dashboard
"""

from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

# Single SQLAlchemy instance shared with the app
db = SQLAlchemy()

ORDER_STATUSES = (
    'UNPAID',
    'READY_TO_SHIP',
    'PROCESSED',
    'SHIPPED',
    'COMPLETED',
    'CANCELLED',
    'IN_CANCEL',
    'TO_CONFIRM_RECEIVE',
    'TO_RETURN',
)
ALL_STATUSES = 'ALL'

class ShopeeToken(db.Model):
    """Authorized shop and its API credentials"""
    __tablename__ = 'shopee_tokens'
    __table_args__ = {'extend_existing': True}

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.BigInteger, unique=True, nullable=False, index=True)
    shop_name = db.Column(db.String(255), nullable=False)
    access_token = db.Column(db.Text, nullable=False)
    refresh_token = db.Column(db.Text)
    expire_at = db.Column(db.DateTime)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<ShopeeToken {self.shop_id}: {self.shop_name}>'

class Order(db.Model):
    """Order synced from Shopee, keyed on order_sn"""
    __tablename__ = 'orders'
    __table_args__ = {'extend_existing': True}

    id = db.Column(db.Integer, primary_key=True)
    order_sn = db.Column(db.String(64), unique=True, nullable=False, index=True)
    shop_id = db.Column(db.BigInteger, nullable=False, index=True)
    shop_name = db.Column(db.String(255))
    order_status = db.Column(db.String(32), nullable=False, index=True)
    cancel_reason = db.Column(db.String(255))
    buyer_username = db.Column(db.String(255), index=True)
    total_amount = db.Column(db.Numeric(14, 2))
    currency = db.Column(db.String(10))
    sku_qty = db.Column(db.Text)
    tracking_number = db.Column(db.String(100), index=True)
    shipping_carrier = db.Column(db.String(100))
    payment_method = db.Column(db.String(100))
    cod = db.Column(db.Boolean, default=False, nullable=False)
    create_time = db.Column(db.BigInteger, index=True)
    update_time = db.Column(db.BigInteger)
    last_synced = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'order_sn': self.order_sn,
            'shop_id': self.shop_id,
            'shop_name': self.shop_name,
            'order_status': self.order_status,
            'cancel_reason': self.cancel_reason,
            'buyer_username': self.buyer_username,
            'total_amount': float(self.total_amount) if self.total_amount is not None else None,
            'currency': self.currency,
            'sku_qty': self.sku_qty,
            'tracking_number': self.tracking_number,
            'shipping_carrier': self.shipping_carrier,
            'payment_method': self.payment_method,
            'cod': self.cod,
            'create_time': self.create_time,
            'update_time': self.update_time,
        }

    def __repr__(self):
        return f'<Order {self.order_sn}: {self.order_status}>'

class Item(db.Model):
    """Product listing, keyed on item_id"""
    __tablename__ = 'items'
    __table_args__ = {'extend_existing': True}

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.BigInteger, unique=True, nullable=False, index=True)
    shop_id = db.Column(db.BigInteger, nullable=False, index=True)
    category_id = db.Column(db.BigInteger)
    item_name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    item_sku = db.Column(db.String(100), index=True)
    create_time = db.Column(db.BigInteger)
    update_time = db.Column(db.BigInteger)
    weight = db.Column(db.String(32))
    image = db.Column(db.JSON)
    logistic_info = db.Column(db.JSON)
    pre_order = db.Column(db.JSON)
    condition = db.Column(db.String(32))
    item_status = db.Column(db.String(32))
    has_model = db.Column(db.Boolean, default=False, nullable=False)
    brand = db.Column(db.JSON)
    item_dangerous = db.Column(db.Integer)
    description_type = db.Column(db.String(32))
    size_chart_id = db.Column(db.BigInteger)
    promotion_image = db.Column(db.JSON)
    deboost = db.Column(db.Boolean, default=False, nullable=False)
    authorised_brand_id = db.Column(db.BigInteger)
    last_synced = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        image = self.image or {}
        return {
            'item_id': self.item_id,
            'shop_id': self.shop_id,
            'category_id': self.category_id,
            'item_name': self.item_name,
            'description': self.description,
            'item_sku': self.item_sku,
            'create_time': self.create_time,
            'update_time': self.update_time,
            'weight': self.weight,
            'image': image,
            'image_id_list': image.get('image_id_list') or [],
            'image_url_list': image.get('image_url_list') or [],
            'logistic_info': self.logistic_info,
            'pre_order': self.pre_order,
            'condition': self.condition,
            'item_status': self.item_status,
            'has_model': self.has_model,
            'brand': self.brand,
            'item_dangerous': self.item_dangerous,
            'description_type': self.description_type,
            'size_chart_id': self.size_chart_id,
            'promotion_image': self.promotion_image,
            'deboost': self.deboost,
            'authorised_brand_id': self.authorised_brand_id,
        }

    def __repr__(self):
        return f'<Item {self.item_id}: {self.item_name}>'

class ItemVariation(db.Model):
    """Tier variation of an item, keyed on (item_id, variation_id)"""
    __tablename__ = 'item_variations'
    __table_args__ = (
        db.UniqueConstraint('item_id', 'variation_id', name='uq_item_variations_item_variation'),
        {'extend_existing': True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.BigInteger, nullable=False, index=True)
    variation_id = db.Column(db.BigInteger, nullable=False)
    variation_name = db.Column(db.String(255))
    variation_option = db.Column(db.JSON)

    def __repr__(self):
        return f'<ItemVariation {self.item_id}/{self.variation_id}: {self.variation_name}>'

class ItemModel(db.Model):
    """Sellable model (SKU) of an item, keyed on (item_id, model_id)"""
    __tablename__ = 'item_models'
    __table_args__ = (
        db.UniqueConstraint('item_id', 'model_id', name='uq_item_models_item_model'),
        {'extend_existing': True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.BigInteger, nullable=False, index=True)
    model_id = db.Column(db.BigInteger, nullable=False)
    model_name = db.Column(db.String(255))
    current_price = db.Column(db.Numeric(14, 2))
    original_price = db.Column(db.Numeric(14, 2))
    stock_info = db.Column(db.JSON)
    model_status = db.Column(db.String(32))

    def to_dict(self):
        return {
            'model_id': self.model_id,
            'model_name': self.model_name,
            'current_price': float(self.current_price) if self.current_price is not None else None,
            'original_price': float(self.original_price) if self.original_price is not None else None,
            'stock_info': self.stock_info,
            'model_status': self.model_status,
        }

    def __repr__(self):
        return f'<ItemModel {self.item_id}/{self.model_id}: {self.model_name}>'

def upsert(model, key_fields, values):
    """Insert a row or overwrite the existing one matching ``key_fields``.

    The caller owns the transaction; nothing is committed here.
    """
    keys = {field: values[field] for field in key_fields}
    existing = model.query.filter_by(**keys).first()

    if existing:
        for field, value in values.items():
            setattr(existing, field, value)
        if hasattr(model, 'last_synced'):
            existing.last_synced = datetime.utcnow()
        return existing

    row = model(**values)
    db.session.add(row)
    return row
