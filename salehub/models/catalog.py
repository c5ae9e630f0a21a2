from salehub.extensions import db
from .base import BaseModel

class Shop(BaseModel):
    """店铺"""
    __tablename__ = 'catalog_shops'
    user_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'), index=True)  # 店主 (卖家)
    name = db.Column(db.String(128))
    address_id = db.Column(db.Integer, db.ForeignKey('auth_addresses.id'))

    owner = db.relationship('User', backref=db.backref('shops', lazy='dynamic'))
    address = db.relationship('Address')

class Item(BaseModel):
    """
    商品
    stock 是高并发热点字段：version 作为乐观锁令牌，UPDATE 时带版本条件
    """
    __tablename__ = 'catalog_items'

    shop_id = db.Column(db.Integer, db.ForeignKey('catalog_shops.id'), index=True)
    name = db.Column(db.String(128))
    price = db.Column(db.Numeric(12, 2), nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)
    version = db.Column(db.Integer, nullable=False)

    shop = db.relationship('Shop', backref=db.backref('items', lazy='dynamic'))

    __table_args__ = (
        db.CheckConstraint('stock >= 0', name='ck_item_stock_non_negative'),
    )
    __mapper_args__ = {'version_id_col': version}

class CartItem(BaseModel):
    """购物车条目"""
    __tablename__ = 'catalog_cart_items'
    user_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'), index=True)
    item_id = db.Column(db.Integer, db.ForeignKey('catalog_items.id'))
    shop_id = db.Column(db.Integer, db.ForeignKey('catalog_shops.id'))
    quantity = db.Column(db.Integer, default=1)

    item = db.relationship('Item')
