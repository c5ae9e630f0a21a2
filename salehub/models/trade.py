from decimal import Decimal
from salehub.extensions import db
from .base import BaseModel, utcnow

ZERO = Decimal('0')

class Order(BaseModel):
    """
    主订单 (聚合根)
    一个主订单包含多个店铺子订单，每个子订单包含多个订单明细
    """
    __tablename__ = 'trade_orders'

    STATUS_PENDING_PAYMENT = 'pending_payment'
    STATUS_PAID = 'paid'
    STATUS_DELIVERED = 'delivered'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    user_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'), index=True)  # 买家
    status = db.Column(db.String(20), default=STATUS_PENDING_PAYMENT, index=True)
    order_date = db.Column(db.DateTime, default=utcnow)

    # 收货地址快照
    address_id = db.Column(db.Integer, db.ForeignKey('auth_addresses.id'))
    address_name = db.Column(db.String(128))
    address_latitude = db.Column(db.Float)
    address_longitude = db.Column(db.Float)

    # 金额汇总
    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)
    discount_product_amount = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)
    discount_shipping_amount = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)
    shipping_fee = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)

    voucher_shipping_id = db.Column(db.Integer, db.ForeignKey('promo_vouchers.id'), nullable=True)
    version = db.Column(db.Integer, nullable=False)

    customer = db.relationship('User')
    shops = db.relationship('OrderShop', backref='order', cascade='all, delete-orphan',
                            order_by='OrderShop.id')

    __mapper_args__ = {'version_id_col': version}

    @property
    def items(self):
        return [item for shop in self.shops for item in shop.items]

    @property
    def open_shops(self):
        """未取消的店铺订单"""
        return [s for s in self.shops if s.status != OrderShop.STATUS_CANCELLED]

    @property
    def outstanding_amount(self):
        """扣除已取消店铺订单后的应付金额"""
        cancelled = sum((s.total_amount for s in self.shops
                         if s.status == OrderShop.STATUS_CANCELLED), ZERO)
        remaining = self.total_amount - cancelled
        return remaining if remaining > ZERO else ZERO

    def recalculate_totals(self):
        """总额 = 小计 - 商品折扣 + 运费 - 运费折扣"""
        self.subtotal = sum((s.subtotal for s in self.shops), ZERO)
        self.discount_product_amount = sum((s.discount_amount for s in self.shops), ZERO)
        self.shipping_fee = sum((s.shipping_fee for s in self.shops), ZERO)
        self.total_amount = (self.subtotal - self.discount_product_amount
                             + self.shipping_fee - self.discount_shipping_amount)
        return self.total_amount

    def to_dict(self, with_shops=False):
        data = super().to_dict()
        if with_shops:
            data['shops'] = [s.to_dict(with_items=True) for s in self.shops]
        return data

class OrderShop(BaseModel):
    """店铺子订单"""
    __tablename__ = 'trade_order_shops'

    STATUS_PENDING_CONFIRMATION = 'pending_confirmation'
    STATUS_PROCESSING = 'processing'
    STATUS_READY_TO_SHIP = 'ready_to_ship'
    STATUS_SHIPPED = 'shipped'
    STATUS_DELIVERED = 'delivered'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    order_id = db.Column(db.Integer, db.ForeignKey('trade_orders.id'), index=True)
    shop_id = db.Column(db.Integer, db.ForeignKey('catalog_shops.id'), index=True)

    voucher_shop_id = db.Column(db.Integer, db.ForeignKey('promo_vouchers.id'), nullable=True)
    voucher_shop_code = db.Column(db.String(64))  # 下单时的券码快照

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)
    shipping_fee = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)

    status = db.Column(db.String(24), default=STATUS_PENDING_CONFIRMATION, index=True)
    delivered_at = db.Column(db.DateTime, nullable=True)  # 只写一次
    tracking_code = db.Column(db.String(32), unique=True)
    notes = db.Column(db.String(255))
    version = db.Column(db.Integer, nullable=False)

    shop = db.relationship('Shop')
    items = db.relationship('OrderItem', backref='order_shop', cascade='all, delete-orphan',
                            order_by='OrderItem.id')

    __mapper_args__ = {'version_id_col': version}

    def to_dict(self, with_items=False):
        data = super().to_dict()
        if with_items:
            data['items'] = [i.to_dict() for i in self.items]
        return data

class OrderItem(BaseModel):
    """订单明细行"""
    __tablename__ = 'trade_order_items'

    STATUS_PENDING = 'pending'
    STATUS_PROCESSING = 'processing'
    STATUS_READY_TO_SHIP = 'ready_to_ship'
    STATUS_SHIPPED = 'shipped'
    STATUS_DELIVERED = 'delivered'
    STATUS_CANCELLED = 'cancelled'
    STATUS_RETURN_REQUESTED = 'return_requested'
    STATUS_RETURNED = 'returned'
    STATUS_RETURN_REJECTED = 'return_rejected'

    order_shop_id = db.Column(db.Integer, db.ForeignKey('trade_order_shops.id'), index=True)
    item_id = db.Column(db.Integer, db.ForeignKey('catalog_items.id'))
    shop_id = db.Column(db.Integer, db.ForeignKey('catalog_shops.id'))

    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)  # 下单时的单价快照
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.String(20), default=STATUS_PENDING, index=True)
    version = db.Column(db.Integer, nullable=False)

    item = db.relationship('Item')

    __mapper_args__ = {'version_id_col': version}

class OrderHistory(BaseModel):
    """订单状态流转记录 (只增不改)"""
    __tablename__ = 'trade_order_history'

    order_id = db.Column(db.Integer, db.ForeignKey('trade_orders.id'), index=True)
    order_shop_id = db.Column(db.Integer, db.ForeignKey('trade_order_shops.id'), nullable=True)
    order_item_id = db.Column(db.Integer, db.ForeignKey('trade_order_items.id'), nullable=True)
    from_status = db.Column(db.String(24))
    to_status = db.Column(db.String(24))
    changed_by_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'))
    note = db.Column(db.String(255))

class CancelRequest(BaseModel):
    """已付款店铺订单的取消申请 (买家发起，卖家审核)"""
    __tablename__ = 'trade_cancel_requests'

    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'

    order_id = db.Column(db.Integer, db.ForeignKey('trade_orders.id'), index=True)
    order_shop_id = db.Column(db.Integer, db.ForeignKey('trade_order_shops.id'), index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'), index=True)  # 申请人
    status = db.Column(db.String(20), default=STATUS_PENDING, index=True)
    reason = db.Column(db.String(255))
    reject_reason = db.Column(db.String(255))
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=ZERO)  # 申请时的店铺订单金额
    requested_at = db.Column(db.DateTime, default=utcnow)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    version = db.Column(db.Integer, nullable=False)

    order_shop = db.relationship('OrderShop', backref=db.backref('cancel_requests', lazy='dynamic'))

    __mapper_args__ = {'version_id_col': version}
