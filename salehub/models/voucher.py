from salehub.extensions import db
from .base import BaseModel, utcnow

class Voucher(BaseModel):
    """
    优惠券
    作用范围二选一：指定店铺 (TARGET_SHOP) 或全场运费 (TARGET_SHIPPING)
    """
    __tablename__ = 'promo_vouchers'

    TARGET_SHOP = 'shop'
    TARGET_SHIPPING = 'shipping'

    METHOD_FIXED = 'fixed'            # 固定金额
    METHOD_PERCENTAGE = 'percentage'  # 百分比

    code = db.Column(db.String(64), unique=True, index=True)
    target = db.Column(db.String(20), nullable=False)
    method = db.Column(db.String(20), nullable=False, default=METHOD_FIXED)
    shop_id = db.Column(db.Integer, db.ForeignKey('catalog_shops.id'), nullable=True)

    value = db.Column(db.Numeric(12, 2), nullable=False)
    max_value = db.Column(db.Numeric(12, 2))   # 折扣上限
    min_spend = db.Column(db.Numeric(12, 2))   # 最低消费
    quantity = db.Column(db.Integer, nullable=False, default=0)  # 剩余可用次数

    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    version = db.Column(db.Integer, nullable=False)

    shop = db.relationship('Shop', backref=db.backref('vouchers', lazy='dynamic'))

    __table_args__ = (
        db.CheckConstraint('quantity >= 0', name='ck_voucher_quantity_non_negative'),
    )
    __mapper_args__ = {'version_id_col': version}

    def is_expired(self, now=None):
        now = now or utcnow()
        return now > self.end_date or self.quantity == 0

    def is_usable(self, now=None):
        now = now or utcnow()
        return bool(self.is_active) and self.start_date <= now and not self.is_expired(now)

    def covers_shop(self, shop_id):
        return self.target == self.TARGET_SHOP and self.shop_id == shop_id

    @property
    def covers_shipping(self):
        return self.target == self.TARGET_SHIPPING
