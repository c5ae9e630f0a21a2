from decimal import Decimal
from salehub.extensions import db
from .base import BaseModel, utcnow

class ReturnOrder(BaseModel):
    """退货申请单"""
    __tablename__ = 'trade_return_orders'

    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'

    order_id = db.Column(db.Integer, db.ForeignKey('trade_orders.id'), index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'), index=True)
    status = db.Column(db.String(20), default=STATUS_PENDING, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    reason = db.Column(db.String(255))
    requested_at = db.Column(db.DateTime, default=utcnow)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    version = db.Column(db.Integer, nullable=False)

    order = db.relationship('Order', backref=db.backref('return_orders', lazy='dynamic'))
    items = db.relationship('ReturnOrderItem', backref='return_order', cascade='all, delete-orphan',
                            order_by='ReturnOrderItem.id')

    __mapper_args__ = {'version_id_col': version}

    @property
    def is_resolved(self):
        return all(i.status != ReturnOrderItem.STATUS_PENDING for i in self.items)

    def to_dict(self, with_items=False):
        data = super().to_dict()
        if with_items:
            data['items'] = [i.to_dict() for i in self.items]
        return data

class ReturnOrderItem(BaseModel):
    """退货明细"""
    __tablename__ = 'trade_return_order_items'

    STATUS_PENDING = ReturnOrder.STATUS_PENDING
    STATUS_APPROVED = ReturnOrder.STATUS_APPROVED
    STATUS_REJECTED = ReturnOrder.STATUS_REJECTED

    return_order_id = db.Column(db.Integer, db.ForeignKey('trade_return_orders.id'), index=True)
    order_item_id = db.Column(db.Integer, db.ForeignKey('trade_order_items.id'), index=True)
    quantity = db.Column(db.Integer, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    reason = db.Column(db.String(255))
    reject_reason = db.Column(db.String(255))
    status = db.Column(db.String(20), default=STATUS_PENDING, index=True)
    tracking_code = db.Column(db.String(32))  # 退货寄回运单号
    version = db.Column(db.Integer, nullable=False)

    order_item = db.relationship('OrderItem')

    __mapper_args__ = {'version_id_col': version}
