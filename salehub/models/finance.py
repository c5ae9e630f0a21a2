"""资金流水模型"""
from salehub.extensions import db
from .base import BaseModel

class Transaction(BaseModel):
    """
    资金流水
    reference 唯一：同一笔取消/退货只会产生一条退款流水
    """
    __tablename__ = 'finance_transactions'

    TYPE_PAYMENT = 'payment'
    TYPE_REFUND = 'refund'

    STATUS_SUCCEEDED = 'succeeded'

    reference = db.Column(db.String(64), unique=True, index=True)
    type = db.Column(db.String(20), index=True)
    status = db.Column(db.String(20), default=STATUS_SUCCEEDED)
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    buyer_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'), index=True)
    order_id = db.Column(db.Integer, db.ForeignKey('trade_orders.id'), index=True)
    return_order_id = db.Column(db.Integer, db.ForeignKey('trade_return_orders.id'), nullable=True)
    return_order_item_id = db.Column(db.Integer, db.ForeignKey('trade_return_order_items.id'), nullable=True)
    notes = db.Column(db.String(255))

    buyer = db.relationship('User')
