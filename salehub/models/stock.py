from salehub.extensions import db
from .base import BaseModel

class StockLog(BaseModel):
    """
    库存审计流水
    记录每一次库存变动的详情
    """
    __tablename__ = 'stock_logs'

    TYPE_ORDER = 'order'      # 下单扣减
    TYPE_CANCEL = 'cancel'    # 取消回补
    TYPE_RETURN = 'return'    # 退货入库

    item_id = db.Column(db.Integer, db.ForeignKey('catalog_items.id'), index=True)
    move_type = db.Column(db.String(20))
    reference = db.Column(db.String(64), index=True)  # 关联的单据, 如 order:12
    qty_change = db.Column(db.Integer)  # 变动数量 (+2, -5)
    balance_after = db.Column(db.Integer)  # 变动后结余 (快照)
    operator_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'))
    remark = db.Column(db.String(255))

    item = db.relationship('Item')
