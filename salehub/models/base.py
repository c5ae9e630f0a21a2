from datetime import datetime, timezone
from decimal import Decimal
from salehub.extensions import db


def utcnow():
    """当前 UTC 时间 (naive)，与数据库中存储的时间保持同一口径"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel(db.Model):
    """
    SaleHub 模型基类
    包含：ID主键, 创建时间, 更新时间, 序列化方法
    """
    __abstract__ = True

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        """
        通用序列化方法：将模型转换为字典，便于 API 返回 JSON。
        过滤掉以 '_' 开头的私有属性；金额统一输出为字符串避免精度丢失。
        """
        data = {}
        for c in self.__table__.columns:
            if c.name.startswith('_'):
                continue
            val = getattr(self, c.name)
            if isinstance(val, datetime):
                data[c.name] = val.isoformat()
            elif isinstance(val, Decimal):
                data[c.name] = str(val)
            else:
                data[c.name] = val
        return data
