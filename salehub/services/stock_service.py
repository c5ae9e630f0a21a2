from salehub.extensions import db
from salehub.exceptions import ErrorCode, OrderFailure
from salehub.models import StockLog


class StockService:
    """
    库存计数器
    只在调用方的事务内修改 Item.stock，不自行提交；
    Item.version 由 ORM 在 UPDATE 时作为条件校验，版本不符即抛出 StaleDataError
    """

    @staticmethod
    def adjust(item, delta, move_type, reference, operator_id=None, remark=None):
        """
        原子化库存调整
        :param delta: 变动值，负数为扣减
        """
        if delta < 0 and item.stock + delta < 0:
            raise OrderFailure(ErrorCode.INSUFFICIENT_STOCK,
                               f'库存不足！当前库存: {item.stock}, 尝试扣减: {abs(delta)}')

        item.stock += delta

        log = StockLog(
            item_id=item.id,
            move_type=move_type,
            reference=reference,
            qty_change=delta,
            balance_after=item.stock,  # 记录变动后的快照
            operator_id=operator_id,
            remark=remark,
        )
        db.session.add(log)
        return log

    @staticmethod
    def reserve(item, quantity, reference, operator_id=None):
        """下单扣减：库存为 0 -> OUT_OF_STOCK；不足 -> INSUFFICIENT_STOCK"""
        if item.stock <= 0:
            raise OrderFailure(ErrorCode.OUT_OF_STOCK, f'商品 {item.name} 已售罄')
        if quantity > item.stock:
            raise OrderFailure(ErrorCode.INSUFFICIENT_STOCK,
                               f'商品 {item.name} 库存不足，当前库存: {item.stock}')
        return StockService.adjust(item, -quantity, StockLog.TYPE_ORDER, reference, operator_id)

    @staticmethod
    def restock(item, quantity, move_type, reference, operator_id=None, remark=None):
        """取消或退货回补库存"""
        return StockService.adjust(item, quantity, move_type, reference, operator_id, remark)
