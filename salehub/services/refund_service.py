"""
退款服务
订单引擎只依赖 RefundService.create_refund 接口；默认实现为钱包退款
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from salehub.extensions import db
from salehub.exceptions import ErrorCode, ErrorKind, Result
from salehub.models import Transaction, User
from salehub.utils.pricing import ZERO, to_money


@dataclass(frozen=True)
class RefundContext:
    """退款上下文"""
    KIND_CANCEL = 'cancel'
    KIND_RETURN = 'return'
    KIND_SHOP_CANCEL = 'shop_cancel'

    kind: str
    buyer_id: int
    order_id: int
    amount: Decimal
    reason: Optional[str] = None
    return_order_id: Optional[int] = None
    return_order_item_id: Optional[int] = None
    order_shop_id: Optional[int] = None

    @property
    def reference(self):
        """幂等键：同一订单、店铺订单或退货明细只允许退款一次"""
        if self.kind == self.KIND_RETURN:
            return f'refund:return-item:{self.return_order_item_id}'
        if self.kind == self.KIND_SHOP_CANCEL:
            return f'refund:cancel:order-shop:{self.order_shop_id}'
        return f'refund:cancel:order:{self.order_id}'


class RefundService:
    """退款服务接口"""

    def create_refund(self, context):
        """
        :param context: RefundContext
        :return: Result，成功时 value 为 Transaction
        """
        raise NotImplementedError


class WalletRefundService(RefundService):
    """
    钱包退款：记录退款流水并将款项退回买家余额
    实际入账金额不超过该订单已收款减去已退款的部分 (未付款订单入账为 0)
    只写入当前会话，随订单引擎的事务一起提交或回滚
    """

    def create_refund(self, context):
        amount = to_money(context.amount)
        if amount < ZERO:
            return Result.fail('退款金额不能为负', ErrorKind.VALIDATION, ErrorCode.VALIDATION_ERROR)

        if Transaction.query.filter_by(reference=context.reference).first() is not None:
            return Result.fail('该单据已退款', ErrorKind.CONFLICT, ErrorCode.REFUND_FAILED)

        buyer = db.session.get(User, context.buyer_id)
        if buyer is None:
            return Result.fail('买家不存在', ErrorKind.NOT_FOUND, ErrorCode.USER_NOT_FOUND)

        refundable = self.refundable_amount(context.order_id)
        credited = min(amount, refundable)

        tx = Transaction(
            reference=context.reference,
            type=Transaction.TYPE_REFUND,
            status=Transaction.STATUS_SUCCEEDED,
            amount=credited,
            buyer_id=buyer.id,
            order_id=context.order_id,
            return_order_id=context.return_order_id,
            return_order_item_id=context.return_order_item_id,
            notes=context.reason,
        )
        db.session.add(tx)
        if credited > ZERO:
            # 以 SQL 表达式累加，避免读改写丢失并发更新
            buyer.balance = User.balance + credited
        return Result.ok(tx)

    @staticmethod
    def refundable_amount(order_id):
        """订单已收款 - 已退款"""
        def total(tx_type):
            value = db.session.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(
                Transaction.order_id == order_id,
                Transaction.type == tx_type,
                Transaction.status == Transaction.STATUS_SUCCEEDED,
            ).scalar()
            return to_money(value)

        remaining = total(Transaction.TYPE_PAYMENT) - total(Transaction.TYPE_REFUND)
        return remaining if remaining > ZERO else ZERO
