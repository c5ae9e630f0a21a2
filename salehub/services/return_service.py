"""退货服务 - 买家申请退货，卖家审核 (通过/驳回)"""
from datetime import timedelta
from flask import current_app
from salehub.extensions import db
from salehub.exceptions import ErrorCode, ErrorKind, OrderFailure, Result
from salehub.models import (
    OrderItem, OrderShop, ReturnOrder, ReturnOrderItem, Role, Shop, StockLog, utcnow
)
from salehub.services.base import (
    get_code_generator, get_refund_service, parse_id, parse_id_list, parse_reason,
    record_history, require_user, service_operation, validation_error
)
from salehub.services.order_service import OrderService
from salehub.services.refund_service import RefundContext
from salehub.services.stock_service import StockService
from salehub.utils.pricing import ZERO, to_money


class ReturnService:
    """退货服务"""

    # ============== 买家申请 ==============

    @staticmethod
    @service_operation('return_order_items')
    def return_order_items(auth, order_id, items_return, reason=None):
        """
        申请退货
        :param items_return: {order_item_id: quantity}
        :return: Result({'return_order_id', 'amount', 'tracking_codes'})
        """
        user = require_user(auth)
        items_return = ReturnService._parse_quantity_map(items_return)
        reason = parse_reason(reason)
        order = OrderService.load_order(order_id)

        if order.user_id != user.id or not auth.has_role(Role.CUSTOMER):
            raise OrderFailure(ErrorCode.NOT_PERMITTED, '无权对该订单申请退货')

        order_items = {oi.id: oi for oi in order.items}
        missing = [oid for oid in items_return if oid not in order_items]
        if missing:
            raise OrderFailure(ErrorCode.ORDER_ITEM_NOT_FOUND, f'订单中不存在明细 {missing}',
                               ErrorKind.NOT_FOUND)

        now = utcnow()
        window = timedelta(days=current_app.config['RETURN_WINDOW_DAYS'])
        codes = get_code_generator()

        return_order = ReturnOrder(
            order_id=order.id,
            user_id=user.id,
            status=ReturnOrder.STATUS_PENDING,
            reason=reason,
            requested_at=now,
            amount=ZERO,
        )
        db.session.add(return_order)

        total = ZERO
        for order_item_id in sorted(items_return):
            order_item = order_items[order_item_id]
            quantity = items_return[order_item_id]
            ReturnService._check_returnable(order_item, quantity, now, window)

            amount = to_money(order_item.price * quantity)
            return_order.items.append(ReturnOrderItem(
                order_item_id=order_item.id,
                quantity=quantity,
                amount=amount,
                reason=reason,
                status=ReturnOrderItem.STATUS_PENDING,
                tracking_code=codes.generate(),
            ))
            record_history(order.id, order_item.status, OrderItem.STATUS_RETURN_REQUESTED, user.id,
                           note=reason, order_shop_id=order_item.order_shop_id,
                           order_item_id=order_item.id)
            order_item.status = OrderItem.STATUS_RETURN_REQUESTED
            total += amount
        return_order.amount = total

        db.session.commit()
        current_app.logger.info(
            f'return_order_items: 订单 {order.id} 提交退货单 {return_order.id}，金额 {total}')
        return Result.ok({
            'return_order_id': return_order.id,
            'amount': str(return_order.amount),
            'tracking_codes': {roi.id: roi.tracking_code for roi in return_order.items},
        })

    @staticmethod
    def _parse_quantity_map(items_return):
        if not isinstance(items_return, dict) or not items_return:
            raise validation_error('items_return 不能为空')
        parsed = {}
        for order_item_id, quantity in items_return.items():
            if isinstance(order_item_id, str) and order_item_id.isdigit():
                order_item_id = int(order_item_id)
            if isinstance(quantity, bool) or not isinstance(quantity, int):
                raise validation_error(f'退货数量格式不正确: {quantity!r}')
            parsed[parse_id(order_item_id, 'order_item_id')] = quantity
        return parsed

    @staticmethod
    def _check_returnable(order_item, quantity, now, window):
        """已签收 -> 退货窗口内 -> 数量合法"""
        order_shop = order_item.order_shop
        if (order_shop is None
                or order_shop.status != OrderShop.STATUS_DELIVERED
                or order_shop.delivered_at is None
                or order_item.status != OrderItem.STATUS_DELIVERED):
            raise OrderFailure(ErrorCode.NOT_PERMITTED, f'订单明细 {order_item.id} 尚未签收或不可退货')
        if order_shop.delivered_at + window < now:
            raise OrderFailure(ErrorCode.RETURN_PERIOD_EXPIRED, f'订单明细 {order_item.id} 已超过退货期限')
        if quantity < 1 or quantity > order_item.quantity:
            raise OrderFailure(ErrorCode.QUANTITY_RETURN_INVALID,
                               f'退货数量 {quantity} 不合法，可退数量 1-{order_item.quantity}')

    # ============== 卖家审核 ==============

    @staticmethod
    def _load_for_review(auth, return_order_id, return_order_item_ids):
        """审核前置校验：卖家身份、店铺归属、单据状态"""
        user = require_user(auth)
        if not auth.has_role(Role.SELLER):
            raise OrderFailure(ErrorCode.ROLE_NOT_PERMITTED, '仅卖家可审核退货', ErrorKind.UNAUTHORIZED)

        shop_ids = {s.id for s in Shop.query.filter_by(user_id=user.id).all()}
        if not shop_ids:
            raise OrderFailure(ErrorCode.SHOP_NOT_FOUND, '店铺不存在', ErrorKind.NOT_FOUND)

        return_order = (db.session.get(ReturnOrder, return_order_id)
                        if isinstance(return_order_id, int) else None)
        if return_order is None:
            raise OrderFailure(ErrorCode.RETURN_ORDER_NOT_FOUND, '退货单不存在', ErrorKind.NOT_FOUND)

        by_id = {roi.id: roi for roi in return_order.items}
        targets = []
        for rid in return_order_item_ids:
            roi = by_id.get(rid)
            if roi is None or roi.order_item.order_shop.shop_id not in shop_ids:
                raise OrderFailure(ErrorCode.RETURN_ORDER_ITEM_NOT_FOUND, f'退货明细 {rid} 不存在',
                                   ErrorKind.NOT_FOUND)
            targets.append(roi)

        if return_order.status != ReturnOrder.STATUS_PENDING:
            raise OrderFailure(ErrorCode.STATUS_INVALID, f'退货单当前状态 {return_order.status} 不可审核')
        for roi in targets:
            if roi.status != ReturnOrderItem.STATUS_PENDING:
                raise OrderFailure(ErrorCode.STATUS_INVALID, f'退货明细 {roi.id} 已审核')
        return user, return_order, targets

    @staticmethod
    def _resolve_return_order(return_order, user_id, now):
        """全部明细审核完毕后推进退货单状态：有通过即为通过，否则为驳回"""
        if not return_order.is_resolved:
            return
        approved = any(i.status == ReturnOrderItem.STATUS_APPROVED for i in return_order.items)
        to_status = ReturnOrder.STATUS_APPROVED if approved else ReturnOrder.STATUS_REJECTED
        record_history(return_order.order_id, return_order.status, to_status, user_id,
                       note=f'退货单 {return_order.id} 审核完成')
        return_order.status = to_status
        return_order.reviewed_at = now

    @staticmethod
    @service_operation('approve_return_order_items')
    def approve_return_order_items(auth, return_order_id, return_order_item_ids):
        """
        卖家通过退货：逐条退款并回补库存
        任一退款失败则整个审核回滚
        """
        ids = parse_id_list(return_order_item_ids, 'return_order_item_ids')
        user, return_order, targets = ReturnService._load_for_review(auth, return_order_id, ids)

        now = utcnow()
        refunds = get_refund_service()
        for roi in targets:
            order_item = roi.order_item
            roi.status = ReturnOrderItem.STATUS_APPROVED

            refund = refunds.create_refund(RefundContext(
                kind=RefundContext.KIND_RETURN,
                buyer_id=return_order.user_id,
                order_id=return_order.order_id,
                amount=roi.amount,
                reason=roi.reason,
                return_order_id=return_order.id,
                return_order_item_id=roi.id,
            ))
            if not refund.success:
                raise OrderFailure(ErrorCode.REFUND_FAILED, f'退货明细 {roi.id} 退款失败: {refund.error}')

            if order_item.item is not None:
                StockService.restock(order_item.item, roi.quantity, StockLog.TYPE_RETURN,
                                     f'return:{return_order.id}', operator_id=user.id)
            record_history(return_order.order_id, order_item.status, OrderItem.STATUS_RETURNED,
                           user.id, note='退货审核通过', order_shop_id=order_item.order_shop_id,
                           order_item_id=order_item.id)
            order_item.status = OrderItem.STATUS_RETURNED

        ReturnService._resolve_return_order(return_order, user.id, now)

        db.session.commit()
        current_app.logger.info(
            f'approve_return_order_items: 退货单 {return_order.id} 通过 {len(targets)} 条明细')
        return Result.ok({'return_order_id': return_order.id, 'status': return_order.status})

    @staticmethod
    @service_operation('reject_return_order_items')
    def reject_return_order_items(auth, return_order_id, reject_reasons):
        """
        卖家驳回退货
        :param reject_reasons: {return_order_item_id: reason}
        """
        if not isinstance(reject_reasons, dict) or not reject_reasons:
            raise validation_error('reject_reasons 不能为空')
        reasons = {}
        for rid, reason in reject_reasons.items():
            if isinstance(rid, str) and rid.isdigit():
                rid = int(rid)
            reasons[parse_id(rid, 'return_order_item_id')] = parse_reason(reason)
        user, return_order, targets = ReturnService._load_for_review(
            auth, return_order_id, sorted(reasons))

        now = utcnow()
        for roi in targets:
            order_item = roi.order_item
            roi.status = ReturnOrderItem.STATUS_REJECTED
            roi.reject_reason = reasons[roi.id]
            record_history(return_order.order_id, order_item.status, OrderItem.STATUS_RETURN_REJECTED,
                           user.id, note=reasons[roi.id], order_shop_id=order_item.order_shop_id,
                           order_item_id=order_item.id)
            order_item.status = OrderItem.STATUS_RETURN_REJECTED

        ReturnService._resolve_return_order(return_order, user.id, now)

        db.session.commit()
        current_app.logger.info(
            f'reject_return_order_items: 退货单 {return_order.id} 驳回 {len(targets)} 条明细')
        return Result.ok({'return_order_id': return_order.id, 'status': return_order.status})
