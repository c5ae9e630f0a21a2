"""履约服务 - 付款确认、发货、签收、自动完成"""
from datetime import timedelta
from flask import current_app
from salehub.extensions import db
from salehub.exceptions import ErrorCode, ErrorKind, OrderFailure, Result
from salehub.models import Order, OrderItem, OrderShop, Role, Transaction, utcnow
from salehub.services.base import record_history, require_user, service_operation
from salehub.services.order_service import OrderService


class FulfillmentService:

    @staticmethod
    def _require_admin(auth):
        user = require_user(auth)
        if not auth.has_role(Role.ADMIN):
            raise OrderFailure(ErrorCode.ROLE_NOT_PERMITTED, '仅管理员可执行此操作', ErrorKind.UNAUTHORIZED)
        return user

    @staticmethod
    def _move_items(order_shop, to_status):
        for order_item in order_shop.items:
            if order_item.status != OrderItem.STATUS_CANCELLED:
                order_item.status = to_status

    @staticmethod
    @service_operation('mark_order_paid')
    def mark_order_paid(auth, order_id, reference=None):
        """
        确认收款 (支付系统回调入口)
        记录收款流水 (已取消的店铺订单不计入)，其余店铺订单进入处理中
        """
        user = FulfillmentService._require_admin(auth)
        order = OrderService.load_order(order_id)
        if order.status != Order.STATUS_PENDING_PAYMENT:
            raise OrderFailure(ErrorCode.STATUS_INVALID, f'订单当前状态 {order.status} 不可确认收款')

        db.session.add(Transaction(
            reference=reference or f'payment:order:{order.id}',
            type=Transaction.TYPE_PAYMENT,
            status=Transaction.STATUS_SUCCEEDED,
            amount=order.outstanding_amount,
            buyer_id=order.user_id,
            order_id=order.id,
        ))
        for order_shop in order.open_shops:
            record_history(order.id, order_shop.status, OrderShop.STATUS_PROCESSING, user.id,
                           order_shop_id=order_shop.id)
            order_shop.status = OrderShop.STATUS_PROCESSING
            FulfillmentService._move_items(order_shop, OrderItem.STATUS_PROCESSING)
        record_history(order.id, order.status, Order.STATUS_PAID, user.id, note='确认收款')
        order.status = Order.STATUS_PAID

        db.session.commit()
        current_app.logger.info(f'mark_order_paid: 订单 {order.id} 已收款 {order.outstanding_amount}')
        return Result.ok({'order_id': order.id, 'status': order.status})

    @staticmethod
    @service_operation('ship_order_shop')
    def ship_order_shop(auth, order_shop_id):
        """
        卖家推进发货：processing -> ready_to_ship -> shipped
        每次调用前进一步
        """
        user = require_user(auth)
        if not auth.has_role(Role.SELLER):
            raise OrderFailure(ErrorCode.ROLE_NOT_PERMITTED, '仅卖家可发货', ErrorKind.UNAUTHORIZED)
        order_shop = OrderService.load_order_shop(order_shop_id)
        if order_shop.shop is None or order_shop.shop.user_id != user.id:
            raise OrderFailure(ErrorCode.ORDER_SHOP_NOT_FOUND, '店铺订单不存在', ErrorKind.NOT_FOUND)

        steps = {
            OrderShop.STATUS_PROCESSING: (OrderShop.STATUS_READY_TO_SHIP, OrderItem.STATUS_READY_TO_SHIP),
            OrderShop.STATUS_READY_TO_SHIP: (OrderShop.STATUS_SHIPPED, OrderItem.STATUS_SHIPPED),
        }
        if order_shop.status not in steps:
            raise OrderFailure(ErrorCode.STATUS_INVALID, f'店铺订单当前状态 {order_shop.status} 不可发货')
        to_status, item_status = steps[order_shop.status]

        record_history(order_shop.order_id, order_shop.status, to_status, user.id,
                       order_shop_id=order_shop.id)
        order_shop.status = to_status
        FulfillmentService._move_items(order_shop, item_status)

        db.session.commit()
        current_app.logger.info(f'ship_order_shop: 店铺订单 {order_shop.id} -> {to_status}')
        return Result.ok({'order_shop_id': order_shop.id, 'status': order_shop.status})

    @staticmethod
    @service_operation('mark_order_shop_delivered')
    def mark_order_shop_delivered(auth, order_shop_id, delivered_at=None):
        """签收 (物流回调入口)；签收时间只写入一次，退货期限由此起算"""
        user = FulfillmentService._require_admin(auth)
        order_shop = OrderService.load_order_shop(order_shop_id)
        if order_shop.status != OrderShop.STATUS_SHIPPED:
            raise OrderFailure(ErrorCode.STATUS_INVALID, f'店铺订单当前状态 {order_shop.status} 不可签收')

        record_history(order_shop.order_id, order_shop.status, OrderShop.STATUS_DELIVERED, user.id,
                       order_shop_id=order_shop.id)
        order_shop.status = OrderShop.STATUS_DELIVERED
        if order_shop.delivered_at is None:
            order_shop.delivered_at = delivered_at or utcnow()
        FulfillmentService._move_items(order_shop, OrderItem.STATUS_DELIVERED)

        order = order_shop.order
        if all(s.status == OrderShop.STATUS_DELIVERED for s in order.open_shops):
            record_history(order.id, order.status, Order.STATUS_DELIVERED, user.id)
            order.status = Order.STATUS_DELIVERED

        db.session.commit()
        current_app.logger.info(f'mark_order_shop_delivered: 店铺订单 {order_shop.id} 已签收')
        return Result.ok({
            'order_shop_id': order_shop.id,
            'status': order_shop.status,
            'order_status': order.status,
        })

    @staticmethod
    def complete_delivered_shops(now=None):
        """
        定时任务：超过退货期限的已签收店铺订单标记为已完成
        :return: 本次完成的店铺订单数量
        """
        now = now or utcnow()
        deadline = now - timedelta(days=current_app.config['RETURN_WINDOW_DAYS'])
        shops = OrderShop.query.filter(
            OrderShop.status == OrderShop.STATUS_DELIVERED,
            OrderShop.delivered_at.isnot(None),
            OrderShop.delivered_at < deadline,
        ).all()

        try:
            for order_shop in shops:
                record_history(order_shop.order_id, order_shop.status, OrderShop.STATUS_COMPLETED,
                               None, note='超过退货期限自动完成', order_shop_id=order_shop.id)
                order_shop.status = OrderShop.STATUS_COMPLETED
                order = order_shop.order
                finished = (OrderShop.STATUS_COMPLETED, OrderShop.STATUS_CANCELLED)
                if (order.status != Order.STATUS_COMPLETED
                        and all(s.status in finished for s in order.shops)):
                    record_history(order.id, order.status, Order.STATUS_COMPLETED, None)
                    order.status = Order.STATUS_COMPLETED
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        current_app.logger.info(f'complete_delivered_shops: 完成 {len(shops)} 个店铺订单')
        return len(shops)
