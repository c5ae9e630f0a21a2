"""订单服务 - 下单、取消 (买家 / 卖家 / 管理员)、订单流水"""
from collections import OrderedDict
from flask import current_app
from salehub.extensions import db
from salehub.exceptions import ErrorCode, ErrorKind, OrderFailure, Result
from salehub.models import (
    Address, CancelRequest, CartItem, Order, OrderHistory, OrderItem, OrderShop, Role, StockLog,
    utcnow
)
from salehub.services.base import (
    get_code_generator, get_refund_service, parse_id, parse_id_list, parse_reason,
    record_history, require_user, service_operation, validation_error
)
from salehub.services.refund_service import RefundContext
from salehub.services.stock_service import StockService
from salehub.services.voucher_service import VoucherService
from salehub.utils.pricing import ZERO, shipping_fee, to_money


class OrderService:

    @staticmethod
    @service_operation('create_order')
    def create_order(auth, cart_item_ids, voucher_shop=None, voucher_shipping_id=None, address_id=None):
        """
        从购物车创建多店铺订单
        :param cart_item_ids: [1, 2, ...]
        :param voucher_shop: {shop_id: voucher_id}
        :return: Result({'order_id', 'total_amount', 'tracking_codes'})
        """
        user = require_user(auth)
        if not auth.has_role(Role.CUSTOMER):
            raise OrderFailure(ErrorCode.NOT_PERMITTED, '当前角色无权下单')

        # 1. 参数校验
        cart_item_ids = parse_id_list(cart_item_ids, 'cart_item_ids')
        voucher_shop = OrderService._parse_voucher_map(voucher_shop)
        if voucher_shipping_id is not None:
            voucher_shipping_id = parse_id(voucher_shipping_id, 'voucher_shipping_id')
        if address_id is not None:
            address_id = parse_id(address_id, 'address_id')

        # 2. 加载购物车 (只取当前用户的)
        cart_items = CartItem.query.filter(
            CartItem.user_id == user.id,
            CartItem.id.in_(cart_item_ids)
        ).all()
        if len(cart_items) != len(cart_item_ids) or any(c.item is None for c in cart_items):
            raise OrderFailure(ErrorCode.CART_ITEM_NOT_FOUND, '部分购物车条目不存在', ErrorKind.NOT_FOUND)
        for cart in cart_items:
            if not cart.quantity or cart.quantity <= 0:
                raise validation_error(f'购物车条目 {cart.id} 数量不正确')

        # 3. 收货地址
        address = OrderService._resolve_address(user, address_id)

        # 4. 按店铺分组 (以商品当前所属店铺为准)
        groups = OrderedDict()
        for cart in sorted(cart_items, key=lambda c: (c.item.shop_id, c.id)):
            groups.setdefault(cart.item.shop_id, []).append(cart)
        unknown_shops = set(voucher_shop) - set(groups)
        if unknown_shops:
            raise validation_error(f'店铺券对应的店铺不在本次结算中: {sorted(unknown_shops)}')

        now = utcnow()
        codes = get_code_generator()
        fee_per_km = current_app.config['SHIPPING_FEE_PER_KM']

        # 5. 创建订单头
        order = Order(
            user_id=user.id,
            status=Order.STATUS_PENDING_PAYMENT,
            order_date=now,
            address_id=address.id,
            address_name=address.name,
            address_latitude=address.latitude,
            address_longitude=address.longitude,
            subtotal=ZERO,
            discount_product_amount=ZERO,
            discount_shipping_amount=ZERO,
            shipping_fee=ZERO,
            total_amount=ZERO,
        )
        db.session.add(order)
        db.session.flush()  # 获取 order.id
        reference = f'order:{order.id}'

        # 6. 逐店铺处理：库存、小计、店铺券、运费
        for shop_id, shop_carts in groups.items():
            shop = shop_carts[0].item.shop
            order_shop = OrderShop(
                shop_id=shop_id,
                status=OrderShop.STATUS_PENDING_CONFIRMATION,
                tracking_code=codes.generate(),
                subtotal=ZERO,
                discount_amount=ZERO,
                shipping_fee=ZERO,
                total_amount=ZERO,
            )
            order.shops.append(order_shop)

            subtotal = ZERO
            for cart in shop_carts:
                item = cart.item
                StockService.reserve(item, cart.quantity, reference, operator_id=user.id)
                line_total = to_money(item.price * cart.quantity)
                order_shop.items.append(OrderItem(
                    item_id=item.id,
                    shop_id=shop_id,
                    quantity=cart.quantity,
                    price=item.price,  # 锁定快照价格
                    total_amount=line_total,
                    status=OrderItem.STATUS_PENDING,
                ))
                subtotal += line_total
            order_shop.subtotal = subtotal

            if shop_id in voucher_shop:
                voucher, discount = VoucherService.apply_shop_voucher(
                    voucher_shop[shop_id], shop_id, subtotal, now)
                order_shop.voucher_shop_id = voucher.id
                order_shop.voucher_shop_code = voucher.code
                order_shop.discount_amount = discount

            order_shop.shipping_fee = shipping_fee(
                shop.address if shop else None, address.latitude, address.longitude, fee_per_km)
            order_shop.total_amount = (order_shop.subtotal - order_shop.discount_amount
                                       + order_shop.shipping_fee)

        order.recalculate_totals()

        # 7. 运费券 (作用于整单运费)
        if voucher_shipping_id is not None:
            voucher, discount = VoucherService.apply_shipping_voucher(
                voucher_shipping_id, order.subtotal, order.shipping_fee, now)
            order.voucher_shipping_id = voucher.id
            order.discount_shipping_amount = discount
            order.recalculate_totals()

        record_history(order.id, None, Order.STATUS_PENDING_PAYMENT, user.id, note='创建订单')

        if current_app.config.get('ORDER_CLEAR_CART', True):
            for cart in cart_items:
                db.session.delete(cart)

        # 8. 提交
        db.session.commit()
        current_app.logger.info(
            f'create_order: 用户 {user.id} 创建订单 {order.id}，金额 {order.total_amount}')
        return Result.ok({
            'order_id': order.id,
            'total_amount': str(order.total_amount),
            'tracking_codes': {s.shop_id: s.tracking_code for s in order.shops},
        })

    @staticmethod
    def _parse_voucher_map(voucher_shop):
        if voucher_shop is None:
            return {}
        if not isinstance(voucher_shop, dict):
            raise validation_error('voucher_shop 必须是 {shop_id: voucher_id} 映射')
        parsed = {}
        for shop_id, voucher_id in voucher_shop.items():
            # JSON 对象的键总是字符串
            if isinstance(shop_id, str) and shop_id.isdigit():
                shop_id = int(shop_id)
            parsed[parse_id(shop_id, 'shop_id')] = parse_id(voucher_id, 'voucher_id')
        return parsed

    @staticmethod
    def _resolve_address(user, address_id):
        """显式地址必须属于当前用户；否则使用默认地址"""
        if address_id is not None:
            address = Address.query.filter_by(id=address_id, user_id=user.id).first()
        else:
            address = Address.query.filter_by(user_id=user.id, is_default=True).first()
        if address is None:
            raise OrderFailure(ErrorCode.ADDRESS_NOT_FOUND, '收货地址不存在', ErrorKind.NOT_FOUND)
        return address

    @staticmethod
    def load_order(order_id):
        order = db.session.get(Order, order_id) if isinstance(order_id, int) else None
        if order is None:
            raise OrderFailure(ErrorCode.ORDER_NOT_FOUND, '订单不存在', ErrorKind.NOT_FOUND)
        return order

    @staticmethod
    def load_order_shop(order_shop_id):
        order_shop = db.session.get(OrderShop, order_shop_id) if isinstance(order_shop_id, int) else None
        if order_shop is None:
            raise OrderFailure(ErrorCode.ORDER_SHOP_NOT_FOUND, '店铺订单不存在', ErrorKind.NOT_FOUND)
        return order_shop

    @staticmethod
    def _require_seller(auth, message):
        user = require_user(auth)
        if not auth.has_role(Role.SELLER):
            raise OrderFailure(ErrorCode.ROLE_NOT_PERMITTED, message, ErrorKind.UNAUTHORIZED)
        return user

    @staticmethod
    def _refund(context):
        refund = get_refund_service().create_refund(context)
        if not refund.success:
            raise OrderFailure(ErrorCode.REFUND_FAILED, f'退款失败: {refund.error}')
        return refund.value

    @staticmethod
    def _cancel_order_shop(order_shop, user_id, reason, now):
        """
        取消单个店铺订单：回补未取消明细的库存、归还店铺券、关闭待审核的取消申请
        不处理退款与主订单状态
        """
        reference = f'order:{order_shop.order_id}'
        for order_item in order_shop.items:
            if order_item.status == OrderItem.STATUS_CANCELLED:
                continue
            if order_item.item is not None:
                StockService.restock(order_item.item, order_item.quantity, StockLog.TYPE_CANCEL,
                                     reference, operator_id=user_id, remark=reason)
            order_item.status = OrderItem.STATUS_CANCELLED
        record_history(order_shop.order_id, order_shop.status, OrderShop.STATUS_CANCELLED, user_id,
                       note=reason, order_shop_id=order_shop.id)
        order_shop.status = OrderShop.STATUS_CANCELLED
        VoucherService.release(order_shop.voucher_shop_id)

        for request in order_shop.cancel_requests.filter_by(status=CancelRequest.STATUS_PENDING):
            request.status = CancelRequest.STATUS_APPROVED
            request.reviewed_at = now

    @staticmethod
    def _close_order_if_cancelled(order, user_id, reason):
        """所有店铺订单都已取消时，主订单随之取消并归还运费券"""
        if order.open_shops or order.status == Order.STATUS_CANCELLED:
            return False
        VoucherService.release(order.voucher_shipping_id)
        record_history(order.id, order.status, Order.STATUS_CANCELLED, user_id, note=reason)
        order.status = Order.STATUS_CANCELLED
        return True

    @staticmethod
    @service_operation('cancel_main_order')
    def cancel_main_order(auth, order_id, reason=None):
        """
        买家取消待付款订单
        回补库存、归还优惠券次数、调用退款服务，全部成功后订单才标记为已取消
        """
        user = require_user(auth)
        reason = parse_reason(reason)
        order = OrderService.load_order(order_id)

        if order.user_id != user.id or not auth.has_role(Role.CUSTOMER):
            raise OrderFailure(ErrorCode.NOT_PERMITTED, '无权取消该订单')
        if order.status != Order.STATUS_PENDING_PAYMENT:
            raise OrderFailure(ErrorCode.STATUS_INVALID, f'订单当前状态 {order.status} 不允许取消')
        open_shops = order.open_shops
        if any(s.status != OrderShop.STATUS_PENDING_CONFIRMATION for s in open_shops):
            raise OrderFailure(ErrorCode.STATUS_INVALID, '部分店铺订单已在处理中，无法取消')

        amount = order.outstanding_amount
        now = utcnow()
        for order_shop in open_shops:
            OrderService._cancel_order_shop(order_shop, user.id, reason, now)

        OrderService._refund(RefundContext(
            kind=RefundContext.KIND_CANCEL,
            buyer_id=order.user_id,
            order_id=order.id,
            amount=amount,
            reason=reason,
        ))
        OrderService._close_order_if_cancelled(order, user.id, reason)

        db.session.commit()
        current_app.logger.info(f'cancel_main_order: 订单 {order.id} 已取消')
        return Result.ok({'order_id': order.id, 'status': order.status})

    # ============== 已付款订单：取消申请 ==============

    @staticmethod
    @service_operation('cancel_paid_order_shop')
    def cancel_paid_order_shop(auth, order_shop_id, reason=None):
        """
        买家申请取消已付款、卖家尚未备货的店铺订单
        只创建待审核的取消申请，库存与退款在卖家通过后处理
        :return: Result({'cancel_request_id', 'order_shop_id', 'status', 'amount'})
        """
        user = require_user(auth)
        reason = parse_reason(reason)
        order_shop = OrderService.load_order_shop(order_shop_id)
        order = order_shop.order

        if order.user_id != user.id or not auth.has_role(Role.CUSTOMER):
            raise OrderFailure(ErrorCode.NOT_PERMITTED, '无权取消该订单')
        if order.status != Order.STATUS_PAID or order_shop.status != OrderShop.STATUS_PROCESSING:
            raise OrderFailure(ErrorCode.STATUS_INVALID,
                               f'店铺订单当前状态 {order_shop.status} 不允许申请取消')
        if order_shop.cancel_requests.filter_by(status=CancelRequest.STATUS_PENDING).count():
            raise OrderFailure(ErrorCode.STATUS_INVALID, '该店铺订单已有待审核的取消申请')

        request = CancelRequest(
            order_id=order.id,
            order_shop_id=order_shop.id,
            user_id=user.id,
            status=CancelRequest.STATUS_PENDING,
            reason=reason,
            amount=order_shop.total_amount,
            requested_at=utcnow(),
        )
        db.session.add(request)

        db.session.commit()
        current_app.logger.info(
            f'cancel_paid_order_shop: 店铺订单 {order_shop.id} 提交取消申请 {request.id}')
        return Result.ok({
            'cancel_request_id': request.id,
            'order_shop_id': order_shop.id,
            'status': request.status,
            'amount': str(request.amount),
        })

    @staticmethod
    def _load_cancel_request_for_review(auth, cancel_request_id):
        """卖家只能审核自己店铺的待审核申请，且店铺订单仍在处理中"""
        user = OrderService._require_seller(auth, '仅卖家可审核取消申请')
        request = (db.session.get(CancelRequest, cancel_request_id)
                   if isinstance(cancel_request_id, int) else None)
        order_shop = request.order_shop if request is not None else None
        if order_shop is None or order_shop.shop is None or order_shop.shop.user_id != user.id:
            raise OrderFailure(ErrorCode.CANCEL_REQUEST_NOT_FOUND, '取消申请不存在', ErrorKind.NOT_FOUND)
        if request.status != CancelRequest.STATUS_PENDING:
            raise OrderFailure(ErrorCode.STATUS_INVALID, f'取消申请当前状态 {request.status} 不可审核')
        if order_shop.status != OrderShop.STATUS_PROCESSING:
            raise OrderFailure(ErrorCode.STATUS_INVALID,
                               f'店铺订单当前状态 {order_shop.status} 不可取消')
        return user, request, order_shop

    @staticmethod
    @service_operation('approve_cancel_request')
    def approve_cancel_request(auth, cancel_request_id):
        """
        卖家通过取消申请
        店铺订单及明细取消、回补库存、按申请金额退款；退款失败则整体回滚
        """
        user, request, order_shop = OrderService._load_cancel_request_for_review(
            auth, cancel_request_id)
        order = order_shop.order
        now = utcnow()

        OrderService._cancel_order_shop(order_shop, user.id, request.reason, now)
        refund = OrderService._refund(RefundContext(
            kind=RefundContext.KIND_SHOP_CANCEL,
            buyer_id=order.user_id,
            order_id=order.id,
            order_shop_id=order_shop.id,
            amount=request.amount,
            reason=request.reason,
        ))
        request.status = CancelRequest.STATUS_APPROVED
        request.reviewed_at = now
        OrderService._close_order_if_cancelled(order, user.id, request.reason)

        db.session.commit()
        current_app.logger.info(
            f'approve_cancel_request: 取消申请 {request.id} 已通过，退款 {refund.amount}')
        return Result.ok({
            'cancel_request_id': request.id,
            'status': request.status,
            'order_shop_status': order_shop.status,
            'order_status': order.status,
            'refunded': str(refund.amount),
        })

    @staticmethod
    @service_operation('reject_cancel_request')
    def reject_cancel_request(auth, cancel_request_id, reason=None):
        """卖家驳回取消申请，店铺订单继续履约"""
        reason = parse_reason(reason)
        user, request, order_shop = OrderService._load_cancel_request_for_review(
            auth, cancel_request_id)

        request.status = CancelRequest.STATUS_REJECTED
        request.reject_reason = reason
        request.reviewed_at = utcnow()
        record_history(order_shop.order_id, order_shop.status, order_shop.status, user.id,
                       note=reason or '驳回取消申请', order_shop_id=order_shop.id)

        db.session.commit()
        current_app.logger.info(f'reject_cancel_request: 取消申请 {request.id} 已驳回')
        return Result.ok({'cancel_request_id': request.id, 'status': request.status})

    # ============== 卖家 / 管理员取消 ==============

    @staticmethod
    @service_operation('seller_cancel_order_shop')
    def seller_cancel_order_shop(auth, order_shop_id, reason=None):
        """
        卖家取消自己店铺的订单 (待确认或处理中)
        已付款订单按店铺订单金额退款；所有店铺订单都取消后主订单随之取消
        """
        user = OrderService._require_seller(auth, '仅卖家可取消店铺订单')
        reason = parse_reason(reason)
        order_shop = OrderService.load_order_shop(order_shop_id)
        if order_shop.shop is None or order_shop.shop.user_id != user.id:
            raise OrderFailure(ErrorCode.ORDER_SHOP_NOT_FOUND, '店铺订单不存在', ErrorKind.NOT_FOUND)
        if order_shop.status not in (OrderShop.STATUS_PENDING_CONFIRMATION, OrderShop.STATUS_PROCESSING):
            raise OrderFailure(ErrorCode.STATUS_INVALID,
                               f'店铺订单当前状态 {order_shop.status} 不允许取消')

        order = order_shop.order
        OrderService._cancel_order_shop(order_shop, user.id, reason, utcnow())
        if order.status == Order.STATUS_PAID:
            OrderService._refund(RefundContext(
                kind=RefundContext.KIND_SHOP_CANCEL,
                buyer_id=order.user_id,
                order_id=order.id,
                order_shop_id=order_shop.id,
                amount=order_shop.total_amount,
                reason=reason,
            ))
        OrderService._close_order_if_cancelled(order, user.id, reason)

        db.session.commit()
        current_app.logger.info(f'seller_cancel_order_shop: 店铺订单 {order_shop.id} 已被卖家取消')
        return Result.ok({
            'order_shop_id': order_shop.id,
            'status': order_shop.status,
            'order_status': order.status,
        })

    @staticmethod
    @service_operation('cancel_entire_order')
    def cancel_entire_order(auth, order_id, reason=None):
        """
        管理员取消整单 (未付款或已付款、尚未发货)
        退款金额为未取消部分的应付金额，钱包实际入账不超过已收款
        """
        user = require_user(auth)
        if not auth.has_role(Role.ADMIN):
            raise OrderFailure(ErrorCode.ROLE_NOT_PERMITTED, '仅管理员可取消整单', ErrorKind.UNAUTHORIZED)
        reason = parse_reason(reason)
        order = OrderService.load_order(order_id)

        if order.status not in (Order.STATUS_PENDING_PAYMENT, Order.STATUS_PAID):
            raise OrderFailure(ErrorCode.STATUS_INVALID, f'订单当前状态 {order.status} 不允许取消')
        open_shops = order.open_shops
        cancellable = (OrderShop.STATUS_PENDING_CONFIRMATION, OrderShop.STATUS_PROCESSING)
        if any(s.status not in cancellable for s in open_shops):
            raise OrderFailure(ErrorCode.STATUS_INVALID, '部分店铺订单已发货，无法整单取消')

        amount = order.outstanding_amount
        now = utcnow()
        for order_shop in open_shops:
            OrderService._cancel_order_shop(order_shop, user.id, reason, now)
        OrderService._refund(RefundContext(
            kind=RefundContext.KIND_CANCEL,
            buyer_id=order.user_id,
            order_id=order.id,
            amount=amount,
            reason=reason,
        ))
        OrderService._close_order_if_cancelled(order, user.id, reason)

        db.session.commit()
        current_app.logger.info(f'cancel_entire_order: 管理员 {user.id} 取消订单 {order.id}')
        return Result.ok({'order_id': order.id, 'status': order.status})

    @staticmethod
    @service_operation('get_order')
    def get_order(auth, order_id):
        """订单详情：买家本人或管理员可见"""
        user = require_user(auth)
        order = OrderService.load_order(order_id)
        if order.user_id != user.id and not auth.has_role(Role.ADMIN):
            raise OrderFailure(ErrorCode.ORDER_NOT_FOUND, '订单不存在', ErrorKind.NOT_FOUND)
        return Result.ok(order.to_dict(with_shops=True))

    @staticmethod
    @service_operation('get_order_history')
    def get_order_history(auth, order_id):
        """订单状态流转记录，仅买家本人可查"""
        user = require_user(auth)
        order = OrderService.load_order(order_id)
        if order.user_id != user.id:
            raise OrderFailure(ErrorCode.ORDER_NOT_FOUND, '订单不存在', ErrorKind.NOT_FOUND)
        rows = OrderHistory.query.filter_by(order_id=order.id).order_by(OrderHistory.id.asc()).all()
        return Result.ok([h.to_dict() for h in rows])
