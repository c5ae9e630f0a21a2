from flask import request, jsonify
from flask_login import login_required

from salehub.blueprints.orders import orders_bp
from salehub.services.fulfillment_service import FulfillmentService
from salehub.services.order_service import OrderService
from salehub.services.return_service import ReturnService
from salehub.models import Role
from salehub.utils.permissions import current_auth, role_required


def _respond(result):
    return jsonify(result.to_dict()), result.http_status


def _payload():
    return request.get_json(silent=True) or {}


# ============== 买家：下单 / 查询 / 取消 ==============

@orders_bp.route('/orders', methods=['POST'])
@login_required
def create_order():
    """
    从购物车下单
    body: {cart_item_ids, voucher_shop: {shop_id: voucher_id}, voucher_shipping_id, address_id}
    """
    data = _payload()
    return _respond(OrderService.create_order(
        current_auth(),
        data.get('cart_item_ids'),
        voucher_shop=data.get('voucher_shop'),
        voucher_shipping_id=data.get('voucher_shipping_id'),
        address_id=data.get('address_id'),
    ))


@orders_bp.route('/orders/<int:order_id>')
@login_required
def order_detail(order_id):
    return _respond(OrderService.get_order(current_auth(), order_id))


@orders_bp.route('/orders/<int:order_id>/history')
@login_required
def order_history(order_id):
    return _respond(OrderService.get_order_history(current_auth(), order_id))


@orders_bp.route('/orders/<int:order_id>/cancel', methods=['POST'])
@login_required
def cancel_order(order_id):
    return _respond(OrderService.cancel_main_order(current_auth(), order_id, _payload().get('reason')))


# ============== 已付款店铺订单取消 ==============

@orders_bp.route('/order-shops/<int:order_shop_id>/cancel-request', methods=['POST'])
@login_required
def request_cancel(order_shop_id):
    """买家申请取消已付款的店铺订单 body: {reason}"""
    return _respond(OrderService.cancel_paid_order_shop(
        current_auth(), order_shop_id, _payload().get('reason')))


@orders_bp.route('/cancel-requests/<int:cancel_request_id>/approve', methods=['POST'])
@login_required
@role_required(Role.SELLER)
def approve_cancel(cancel_request_id):
    return _respond(OrderService.approve_cancel_request(current_auth(), cancel_request_id))


@orders_bp.route('/cancel-requests/<int:cancel_request_id>/reject', methods=['POST'])
@login_required
@role_required(Role.SELLER)
def reject_cancel(cancel_request_id):
    return _respond(OrderService.reject_cancel_request(
        current_auth(), cancel_request_id, _payload().get('reason')))


@orders_bp.route('/order-shops/<int:order_shop_id>/cancel', methods=['POST'])
@login_required
@role_required(Role.SELLER)
def seller_cancel(order_shop_id):
    return _respond(OrderService.seller_cancel_order_shop(
        current_auth(), order_shop_id, _payload().get('reason')))


@orders_bp.route('/orders/<int:order_id>/force-cancel', methods=['POST'])
@login_required
@role_required(Role.ADMIN)
def force_cancel(order_id):
    """管理员整单取消"""
    return _respond(OrderService.cancel_entire_order(
        current_auth(), order_id, _payload().get('reason')))


# ============== 退货 ==============

@orders_bp.route('/orders/<int:order_id>/returns', methods=['POST'])
@login_required
def request_return(order_id):
    """body: {items: {order_item_id: quantity}, reason}"""
    data = _payload()
    return _respond(ReturnService.return_order_items(
        current_auth(), order_id, data.get('items'), data.get('reason')))


@orders_bp.route('/returns/<int:return_order_id>/approve', methods=['POST'])
@login_required
@role_required(Role.SELLER)
def approve_return(return_order_id):
    """body: {return_order_item_ids: [...]}"""
    return _respond(ReturnService.approve_return_order_items(
        current_auth(), return_order_id, _payload().get('return_order_item_ids')))


@orders_bp.route('/returns/<int:return_order_id>/reject', methods=['POST'])
@login_required
@role_required(Role.SELLER)
def reject_return(return_order_id):
    """body: {reasons: {return_order_item_id: reason}}"""
    return _respond(ReturnService.reject_return_order_items(
        current_auth(), return_order_id, _payload().get('reasons')))


# ============== 履约 ==============

@orders_bp.route('/orders/<int:order_id>/pay', methods=['POST'])
@login_required
@role_required(Role.ADMIN)
def mark_paid(order_id):
    return _respond(FulfillmentService.mark_order_paid(
        current_auth(), order_id, _payload().get('reference')))


@orders_bp.route('/order-shops/<int:order_shop_id>/ship', methods=['POST'])
@login_required
@role_required(Role.SELLER)
def ship(order_shop_id):
    return _respond(FulfillmentService.ship_order_shop(current_auth(), order_shop_id))


@orders_bp.route('/order-shops/<int:order_shop_id>/deliver', methods=['POST'])
@login_required
@role_required(Role.ADMIN)
def deliver(order_shop_id):
    return _respond(FulfillmentService.mark_order_shop_delivered(current_auth(), order_shop_id))
