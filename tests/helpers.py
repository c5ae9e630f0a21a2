"""Shared helpers for salehub tests."""
from datetime import timedelta

from salehub.exceptions import ErrorCode, ErrorKind, Result
from salehub.extensions import db
from salehub.models import OrderShop, User, utcnow
from salehub.services.fulfillment_service import FulfillmentService
from salehub.services.order_service import OrderService
from salehub.services.refund_service import RefundService
from salehub.utils.permissions import AuthContext

PASSWORD = 'secret'


class FailingRefundService(RefundService):
    """Refund gateway that always declines."""

    def __init__(self):
        self.calls = []

    def create_refund(self, context):
        self.calls.append(context)
        return Result.fail('gateway unavailable', ErrorKind.CONFLICT, ErrorCode.REFUND_FAILED)


def auth_for(user_id):
    """AuthContext built the way the HTTP boundary builds it."""
    return AuthContext.from_user(db.session.get(User, user_id))


def place_order(world, cart_ids, **kwargs):
    result = OrderService.create_order(auth_for(world.customer), cart_ids, **kwargs)
    assert result.success, result
    return result.value['order_id']


def deliver_order(world, order_id, days_ago=1):
    """Pay, ship and deliver every shop of an order; delivered_at is backdated."""
    admin = auth_for(world.admin)
    assert FulfillmentService.mark_order_paid(admin, order_id).success
    delivered_at = utcnow() - timedelta(days=days_ago)
    shop_ids = [s.id for s in OrderShop.query.filter_by(order_id=order_id).all()]
    for order_shop_id in shop_ids:
        seller = auth_for(db.session.get(OrderShop, order_shop_id).shop.user_id)
        assert FulfillmentService.ship_order_shop(seller, order_shop_id).success
        assert FulfillmentService.ship_order_shop(seller, order_shop_id).success
        assert FulfillmentService.mark_order_shop_delivered(
            admin, order_shop_id, delivered_at=delivered_at).success
    return order_id
