"""优惠券服务 - 校验、折扣计算、核销与回退"""
from flask import current_app
from salehub.extensions import db
from salehub.exceptions import ErrorCode, ErrorKind, OrderFailure
from salehub.models import Voucher, utcnow
from salehub.utils.pricing import compute_discount, to_money


class VoucherService:
    """优惠券服务"""

    @staticmethod
    def get_voucher(voucher_id):
        voucher = db.session.get(Voucher, voucher_id)
        if voucher is None:
            raise OrderFailure(ErrorCode.VOUCHER_NOT_FOUND, f'优惠券 {voucher_id} 不存在',
                               ErrorKind.NOT_FOUND)
        return voucher

    @staticmethod
    def _check_usable(voucher, spend, now):
        if not voucher.is_usable(now):
            raise OrderFailure(ErrorCode.VOUCHER_EXPIRED, f'优惠券 {voucher.code} 已过期或已领完')
        if voucher.min_spend is not None and to_money(spend) < voucher.min_spend:
            raise OrderFailure(ErrorCode.MIN_SPEND_NOT_MET,
                               f'未达到优惠券 {voucher.code} 最低消费 {voucher.min_spend}')

    @staticmethod
    def apply_shop_voucher(voucher_id, shop_id, subtotal, now=None):
        """
        核销店铺券
        :return: (voucher, discount)
        """
        now = now or utcnow()
        voucher = VoucherService.get_voucher(voucher_id)
        if not voucher.covers_shop(shop_id):
            raise OrderFailure(ErrorCode.VOUCHER_NOT_APPLICABLE,
                               f'优惠券 {voucher.code} 不适用于店铺 {shop_id}')
        VoucherService._check_usable(voucher, subtotal, now)

        discount = compute_discount(voucher, subtotal)
        voucher.quantity -= 1
        return voucher, discount

    @staticmethod
    def apply_shipping_voucher(voucher_id, subtotal, shipping_fee, now=None):
        """
        核销运费券：最低消费按订单商品小计判断，折扣作用于运费合计
        :return: (voucher, discount)
        """
        now = now or utcnow()
        voucher = VoucherService.get_voucher(voucher_id)
        if not voucher.covers_shipping:
            raise OrderFailure(ErrorCode.VOUCHER_NOT_APPLICABLE,
                               f'优惠券 {voucher.code} 不是运费券')
        VoucherService._check_usable(voucher, subtotal, now)

        discount = compute_discount(voucher, shipping_fee)
        voucher.quantity -= 1
        return voucher, discount

    @staticmethod
    def release(voucher_id):
        """订单取消时归还一次使用次数；优惠券已被删除则跳过"""
        if voucher_id is None:
            return None
        voucher = db.session.get(Voucher, voucher_id)
        if voucher is None:
            current_app.logger.warning(f'release: 优惠券 {voucher_id} 已不存在，跳过回退')
            return None
        voucher.quantity += 1
        return voucher

    @staticmethod
    def refresh_statuses(now=None):
        """
        定时任务：停用过期/领完的券，启用已到开始时间的券
        :return: (deactivated, activated)
        """
        now = now or utcnow()
        deactivated = 0
        activated = 0
        for voucher in Voucher.query.filter(Voucher.is_active.is_(True)).all():
            if voucher.is_expired(now):
                voucher.is_active = False
                deactivated += 1
        for voucher in Voucher.query.filter(
            Voucher.is_active.is_(False),
            Voucher.start_date <= now,
            Voucher.end_date >= now,
            Voucher.quantity > 0,
        ).all():
            voucher.is_active = True
            activated += 1
        db.session.commit()
        return deactivated, activated
