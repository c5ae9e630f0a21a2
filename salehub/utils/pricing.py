"""
金额计算工具：优惠券折扣、运费
所有金额使用 Decimal，保留两位小数
"""
import math
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal('0.01')
ZERO = Decimal('0')
EARTH_RADIUS_KM = 6371.0


def to_money(value):
    """任意数值 -> 两位小数 Decimal"""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_discount(voucher, base):
    """
    计算优惠券折扣
    :param base: 折扣基数 (店铺券为店铺小计，运费券为运费合计)
    固定金额取面值，百分比取 base * value / 100；再依次受 max_value 与 base 封顶
    """
    base = to_money(base)
    if voucher.method == voucher.METHOD_PERCENTAGE:
        discount = base * Decimal(voucher.value) / Decimal(100)
    else:
        discount = Decimal(voucher.value)

    if voucher.max_value is not None and discount > voucher.max_value:
        discount = Decimal(voucher.max_value)
    if discount > base:
        discount = base
    if discount < ZERO:
        discount = ZERO
    return to_money(discount)


def distance_km(lat1, lon1, lat2, lon2):
    """Haversine 球面距离 (公里)"""
    lat_rad1, lon_rad1 = math.radians(lat1), math.radians(lon1)
    lat_rad2, lon_rad2 = math.radians(lat2), math.radians(lon2)
    d_lat = lat_rad2 - lat_rad1
    d_lon = lon_rad2 - lon_rad1

    a = (math.sin(d_lat / 2) ** 2
         + math.cos(lat_rad1) * math.cos(lat_rad2) * math.sin(d_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def shipping_fee(shop_address, latitude, longitude, fee_per_km):
    """店铺地址到收货地址的运费；店铺未设置地址时免运费"""
    if shop_address is None or latitude is None or longitude is None:
        return ZERO
    km = distance_km(shop_address.latitude or 0.0, shop_address.longitude or 0.0,
                     latitude, longitude)
    return to_money(Decimal(str(km)) * Decimal(str(fee_per_km)))
