"""Pytest fixtures for salehub tests."""
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from salehub import create_app
from salehub.extensions import db
from salehub.models import Address, CartItem, Item, Role, Shop, User, Voucher, utcnow
from salehub.services.base import CODE_GENERATOR_KEY, REFUND_SERVICE_KEY
from salehub.utils.codes import SequenceCodeGenerator
from tests.helpers import PASSWORD, FailingRefundService, deliver_order, place_order


@pytest.fixture
def app():
    """Testing app on in-memory SQLite with deterministic tracking codes."""
    app = create_app('testing')
    app.extensions[CODE_GENERATOR_KEY] = SequenceCodeGenerator()
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def world(app):
    """
    Two shops, four items, a customer cart and a set of vouchers.
    Returns ids only so tests can load fresh objects in their own context.
    """
    with app.app_context():
        now = utcnow()
        roles = {name: Role(name=name) for name in (Role.CUSTOMER, Role.SELLER, Role.ADMIN)}
        db.session.add_all(roles.values())

        def user(email, *role_names):
            u = User(username=email.split('@')[0], email=email, password=PASSWORD,
                     roles=[roles[r] for r in role_names])
            db.session.add(u)
            return u

        customer = user('customer@test.com', Role.CUSTOMER)
        other_customer = user('other@test.com', Role.CUSTOMER)
        seller1 = user('seller1@test.com', Role.SELLER)
        seller2 = user('seller2@test.com', Role.SELLER)
        shopless_seller = user('shopless@test.com', Role.SELLER)
        admin = user('admin@test.com', Role.ADMIN)

        home = Address(user=customer, name='Home', latitude=10.0, longitude=106.0, is_default=True)
        office = Address(user=customer, name='Office', latitude=10.0, longitude=106.0)
        other_home = Address(user=other_customer, name='Other', latitude=10.0, longitude=106.0,
                             is_default=True)
        warehouse = Address(user=seller2, name='Warehouse', latitude=10.0, longitude=106.01)
        db.session.add_all([home, office, other_home, warehouse])

        shop1 = Shop(owner=seller1, name='Shop One')
        shop2 = Shop(owner=seller2, name='Shop Two', address=warehouse)
        db.session.add_all([shop1, shop2])

        item_a = Item(shop=shop1, name='Item A', price=Decimal('100'), stock=10)
        item_b = Item(shop=shop1, name='Item B', price=Decimal('50'), stock=5)
        item_c = Item(shop=shop2, name='Item C', price=Decimal('300'), stock=3)
        item_d = Item(shop=shop2, name='Item D', price=Decimal('80'), stock=0)
        db.session.add_all([item_a, item_b, item_c, item_d])
        db.session.flush()

        def cart(owner, item, quantity):
            c = CartItem(user_id=owner.id, item_id=item.id, shop_id=item.shop_id, quantity=quantity)
            db.session.add(c)
            return c

        cart_a = cart(customer, item_a, 2)
        cart_b = cart(customer, item_b, 1)
        cart_c = cart(customer, item_c, 1)
        cart_d = cart(customer, item_d, 1)
        other_cart = cart(other_customer, item_a, 1)

        def voucher(code, target, value, shop=None, method=Voucher.METHOD_FIXED, max_value=None,
                    min_spend=None, quantity=5, start=None, end=None):
            v = Voucher(code=code, target=target, method=method, shop=shop,
                        value=Decimal(value), max_value=Decimal(max_value) if max_value else None,
                        min_spend=Decimal(min_spend) if min_spend else None, quantity=quantity,
                        start_date=start or now - timedelta(days=1),
                        end_date=end or now + timedelta(days=30))
            db.session.add(v)
            return v

        v_fixed = voucher('FIXED30', Voucher.TARGET_SHOP, '30', shop=shop1, min_spend='100',
                          quantity=2)
        v_pct = voucher('PCT10', Voucher.TARGET_SHOP, '10', shop=shop1,
                        method=Voucher.METHOD_PERCENTAGE, max_value='15')
        v_min = voucher('MIN2500', Voucher.TARGET_SHOP, '10', shop=shop1, min_spend='2500')
        v_expired = voucher('OLD10', Voucher.TARGET_SHOP, '10', shop=shop1,
                            start=now - timedelta(days=10), end=now - timedelta(days=1))
        v_shop2 = voucher('SHOP2', Voucher.TARGET_SHOP, '20', shop=shop2, quantity=1)
        v_ship = voucher('SHIP500', Voucher.TARGET_SHIPPING, '500')
        db.session.commit()

        ids = SimpleNamespace(
            customer=customer.id, other_customer=other_customer.id,
            seller1=seller1.id, seller2=seller2.id, shopless_seller=shopless_seller.id,
            admin=admin.id,
            home=home.id, office=office.id, other_home=other_home.id, warehouse=warehouse.id,
            shop1=shop1.id, shop2=shop2.id,
            item_a=item_a.id, item_b=item_b.id, item_c=item_c.id, item_d=item_d.id,
            cart_a=cart_a.id, cart_b=cart_b.id, cart_c=cart_c.id, cart_d=cart_d.id,
            other_cart=other_cart.id,
            v_fixed=v_fixed.id, v_pct=v_pct.id, v_min=v_min.id, v_expired=v_expired.id,
            v_shop2=v_shop2.id, v_ship=v_ship.id,
        )
        db.session.remove()
    return ids


@pytest.fixture
def ctx(app, world):
    """Push an app context for service-level tests."""
    with app.app_context():
        yield
        db.session.remove()


@pytest.fixture
def failing_refunds(app):
    service = FailingRefundService()
    app.extensions[REFUND_SERVICE_KEY] = service
    return service


@pytest.fixture
def delivered_order(ctx, world):
    """Order of cart_a (2 x Item A) delivered yesterday."""
    return deliver_order(world, place_order(world, [world.cart_a]))
