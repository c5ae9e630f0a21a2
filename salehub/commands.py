import click
import random
from datetime import timedelta
from decimal import Decimal
from faker import Faker
from flask.cli import with_appcontext
from salehub.extensions import db
from salehub.models import (
    Address, CartItem, Item, Order, ReturnOrder, Role, Shop, StockLog, User, Voucher, utcnow
)
from salehub.services.fulfillment_service import FulfillmentService
from salehub.services.voucher_service import VoucherService
from salehub.utils.security import generate_token

fake = Faker('zh_CN')


@click.command('status')
@with_appcontext
def status():
    """
    [验证指令] 查看当前数据库中的数据统计。
    """
    click.echo(click.style('📊 SaleHub 数据库状态:', fg='cyan', bold=True))

    try:
        u_count = User.query.count()
        s_count = Shop.query.count()
        i_count = Item.query.count()
        o_count = Order.query.count()
        r_count = ReturnOrder.query.count()
        l_count = StockLog.query.count()

        click.echo(f" - 用户 (Users): \t{u_count}")
        click.echo(f" - 店铺 (Shops): \t{s_count}")
        click.echo(f" - 商品 (Items): \t{i_count}")
        click.echo(f" - 订单 (Orders): \t{o_count}")
        click.echo(f" - 退货单 (Returns): \t{r_count}")
        click.echo(f" - 库存流水 (Logs): \t{l_count}")

        if u_count > 0:
            click.echo(click.style('✔ 数据库连接正常，数据已存在。', fg='green'))
        else:
            click.echo(click.style('⚠ 数据库为空，请运行 flask seed 生成数据。', fg='yellow'))

    except Exception as e:
        click.echo(click.style(f'✘ 数据库读取失败: {str(e)}', fg='red'))
        click.echo("请检查是否执行了 'flask db upgrade'")


@click.command('seed')
@click.option('--shops', default=3, help='店铺数量 (默认3)')
@click.option('--items', default=5, help='每个店铺的商品数量 (默认5)')
@with_appcontext
def seed(shops, items):
    """
    [初始化指令] 重建数据库并填充演示数据。
    警告：这将清除数据库中的现有数据！
    """
    click.echo(click.style('⚡ 初始化 SaleHub 演示数据...', fg='cyan', bold=True))

    # 1. 清除旧数据
    db.drop_all()
    db.create_all()

    # 2. 角色与账号
    click.echo('正在创建角色与账号...')
    roles = {}
    for name in (Role.CUSTOMER, Role.SELLER, Role.ADMIN):
        roles[name] = Role(name=name)
        db.session.add(roles[name])

    admin = User(username='admin', email='admin@salehub.com', password='admin',
                 roles=[roles[Role.ADMIN]])
    customer = User(username=fake.user_name(), email='customer@salehub.com', password='password',
                    roles=[roles[Role.CUSTOMER]])
    db.session.add_all([admin, customer])
    db.session.add(Address(user=customer, name=fake.address(), is_default=True,
                           latitude=float(fake.latitude()), longitude=float(fake.longitude())))

    # 3. 店铺、商品、店铺券
    click.echo(f'  → 创建 {shops} 个店铺，每个 {items} 个商品...')
    now = utcnow()
    all_items = []
    for i in range(shops):
        seller = User(username=fake.user_name() + str(i), email=f'seller{i}@salehub.com',
                      password='password', roles=[roles[Role.SELLER]])
        address = Address(user=seller, name=fake.address(),
                          latitude=float(fake.latitude()), longitude=float(fake.longitude()))
        shop = Shop(owner=seller, name=fake.company(), address=address)
        db.session.add_all([seller, address, shop])

        for _ in range(items):
            item = Item(shop=shop, name=fake.word(),
                        price=Decimal(random.randint(10, 500) * 1000), stock=random.randint(10, 200))
            db.session.add(item)
            all_items.append(item)

        db.session.add(Voucher(
            code=f'SHOP{i + 1}-{fake.pystr(min_chars=4, max_chars=4).upper()}',
            target=Voucher.TARGET_SHOP, method=Voucher.METHOD_PERCENTAGE, shop=shop,
            value=Decimal('10'), max_value=Decimal('50000'), min_spend=Decimal('100000'),
            quantity=100, start_date=now - timedelta(days=1), end_date=now + timedelta(days=30),
        ))

    db.session.add(Voucher(
        code='FREESHIP', target=Voucher.TARGET_SHIPPING, method=Voucher.METHOD_FIXED,
        value=Decimal('30000'), min_spend=Decimal('0'), quantity=1000,
        start_date=now - timedelta(days=1), end_date=now + timedelta(days=30),
    ))
    db.session.commit()

    # 4. 购物车
    for item in random.sample(all_items, k=min(3, len(all_items))):
        db.session.add(CartItem(user_id=customer.id, item_id=item.id, shop_id=item.shop_id,
                                quantity=random.randint(1, 3)))
    db.session.commit()

    click.echo(click.style('✔ SaleHub 演示数据构建完成！', fg='green', bold=True))
    click.echo("管理员账号: admin@salehub.com / 密码: admin")
    click.echo("买家账号: customer@salehub.com / 密码: password")


@click.command('issue-token')
@click.argument('email')
@with_appcontext
def issue_token(email):
    """为指定邮箱的用户签发 API 令牌"""
    user = User.query.filter_by(email=email).first()
    if user is None:
        raise click.ClickException(f'用户 {email} 不存在')
    click.echo(generate_token(user))


@click.group('orders')
def orders_cli():
    """订单维护任务"""


@orders_cli.command('complete-delivered')
@with_appcontext
def complete_delivered():
    """将超过退货期限的已签收店铺订单标记为已完成"""
    count = FulfillmentService.complete_delivered_shops()
    click.echo(click.style(f'✔ 已完成 {count} 个店铺订单', fg='green'))


@click.group('vouchers')
def vouchers_cli():
    """优惠券维护任务"""


@vouchers_cli.command('refresh')
@with_appcontext
def refresh_vouchers():
    """停用过期/领完的优惠券，启用已到开始时间的优惠券"""
    deactivated, activated = VoucherService.refresh_statuses()
    click.echo(click.style(f'✔ 停用 {deactivated} 张，启用 {activated} 张', fg='green'))
