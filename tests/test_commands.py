"""CLI command tests."""
from datetime import timedelta

from salehub.extensions import db
from salehub.models import Order, Role, Shop, User, Voucher, utcnow
from salehub.utils.security import resolve_token
from tests.helpers import deliver_order, place_order


def test_status(app, world):
    result = app.test_cli_runner().invoke(args=['status'])
    assert result.exit_code == 0
    assert '数据库连接正常' in result.output


def test_status_empty_database(app):
    result = app.test_cli_runner().invoke(args=['status'])
    assert result.exit_code == 0
    assert 'flask seed' in result.output


def test_issue_token(app, world):
    result = app.test_cli_runner().invoke(args=['issue-token', 'seller1@test.com'])

    assert result.exit_code == 0
    with app.app_context():
        assert resolve_token(result.output.strip()) == world.seller1


def test_issue_token_unknown_user(app, world):
    result = app.test_cli_runner().invoke(args=['issue-token', 'ghost@test.com'])
    assert result.exit_code != 0
    assert 'ghost@test.com' in result.output


def test_complete_delivered(app, world):
    with app.app_context():
        order_id = deliver_order(world, place_order(world, [world.cart_a]), days_ago=9)

    result = app.test_cli_runner().invoke(args=['orders', 'complete-delivered'])

    assert result.exit_code == 0
    assert '1' in result.output
    with app.app_context():
        assert db.session.get(Order, order_id).status == Order.STATUS_COMPLETED


def test_refresh_vouchers(app, world):
    with app.app_context():
        db.session.get(Voucher, world.v_fixed).end_date = utcnow() - timedelta(minutes=1)
        db.session.commit()

    result = app.test_cli_runner().invoke(args=['vouchers', 'refresh'])

    assert result.exit_code == 0
    with app.app_context():
        assert db.session.get(Voucher, world.v_fixed).is_active is False
        assert db.session.get(Voucher, world.v_expired).is_active is False


def test_seed(app):
    result = app.test_cli_runner().invoke(args=['seed', '--shops', '2', '--items', '2'])

    assert result.exit_code == 0, result.output
    with app.app_context():
        assert Shop.query.count() == 2
        assert Role.query.count() == 3
        admin = User.query.filter_by(email='admin@salehub.com').one()
        assert admin.has_role(Role.ADMIN)
        assert Voucher.query.filter_by(code='FREESHIP').count() == 1
