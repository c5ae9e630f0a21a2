"""HTTP tests through the Flask test client."""
from decimal import Decimal

import pytest

from salehub.extensions import db
from salehub.models import Item, User
from salehub.utils.security import generate_token, resolve_token
from tests.helpers import PASSWORD, deliver_order, place_order


@pytest.fixture
def client(app, world):
    return app.test_client()


@pytest.fixture
def token_for(app):
    def make(user_id):
        with app.app_context():
            return generate_token(db.session.get(User, user_id))
    return make


def bearer(token):
    return {'Authorization': f'Bearer {token}'}


class TestAuth:

    def test_issue_token(self, app, client, world):
        resp = client.post('/auth/token', json={'email': 'customer@test.com', 'password': PASSWORD})

        assert resp.status_code == 200
        data = resp.get_json()['data']
        assert data['user_id'] == world.customer
        assert data['roles'] == ['Customer']
        with app.app_context():
            assert resolve_token(data['token']) == world.customer

    def test_bad_password(self, client):
        resp = client.post('/auth/token', json={'email': 'customer@test.com', 'password': 'nope'})
        assert resp.status_code == 401
        assert resp.get_json()['code'] == 'TOKEN_INVALID'

    def test_missing_token(self, client):
        resp = client.post('/api/orders', json={'cart_item_ids': [1]})
        assert resp.status_code == 401
        assert resp.get_json() == {
            'success': False, 'message': '身份令牌无效', 'kind': 'unauthorized',
            'code': 'TOKEN_INVALID',
        }

    def test_tampered_token(self, client, token_for, world):
        resp = client.post('/api/orders', json={'cart_item_ids': [world.cart_a]},
                           headers=bearer(token_for(world.customer) + 'x'))
        assert resp.status_code == 401

    def test_expired_token(self, app, client, token_for, world):
        token = token_for(world.customer)
        app.config['TOKEN_MAX_AGE'] = -1
        resp = client.get('/api/orders/1', headers=bearer(token))
        assert resp.status_code == 401


class TestOrderEndpoints:

    def test_create_and_cancel(self, app, client, token_for, world):
        headers = bearer(token_for(world.customer))

        resp = client.post('/api/orders', headers=headers, json={
            'cart_item_ids': [world.cart_a],
            'voucher_shop': {str(world.shop1): world.v_fixed},
        })
        assert resp.status_code == 200
        body = resp.get_json()
        assert body['success'] is True
        order_id = body['data']['order_id']
        assert Decimal(body['data']['total_amount']) == Decimal('170')

        detail = client.get(f'/api/orders/{order_id}', headers=headers).get_json()['data']
        assert detail['status'] == 'pending_payment'

        resp = client.post(f'/api/orders/{order_id}/cancel', headers=headers,
                           json={'reason': 'too slow'})
        assert resp.status_code == 200
        assert resp.get_json()['data']['status'] == 'cancelled'
        with app.app_context():
            assert db.session.get(Item, world.item_a).stock == 10

        history = client.get(f'/api/orders/{order_id}/history', headers=headers).get_json()['data']
        assert history[-1]['to_status'] == 'cancelled'

    def test_out_of_stock_is_conflict(self, client, token_for, world):
        resp = client.post('/api/orders', headers=bearer(token_for(world.customer)),
                           json={'cart_item_ids': [world.cart_d]})
        assert resp.status_code == 409
        assert resp.get_json()['code'] == 'OUT_OF_STOCK'

    def test_validation_is_bad_request(self, client, token_for, world):
        resp = client.post('/api/orders', headers=bearer(token_for(world.customer)), json={})
        assert resp.status_code == 400
        assert resp.get_json()['kind'] == 'validation'

    def test_unknown_order_is_not_found(self, client, token_for, world):
        resp = client.post('/api/orders/9999/cancel', headers=bearer(token_for(world.customer)))
        assert resp.status_code == 404
        assert resp.get_json()['code'] == 'ORDER_NOT_FOUND'

    def test_return_flow(self, app, client, token_for, world):
        with app.app_context():
            order_id = deliver_order(world, place_order(world, [world.cart_a]))

        customer = bearer(token_for(world.customer))
        detail = client.get(f'/api/orders/{order_id}', headers=customer).get_json()['data']
        order_item_id = detail['shops'][0]['items'][0]['id']

        resp = client.post(f'/api/orders/{order_id}/returns', headers=customer,
                           json={'items': {str(order_item_id): 1}, 'reason': 'scratched'})
        assert resp.status_code == 200
        return_order_id = resp.get_json()['data']['return_order_id']
        roi_id = int(next(iter(resp.get_json()['data']['tracking_codes'])))

        resp = client.post(f'/api/returns/{return_order_id}/approve', headers=customer,
                           json={'return_order_item_ids': [roi_id]})
        assert resp.status_code == 401
        assert resp.get_json()['code'] == 'ROLE_NOT_PERMITTED'

        resp = client.post(f'/api/returns/{return_order_id}/approve',
                           headers=bearer(token_for(world.seller1)),
                           json={'return_order_item_ids': [roi_id]})
        assert resp.status_code == 200
        assert resp.get_json()['data']['status'] == 'approved'
        with app.app_context():
            assert db.session.get(User, world.customer).balance == Decimal('100')

    def test_fulfillment_endpoints(self, client, token_for, world):
        customer = bearer(token_for(world.customer))
        admin = bearer(token_for(world.admin))
        seller = bearer(token_for(world.seller1))
        order_id = client.post('/api/orders', headers=customer,
                               json={'cart_item_ids': [world.cart_a]}).get_json()['data']['order_id']

        assert client.post(f'/api/orders/{order_id}/pay', headers=customer).status_code == 401
        assert client.post(f'/api/orders/{order_id}/pay', headers=admin).status_code == 200

        detail = client.get(f'/api/orders/{order_id}', headers=customer).get_json()['data']
        order_shop_id = detail['shops'][0]['id']
        client.post(f'/api/order-shops/{order_shop_id}/ship', headers=seller)
        resp = client.post(f'/api/order-shops/{order_shop_id}/ship', headers=seller)
        assert resp.get_json()['data']['status'] == 'shipped'

        resp = client.post(f'/api/order-shops/{order_shop_id}/deliver', headers=admin)
        assert resp.get_json()['data']['order_status'] == 'delivered'

    def test_cancel_request_endpoints(self, app, client, token_for, world):
        customer = bearer(token_for(world.customer))
        seller = bearer(token_for(world.seller1))
        order_id = client.post('/api/orders', headers=customer,
                               json={'cart_item_ids': [world.cart_a]}).get_json()['data']['order_id']
        client.post(f'/api/orders/{order_id}/pay', headers=bearer(token_for(world.admin)))
        order_shop_id = client.get(f'/api/orders/{order_id}',
                                   headers=customer).get_json()['data']['shops'][0]['id']

        resp = client.post(f'/api/order-shops/{order_shop_id}/cancel-request', headers=customer,
                           json={'reason': {'a': 1}})
        assert resp.status_code == 400
        assert resp.get_json()['code'] == 'VALIDATION_ERROR'

        resp = client.post(f'/api/order-shops/{order_shop_id}/cancel-request', headers=customer,
                           json={'reason': 'wrong colour'})
        assert resp.status_code == 200
        cancel_request_id = resp.get_json()['data']['cancel_request_id']

        resp = client.post(f'/api/cancel-requests/{cancel_request_id}/approve', headers=customer)
        assert resp.status_code == 401

        resp = client.post(f'/api/cancel-requests/{cancel_request_id}/approve', headers=seller)
        assert resp.status_code == 200
        assert resp.get_json()['data']['order_status'] == 'cancelled'
        with app.app_context():
            assert db.session.get(User, world.customer).balance == Decimal('200')
            assert db.session.get(Item, world.item_a).stock == 10

    def test_seller_and_admin_cancel_endpoints(self, client, token_for, world):
        customer = bearer(token_for(world.customer))
        order_id = client.post('/api/orders', headers=customer, json={
            'cart_item_ids': [world.cart_a, world.cart_c]}).get_json()['data']['order_id']
        shops = client.get(f'/api/orders/{order_id}', headers=customer).get_json()['data']['shops']

        resp = client.post(f'/api/order-shops/{shops[0]["id"]}/cancel',
                           headers=bearer(token_for(world.seller1)), json={'reason': 'sold out'})
        assert resp.get_json()['data']['order_status'] == 'pending_payment'

        assert client.post(f'/api/orders/{order_id}/force-cancel',
                           headers=customer).status_code == 401
        resp = client.post(f'/api/orders/{order_id}/force-cancel',
                           headers=bearer(token_for(world.admin)))
        assert resp.status_code == 200
        assert resp.get_json()['data']['status'] == 'cancelled'


def test_unknown_route_is_json(client):
    resp = client.get('/nope')
    assert resp.status_code == 404
    assert resp.get_json()['success'] is False
