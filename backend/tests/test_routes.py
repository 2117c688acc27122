"""
HTTP API tests through the Flask test client.

Covers auth gates (401 / 403 / forced password change), the error-to-status
mapping, and the employee request -> admin approval flow end to end.
"""

import io

from rewards.models import Account, CatalogItem


def auth_headers(token: str) -> dict:
    return {'Authorization': f'Bearer {token}'}


def login(client, username, password):
    response = client.post('/api/auth/login', json={'username': username, 'password': password})
    return response


class TestAuth:
    def test_login_and_me(self, client, employee):
        response = login(client, 'employee1', 'password123')
        assert response.status_code == 200
        token = response.json['token']
        assert response.json['account']['points_balance'] == 1500

        me = client.get('/api/auth/me', headers=auth_headers(token))
        assert me.status_code == 200
        assert me.json['account']['username'] == 'employee1'

    def test_bad_credentials(self, client, employee):
        assert login(client, 'employee1', 'nope').status_code == 401
        assert client.post('/api/auth/login', json={}).status_code == 400

    def test_missing_or_bad_token(self, client, db_session):
        assert client.get('/api/catalog/items').status_code == 401
        assert client.get('/api/catalog/items', headers=auth_headers('garbage')).status_code == 401

    def test_logout_revokes_token(self, client, employee_headers):
        assert client.post('/api/auth/logout', headers=employee_headers).status_code == 200
        assert client.get('/api/auth/me', headers=employee_headers).status_code == 401

    def test_forced_password_change_gate(self, client, make_account):
        make_account(username='employee2', requires_password_change=True)
        response = login(client, 'employee2', 'password123')
        assert response.json['requires_password_change'] is True
        headers = auth_headers(response.json['token'])

        blocked = client.get('/api/catalog/items', headers=headers)
        assert blocked.status_code == 403
        assert blocked.json['code'] == 'PASSWORD_CHANGE_REQUIRED'

        changed = client.post('/api/auth/change-password', headers=headers, json={'new_password': 'fresh-password'})
        assert changed.status_code == 200
        assert client.get('/api/catalog/items', headers=headers).status_code == 200

    def test_admin_routes_reject_employees(self, client, employee_headers):
        assert client.get('/api/accounts', headers=employee_headers).status_code == 403
        assert client.post('/api/catalog/items', headers=employee_headers, json={}).status_code == 403
        assert client.patch('/api/settings', headers=employee_headers, json={'theme': 'sky'}).status_code == 403


class TestCatalogAndSettings:
    def test_admin_creates_item_and_inflation_reprices(self, client, admin_headers, employee_headers):
        created = client.post('/api/catalog/items', headers=admin_headers, json={
            'name': 'Company Tumbler', 'base_price': 100, 'stock': 5,
        })
        assert created.status_code == 201
        item_id = created.json['item']['id']

        settings = client.patch('/api/settings', headers=admin_headers, json={'inflation_percent': 15})
        assert settings.status_code == 200
        assert settings.json['repriced'] == 1
        assert settings.json['settings']['inflation_percent'] == 15.0

        item = client.get(f'/api/catalog/items/{item_id}', headers=employee_headers).json['item']
        assert item['current_price'] == 115

    def test_invalid_input_is_400(self, client, admin_headers):
        response = client.post('/api/catalog/items', headers=admin_headers, json={
            'name': 'Mug', 'base_price': '12.5', 'stock': 1,
        })
        assert response.status_code == 400
        assert response.json['code'] == 'INVALID_INPUT'

    def test_missing_item_is_404(self, client, admin_headers):
        assert client.get('/api/catalog/items/999', headers=admin_headers).status_code == 404
        assert client.delete('/api/catalog/items/999', headers=admin_headers).status_code == 404

    def test_public_settings_and_themes(self, client, db_session):
        assert client.get('/api/settings').json['settings']['theme'] == 'indigo'
        keys = [t['key'] for t in client.get('/api/settings/themes').json['themes']]
        assert 'emerald' in keys


class TestPurchaseFlow:
    def test_request_approve_flow(self, client, db_session, admin_headers, employee_headers, employee, tumbler):
        submitted = client.post('/api/purchases/requests', headers=employee_headers, json={
            'cart': [{'item_id': tumbler.id, 'quantity': 2, 'price': 1}],
        })
        assert submitted.status_code == 201
        request_id = submitted.json['request']['id']
        assert submitted.json['request']['snapshot_total'] == 1000

        own = client.get('/api/purchases/requests', headers=employee_headers).json['requests']
        assert [r['id'] for r in own] == [request_id]

        approved = client.post(f'/api/purchases/requests/{request_id}/approve', headers=admin_headers)
        assert approved.status_code == 200
        assert approved.json['result']['outcome'] == 'APPROVED'
        assert approved.json['result']['purchase']['new_balance'] == 500

        again = client.post(f'/api/purchases/requests/{request_id}/deny', headers=admin_headers)
        assert again.status_code == 409
        assert again.json['result']['outcome'] == 'ALREADY_RESOLVED'

        notes = client.get('/api/notifications', headers=employee_headers).json
        assert notes['unread_count'] == 1
        assert 'approved' in notes['notifications'][0]['message']
        assert client.post('/api/notifications/read', headers=employee_headers).json['updated'] == 1

        history = client.get('/api/purchases/history', headers=employee_headers).json['history']
        assert len(history) == 1
        assert history[0]['total_cost'] == 1000

    def test_employee_cannot_resolve(self, client, employee_headers, employee, tumbler):
        submitted = client.post('/api/purchases/requests', headers=employee_headers, json={
            'cart': [{'item_id': tumbler.id, 'quantity': 1}],
        })
        request_id = submitted.json['request']['id']
        response = client.post(f'/api/purchases/requests/{request_id}/approve', headers=employee_headers)
        assert response.status_code == 403

    def test_checkout_business_failure_is_409(self, client, db_session, admin_headers, employee, hoodie):
        response = client.post('/api/purchases/checkout', headers=admin_headers, json={
            'account_id': employee.id,
            'cart': [{'item_id': hoodie.id, 'quantity': 2}],
        })
        assert response.status_code == 409
        assert response.json['result']['failure'] == 'INSUFFICIENT_POINTS'
        assert db_session.get(Account, employee.id).points_balance == 1500
        assert db_session.get(CatalogItem, hoodie.id).stock == 5

    def test_checkout_success(self, client, db_session, admin_headers, employee, hoodie):
        response = client.post('/api/purchases/checkout', headers=admin_headers, json={
            'account_id': employee.id,
            'cart': [{'item_id': hoodie.id, 'quantity': 1}],
        })
        assert response.status_code == 200
        assert response.json['result']['new_balance'] == 300

    def test_submit_empty_cart_is_400(self, client, employee_headers):
        response = client.post('/api/purchases/requests', headers=employee_headers, json={'cart': []})
        assert response.status_code == 400


class TestAdminAccounts:
    def test_reset_password_and_add_points(self, client, admin_headers, employee):
        points = client.post(f'/api/accounts/{employee.id}/points', headers=admin_headers, json={'points_to_add': 250})
        assert points.status_code == 200
        assert points.json['account']['points_balance'] == 1750

        reset = client.post(f'/api/accounts/{employee.id}/reset-password', headers=admin_headers)
        assert reset.json['account']['requires_password_change'] is True
        assert login(client, 'employee1', 'password').status_code == 200

    def test_import_upload_and_template(self, client, admin_headers, employee):
        upload = client.post(
            '/api/imports/add_points',
            headers=admin_headers,
            data={'file': (io.BytesIO(b'username,points_to_add\nemployee1,100\n'), 'points.csv')},
            content_type='multipart/form-data',
        )
        assert upload.status_code == 200
        assert upload.json['applied'] == 1

        template = client.get('/api/imports/templates/employees', headers=admin_headers)
        assert template.status_code == 200
        assert template.headers['Content-Disposition'].endswith('employee_list_template.xlsx')


def test_health(client, admin):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json['status'] == 'healthy'
