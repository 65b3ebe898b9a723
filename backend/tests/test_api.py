"""
HTTP surface: authentication, status codes and response shapes.
"""

from decimal import Decimal

from stockflow.models import OutgoingStockLog, Product

from conftest import TEST_PASSWORD, get_auth_token


def _gate_pass_payload(*items, **overrides):
    payload = {
        "customer": "Acme Traders",
        "authorized_by": "Alice",
        "dispatch_date": "2024-03-01",
        "password": TEST_PASSWORD,
        "items": list(items),
    }
    payload.update(overrides)
    return payload


def test_health(client, db_session):
    response = client.get('/api/health')
    assert response.status_code == 200
    assert response.json["status"] == "healthy"


def test_protected_routes_require_token(client, db_session):
    assert client.get('/api/products').status_code == 401
    response = client.get('/api/products', headers={'Authorization': 'Bearer nope'})
    assert response.status_code == 401


def test_login_me_logout(client, account):
    token = get_auth_token(client, "owner@shop.test", TEST_PASSWORD)
    assert token
    headers = {'Authorization': f'Bearer {token}'}

    me = client.get('/api/auth/me', headers=headers)
    assert me.status_code == 200
    assert me.json["account_id"] == account.id

    assert client.post('/api/auth/logout', headers=headers).status_code == 200
    assert client.get('/api/auth/me', headers=headers).status_code == 401


def test_register_signs_in_new_account(client, db_session):
    response = client.post('/api/auth/register', json={'email': 'New@Shop.test', 'password': TEST_PASSWORD})
    assert response.status_code == 201
    assert response.json["user"]["email"] == "new@shop.test"
    headers = {'Authorization': f'Bearer {response.json["token"]}'}

    me = client.get('/api/auth/me', headers=headers)
    assert me.status_code == 200
    assert me.json["user"]["id"] == response.json["user"]["id"]
    units = client.get('/api/profile/units', headers=headers)
    assert units.json["count"] > 0

    assert get_auth_token(client, 'new@shop.test', TEST_PASSWORD)


def test_register_rejections(client, account):
    duplicate = client.post('/api/auth/register', json={'email': 'owner@shop.test', 'password': TEST_PASSWORD})
    assert duplicate.status_code == 409
    assert duplicate.json["error"] == "Email already registered"

    weak = client.post('/api/auth/register', json={'email': 'weak@shop.test', 'password': 'short'})
    assert weak.status_code == 400
    assert weak.json["field"] == "password"

    missing = client.post('/api/auth/register', json={'email': 'x@shop.test'})
    assert missing.status_code == 400


def test_login_wrong_password(client, account):
    response = client.post('/api/auth/login', json={'email': 'owner@shop.test', 'password': 'Wrong123!'})
    assert response.status_code == 401


def test_reauthenticate_route(client, auth_headers):
    ok = client.post('/api/auth/reauthenticate', json={'password': TEST_PASSWORD}, headers=auth_headers)
    assert ok.status_code == 200
    bad = client.post('/api/auth/reauthenticate', json={'password': 'Wrong123!'}, headers=auth_headers)
    assert bad.status_code == 403
    assert bad.json == {"error": "Wrong password"}


def test_product_crud(client, auth_headers, box_unit):
    created = client.post('/api/products', json={
        'sku': 'CEM-50',
        'name': 'Cement',
        'unit_id': box_unit.id,
        'pieces_per_unit': 10,
        'stock_quantity': '4',
        'price_cents': 1250,
    }, headers=auth_headers)
    assert created.status_code == 201
    product = created.json
    assert product["stock_quantity"] == "4"
    assert product["unit_abbreviation"] == "box"

    duplicate = client.post('/api/products', json={
        'sku': 'CEM-50', 'name': 'Cement again', 'unit_id': box_unit.id,
    }, headers=auth_headers)
    assert duplicate.status_code == 409

    updated = client.put(f'/api/products/{product["id"]}', json={'name': 'Grey Cement'}, headers=auth_headers)
    assert updated.status_code == 200
    assert updated.json["name"] == "Grey Cement"

    listing = client.get('/api/products', headers=auth_headers)
    assert listing.json["count"] == 1

    assert client.delete(f'/api/products/{product["id"]}', headers=auth_headers).status_code == 200
    assert client.get(f'/api/products/{product["id"]}', headers=auth_headers).status_code == 404


def test_product_validation_errors(client, auth_headers, box_unit):
    missing = client.post('/api/products', json={'sku': 'X'}, headers=auth_headers)
    assert missing.status_code == 400
    assert missing.json["field"] == "name"

    ppu = client.post('/api/products', json={
        'sku': 'X', 'name': 'X', 'unit_id': box_unit.id, 'pieces_per_unit': 0,
    }, headers=auth_headers)
    assert ppu.status_code == 400

    stock_edit = client.post('/api/products', json={
        'sku': 'Y', 'name': 'Y', 'unit_id': box_unit.id,
    }, headers=auth_headers)
    response = client.put(f'/api/products/{stock_edit.json["id"]}', json={'stock_quantity': '99'}, headers=auth_headers)
    assert response.status_code == 400

    unknown_unit = client.post('/api/products', json={'sku': 'Z', 'name': 'Z', 'unit_id': 9999}, headers=auth_headers)
    assert unknown_unit.status_code == 404


def test_restock_route(client, auth_headers, product_factory):
    p = product_factory(stock_quantity=Decimal("0"))

    response = client.post('/api/stock/incoming', json={
        'product_id': p.id,
        'quantity_added': '6',
        'arrival_date': '2024-02-28',
        'supplier': 'Acme Supply',
    }, headers=auth_headers)
    assert response.status_code == 201
    assert response.json["product"]["stock_quantity"] == "6"
    assert response.json["product"]["status"] == "In Stock"
    assert response.json["entry"]["arrival_date"] == "2024-02-28"

    history = client.get('/api/stock/incoming', headers=auth_headers)
    assert history.json["count"] == 1

    bad = client.post('/api/stock/incoming', json={
        'product_id': p.id, 'quantity_added': '0', 'arrival_date': '2024-02-28',
    }, headers=auth_headers)
    assert bad.status_code == 400

    too_fine = client.post('/api/stock/incoming', json={
        'product_id': p.id, 'quantity_added': '0.0000000001', 'arrival_date': '2024-02-28',
    }, headers=auth_headers)
    assert too_fine.status_code == 400
    assert too_fine.json["field"] == "quantity_added"


def test_issue_gate_pass_route(client, db_session, auth_headers, product_factory):
    a = product_factory(name="Cement")
    b = product_factory(name="Tiles")

    response = client.post('/api/gate-passes', json=_gate_pass_payload(
        {"product_id": a.id, "quantity": 2, "unit_mode": "main"},
        {"product_id": b.id, "quantity": "24", "unit_mode": "pieces"},
    ), headers=auth_headers)

    assert response.status_code == 201
    body = response.json
    pass_id = body["gate_pass"]["id"]
    assert body["scan_payload"] == pass_id
    assert body["gate_pass"]["total_items"] == 2
    assert "GATE PASS" in body["document_text"]

    text = client.get(f'/api/gate-passes/{pass_id}/text', headers=auth_headers)
    assert text.status_code == 200
    assert text.mimetype == "text/plain"
    assert text.get_data(as_text=True) == body["document_text"]

    scanned = client.post('/api/gate-passes/scan', json={'payload': pass_id}, headers=auth_headers)
    assert scanned.status_code == 200
    assert scanned.json["gate_pass"]["customer"] == "Acme Traders"

    listing = client.get('/api/gate-passes', headers=auth_headers)
    assert [row["id"] for row in listing.json["items"]] == [pass_id]

    outgoing = client.get(f'/api/stock/outgoing?gate_pass_id={pass_id}', headers=auth_headers)
    assert outgoing.json["count"] == 2

    summary = client.get('/api/dashboard/summary', headers=auth_headers)
    assert summary.json["gate_passes"] == 1
    assert summary.json["outgoing_entries"] == 2


def test_gate_pass_wrong_password_is_403_and_changes_nothing(client, db_session, auth_headers, product_factory):
    p = product_factory()
    response = client.post('/api/gate-passes', json=_gate_pass_payload(
        {"product_id": p.id, "quantity": 1}, password="Wrong123!",
    ), headers=auth_headers)

    assert response.status_code == 403
    assert response.json["error"] == "Wrong password"
    assert db_session.query(OutgoingStockLog).count() == 0
    db_session.expire_all()
    assert db_session.get(Product, p.id).stock_quantity == Decimal("10")


def test_gate_pass_insufficient_stock_reports_line(client, db_session, auth_headers, product_factory):
    p = product_factory(name="Nails")
    response = client.post('/api/gate-passes', json=_gate_pass_payload(
        {"product_id": p.id, "quantity": 125, "unit_mode": "pieces"},
    ), headers=auth_headers)

    assert response.status_code == 409
    assert response.json["committed_lines"] == 0
    assert response.json["failures"][0]["line"] == 1
    assert "only 120 pcs available" in response.json["error"]


def test_gate_pass_form_errors(client, auth_headers, product_factory):
    p = product_factory()
    item = {"product_id": p.id, "quantity": 1}

    missing_customer = client.post('/api/gate-passes', json=_gate_pass_payload(item, customer=""), headers=auth_headers)
    assert missing_customer.status_code == 400
    assert missing_customer.json["field"] == "customer"

    empty_cart = client.post('/api/gate-passes', json=_gate_pass_payload(), headers=auth_headers)
    assert empty_cart.status_code == 400
    assert empty_cart.json["field"] == "items"

    no_password = client.post('/api/gate-passes', json=_gate_pass_payload(item, password=""), headers=auth_headers)
    assert no_password.status_code == 400
    assert no_password.json["field"] == "password"


def test_gate_pass_out_of_range_quantity_is_400(client, db_session, auth_headers, product_factory):
    p = product_factory()
    for quantity in ("1e20", "0.0000000001"):
        response = client.post('/api/gate-passes', json=_gate_pass_payload(
            {"product_id": p.id, "quantity": quantity, "unit_mode": "main"},
        ), headers=auth_headers)
        assert response.status_code == 400
        assert response.json["field"] == "items[1].quantity"

    assert db_session.query(OutgoingStockLog).count() == 0
    db_session.expire_all()
    assert db_session.get(Product, p.id).stock_quantity == Decimal("10")


def test_unknown_gate_pass_404(client, auth_headers):
    assert client.get('/api/gate-passes/GP-1', headers=auth_headers).status_code == 404
    assert client.post('/api/gate-passes/scan', json={'payload': 'GP-1'}, headers=auth_headers).status_code == 404


def test_profile_routes(client, auth_headers):
    updated = client.put('/api/profile', json={
        'shop_details': {'shop_name': 'Corner Hardware', 'address': '12 Market Street'},
        'employees': ['Alice', 'Bob'],
    }, headers=auth_headers)
    assert updated.status_code == 200
    assert updated.json["employees"] == ["Alice", "Bob"]

    unit = client.post('/api/profile/units', json={'code': 'dz', 'name': 'Dozen'}, headers=auth_headers)
    assert unit.status_code == 201
    renamed = client.put(f'/api/profile/units/{unit.json["id"]}', json={'name': 'Dozens'}, headers=auth_headers)
    assert renamed.json["name"] == "Dozens"

    assert client.post('/api/profile/units', json={'code': 'dz', 'name': 'X'}, headers=auth_headers).status_code == 409

    employees = client.put('/api/profile/employees', json={'employees': ['Carol']}, headers=auth_headers)
    assert employees.json == {"employees": ["Carol"]}


def test_account_isolation(client, db_session, other_account, product_factory):
    from stockflow.services.session_service import create_session

    p = product_factory()
    _, token = create_session(user_id=other_account.id)
    headers = {'Authorization': f'Bearer {token}'}

    assert client.get(f'/api/products/{p.id}', headers=headers).status_code == 404
    assert client.get('/api/products', headers=headers).json["count"] == 0
