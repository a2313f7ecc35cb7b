import io

import pandas as pd
import pytest

from models.log import Log
from models.movement import Movement
from models.product import Product
from utils.hashing import get_password_hash


def test_root(client):
    r = client.get("/")
    assert r.status_code == 200
    assert "StashKeeper" in r.json()["message"]


def test_register_login_me(client):
    r = client.post("/register", json={"email": "First@Example.com", "password": "secret1"})
    assert r.status_code == 201
    # the first account administers the system
    assert r.json()["role"] == "admin"
    assert r.json()["email"] == "first@example.com"

    r = client.post("/register", json={"email": "second@example.com", "password": "secret2"})
    assert r.json()["role"] == "user"

    r = client.post("/register", json={"email": "second@example.com", "password": "secret2"})
    assert r.status_code == 400

    r = client.post("/login", json={"email": "second@example.com", "password": "wrong!"})
    assert r.status_code == 401

    r = client.post("/login", json={"email": "second@example.com", "password": "secret2"})
    assert r.status_code == 200
    token = r.json()["access_token"]

    r = client.get("/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["email"] == "second@example.com"


def test_requires_authentication(client):
    assert client.get("/products").status_code in (401, 403)
    r = client.get("/products", headers={"Authorization": "Bearer nonsense"})
    assert r.status_code == 401


def test_admin_only_endpoints(client, user_headers, admin_headers):
    for path in ("/users", "/logs", "/integrity/stock", "/integrity/compensations"):
        assert client.get(path, headers=user_headers).status_code == 403
        assert client.get(path, headers=admin_headers).status_code == 200


def test_role_update(client, db, admin, operator, admin_headers):
    r = client.put(f"/users/{operator.id}/role", json={"role": "admin"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["role"] == "admin"

    r = client.put(f"/users/{operator.id}/role", json={"role": "warehouse"}, headers=admin_headers)
    assert r.status_code == 422

    r = client.delete(f"/users/{admin.id}", headers=admin_headers)
    assert r.status_code == 400


def test_product_crud(client, db, category, user_headers):
    payload = {"code": " 5001 ", "name": "Álcool 70%", "unit": "l", "quantity": 3, "min_quantity": 1,
               "category_id": category.id}
    r = client.post("/products", json=payload, headers=user_headers)
    assert r.status_code == 201
    product = r.json()
    assert product["code"] == "5001"
    assert product["category_name"] == "Limpeza"
    assert product["related_units"] == ["ml"]
    assert product["quantity_label"] == "3 L"

    r = client.post("/products", json=dict(payload, code="5001"), headers=user_headers)
    assert r.status_code == 409

    r = client.patch(f"/products/{product['id']}", json={"quantity": 0.5}, headers=user_headers)
    assert r.status_code == 200
    assert r.json()["quantity"] == pytest.approx(0.5)
    assert r.json()["low_stock"] is True

    r = client.get("/products", params={"low_stock": True}, headers=user_headers)
    assert r.json()["total"] == 1

    r = client.get("/products", params={"name": "álcool"}, headers=user_headers)
    assert r.status_code == 200

    r = client.delete(f"/products/{product['id']}", headers=user_headers)
    assert r.status_code == 200
    assert client.get(f"/products/{product['id']}", headers=user_headers).status_code == 404
    db.expire_all()
    # movements go with the product
    assert db.query(Movement).count() == 0


def test_movement_flow(client, db, liter_product, employee, user_headers):
    r = client.post("/movements", json={
        "product_id": liter_product.id, "type": "saida", "quantity": 500, "unit": "ml",
        "employee_id": employee.id, "notes": "Limpeza do depósito",
    }, headers=user_headers)
    assert r.status_code == 201
    movement = r.json()
    assert movement["unit"] == "ml"
    assert movement["employee_name"] == "Ana Souza"
    assert movement["user_email"] == "operador@example.com"

    r = client.get(f"/products/{liter_product.id}", headers=user_headers)
    assert r.json()["quantity"] == pytest.approx(9.5)

    # beyond available stock
    r = client.post("/movements", json={
        "product_id": liter_product.id, "type": "saida", "quantity": 20, "employee_id": employee.id,
    }, headers=user_headers)
    assert r.status_code == 409
    assert r.json()["detail"] == "Quantidade não pode ser maior que o estoque disponível"

    # no employee on a saída
    r = client.post("/movements", json={"product_id": liter_product.id, "type": "saida", "quantity": 1},
                    headers=user_headers)
    assert r.status_code == 422

    # unit of another family
    r = client.post("/movements", json={"product_id": liter_product.id, "type": "entrada", "quantity": 1,
                                        "unit": "kg"}, headers=user_headers)
    assert r.status_code == 422

    r = client.patch(f"/movements/{movement['id']}", json={"quantity": 2, "unit": "default"},
                     headers=user_headers)
    assert r.status_code == 200
    assert r.json()["unit"] == "l"
    assert client.get(f"/products/{liter_product.id}", headers=user_headers).json()["quantity"] == pytest.approx(8)

    r = client.delete(f"/movements/{movement['id']}", headers=user_headers)
    assert r.status_code == 200
    assert r.json()["movement"]["deleted"] is True
    assert r.json()["compensation"] is None
    assert r.json()["product_quantity"] == pytest.approx(10)

    r = client.patch(f"/movements/{movement['id']}", json={"quantity": 1}, headers=user_headers)
    assert r.status_code == 409

    listed = client.get("/movements", headers=user_headers).json()
    assert listed["total"] == 0
    listed = client.get("/movements", params={"include_deleted": True, "product_id": liter_product.id},
                        headers=user_headers).json()
    assert listed["total"] == 1

    actions = {l.action for l in db.query(Log).all()}
    assert {"MOVEMENT_CREATE", "MOVEMENT_UPDATE", "MOVEMENT_DELETE"} <= actions


def test_delete_with_compensation_over_http(client, liter_product, employee, user_headers):
    entrada = client.post("/movements", json={"product_id": liter_product.id, "type": "entrada", "quantity": 5},
                          headers=user_headers).json()
    client.post("/movements", json={"product_id": liter_product.id, "type": "saida", "quantity": 14,
                                    "employee_id": employee.id}, headers=user_headers)

    r = client.delete(f"/movements/{entrada['id']}", headers=user_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["compensation"]["compensation_for_id"] == entrada["id"]
    assert body["compensation"]["quantity"] == pytest.approx(4)
    assert body["product_quantity"] == 0


def test_movement_patch_rejects_null_type(client, liter_product, user_headers):
    entrada = client.post("/movements", json={"product_id": liter_product.id, "type": "entrada", "quantity": 2},
                          headers=user_headers).json()

    r = client.patch(f"/movements/{entrada['id']}", json={"type": None}, headers=user_headers)
    assert r.status_code == 422
    assert r.json()["detail"] == "Campo 'type' não pode ser nulo"

    r = client.get(f"/movements/{entrada['id']}", headers=user_headers)
    assert r.json()["type"] == "entrada"
    assert client.get(f"/products/{liter_product.id}", headers=user_headers).json()["quantity"] == pytest.approx(12)


def test_categories_and_employees(client, db, liter_product, category, employee, user_headers):
    r = client.post("/categories", json={"name": "limpeza"}, headers=user_headers)
    assert r.status_code == 409

    r = client.get("/categories", headers=user_headers)
    assert r.json()[0]["product_count"] == 1

    r = client.delete(f"/categories/{category.id}", headers=user_headers)
    assert r.status_code == 200
    assert client.get(f"/products/{liter_product.id}", headers=user_headers).json()["category_id"] is None

    r = client.post("/employees", json={"code": "C001", "name": "Outra Ana"}, headers=user_headers)
    assert r.status_code == 409

    r = client.patch(f"/employees/{employee.id}", json={"status": "inactive"}, headers=user_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "inactive"

    r = client.get("/employees", params={"status": "active"}, headers=user_headers)
    assert r.json()["total"] == 0

    r = client.post("/movements", json={"product_id": liter_product.id, "type": "saida", "quantity": 1,
                                        "employee_id": employee.id}, headers=user_headers)
    assert r.status_code == 422


def test_reports_and_stats(client, db, liter_product, unit_product, employee, user_headers):
    for product_id, quantity, unit in ((liter_product.id, 250, "ml"), (liter_product.id, 1, "l"),
                                       (unit_product.id, 2, None)):
        r = client.post("/movements", json={"product_id": product_id, "type": "saida", "quantity": quantity,
                                            "unit": unit, "employee_id": employee.id}, headers=user_headers)
        assert r.status_code == 201

    # created_at is stored in UTC, widen the window so the test is independent of the local date
    params = {"period": "custom", "date_from": "2000-01-01", "date_to": "2999-12-31"}
    r = client.get("/reports/employee-outputs", params=params, headers=user_headers)
    assert r.status_code == 200
    [row] = r.json()["items"]
    assert row["employee_name"] == "Ana Souza"
    lines = {l["product_code"]: l for l in row["products"]}
    assert lines["1001"]["quantity"] == pytest.approx(1.25)
    assert lines["1001"]["unit"] == "L"
    assert lines["2001"]["quantity"] == pytest.approx(2)

    r = client.get("/reports/movements-summary", params=params, headers=user_headers)
    assert r.status_code == 200
    assert r.json()["total_saidas"] == 3
    assert r.json()["total_entradas"] == 0

    r = client.get("/reports/employee-outputs", params={"period": "custom"}, headers=user_headers)
    assert r.status_code == 400

    r = client.get("/reports/low-stock", headers=user_headers)
    assert r.status_code == 200

    r = client.get("/stats/summary", headers=user_headers)
    assert r.status_code == 200
    stats = r.json()
    assert stats["total_products"] == 2
    assert stats["total_categories"] == 1
    assert stats["active_employees"] == 1


def test_integrity_endpoints(client, db, liter_product, admin_headers):
    db.query(Product).filter(Product.id == liter_product.id).update({Product.quantity: 2})
    db.commit()

    report = client.get("/integrity/stock", headers=admin_headers).json()
    assert report["inconsistent"] == 1

    r = client.post("/integrity/stock/fix", headers=admin_headers)
    assert r.json() == {"fixed": 1, "remaining": 0}


def test_import_endpoints(client, db, category, user_headers):
    buffer = io.BytesIO()
    pd.DataFrame([["Código", "Nome", None, None, "Un", None, None, None, "Qtd"],
                  ["7001", "Balde", None, None, "UN", None, None, None, 10]]).to_excel(
        buffer, header=False, index=False, engine="openpyxl")
    content = buffer.getvalue()
    mime = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

    r = client.post("/imports/products/preview", files={"file": ("estoque.xlsx", content, mime)},
                    headers=user_headers)
    assert r.status_code == 200
    assert r.json()["items"][0]["code"] == "7001"
    assert r.json()["items"][0]["exists"] is False

    r = client.post("/imports/products", files={"file": ("estoque.xlsx", content, mime)},
                    data={"category_id": str(category.id)}, headers=user_headers)
    assert r.status_code == 200
    assert r.json()["added"] == 1

    r = client.post("/imports/products/preview", files={"file": ("estoque.csv", b"a,b", "text/csv")},
                    headers=user_headers)
    assert r.status_code == 400


def test_login_with_stored_hash(client, db):
    from models.users import User
    db.add(User(email="hash@example.com", password_hash=get_password_hash("s3nha!"), role="user"))
    db.commit()
    assert client.post("/login", json={"email": "hash@example.com", "password": "s3nha!"}).status_code == 200
