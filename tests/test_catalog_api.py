import base64

from core.auth import current_optional_user
from main import app


async def test_product_create_starts_inactive_and_rejects_is_active(client):
    res = await client.post("/products/", json={"name": "Matcha Latte", "price": 45000, "is_active": True})
    assert res.status_code == 422

    res = await client.post("/products/", json={"name": "Matcha Latte", "price": 45000})
    assert res.status_code == 201
    body = res.json()
    assert body["is_active"] is False
    assert body["recipe"] == []


async def test_recipe_edits_drive_availability(client, factory):
    matcha = await factory.ingredient("Matcha", 15)
    res = await client.post("/products/", json={"name": "Matcha Latte", "price": 45000})
    product_id = res.json()["id"]

    res = await client.post(f"/products/{product_id}/ingredients", json={"ingredient_id": str(matcha.id), "quantity": 10})
    assert res.status_code == 201
    entry = res.json()
    assert entry["ingredient_name"] == "Matcha"
    assert (await client.get(f"/products/{product_id}")).json()["is_active"] is True

    res = await client.patch(f"/products/{product_id}/ingredients/{entry['id']}", json={"quantity": 20})
    assert res.status_code == 200
    assert res.json()["quantity"] == 20
    assert (await client.get(f"/products/{product_id}")).json()["is_active"] is False

    res = await client.patch(f"/products/{product_id}/ingredients/{entry['id']}", json={"quantity": 5})
    assert (await client.get(f"/products/{product_id}")).json()["is_active"] is True

    res = await client.delete(f"/products/{product_id}/ingredients/{entry['id']}")
    assert res.status_code == 204
    body = (await client.get(f"/products/{product_id}")).json()
    assert body["is_active"] is False
    assert body["recipe"] == []


async def test_duplicate_recipe_entry(client, factory):
    matcha = await factory.ingredient("Matcha", 15)
    latte = await factory.product("Matcha Latte", recipe=[(matcha, 10)])
    res = await client.post(f"/products/{latte.id}/ingredients", json={"ingredient_id": str(matcha.id), "quantity": 3})
    assert res.status_code == 409


async def test_menu_hides_inactive_products(client, factory, admin):
    matcha = await factory.ingredient("Matcha", 15)
    await factory.product("Matcha Latte", recipe=[(matcha, 10)])
    await factory.product("Matcha Đậm", recipe=[(matcha, 30)])

    res = await client.get("/products/")
    assert [p["name"] for p in res.json()] == ["Matcha Latte"]

    # include_inactive is only honoured for admins
    res = await client.get("/products/", params={"include_inactive": True})
    assert len(res.json()) == 1

    app.dependency_overrides[current_optional_user] = lambda: admin
    res = await client.get("/products/", params={"include_inactive": True})
    assert len(res.json()) == 2


async def test_product_update_cannot_set_is_active(client, factory):
    latte = await factory.product("Matcha Latte")
    res = await client.patch(f"/products/{latte.id}", json={"is_active": True})
    assert res.status_code == 422

    res = await client.patch(f"/products/{latte.id}", json={"price": 49000})
    assert res.status_code == 200
    assert res.json()["price"] == 49000
    assert res.json()["is_active"] is False


async def test_delete_product_keeps_order_history(client, factory):
    matcha = await factory.ingredient("Matcha", 100)
    latte = await factory.product("Matcha Latte", recipe=[(matcha, 10)])
    order = await factory.order([(latte, 1)])

    res = await client.delete(f"/products/{latte.id}")
    assert res.status_code == 204

    res = await client.get(f"/orders/{order.id}")
    item = res.json()["items"][0]
    assert item["product_id"] is None
    assert item["product_name"] == "Matcha Latte"


async def test_ingredient_crud_and_restock(client, factory, stock):
    res = await client.post("/ingredients/", json={"name": "Matcha", "type": "Bột", "stock_quantity": 5})
    assert res.status_code == 201
    matcha_id = res.json()["id"]

    res = await client.post("/ingredients/", json={"name": "matcha"})
    assert res.status_code == 409

    res = await client.post("/products/", json={"name": "Matcha Latte", "price": 45000})
    product_id = res.json()["id"]
    await client.post(f"/products/{product_id}/ingredients", json={"ingredient_id": matcha_id, "quantity": 10})
    assert (await client.get(f"/products/{product_id}")).json()["is_active"] is False

    res = await client.post(f"/ingredients/{matcha_id}/restock", json={"amount": 20, "reason": "Nhập hàng"})
    assert res.status_code == 200
    body = res.json()
    assert body["new_stock"] == 25
    assert [c["product_id"] for c in body["availability"] if c["changed"]] == [product_id]
    assert (await client.get(f"/products/{product_id}")).json()["is_active"] is True

    res = await client.patch(f"/ingredients/{matcha_id}", json={"stock_quantity": 3})
    assert res.status_code == 200
    assert res.json()["stock_quantity"] == 3
    assert (await client.get(f"/products/{product_id}")).json()["is_active"] is False

    res = await client.get("/inventory/movements", params={"ingredient_id": matcha_id})
    movements = res.json()
    assert sorted(m["source_type"] for m in movements) == ["ADJUSTMENT", "ADJUSTMENT", "RESTOCK"]
    assert {m["ingredient_name"] for m in movements} == {"Matcha"}


async def test_restock_rejects_non_positive_amount(client, factory):
    matcha = await factory.ingredient("Matcha", 5)
    res = await client.post(f"/ingredients/{matcha.id}/restock", json={"amount": 0})
    assert res.status_code == 422


async def test_negative_stock_is_rejected(client, factory):
    matcha = await factory.ingredient("Matcha", 5)
    res = await client.patch(f"/ingredients/{matcha.id}", json={"stock_quantity": -1})
    assert res.status_code == 422


async def test_deleting_an_ingredient_deactivates_products(client, factory, active):
    matcha = await factory.ingredient("Matcha", 100)
    latte = await factory.product("Matcha Latte", recipe=[(matcha, 10)])
    assert await active(latte.id) is True

    res = await client.delete(f"/ingredients/{matcha.id}")
    assert res.status_code == 204
    assert await active(latte.id) is False


async def test_evaluate_and_low_stock(client, factory):
    matcha = await factory.ingredient("Matcha", 15)
    await factory.ingredient("Sữa tươi", 5000, type="Sữa")
    await factory.product("Matcha Latte", recipe=[(matcha, 10)], evaluate=False)

    res = await client.post("/inventory/evaluate", params={"changed_only": True})
    assert res.status_code == 200
    assert len(res.json()) == 1
    res = await client.post("/inventory/evaluate", params={"changed_only": True})
    assert res.json() == []

    res = await client.get("/inventory/low-stock")
    assert [i["name"] for i in res.json()] == ["Matcha"]


async def test_categories_and_filter(client, factory):
    res = await client.post("/categories/", json={"name": "Matcha", "name_en": "Matcha"})
    assert res.status_code == 201
    category_id = res.json()["id"]

    matcha = await factory.ingredient("Matcha", 100)
    res = await client.post("/products/", json={"name": "Matcha Latte", "price": 45000, "category_id": category_id})
    product_id = res.json()["id"]
    await client.post(f"/products/{product_id}/ingredients", json={"ingredient_id": str(matcha.id), "quantity": 10})
    await factory.product("Cà Phê Sữa", recipe=[(matcha, 1)])

    res = await client.get("/products/", params={"category_id": category_id})
    assert [(p["name"], p["category_name"]) for p in res.json()] == [("Matcha Latte", "Matcha")]


async def test_contact_form(client):
    res = await client.post("/contacts/", json={"name": "Lan", "message": "Quán mở cửa mấy giờ?"})
    assert res.status_code == 201
    contact_id = res.json()["id"]
    assert res.json()["status"] == "new"

    res = await client.patch(f"/contacts/{contact_id}", json={"status": "replied"})
    assert res.json()["status"] == "replied"

    assert len((await client.get("/contacts/", params={"status": "new"})).json()) == 0
    assert len((await client.get("/contacts/", params={"status": "all"})).json()) == 1


async def test_dashboard_stats(client, factory):
    matcha = await factory.ingredient("Matcha", 50)
    latte = await factory.product("Matcha Latte", price=45000, recipe=[(matcha, 10)])
    await factory.order([(latte, 2)])
    await factory.order([(latte, 1)], status="Failed")

    res = await client.get("/stats/")
    assert res.status_code == 200
    body = res.json()
    assert body["orders"] == 2
    assert body["revenue"] == 90000
    assert body["cups_sold"] == 2
    assert body["low_stock_ingredients"] == 1
    assert body["top_products"][0]["name"] == "Matcha Latte"


async def test_reviews(client, factory, admin):
    latte = await factory.product("Matcha Latte")
    res = await client.post(f"/products/{latte.id}/reviews", json={"rating": 5, "comment": "Ngon!"})
    assert res.status_code == 201
    assert res.json()["username"] == admin.username

    res = await client.post(f"/products/{latte.id}/reviews", json={"rating": 6})
    assert res.status_code == 422

    res = await client.get(f"/products/{latte.id}/reviews")
    assert [r["rating"] for r in res.json()] == [5]


async def test_image_upload_and_serve(client):
    payload = b"\x89PNG\r\n\x1a\n" + b"\x00" * 200
    data_url = "data:image/png;base64," + base64.b64encode(payload).decode()
    res = await client.post("/images/upload", data={"base64_image": data_url})
    assert res.status_code == 200, res.text
    url = res.json()["url"]

    res = await client.get(url)
    assert res.status_code == 200
    assert res.headers["content-type"] == "image/png"
    assert res.content == payload


async def test_image_upload_requires_content(client):
    res = await client.post("/images/upload", data={})
    assert res.status_code == 400


async def test_product_update_rejects_null_for_required_fields(client, factory):
    latte = await factory.product("Matcha Latte", price=45000)
    for field in ("name", "price", "stock_quantity"):
        res = await client.patch(f"/products/{latte.id}", json={field: None})
        assert res.status_code == 422, field

    res = await client.get(f"/products/{latte.id}")
    assert res.json()["price"] == 45000
    assert res.json()["stock_quantity"] == 50

    # nullable fields can still be cleared
    res = await client.patch(f"/products/{latte.id}", json={"description": None, "category_id": None})
    assert res.status_code == 200


async def test_category_update_validates_name(client):
    first = (await client.post("/categories/", json={"name": "Matcha"})).json()
    await client.post("/categories/", json={"name": "Cà phê"})

    res = await client.patch(f"/categories/{first['id']}", json={"name": "   "})
    assert res.status_code == 400
    res = await client.patch(f"/categories/{first['id']}", json={"name": "cà phê"})
    assert res.status_code == 409

    res = await client.patch(f"/categories/{first['id']}", json={"name": " Matcha Latte "})
    assert res.status_code == 200
    assert res.json()["name"] == "Matcha Latte"
