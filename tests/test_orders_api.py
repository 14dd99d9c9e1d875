import pytest

from core.auth import current_optional_user
from main import app


@pytest.fixture
async def shop(factory):
    matcha = await factory.ingredient("Matcha", 50)
    sugar = await factory.ingredient("Đường", 20, type="Đường")
    latte = await factory.product("Matcha Latte", price=45000, recipe=[(matcha, 10), (sugar, 5)])
    pure = await factory.product("Matcha Nguyên Chất", price=39000, recipe=[(matcha, 10)])
    return {"matcha": matcha, "sugar": sugar, "latte": latte, "pure": pure}


def _checkout_body(*lines, phone="0912 345 678"):
    return {
        "customer_name": "Lan",
        "phone": phone,
        "address": "12 Lý Tự Trọng, Q1",
        "payment_method": "Cash",
        "items": [{"product_id": str(p.id), "quantity": q} for p, q in lines],
    }


async def _checkout(client, *lines):
    res = await client.post("/orders/checkout", json=_checkout_body(*lines))
    assert res.status_code == 201, res.text
    return res.json()


async def test_checkout_prices_from_catalog(client, shop):
    order = await _checkout(client, (shop["latte"], 2), (shop["pure"], 1))

    assert order["status"] == "Pending"
    assert order["phone"] == "0912345678"
    assert order["user_id"] is None
    assert order["total_price"] == 2 * 45000 + 39000
    assert order["ingredients_deducted_at"] is None
    assert {it["product_name"] for it in order["items"]} == {"Matcha Latte", "Matcha Nguyên Chất"}


async def test_checkout_does_not_touch_stock(client, shop, stock):
    await _checkout(client, (shop["latte"], 2))
    assert await stock(shop["matcha"].id) == 50


async def test_checkout_rejects_inactive_product(client, factory):
    matcha = await factory.ingredient("Matcha", 5)
    latte = await factory.product("Matcha Latte", recipe=[(matcha, 10)])

    res = await client.post("/orders/checkout", json=_checkout_body((latte, 1)))
    assert res.status_code == 409
    detail = res.json()["detail"]
    assert detail["code"] == "product_unavailable"
    assert detail["products"] == ["Matcha Latte"]


async def test_checkout_rejects_sold_out_product(client, factory):
    matcha = await factory.ingredient("Matcha", 100)
    latte = await factory.product("Matcha Latte", recipe=[(matcha, 10)], cups=0)

    res = await client.post("/orders/checkout", json=_checkout_body((latte, 1)))
    assert res.status_code == 409
    assert res.json()["detail"]["products"] == ["Matcha Latte"]


@pytest.mark.parametrize("phone", ["12345", "0112345678", ""])
async def test_checkout_rejects_bad_phone(client, shop, phone):
    res = await client.post("/orders/checkout", json=_checkout_body((shop["latte"], 1), phone=phone))
    assert res.status_code == 422


async def test_checkout_rejects_empty_cart(client, shop):
    res = await client.post("/orders/checkout", json=_checkout_body())
    assert res.status_code == 422


async def test_signed_in_checkout_links_user(client, shop, customer):
    app.dependency_overrides[current_optional_user] = lambda: customer
    order = await _checkout(client, (shop["pure"], 1))
    assert order["user_id"] == str(customer.id)


async def test_completing_an_order_deducts_ingredients(client, shop, stock):
    order = await _checkout(client, (shop["latte"], 2), (shop["pure"], 1))

    res = await client.patch(f"/orders/{order['id']}/status", json={"status": "Completed"})
    assert res.status_code == 200, res.text
    body = res.json()

    assert body["previous_status"] == "Pending"
    assert body["order"]["status"] == "Completed"
    assert body["order"]["ingredients_deducted_at"] is not None
    assert body["deduction"]["deducted"] == {str(shop["matcha"].id): 30.0, str(shop["sugar"].id): 10.0}
    assert await stock(shop["matcha"].id) == 20
    assert await stock(shop["sugar"].id) == 10


async def test_completion_with_short_stock_keeps_status(client, factory, shop, stock):
    order = await _checkout(client, (shop["latte"], 2), (shop["pure"], 1))
    # Stock drops after checkout (another order completed in between)
    other = await factory.order([(shop["pure"], 3)])
    res = await client.patch(f"/orders/{other.id}/status", json={"status": "Completed"})
    assert res.status_code == 200
    assert await stock(shop["matcha"].id) == 20

    res = await client.patch(f"/orders/{order['id']}/status", json={"status": "Completed"})
    assert res.status_code == 409
    detail = res.json()["detail"]
    assert detail["code"] == "insufficient_stock"
    assert detail["message_vi"] == "Không đủ nguyên liệu: Matcha (cần: 30, có: 20)"
    assert detail["shortages"][0]["required"] == 30.0

    res = await client.get(f"/orders/{order['id']}")
    assert res.json()["status"] == "Pending"
    assert res.json()["ingredients_deducted_at"] is None
    assert await stock(shop["matcha"].id) == 20
    assert await stock(shop["sugar"].id) == 20


async def test_intermediate_statuses_do_not_deduct(client, shop, stock):
    order = await _checkout(client, (shop["latte"], 1))
    for s in ("Preparing", "Shipping", "Delivered"):
        res = await client.patch(f"/orders/{order['id']}/status", json={"status": s})
        assert res.status_code == 200
        assert res.json()["deduction"] is None
    assert await stock(shop["matcha"].id) == 50


async def test_completed_order_cannot_be_reopened(client, shop, stock):
    order = await _checkout(client, (shop["latte"], 1))
    await client.patch(f"/orders/{order['id']}/status", json={"status": "Completed"})

    res = await client.patch(f"/orders/{order['id']}/status", json={"status": "Pending"})
    assert res.status_code == 409
    assert res.json()["detail"]["code"] == "invalid_status_transition"

    # Repeating Completed is a no-op, not a second deduction
    res = await client.patch(f"/orders/{order['id']}/status", json={"status": "Completed"})
    assert res.status_code == 200
    assert res.json()["deduction"] is None
    assert await stock(shop["matcha"].id) == 40


async def test_completing_empty_order(client, factory):
    order = await factory.order([])
    res = await client.patch(f"/orders/{order.id}/status", json={"status": "Completed"})
    assert res.status_code == 422
    assert res.json()["detail"]["code"] == "empty_order"


async def test_unknown_status_is_rejected(client, shop):
    order = await _checkout(client, (shop["latte"], 1))
    res = await client.patch(f"/orders/{order['id']}/status", json={"status": "Lost"})
    assert res.status_code == 422


async def test_completion_deactivates_products(client, factory, stock, active):
    matcha = await factory.ingredient("Matcha", 20)
    latte = await factory.product("Matcha Latte", recipe=[(matcha, 10)])
    big = await factory.product("Matcha Đậm", recipe=[(matcha, 15)])
    order = await _checkout(client, (latte, 1))

    res = await client.patch(f"/orders/{order['id']}/status", json={"status": "Completed"})
    assert res.status_code == 200
    changes = res.json()["deduction"]["availability"]
    assert [c["product_id"] for c in changes] == [str(big.id)]
    assert await active(latte.id) is True
    assert await active(big.id) is False


async def test_track_by_phone(client, shop):
    await _checkout(client, (shop["latte"], 1))
    res = await client.get("/orders/track", params={"phone": "0912345678"})
    assert res.status_code == 200
    assert len(res.json()) == 1

    res = await client.get("/orders/track", params={"phone": "0987654321"})
    assert res.json() == []


async def test_admin_list_filters_by_status(client, shop):
    first = await _checkout(client, (shop["latte"], 1))
    await _checkout(client, (shop["pure"], 1))
    await client.patch(f"/orders/{first['id']}/status", json={"status": "Preparing"})

    res = await client.get("/orders/", params={"status": "Preparing"})
    assert [o["id"] for o in res.json()] == [first["id"]]
