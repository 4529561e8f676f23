def test_search_bills(client, seeded):
    assert client.get("/api/bills/search", params={"q": "I"}).json() == []
    bills = client.get("/api/bills/search", params={"q": "98765"}).json()
    assert [b["id"] for b in bills] == [seeded["bill_id"]]
    assert [i["product_name"] for i in bills[0]["items"]] == ["Cotton Shirt", "Sneakers"]


def test_get_bill(client, seeded):
    bill = client.get(f"/api/bills/{seeded['bill_id']}").json()
    assert bill["bill_number"] == "INV-0001"
    assert bill["total_amount"] == 300
    assert bill["is_return"] is False
    assert client.get("/api/bills/999").status_code == 404


def test_create_bill_numbers_sequentially(client, seeded):
    payload = {
        "customer_name": "Walk-in",
        "total_amount": 80,
        "items": [{"product_name": "Leather Belt", "quantity": 1, "unit_price": 80, "total_price": 80}],
    }
    r = client.post("/api/bills", json=payload)
    assert r.status_code == 200
    assert r.json()["bill_number"] == "INV-0003"


def test_create_bill_rejects_empty_or_orphan(client, seeded):
    r = client.post("/api/bills", json={"total_amount": 0, "items": []})
    assert r.status_code == 400
    r = client.post(
        "/api/bills",
        json={
            "total_amount": 10,
            "original_bill_id": 999,
            "items": [{"product_name": "X", "quantity": 1, "unit_price": 10, "total_price": 10}],
        },
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Original bill not found"
