def test_list_products(client, seeded):
    res = client.get("/api/products")
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 4
    names = [it["name"] for it in body["items"]]
    assert names == sorted(names)
    assert "Cotton Shirt" in names


def test_search_products(client, seeded):
    body = client.get("/api/products", params={"q": "jeans"}).json()
    assert [it["product_code"] for it in body["items"]] == ["JEANS-01"]


def test_barcode_lookup(client, seeded):
    res = client.get("/api/products/barcode/333")
    assert res.status_code == 200
    assert res.json()["name"] == "Leather Belt"
    assert res.json()["stock_quantity"] == 3
    assert client.get("/api/products/barcode/000").status_code == 404


def test_get_product(client, seeded):
    pid = seeded["products"]["SHOE-01"]["id"]
    assert client.get(f"/api/products/{pid}").json()["selling_price"] == 200
    assert client.get("/api/products/999").status_code == 404
