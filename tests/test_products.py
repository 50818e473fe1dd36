from bson import ObjectId


def create(client, headers, payload, **overrides):
    res = client.post("/products", json={**payload, **overrides}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


def test_create_then_fetch_returns_same_product(client, admin_headers, product_payload):
    created = create(client, admin_headers, product_payload)

    assert len(created["id"]) == 24
    assert created["isAvailable"] is True
    assert created["createdAt"] and created["updatedAt"]

    res = client.get(f"/products/{created['id']}")
    assert res.status_code == 200
    assert res.json() == created


def test_create_coerces_text_input(client, admin_headers, product_payload):
    created = create(
        client, admin_headers, product_payload,
        originalPrice="299.5", salePrice="199", sizes='["S", "M"]', colors=None,
    )
    assert created["originalPrice"] == 299.5
    assert created["salePrice"] == 199.0
    assert created["sizes"] == ["S", "M"]
    assert created["colors"] == []


def test_create_without_images_is_rejected_before_writing(client, db, admin_headers, product_payload):
    for images in ([], None):
        res = client.post("/products", json={**product_payload, "images": images}, headers=admin_headers)
        assert res.status_code == 400
        assert res.json() == {"message": "At least one image is required"}
    assert db["product"].count_documents({}) == 0


def test_create_validates_required_fields(client, db, admin_headers, product_payload):
    payload = dict(product_payload)
    del payload["name"]
    res = client.post("/products", json=payload, headers=admin_headers)
    assert res.status_code == 400
    assert "name" in res.json()["message"]

    res = client.post("/products", json={**product_payload, "salePrice": -5}, headers=admin_headers)
    assert res.status_code == 400
    assert db["product"].count_documents({}) == 0


def test_malformed_json_reads_as_empty_body(client, admin_headers):
    res = client.post(
        "/products",
        content="{not json",
        headers={**admin_headers, "Content-Type": "application/json"},
    )
    assert res.status_code == 400
    assert res.json()["message"] == "At least one image is required"


def test_writes_require_admin_token(client, user_headers, product_payload):
    assert client.post("/products", json=product_payload).status_code == 401
    res = client.post("/products", json=product_payload, headers=user_headers)
    assert res.status_code == 403
    assert res.json() == {"message": "Admin only"}


def test_list_is_newest_first(client, admin_headers, product_payload):
    first = create(client, admin_headers, product_payload, name="First")
    second = create(client, admin_headers, product_payload, name="Second")

    res = client.get("/products")
    assert res.status_code == 200
    assert [p["id"] for p in res.json()] == [second["id"], first["id"]]


def test_latest_is_null_when_empty(client):
    res = client.get("/products/latest")
    assert res.status_code == 200
    assert res.json() is None


def test_latest_returns_most_recent(client, admin_headers, product_payload):
    create(client, admin_headers, product_payload, name="Old")
    newest = create(client, admin_headers, product_payload, name="New")

    assert client.get("/products/latest").json() == newest


def test_get_with_malformed_id_is_client_error(client):
    res = client.get("/products/not-an-id")
    assert res.status_code == 400
    assert res.json() == {"message": "Invalid product ID"}


def test_get_unknown_product_is_not_found(client):
    res = client.get(f"/products/{ObjectId()}")
    assert res.status_code == 404
    assert res.json() == {"message": "Product not found"}


def test_update_merges_only_given_fields(client, admin_headers, product_payload):
    created = create(client, admin_headers, product_payload)

    res = client.put(f"/products/{created['id']}", json={"salePrice": "150", "colors": ["Red"]}, headers=admin_headers)
    assert res.status_code == 200
    updated = res.json()
    assert updated["salePrice"] == 150.0
    assert updated["colors"] == ["Red"]
    assert updated["name"] == created["name"]
    assert updated["images"] == created["images"]
    assert updated["id"] == created["id"]


def test_update_rejects_clearing_images(client, admin_headers, product_payload):
    created = create(client, admin_headers, product_payload)
    res = client.put(f"/products/{created['id']}", json={"images": []}, headers=admin_headers)
    assert res.status_code == 400


def test_update_unknown_product(client, admin_headers):
    res = client.put(f"/products/{ObjectId()}", json={"name": "x"}, headers=admin_headers)
    assert res.status_code == 404


def test_toggle_twice_restores_availability(client, admin_headers, product_payload):
    created = create(client, admin_headers, product_payload)
    url = f"/products/{created['id']}/toggle"

    once = client.put(url, headers=admin_headers)
    assert once.status_code == 200
    assert once.json()["isAvailable"] is False

    twice = client.put(url, headers=admin_headers)
    assert twice.json()["isAvailable"] is True


def test_toggle_unknown_product(client, admin_headers):
    assert client.put(f"/products/{ObjectId()}/toggle", headers=admin_headers).status_code == 404


def test_delete_removes_product(client, db, admin_headers, product_payload):
    created = create(client, admin_headers, product_payload)

    res = client.delete(f"/products/{created['id']}", headers=admin_headers)
    assert res.status_code == 200
    assert res.json() == {"message": "Product deleted successfully"}
    assert client.get(f"/products/{created['id']}").status_code == 404


def test_delete_unknown_leaves_collection_unchanged(client, db, admin_headers, product_payload):
    create(client, admin_headers, product_payload)

    res = client.delete(f"/products/{ObjectId()}", headers=admin_headers)
    assert res.status_code == 404
    assert db["product"].count_documents({}) == 1


def test_routes_are_also_mounted_under_api(client, admin_headers, product_payload):
    created = create(client, admin_headers, product_payload)
    res = client.get(f"/api/products/{created['id']}")
    assert res.status_code == 200
    assert res.json()["id"] == created["id"]
