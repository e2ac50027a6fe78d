def test_vehicle_inventory_flow(vehicles_client, admin_headers):
    created = vehicles_client.post(
        "/vehicles",
        json={"id": "car-7", "name": "Hyundai Creta", "type": "car", "hourly_rate": "60"},
        headers=admin_headers,
    )
    assert created.status_code == 201
    assert created.json()["availability_status"] is True

    updated = vehicles_client.put("/vehicles/car-7", json={"hourly_rate": "65"}, headers=admin_headers)
    assert updated.status_code == 200
    assert float(updated.json()["hourly_rate"]) == 65

    hidden = vehicles_client.patch(
        "/vehicles/car-7/availability", json={"availability_status": False}, headers=admin_headers
    )
    assert hidden.json()["availability_status"] is False

    assert vehicles_client.get("/vehicles", params={"available": True}).json() == []
    assert [v["id"] for v in vehicles_client.get("/vehicles").json()] == ["car-7"]

    assert vehicles_client.delete("/vehicles/car-7", headers=admin_headers).status_code == 204
    assert vehicles_client.get("/vehicles/car-7").status_code == 404


def test_list_filters_by_type(vehicles_client, car, bike):
    response = vehicles_client.get("/vehicles", params={"type": "bike"})

    assert [v["id"] for v in response.json()] == ["bike-1"]


def test_customers_cannot_manage_inventory(vehicles_client, customer_headers, car):
    response = vehicles_client.post(
        "/vehicles",
        json={"name": "Sneaky", "type": "car", "hourly_rate": "1"},
        headers=customer_headers,
    )

    assert response.status_code == 403
    assert vehicles_client.delete("/vehicles/car-1", headers=customer_headers).status_code == 403


def test_duplicate_vehicle_conflicts(vehicles_client, admin_headers, car):
    response = vehicles_client.post(
        "/vehicles",
        json={"id": "car-1", "name": "Toyota Camry", "type": "car", "hourly_rate": "100"},
        headers=admin_headers,
    )

    assert response.status_code == 409


def test_update_missing_vehicle(vehicles_client, admin_headers):
    response = vehicles_client.put("/vehicles/car-404", json={"name": "Ghost"}, headers=admin_headers)

    assert response.status_code == 404
