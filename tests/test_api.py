import pytest

from ridehail.core.database import utcnow
from ridehail.models.ride import LegacyRide, RideStatus
from ridehail.services import rides as ride_service

from conftest import ADMIN_HEADERS, DESTINATION, OFF_PEAK, ORIGIN

API = "/api/v1"


@pytest.fixture(autouse=True)
def off_peak_clock(monkeypatch):
    monkeypatch.setattr(ride_service, "pricing_now", lambda: OFF_PEAK)


async def create_user(client, email, role="passenger", name="Ana"):
    response = await client.post(f"{API}/users/", json={"email": email, "name": name, "phone": "64999990000", "role": role})
    assert response.status_code == 201, response.text
    return response.json()


async def create_category(client, **overrides):
    payload = {"name": "Econômico", "base_price": 5.0, "price_per_km": 2.0, "min_price": 7.0}
    payload.update(overrides)
    response = await client.post(f"{API}/categories/", json=payload, headers=ADMIN_HEADERS)
    assert response.status_code == 201, response.text
    return response.json()


async def onboard_driver(client, email, name):
    user = await create_user(client, email, name=name)
    response = await client.post(f"{API}/drivers/register", json={
        "user_id": user["id"],
        "name": name,
        "phone": "64988880000",
        "car_model": "Onix",
        "car_year": 2020,
        "car_plate": "abc1d23",
        "car_color": "Prata",
    })
    assert response.status_code == 201, response.text
    assert response.json()["status"] == "pending"

    response = await client.put(
        f"{API}/admin/drivers/{user['id']}/approval", json={"status": "approved"}, headers=ADMIN_HEADERS
    )
    assert response.status_code == 200, response.text

    response = await client.put(f"{API}/drivers/{user['id']}/status", json={"is_online": True})
    assert response.status_code == 200, response.text
    return user["id"]


async def test_root_and_health(client):
    assert (await client.get("/")).status_code == 200

    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["database_connected"] is True


async def test_user_crud(client):
    user = await create_user(client, "Rider@Example.com")
    assert user["email"] == "rider@example.com"
    assert user["role"] == "passenger"

    duplicate = await client.post(f"{API}/users/", json={"email": "rider@example.com"})
    assert duplicate.status_code == 400

    response = await client.put(f"{API}/users/{user['id']}", json={"name": "Ana Paula"})
    assert response.json()["name"] == "Ana Paula"

    response = await client.get(f"{API}/users/", params={"role": "passenger"})
    assert [u["id"] for u in response.json()] == [user["id"]]

    assert (await client.get(f"{API}/users/missing")).status_code == 404


async def test_quick_destinations(client):
    user = await create_user(client, "rider@example.com")

    response = await client.post(f"{API}/users/{user['id']}/quick-destinations", json={
        "name": "Casa", "icon": "🏠", "destination": DESTINATION,
    })
    assert response.status_code == 201
    destination_id = response.json()["id"]

    listed = await client.get(f"{API}/users/{user['id']}/quick-destinations")
    assert [d["name"] for d in listed.json()] == ["Casa"]

    response = await client.delete(f"{API}/users/{user['id']}/quick-destinations/{destination_id}")
    assert response.status_code == 204
    assert (await client.get(f"{API}/users/{user['id']}/quick-destinations")).json() == []


async def test_unapproved_driver_cannot_go_online(client):
    user = await create_user(client, "driver@example.com", name="Carlos")
    await client.post(f"{API}/drivers/register", json={
        "user_id": user["id"], "name": "Carlos", "phone": "64988880000",
        "car_model": "Onix", "car_plate": "ABC1D23", "car_color": "Prata",
    })

    response = await client.put(f"{API}/drivers/{user['id']}/status", json={"is_online": True})

    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


async def test_admin_routes_require_admin_email(client):
    assert (await client.get(f"{API}/admin/dashboard")).status_code == 403
    response = await client.get(f"{API}/admin/dashboard", headers={"X-Admin-Email": "intruder@example.com"})
    assert response.status_code == 403

    response = await client.post(f"{API}/categories/", json={"name": "X", "base_price": 1, "price_per_km": 1})
    assert response.status_code == 403


async def test_categories_are_cached_and_invalidated(client):
    created = await create_category(client)

    listed = await client.get(f"{API}/categories/")
    assert [c["name"] for c in listed.json()] == ["Econômico"]
    assert listed.json()[0]["dynamic_pricing"]["peakHoursMultiplier"] == 1.5

    response = await client.put(
        f"{API}/categories/{created['id']}", json={"is_active": False}, headers=ADMIN_HEADERS
    )
    assert response.status_code == 200

    assert (await client.get(f"{API}/categories/")).json() == []


async def test_category_rejects_bad_peak_window(client):
    response = await client.post(f"{API}/categories/", json={
        "name": "Premium", "base_price": 10, "price_per_km": 3.5,
        "dynamic_pricing": {"peakHours": [{"start": "7h", "end": "09:00"}]},
    }, headers=ADMIN_HEADERS)

    assert response.status_code == 422


async def test_quote_prices_every_category(client):
    await create_category(client)
    await create_category(client, name="Premium", base_price=10.0, price_per_km=3.5, min_price=15.0)

    response = await client.post(f"{API}/rides/quote", json={
        "origin": ORIGIN["coordinates"], "destination": DESTINATION["coordinates"],
    })

    assert response.status_code == 200
    body = response.json()
    assert body["distance"] == 5000.0
    assert [(q["name"], q["price"]) for q in body["quotes"]] == [("Econômico", 15.0), ("Premium", 27.5)]
    assert body["quotes"][0]["estimated_minutes"] == 10


async def test_quote_follows_weather_setting(client):
    await create_category(client)
    response = await client.put(
        f"{API}/admin/settings/weather", json={"value": {"isRaining": True}}, headers=ADMIN_HEADERS
    )
    assert response.status_code == 200

    response = await client.post(f"{API}/rides/quote", json={
        "origin": ORIGIN["coordinates"], "destination": DESTINATION["coordinates"],
    })

    assert response.json()["is_raining"] is True
    assert response.json()["quotes"][0]["price"] == 18.0


async def test_full_ride_flow(client):
    category = await create_category(client)
    rider = await create_user(client, "rider@example.com")
    driver_id = await onboard_driver(client, "driver@example.com", "Carlos")
    rival_id = await onboard_driver(client, "driver2@example.com", "Bruna")

    response = await client.post(f"{API}/rides/", json={
        "user_id": rider["id"],
        "origin": ORIGIN,
        "destination": DESTINATION,
        "vehicle_category_id": category["id"],
        "payment_method": "pix",
    })
    assert response.status_code == 201, response.text
    ride = response.json()
    assert ride["status"] == "pending"
    assert ride["price"] == 15.0

    again = await client.post(f"{API}/rides/", json={
        "user_id": rider["id"], "origin": ORIGIN, "destination": DESTINATION,
        "vehicle_category_id": category["id"],
    })
    assert again.status_code == 409

    available = await client.get(f"{API}/drivers/{driver_id}/available-rides")
    assert [r["id"] for r in available.json()] == [ride["id"]]

    accepted = await client.post(f"{API}/drivers/{driver_id}/rides/{ride['id']}/accept")
    assert accepted.status_code == 200
    assert accepted.json()["driver"]["vehicle"]["plate"] == "ABC1D23"

    lost = await client.post(f"{API}/drivers/{rival_id}/rides/{ride['id']}/accept")
    assert lost.status_code == 409
    assert lost.json()["error"] == "ride_conflict"

    assert (await client.post(f"{API}/drivers/{driver_id}/rides/{ride['id']}/arrived")).json()["driver_arrived"] is True
    assert (await client.post(f"{API}/drivers/{driver_id}/rides/{ride['id']}/start")).json()["status"] == "inProgress"

    active = await client.get(f"{API}/rides/rider/{rider['id']}/active")
    assert active.json()["id"] == ride["id"]

    completed = await client.post(
        f"{API}/drivers/{driver_id}/rides/{ride['id']}/complete", json={"final_location": [-47.94, -18.16]}
    )
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"

    assert (await client.get(f"{API}/rides/rider/{rider['id']}/active")).json() is None
    assert (await client.get(f"{API}/rides/{ride['id']}")).json()["status"] == "completed"

    rated = await client.post(f"{API}/rides/{ride['id']}/rating", json={"user_id": rider["id"], "rating": 4})
    assert rated.status_code == 200
    assert rated.json()["rating"] == 4

    twice = await client.post(f"{API}/rides/{ride['id']}/rating", json={"user_id": rider["id"], "rating": 1})
    assert twice.status_code == 409

    driver = (await client.get(f"{API}/drivers/{driver_id}")).json()
    assert driver["rating"] == 4.0
    assert driver["total_rides"] == 1

    history = await client.get(f"{API}/rides/rider/{rider['id']}/history")
    assert [(r["id"], r["rating"]) for r in history.json()] == [(ride["id"], 4)]

    earnings = (await client.get(f"{API}/drivers/{driver_id}/earnings")).json()
    assert earnings["total_rides"] == 1
    assert earnings["total_earnings"] == 15.0
    assert earnings["total_distance_km"] == 5.0

    notifications = await client.get(f"{API}/rides/rider/{rider['id']}/notifications")
    assert len(notifications.json()) == 4

    stats = (await client.get(f"{API}/admin/dashboard", headers=ADMIN_HEADERS)).json()
    assert stats["total_users"] == 3
    assert stats["online_drivers"] == 2
    assert stats["today_rides"] == 1
    assert stats["total_revenue"] == 15.0
    assert len(stats["weekly_rides"]) == 7
    assert stats["weekly_rides"][-1] == 1


async def test_passenger_cancel_and_history_refresh(client):
    category = await create_category(client)
    rider = await create_user(client, "rider@example.com")

    # Prime the history cache
    assert (await client.get(f"{API}/rides/rider/{rider['id']}/history")).json() == []

    ride = (await client.post(f"{API}/rides/", json={
        "user_id": rider["id"], "origin": ORIGIN, "destination": DESTINATION,
        "vehicle_category_id": category["id"],
    })).json()

    forbidden = await client.post(f"{API}/rides/{ride['id']}/cancel", json={"user_id": "someone-else"})
    assert forbidden.status_code == 403

    cancelled = await client.post(
        f"{API}/rides/{ride['id']}/cancel", json={"user_id": rider["id"], "reason": "Demorou"}
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["cancelled_by"] == "passenger"

    history = (await client.get(f"{API}/rides/rider/{rider['id']}/history", params={"days": 1})).json()
    assert [r["status"] for r in history] == ["cancelled"]

    again = await client.post(f"{API}/rides/{ride['id']}/cancel", json={"user_id": rider["id"]})
    assert again.status_code == 404
    assert again.json()["error"] == "ride_not_found"


async def test_driver_rejects_pending_ride(client):
    category = await create_category(client)
    rider = await create_user(client, "rider@example.com")
    driver_id = await onboard_driver(client, "driver@example.com", "Carlos")

    ride = (await client.post(f"{API}/rides/", json={
        "user_id": rider["id"], "origin": ORIGIN, "destination": DESTINATION,
        "vehicle_category_id": category["id"],
    })).json()

    response = await client.post(f"{API}/drivers/{driver_id}/rides/{ride['id']}/reject", json={"reason": "Longe"})

    assert response.status_code == 200
    assert response.json()["cancelled_by"] == "driver"
    assert response.json()["driver_id"] == driver_id


async def test_driver_location_is_mirrored_on_user(client):
    driver_id = await onboard_driver(client, "driver@example.com", "Carlos")

    response = await client.put(f"{API}/drivers/{driver_id}/location", json={"longitude": -47.95, "latitude": -18.17})
    assert response.json()["current_location"] == [-47.95, -18.17]

    user = (await client.get(f"{API}/users/{driver_id}")).json()
    assert user["current_location"] == [-47.95, -18.17]
    assert user["role"] == "driver"

    online = await client.get(f"{API}/drivers/online")
    assert [d["id"] for d in online.json()] == [driver_id]


async def test_driver_approval_is_logged(client):
    driver_id = await onboard_driver(client, "driver@example.com", "Carlos")

    response = await client.put(
        f"{API}/admin/drivers/{driver_id}/approval", json={"status": "rejected"}, headers=ADMIN_HEADERS
    )
    assert response.json()["status"] == "rejected"
    assert response.json()["is_online"] is False

    logs = (await client.get(f"{API}/admin/logs", headers=ADMIN_HEADERS)).json()
    assert {log["action"] for log in logs} == {"driver_approved", "driver_rejected"}

    approved = await client.get(
        f"{API}/admin/drivers", params={"driver_status": "approved"}, headers=ADMIN_HEADERS
    )
    assert approved.json() == []


async def test_sponsor_crud(client):
    response = await client.post(f"{API}/admin/sponsors", json={"name": "Padaria"}, headers=ADMIN_HEADERS)
    assert response.status_code == 201
    sponsor_id = response.json()["id"]

    response = await client.put(
        f"{API}/admin/sponsors/{sponsor_id}", json={"is_active": False}, headers=ADMIN_HEADERS
    )
    assert response.json()["is_active"] is False

    active = await client.get(f"{API}/admin/sponsors", params={"active_only": True}, headers=ADMIN_HEADERS)
    assert active.json() == []

    response = await client.delete(f"{API}/admin/sponsors/{sponsor_id}", headers=ADMIN_HEADERS)
    assert response.status_code == 204


async def test_legacy_migration_endpoint(client):
    response = await client.post(f"{API}/admin/migrate-rides", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    assert response.json() == {"active": 0, "completed": 0, "cancelled": 0}


async def test_legacy_migration_refreshes_history_and_is_logged(client, session_factory):
    rider = await create_user(client, "rider@example.com")
    history_url = f"{API}/rides/rider/{rider['id']}/history"

    # Prime the history cache
    assert (await client.get(history_url)).json() == []

    async with session_factory() as db:
        db.add(LegacyRide(id="legacy-1", user_id=rider["id"], status=RideStatus.COMPLETED,
                          origin=ORIGIN, destination=DESTINATION, price=12.0, completed_at=utcnow()))
        await db.commit()

    response = await client.post(f"{API}/admin/migrate-rides", headers=ADMIN_HEADERS)
    assert response.json() == {"active": 0, "completed": 1, "cancelled": 0}

    assert [r["id"] for r in (await client.get(history_url)).json()] == ["legacy-1"]

    logs = await client.get(f"{API}/admin/logs", params={"action": "rides_migrated"}, headers=ADMIN_HEADERS)
    assert [log["details"] for log in logs.json()] == [{"active": 0, "completed": 1, "cancelled": 0}]


async def test_legacy_migration_conflict_is_reported(client, session_factory):
    async with session_factory() as db:
        db.add_all([
            LegacyRide(id=ride_id, user_id="rider", status=RideStatus.PENDING, origin=ORIGIN, destination=DESTINATION)
            for ride_id in ("old-1", "old-2")
        ])
        await db.commit()

    response = await client.post(f"{API}/admin/migrate-rides", headers=ADMIN_HEADERS)

    assert response.status_code == 409
    assert response.json()["details"] == {"riders": ["rider"]}

    logs = await client.get(f"{API}/admin/logs", params={"action": "rides_migrated"}, headers=ADMIN_HEADERS)
    assert logs.json() == []


async def test_geo_endpoints(client):
    route = await client.get(f"{API}/geo/route", params={
        "origin_lng": -47.9466, "origin_lat": -18.1661,
        "destination_lng": -47.9366, "destination_lat": -18.1561,
    })
    assert route.status_code == 200
    assert route.json()["properties"] == {"distance": 5000.0, "duration": 600.0}

    reverse = await client.get(f"{API}/geo/reverse", params={"longitude": -47.9466, "latitude": -18.1661})
    assert reverse.json()["place_name"] == "Praça Getúlio Vargas, Catalão - GO"

    invalid = await client.get(f"{API}/geo/reverse", params={"longitude": 200, "latitude": 0})
    assert invalid.status_code == 400
