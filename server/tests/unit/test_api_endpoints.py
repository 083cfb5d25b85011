"""Integration tests for API endpoints."""

import pytest

from evrental.models import NotificationType


def iso(value) -> str:
    return value.isoformat() + "Z"


@pytest.fixture
def booking_payload(vehicle, station, booking_window):
    start, end = booking_window(0, 3)
    return {
        "vehicleId": str(vehicle.id),
        "stationId": str(station.id),
        "startTime": iso(start),
        "endTime": iso(end),
        "pickupLocation": "District 1 Central",
    }


@pytest.mark.asyncio
async def test_register_login_and_me(test_client):
    """Test the account flow returns tokens and sets the access cookie."""
    response = await test_client.post(
        "/api/auth/register",
        json={"email": "New.Renter@Example.com", "password": "Secret123!", "name": "New Renter", "phone": "0901234567"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["data"]["user"]["email"] == "new.renter@example.com"
    assert data["data"]["user"]["role"] == "RENTER"
    assert "passwordHash" not in data["data"]["user"]
    assert "access_token" in response.cookies

    response = await test_client.post(
        "/api/auth/login", json={"email": "new.renter@example.com", "password": "Secret123!"}
    )
    assert response.status_code == 200
    token = response.json()["data"]["accessToken"]

    response = await test_client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json()["data"]["user"]["name"] == "New Renter"


@pytest.mark.asyncio
async def test_register_duplicate_email(test_client, renter):
    response = await test_client.post(
        "/api/auth/register",
        json={"email": renter.email.upper(), "password": "Secret123!", "name": "Copy Cat"},
    )

    assert response.status_code == 409
    data = response.json()
    assert data["success"] is False
    assert data["errors"]["code"] == "EMAIL_TAKEN"


@pytest.mark.asyncio
async def test_login_wrong_password(test_client, renter):
    response = await test_client.post("/api/auth/login", json={"email": renter.email, "password": "wrong-password"})

    assert response.status_code == 401
    assert response.json()["errors"]["code"] == "INVALID_CREDENTIALS"


@pytest.mark.asyncio
async def test_create_booking_endpoint(test_client, renter, auth_headers, booking_payload):
    """Test the booking creation endpoint returns the booking and the price breakdown."""
    response = await test_client.post("/api/bookings", json=booking_payload, headers=auth_headers(renter))

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["message"] == "Booking created successfully"

    booking = data["data"]["booking"]
    assert booking["status"] == "PENDING"
    assert booking["vehicleId"] == booking_payload["vehicleId"]
    assert booking["totalAmount"] == 354000

    pricing = data["data"]["pricingBreakdown"]
    assert pricing["basePrice"] == 300000
    assert pricing["totalPayable"] == 854000
    assert pricing["duration"] == "3 hours"
    assert data["data"]["appliedPromotions"] == []


@pytest.mark.asyncio
async def test_create_booking_missing_auth(test_client, booking_payload):
    """Test booking creation without authentication."""
    response = await test_client.post("/api/bookings", json=booking_payload)

    assert response.status_code == 401
    data = response.json()
    assert data["success"] is False
    assert data["errors"]["kind"] == "Unauthenticated"


@pytest.mark.asyncio
async def test_create_booking_as_staff_forbidden(test_client, staff_user, auth_headers, booking_payload):
    response = await test_client.post("/api/bookings", json=booking_payload, headers=auth_headers(staff_user))

    assert response.status_code == 403
    assert response.json()["errors"]["requiredRoles"] == ["RENTER"]


@pytest.mark.asyncio
async def test_create_booking_invalid_data(test_client, renter, auth_headers, booking_payload):
    """Test an end before the start is rejected with 400 and violations."""
    invalid = {**booking_payload, "startTime": booking_payload["endTime"], "endTime": booking_payload["startTime"]}

    response = await test_client.post("/api/bookings", json=invalid, headers=auth_headers(renter))

    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["errors"]["kind"] == "ValidationError"
    assert "violations" in data["errors"]


@pytest.mark.asyncio
async def test_create_booking_conflict(test_client, renter, other_renter, auth_headers, booking_payload):
    """Test the second overlapping booking gets 409 SLOT_CONFLICT."""
    first_headers, second_headers = auth_headers(renter), auth_headers(other_renter)

    response = await test_client.post("/api/bookings", json=booking_payload, headers=first_headers)
    assert response.status_code == 201

    response = await test_client.post("/api/bookings", json=booking_payload, headers=second_headers)

    assert response.status_code == 409
    errors = response.json()["errors"]
    assert errors["kind"] == "Conflict"
    assert errors["code"] == "SLOT_CONFLICT"
    assert errors["conflictingResource"]["vehicleId"] == booking_payload["vehicleId"]


@pytest.mark.asyncio
async def test_complete_booking_endpoint(test_client, renter, other_renter, auth_headers, booking_payload):
    """Test completion through the API, including the owner check."""
    headers, other_headers = auth_headers(renter), auth_headers(other_renter)
    response = await test_client.post("/api/bookings", json=booking_payload, headers=headers)
    booking_id = response.json()["data"]["booking"]["id"]

    response = await test_client.post(f"/api/bookings/{booking_id}/complete", headers=other_headers)
    assert response.status_code == 403

    response = await test_client.post(
        f"/api/bookings/{booking_id}/complete", json={"batteryLevel": 70, "rating": 4}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["data"]["booking"]["status"] == "COMPLETED"

    response = await test_client.get(f"/api/vehicles/{booking_payload['vehicleId']}")
    vehicle = response.json()["data"]["vehicle"]
    assert vehicle["status"] == "AVAILABLE"
    assert vehicle["batteryLevel"] == 70

    response = await test_client.post(f"/api/bookings/{booking_id}/complete", headers=headers)
    assert response.status_code == 409
    assert response.json()["errors"]["code"] == "INVALID_STATE"


@pytest.mark.asyncio
async def test_get_booking_not_found(test_client, renter, auth_headers):
    response = await test_client.get(
        "/api/bookings/00000000-0000-0000-0000-000000000000", headers=auth_headers(renter)
    )

    assert response.status_code == 404
    errors = response.json()["errors"]
    assert errors["kind"] == "NotFound"
    assert errors["resourceType"] == "booking"


@pytest.mark.asyncio
async def test_staff_booking_list_and_confirm(test_client, renter, staff_user, auth_headers, booking_payload):
    renter_headers, staff_headers = auth_headers(renter), auth_headers(staff_user)
    response = await test_client.post("/api/bookings", json=booking_payload, headers=renter_headers)
    booking_id = response.json()["data"]["booking"]["id"]

    response = await test_client.get("/api/bookings", headers=renter_headers)
    assert response.status_code == 403

    response = await test_client.get("/api/bookings", params={"status": "PENDING"}, headers=staff_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert [b["id"] for b in data["bookings"]] == [booking_id]
    assert data["pagination"] == {"currentPage": 1, "totalPages": 1, "totalItems": 1, "itemsPerPage": 10}

    response = await test_client.patch(f"/api/bookings/{booking_id}/confirm", headers=staff_headers)
    assert response.status_code == 200
    assert response.json()["data"]["booking"]["status"] == "CONFIRMED"

    response = await test_client.get("/api/bookings/analytics", headers=staff_headers)
    assert response.status_code == 200
    analytics = response.json()["data"]
    assert analytics["totalBookings"] == 1
    assert analytics["byStatus"]["CONFIRMED"] == 1


@pytest.mark.asyncio
async def test_cancel_booking_endpoint(test_client, renter, auth_headers, booking_payload):
    headers = auth_headers(renter)
    response = await test_client.post("/api/bookings", json=booking_payload, headers=headers)
    booking_id = response.json()["data"]["booking"]["id"]

    response = await test_client.patch(
        f"/api/bookings/{booking_id}/cancel", json={"reason": "Change of plans"}, headers=headers
    )

    assert response.status_code == 200
    assert response.json()["data"]["booking"]["status"] == "CANCELLED"

    response = await test_client.get(
        f"/api/vehicles/{booking_payload['vehicleId']}/availability",
        params={"startTime": booking_payload["startTime"], "endTime": booking_payload["endTime"]},
    )
    assert response.json()["data"]["available"] is True


@pytest.mark.asyncio
async def test_gateway_payment_flow(test_client, gateway, renter, auth_headers, booking_payload):
    """Test checkout, then a signed webhook completes the booking."""
    headers = auth_headers(renter)
    response = await test_client.post("/api/bookings", json=booking_payload, headers=headers)
    booking_id = response.json()["data"]["booking"]["id"]

    response = await test_client.post(
        "/api/payments/gateway", json={"bookingId": booking_id, "amount": 354000}, headers=headers
    )
    assert response.status_code == 201
    checkout = response.json()["data"]
    assert checkout["checkoutUrl"].endswith(f"mock-{checkout['orderCode']}")

    data = {"orderCode": checkout["orderCode"], "amount": 354000, "description": "EV", "code": "00", "desc": "success"}
    webhook = {"code": "00", "desc": "success", "success": True, "data": data, "signature": gateway.sign_data(data)}

    response = await test_client.post("/api/payments/gateway/webhook", json=webhook)
    assert response.status_code == 200
    assert response.json()["data"]["payment"]["status"] == "PAID"

    # Redelivery is acknowledged without changes
    response = await test_client.post("/api/payments/gateway/webhook", json=webhook)
    assert response.status_code == 200

    response = await test_client.get(f"/api/bookings/{booking_id}", headers=headers)
    assert response.json()["data"]["booking"]["status"] == "COMPLETED"

    tampered = {**webhook, "data": {**data, "amount": 1}}
    response = await test_client.post("/api/payments/gateway/webhook", json=tampered)
    assert response.status_code == 400
    assert response.json()["errors"]["code"] == "INVALID_SIGNATURE"


@pytest.mark.asyncio
async def test_cash_payment_flow(test_client, renter, staff_user, auth_headers, booking_payload):
    renter_headers, staff_headers = auth_headers(renter), auth_headers(staff_user)
    response = await test_client.post("/api/bookings", json=booking_payload, headers=renter_headers)
    booking_id = response.json()["data"]["booking"]["id"]

    response = await test_client.post(
        "/api/payments/cash", json={"bookingId": booking_id, "amount": 354000}, headers=renter_headers
    )
    assert response.status_code == 201
    payment_id = response.json()["data"]["payment"]["id"]

    response = await test_client.post(f"/api/payments/{payment_id}/confirm-cash", headers=renter_headers)
    assert response.status_code == 403

    response = await test_client.post(f"/api/payments/{payment_id}/confirm-cash", headers=staff_headers)
    assert response.status_code == 200
    assert response.json()["data"]["payment"]["status"] == "PAID"

    response = await test_client.post(
        f"/api/payments/{payment_id}/refund", json={"amount": 54000, "reason": "Goodwill"}, headers=staff_headers
    )
    assert response.status_code == 200
    payment = response.json()["data"]["payment"]
    assert payment["status"] == "PARTIALLY_REFUNDED"
    assert payment["refundAmount"] == 54000


@pytest.mark.asyncio
async def test_notifications_endpoints(test_client, renter, auth_headers, booking_payload):
    headers = auth_headers(renter)
    await test_client.post("/api/bookings", json=booking_payload, headers=headers)

    response = await test_client.get("/api/notifications/unread-count", headers=headers)
    assert response.json()["data"]["count"] == 1

    response = await test_client.get("/api/notifications", headers=headers)
    notifications = response.json()["data"]["notifications"]
    assert notifications[0]["type"] == NotificationType.BOOKING_CREATED.value

    response = await test_client.patch(f"/api/notifications/{notifications[0]['id']}/read", headers=headers)
    assert response.json()["data"]["notification"]["isRead"] is True

    response = await test_client.get("/api/notifications/unread-count", headers=headers)
    assert response.json()["data"]["count"] == 0


@pytest.mark.asyncio
async def test_stations_nearby(test_client, station):
    response = await test_client.get("/api/stations/nearby", params={"lat": 10.78, "lng": 106.70, "radiusKm": 5})

    assert response.status_code == 200
    stations = response.json()["data"]["stations"]
    assert len(stations) == 1
    assert stations[0]["id"] == str(station.id)
    assert stations[0]["distanceKm"] < 1

    response = await test_client.get("/api/stations/nearby", params={"lat": 21.03, "lng": 105.85, "radiusKm": 5})
    assert response.json()["data"]["stations"] == []


@pytest.mark.asyncio
async def test_unknown_route_uses_envelope(test_client):
    response = await test_client.get("/api/does-not-exist")

    assert response.status_code == 404
    data = response.json()
    assert data["success"] is False
    assert data["errors"]["code"] == "HTTP_404"


@pytest.mark.asyncio
async def test_promotions_admin_only(test_client, admin_user, staff_user, auth_headers):
    admin_headers, staff_headers = auth_headers(admin_user), auth_headers(staff_user)
    body = {
        "code": "spring15",
        "discount": 0.15,
        "validFrom": "2026-01-01T00:00:00Z",
        "validUntil": "2099-01-01T00:00:00Z",
    }

    response = await test_client.post("/api/promotions", json=body, headers=staff_headers)
    assert response.status_code == 403

    response = await test_client.post("/api/promotions", json=body, headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["data"]["promotion"]["code"] == "SPRING15"

    response = await test_client.get("/api/promotions/code/Spring15")
    assert response.status_code == 200

    response = await test_client.post("/api/promotions", json=body, headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["errors"]["code"] == "DUPLICATE_PROMOTION_CODE"


@pytest.mark.asyncio
async def test_document_submit_and_verify(test_client, renter, staff_user, auth_headers):
    renter_headers, staff_headers = auth_headers(renter), auth_headers(staff_user)

    response = await test_client.post(
        "/api/documents",
        json={"documentType": "DRIVERS_LICENSE", "fileUrl": "https://files/license.jpg"},
        headers=renter_headers,
    )
    assert response.status_code == 201
    document_id = response.json()["data"]["document"]["id"]

    response = await test_client.patch(
        f"/api/documents/{document_id}/verify", json={"status": "REJECTED"}, headers=staff_headers
    )
    assert response.status_code == 400

    response = await test_client.patch(
        f"/api/documents/{document_id}/verify",
        json={"status": "REJECTED", "rejectionReason": "Photo is blurry"},
        headers=staff_headers,
    )
    assert response.status_code == 200
    assert response.json()["data"]["document"]["status"] == "REJECTED"

    response = await test_client.get("/api/documents/me", headers=renter_headers)
    assert [d["id"] for d in response.json()["data"]["documents"]] == [document_id]


@pytest.mark.asyncio
async def test_renter_profile_access(test_client, renter, other_renter, auth_headers):
    headers = auth_headers(renter)
    renter_id, other_id = str(renter.id), str(other_renter.id)

    response = await test_client.put(f"/api/renters/{renter_id}", json={"name": "Renamed Renter"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["renter"]["name"] == "Renamed Renter"

    response = await test_client.get(f"/api/renters/{other_id}", headers=headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_change_password_endpoint(test_client, renter, auth_headers):
    headers = auth_headers(renter)
    email = renter.email

    response = await test_client.put(
        "/api/auth/change-password",
        json={"currentPassword": "wrong-password", "newPassword": "BrandNew456!"},
        headers=headers,
    )
    assert response.status_code == 401
    assert response.json()["errors"]["code"] == "INVALID_CREDENTIALS"

    response = await test_client.put(
        "/api/auth/change-password",
        json={"currentPassword": "Password123!", "newPassword": "short"},
        headers=headers,
    )
    assert response.status_code == 400

    response = await test_client.put(
        "/api/auth/change-password",
        json={"currentPassword": "Password123!", "newPassword": "BrandNew456!"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Password changed successfully"

    response = await test_client.post("/api/auth/login", json={"email": email, "password": "BrandNew456!"})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_rental_history_endpoints(
    test_client, renter, other_renter, staff_user, admin_user, auth_headers, booking_payload
):
    """Test a completed rental can be read, rated, summarised and finally removed by an admin."""
    headers, other_headers = auth_headers(renter), auth_headers(other_renter)
    staff_headers, admin_headers = auth_headers(staff_user), auth_headers(admin_user)
    renter_id = str(renter.id)

    response = await test_client.post("/api/bookings", json=booking_payload, headers=headers)
    booking_id = response.json()["data"]["booking"]["id"]
    response = await test_client.post(
        f"/api/bookings/{booking_id}/complete", json={"returnOdometer": 25, "notes": "Great car"}, headers=headers
    )
    assert response.status_code == 200

    response = await test_client.get(f"/api/rental-histories/booking/{booking_id}", headers=headers)
    assert response.status_code == 200
    history = response.json()["data"]["rentalHistory"]
    assert history["bookingId"] == booking_id
    assert history["feedback"] == "Great car"
    assert history["rating"] is None
    history_id = history["id"]

    response = await test_client.get(f"/api/rental-histories/{history_id}", headers=other_headers)
    assert response.status_code == 403

    response = await test_client.put(f"/api/rental-histories/{history_id}", json={"rating": 5}, headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["rentalHistory"]["rating"] == 5

    response = await test_client.put(f"/api/rental-histories/{history_id}", json={}, headers=headers)
    assert response.status_code == 400

    response = await test_client.get(f"/api/rental-histories/user/{renter_id}", headers=headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert [h["id"] for h in data["rentalHistories"]] == [history_id]
    assert data["pagination"]["totalItems"] == 1

    response = await test_client.get("/api/rental-histories/statistics", headers=headers)
    statistics = response.json()["data"]["statistics"]
    assert statistics["totalRentals"] == 1
    assert statistics["averageRating"] == 5
    assert statistics["totalDistance"] == 25
    assert statistics["ratingDistribution"] == [{"rating": 5, "count": 1}]

    response = await test_client.get("/api/rental-histories", headers=headers)
    assert response.status_code == 403
    response = await test_client.get("/api/rental-histories", params={"rating": 5}, headers=staff_headers)
    assert response.status_code == 200
    assert response.json()["data"]["pagination"]["totalItems"] == 1

    response = await test_client.delete(f"/api/rental-histories/{history_id}", headers=staff_headers)
    assert response.status_code == 403
    response = await test_client.delete(f"/api/rental-histories/{history_id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["deletedHistory"] == {"id": history_id, "bookingId": booking_id}

    response = await test_client.get(f"/api/rental-histories/{history_id}", headers=staff_headers)
    assert response.status_code == 404
