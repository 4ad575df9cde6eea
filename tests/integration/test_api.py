import pytest
from fastapi.testclient import TestClient

from fieldops.api.main import create_app
from fieldops.models.booking import BookingStatus, DocumentType
from tests.factories import BOOKING_ORIGIN, approved, make_booking, make_partner, new_id, north_of


@pytest.fixture
def client(memory_settings):
    app = create_app(memory_settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def database(client):
    return client.app.state.database


def test_assign_review_confirm_over_http(client, database):
    booking = database.bookings.add(make_booking())
    partner = database.partners.add(make_partner(name="Ravi", point=north_of(BOOKING_ORIGIN, 700)))

    response = client.post("/api/bookings/assign", json={"bookingId": booking.id, "adminId": "admin-1"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["partnerId"] == partner.id
    assert body["data"]["distanceMeters"] == 700

    for doc_type in DocumentType:
        response = client.post(
            "/api/bookings/review",
            json={"bookingId": booking.id, "documentType": doc_type.value, "status": "approved", "reviewerId": "r1"},
        )
        assert response.status_code == 200

    response = client.post("/api/bookings/confirm", json={"bookingId": booking.id, "adminId": "admin-1"})
    assert response.status_code == 200
    assert response.json()["data"]["confirmedBy"] == "admin-1"

    response = client.get("/api/bookings", params={"status": BookingStatus.CONFIRMED.value})
    page = response.json()["data"]
    assert page["total"] == 1
    assert page["items"][0]["_id"] == booking.id


def test_error_kinds_map_to_status_codes(client, database):
    response = client.post("/api/bookings/assign", json={"bookingId": "bad", "adminId": "admin-1"})
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"

    booking = database.bookings.add(make_booking(city="Nowhere"))
    response = client.post("/api/bookings/assign", json={"bookingId": booking.id, "adminId": "admin-1"})
    assert response.status_code == 409
    assert response.json()["code"] == "no_partner_available"

    response = client.post("/api/bookings/confirm", json={"bookingId": new_id(), "adminId": "admin-1"})
    assert response.status_code == 404

    pending = database.bookings.add(
        make_booking(status=BookingStatus.PARTNER_ASSIGNED, partner_id=new_id(), documents=[approved(DocumentType.SELFIE)])
    )
    response = client.post(
        "/api/bookings/review",
        json={"bookingId": pending.id, "documentType": "selfie", "status": "rejected", "reviewerId": "r1"},
    )
    assert response.status_code == 400


def test_confirm_with_unapproved_documents(client, database):
    booking = database.bookings.add(make_booking(status=BookingStatus.PARTNER_ASSIGNED, partner_id=new_id()))

    response = client.post("/api/bookings/confirm", json={"bookingId": booking.id, "adminId": "admin-1"})

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "documents_not_approved"
    assert body["document_types"] == [doc_type.value for doc_type in DocumentType]


def test_gps_rate_limit_headers(client, database):
    partner = database.partners.add(make_partner())

    for expected_remaining in range(5, -1, -1):
        response = client.post(f"/api/partners/{partner.id}/gps", json={"coordinates": [77.6, 12.97]})
        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == str(expected_remaining)

    response = client.post(f"/api/partners/{partner.id}/gps", json={"coordinates": [77.6, 12.97]})
    assert response.status_code == 429
    assert response.headers["X-RateLimit-Limit"] == "6"
    assert "Retry-After" in response.headers

    quota = client.get(f"/api/partners/{partner.id}/gps/quota").json()["data"]
    assert quota["count"] == 6
    assert quota["remaining"] == 0


def test_gps_validation(client, database):
    partner = database.partners.add(make_partner())

    response = client.post(f"/api/partners/{partner.id}/gps", json={"coordinates": [200, 0]})

    assert response.status_code == 400


def test_list_partners_and_health(client, database):
    database.partners.add(make_partner(name="A", city="Pune"))
    database.partners.add(make_partner(name="B", city="Delhi"))

    response = client.get("/api/partners", params={"city": "Pune"})
    page = response.json()["data"]
    assert page["total"] == 1
    assert page["items"][0]["name"] == "A"

    health = client.get("/api/health").json()
    assert health["status"] == "ok"
    assert health["policies"] == {"locks": "fail-closed", "rateLimit": "fail-open"}

    assert client.get("/api/metrics").status_code == 200
