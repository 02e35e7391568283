from decimal import Decimal

import httpx
import jwt
import pytest
import pytest_asyncio

from api.dependencies import get_gateway, get_uow_factory
from core.config import settings
from infrastructure.external.payments.simulator_client import SimulatedPaymentGateway
from main import app
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


BASE = "/api/v1/enrollments"


def auth(user_id: int) -> dict:
    token = jwt.encode({"sub": str(user_id)}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(uow_factory, gateway, seed):
    app.dependency_overrides[get_uow_factory] = lambda: uow_factory
    app.dependency_overrides[get_gateway] = lambda: gateway
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://backend.test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_free_enrollment(client, seed):
    resp = await client.post(BASE, json={"course_id": seed.free_course}, headers=auth(seed.student_id))

    assert resp.status_code == 201
    body = resp.json()
    assert body["code"] == 0
    assert body["error"] is None
    assert body["data"]["enrollment"]["payment_status"] == "completed"
    assert body["data"]["payment"] is None
    assert "X-Request-ID" in resp.headers


@pytest.mark.asyncio
async def test_paid_enrollment_and_callback(client, seed):
    resp = await client.post(BASE, json={"course_id": seed.paid_course}, headers=auth(seed.student_id))
    assert resp.status_code == 201
    data = resp.json()["data"]
    enrollment_id = data["enrollment"]["id"]
    assert data["enrollment"]["payment_status"] == "pending"
    assert data["payment"]["authority"] == "A1"
    assert Decimal(data["payment"]["amount"]) == Decimal("100000")

    callback = await client.get(f"{BASE}/verify", params={"Authority": "A1", "Status": "OK"})
    assert callback.status_code == 303
    assert callback.headers["location"] == f"http://frontend.test/payment/success?enrollmentId={enrollment_id}"

    again = await client.post(BASE, json={"course_id": seed.paid_course}, headers=auth(seed.student_id))
    assert again.status_code == 409
    assert again.json()["error"]["type"] == "AlreadyEnrolled"

    detail = await client.get(f"{BASE}/{enrollment_id}", headers=auth(seed.student_id))
    assert detail.status_code == 200
    assert detail.json()["data"]["payment_status"] == "completed"


@pytest.mark.asyncio
async def test_pending_conflict_returns_record(client, seed):
    await client.post(BASE, json={"course_id": seed.paid_course}, headers=auth(seed.student_id))
    resp = await client.post(BASE, json={"course_id": seed.paid_course}, headers=auth(seed.student_id))

    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == BusinessCode.ENROLLMENT_PENDING
    assert body["error"]["details"]["enrollment"]["payment_authority"] == "A1"


@pytest.mark.asyncio
async def test_cancelled_callback_redirects_to_failure(client, seed):
    await client.post(BASE, json={"course_id": seed.paid_course}, headers=auth(seed.student_id))
    resp = await client.get(f"{BASE}/verify", params={"Authority": "A1", "Status": "NOK"})

    assert resp.status_code == 303
    assert resp.headers["location"] == "http://frontend.test/payment/failed?reason=cancelled"


@pytest.mark.asyncio
async def test_authentication_and_roles(client, seed):
    missing = await client.post(BASE, json={"course_id": seed.free_course})
    assert missing.status_code == 401

    bad = await client.post(BASE, json={"course_id": seed.free_course}, headers={"Authorization": "Bearer nope"})
    assert bad.status_code == 401
    assert bad.json()["code"] == BusinessCode.TOKEN_INVALID

    instructor = await client.post(BASE, json={"course_id": seed.free_course}, headers=auth(seed.instructor_id))
    assert instructor.status_code == 403

    inactive = await client.post(BASE, json={"course_id": seed.free_course}, headers=auth(seed.inactive_id))
    assert inactive.status_code == 403
    assert inactive.json()["error"]["type"] == "UserInactive"

    admin_only = await client.get(BASE, headers=auth(seed.student_id))
    assert admin_only.status_code == 403


@pytest.mark.asyncio
async def test_request_validation_and_missing_course(client, seed):
    invalid = await client.post(BASE, json={"course_id": 0}, headers=auth(seed.student_id))
    assert invalid.status_code == 422

    missing = await client.post(BASE, json={"course_id": 999}, headers=auth(seed.student_id))
    assert missing.status_code == 404
    assert missing.json()["code"] == BusinessCode.COURSE_NOT_FOUND

    draft = await client.post(BASE, json={"course_id": seed.draft_course}, headers=auth(seed.student_id))
    assert draft.status_code == 400


@pytest.mark.asyncio
async def test_my_courses_and_check(client, seed):
    await client.post(BASE, json={"course_id": seed.free_course}, headers=auth(seed.student_id))
    await client.post(BASE, json={"course_id": seed.paid_course}, headers=auth(seed.student_id))

    listing = await client.get(f"{BASE}/mycourses", headers=auth(seed.student_id))
    assert listing.status_code == 200
    page = listing.json()["data"]
    assert page["total"] == 2
    assert page["page"] == 1

    pending = await client.get(
        f"{BASE}/mycourses", params={"payment_status": "pending"}, headers=auth(seed.student_id)
    )
    assert pending.json()["data"]["total"] == 1

    check = await client.get(f"{BASE}/course/{seed.free_course}/check", headers=auth(seed.student_id))
    assert check.json()["data"]["is_enrolled"] is True
    other = await client.get(f"{BASE}/course/{seed.free_course}/check", headers=auth(seed.other_student_id))
    assert other.json()["data"] == {"is_enrolled": False, "enrollment": None}


@pytest.mark.asyncio
async def test_admin_list_and_refund(client, seed):
    created = await client.post(BASE, json={"course_id": seed.paid_course}, headers=auth(seed.student_id))
    enrollment_id = created.json()["data"]["enrollment"]["id"]
    await client.get(f"{BASE}/verify", params={"Authority": "A1", "Status": "OK"})

    listing = await client.get(BASE, headers=auth(seed.admin_id))
    assert listing.status_code == 200
    page = listing.json()["data"]
    assert page["total"] == 1
    assert Decimal(page["extra"]["total_revenue"]) == Decimal("100000")

    forbidden = await client.put(f"{BASE}/{enrollment_id}/refund", headers=auth(seed.student_id))
    assert forbidden.status_code == 403

    refunded = await client.put(f"{BASE}/{enrollment_id}/refund", headers=auth(seed.admin_id))
    assert refunded.status_code == 200
    assert refunded.json()["data"]["payment_status"] == "refunded"

    twice = await client.put(f"{BASE}/{enrollment_id}/refund", headers=auth(seed.admin_id))
    assert twice.status_code == 409

    missing = await client.get(f"{BASE}/424242", headers=auth(seed.admin_id))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_other_student_cannot_view_enrollment(client, seed):
    created = await client.post(BASE, json={"course_id": seed.free_course}, headers=auth(seed.student_id))
    enrollment_id = created.json()["data"]["enrollment"]["id"]

    resp = await client.get(f"{BASE}/{enrollment_id}", headers=auth(seed.other_student_id))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_simulated_payment_flow(client, session_factory, seed):
    app.dependency_overrides[get_gateway] = lambda: SimulatedPaymentGateway(session_factory)

    created = await client.post(BASE, json={"course_id": seed.discounted_course}, headers=auth(seed.student_id))
    assert created.status_code == 201
    authority = created.json()["data"]["payment"]["authority"]
    assert authority.startswith("SIM")

    simulated = await client.post(f"{BASE}/test-payment/{authority}")
    assert simulated.status_code == 200
    verify_url = simulated.json()["data"]["verify_url"]
    assert verify_url.startswith("http://backend.test/api/v1/enrollments/verify?")

    settled = await client.get(verify_url)
    assert settled.status_code == 303
    assert "/payment/success?enrollmentId=" in settled.headers["location"]

    unknown = await client.post(f"{BASE}/test-payment/SIMUNKNOWN")
    assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_payment_simulation_needs_simulator(client, seed):
    resp = await client.post(f"{BASE}/test-payment/A1")
    assert resp.status_code == 403
    assert resp.json()["code"] == PaymentCode.GATEWAY_DISABLED
    assert resp.json()["error"]["type"] == "PaymentGatewayDisabled"


@pytest.mark.asyncio
async def test_simulated_payment_url_is_browsable(client, session_factory, seed):
    app.dependency_overrides[get_gateway] = lambda: SimulatedPaymentGateway(session_factory)

    created = await client.post(BASE, json={"course_id": seed.paid_course}, headers=auth(seed.student_id))
    payment_url = httpx.URL(created.json()["data"]["payment"]["payment_url"])

    landing = await client.get(payment_url.path)
    assert landing.status_code == 303
    verify_url = landing.headers["location"]
    assert verify_url.startswith("http://backend.test/api/v1/enrollments/verify?")

    settled = await client.get(verify_url)
    assert settled.status_code == 303
    assert "/payment/success?enrollmentId=" in settled.headers["location"]
