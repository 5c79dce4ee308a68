import pytest
from httpx import ASGITransport, AsyncClient

from tokenflow.domain.registration import PendingRegistration, RegistrationStatus
from tokenflow.infrastructure.repositories import get_repositories


async def _seed_registration(AsyncSessionLocal, email="applicant@example.com"):
    async with AsyncSessionLocal() as session:
        repo = get_repositories(session)["registrations"]
        created = await repo.create(
            PendingRegistration(id="", email=email, first_name="Grace", last_name="H")
        )
    return created.id


async def _status_of(AsyncSessionLocal, registration_id):
    async with AsyncSessionLocal() as session:
        return (await get_repositories(session)["registrations"].get(registration_id)).status


def _token_from(url):
    return url.rsplit("/", 1)[1]


@pytest.mark.asyncio
async def test_approval_round_trip(test_app, sender):
    app, AsyncSessionLocal = test_app
    registration_id = await _seed_registration(AsyncSessionLocal)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as http:
        resp = await http.post(f"/api/v1/registrations/{registration_id}/approval-request")
        assert resp.status_code == 201
        issued = resp.json()
        assert issued["registrationId"] == registration_id
        approve = _token_from(issued["approveUrl"])
        assert sender.sent[-1]["to"] == ["admin@example.com", "ops@example.com"]

        resp = await http.get(f"/api/v1/registrations/approval/{approve}")
        assert resp.status_code == 200
        assert resp.json()["state"] == "usable"

        resp = await http.post(
            f"/api/v1/registrations/approval/{approve}", json={"action": "approve"}
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["subjectId"] == registration_id
        assert body["status"] == "approved"
        assert "processedAt" in body

        replay = await http.post(
            f"/api/v1/registrations/approval/{approve}", json={"action": "approve"}
        )
        assert replay.status_code == 400
        detail = replay.json()["detail"]
        assert detail["code"] == "already_processed"
        assert detail["previous"]["status"] == "approved"

    assert await _status_of(AsyncSessionLocal, registration_id) is RegistrationStatus.APPROVED


@pytest.mark.asyncio
async def test_sibling_link_is_dead_after_decision(test_app):
    app, AsyncSessionLocal = test_app
    registration_id = await _seed_registration(AsyncSessionLocal)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as http:
        issued = (
            await http.post(f"/api/v1/registrations/{registration_id}/approval-request")
        ).json()
        reject = _token_from(issued["rejectUrl"])
        approve = _token_from(issued["approveUrl"])

        resp = await http.post(
            f"/api/v1/registrations/approval/{reject}",
            json={"action": "reject", "reason": "incomplete"},
        )
        assert resp.status_code == 200
        assert resp.json()["reason"] == "incomplete"

        resp = await http.post(
            f"/api/v1/registrations/approval/{approve}", json={"action": "approve"}
        )
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == "already_processed"

    assert await _status_of(AsyncSessionLocal, registration_id) is RegistrationStatus.REJECTED


@pytest.mark.asyncio
async def test_error_mapping(test_app):
    app, AsyncSessionLocal = test_app
    registration_id = await _seed_registration(AsyncSessionLocal)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as http:
        issued = (
            await http.post(f"/api/v1/registrations/{registration_id}/approval-request")
        ).json()
        approve = _token_from(issued["approveUrl"])

        resp = await http.post(
            f"/api/v1/registrations/approval/{approve}", json={"action": "reject"}
        )
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == "validation_error"

        resp = await http.post(
            "/api/v1/registrations/approval/garbage", json={"action": "approve"}
        )
        assert resp.status_code == 404
        assert resp.json()["detail"]["code"] == "malformed_token"

        unknown = "approve_reg_1_" + "b" * 64 + "_2"
        resp = await http.get(f"/api/v1/registrations/approval/{unknown}")
        assert resp.status_code == 404
        assert resp.json()["detail"]["code"] == "token_not_found"

        resp = await http.post("/api/v1/registrations/missing/approval-request")
        assert resp.status_code == 404
        assert resp.json()["detail"]["code"] == "registration_not_found"
