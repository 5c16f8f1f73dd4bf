import json

from sqlalchemy import select

from stash_auth.core.db import SessionLocal
from stash_auth.models import AuditLog, Auth, LogAction
from tests.conftest import PASSWORD, load_auth, onboard, onboard_and_signup, sign_in


async def test_onboard_nigeria_uses_prembly(client):
    data = await onboard(client)
    assert data["kycType"] == "prembly"
    assert data["onboardStage"] == "on_boarding"
    assert data["verifications"]["uniqueId"] is True
    assert data["email"] is None


async def test_onboard_elsewhere_uses_plaid_and_the_email(client):
    data = await onboard(client, unique_id="Jane@Example.com", country="usa")
    assert data["kycType"] == "plaid"
    assert data["email"] == "jane@example.com"


async def test_onboard_outside_nigeria_needs_an_email(client):
    r = await client.post("/onboard", json={"uniqueId": "12345", "country": "uk", "profileType": "personal"})
    assert r.status_code == 400
    assert r.json()["action"] == "onboard"


async def test_onboard_twice(client):
    await onboard(client)
    r = await client.post("/onboard", json={
        "uniqueId": "22177949415", "country": "nigeria", "profileType": "personal",
    })
    assert r.status_code == 409
    assert r.json()["message"] == "user already onboarded"


async def test_onboard_accepts_snake_case(client):
    r = await client.post("/onboard", json={
        "unique_id": "22177949415", "country": "nigeria", "profile_type": "business",
    })
    assert r.status_code == 201
    assert r.json()["data"]["profileType"] == "business"


async def test_bento_onboard(client):
    r = await client.post("/bento_onboard", json={})
    assert r.status_code == 201
    assert r.json()["message"] == "Onboard success."


def _idv(client_user_id, status="success"):
    return {
        "id": "idv_123",
        "client_user_id": client_user_id,
        "status": status,
        "kyc_check": {"status": "success"},
        "user": {
            "phone_number": "+14155550011",
            "date_of_birth": "1990-05-17",
            "email_address": "jane@example.com",
            "name": {"given_name": "Jane", "family_name": "Doe"},
            "address": {"street": "1 Main St", "city": "Austin", "country": "US"},
        },
    }


async def test_verify_plaid_idv_applies_result(client, services):
    data = await onboard(client, unique_id="jane@example.com", country="usa")
    services.plaid.responses["idv_123"] = _idv(data["id"])

    r = await client.get("/verify_plaid_idv/idv_123")
    assert r.status_code == 200, r.text
    relay = r.json()["data"]
    assert relay["kycType"] == "plaid"
    assert relay["firstName"] == "Jane"
    assert relay["mobile"] == {"phoneNumber": "+14155550011", "isoCode": "US"}

    async with SessionLocal() as s:
        auth = (await s.execute(select(Auth).where(Auth.id == data["id"]))).scalar_one()
    assert auth.plaid_idv_id == "idv_123"
    assert auth.verifications["mobile"] is True
    assert auth.phone_number == "+14155550011"
    assert auth.dob.isoformat() == "1990-05-17"


async def test_verify_plaid_idv_not_successful(client, services):
    services.plaid.responses["idv_123"] = _idv("nobody", status="failed")
    r = await client.get("/verify_plaid_idv/idv_123")
    assert r.status_code == 409
    assert r.json()["message"] == "Failed to verify plaid idv"


async def test_verify_plaid_idv_provider_error(client):
    r = await client.get("/verify_plaid_idv/idv_missing")
    assert r.status_code == 500
    body = r.json()
    assert body["status"] == "fail"
    assert "idv_missing" in body["devError"]


async def test_plaid_does_not_verify_a_number_it_did_not_report(client, services):
    data = await onboard_and_signup(client)
    services.plaid.responses["idv_123"] = _idv(data["id"])

    r = await client.get("/verify_plaid_idv/idv_123")
    assert r.status_code == 200, r.text

    auth = await load_auth("ada@example.com")
    assert auth.phone_number == "08012345678"
    assert auth.verifications["unique_id"] is True
    assert auth.verifications["mobile"] is False


async def test_plaid_unreadable_response_is_a_fail_envelope(client, services):
    class BrokenPlaid:
        async def get_identity_verification(self, idv_id):
            return json.loads("<html>bad gateway</html>")

    services.plaid = BrokenPlaid()
    r = await client.get("/verify_plaid_idv/idv_123")
    assert r.status_code == 500
    body = r.json()
    assert body["status"] == "fail"
    assert body["action"] == "plaid_verification"
    assert "JSONDecodeError" in body["devError"]

    async with SessionLocal() as s:
        log = (await s.execute(select(AuditLog))).scalar_one()
    assert log.action == LogAction.plaid_verification
    assert log.code == 500


async def test_signup_outside_nigeria_ignores_unique_id_case(client):
    await onboard(client, unique_id="Jane@Example.com", country="usa")
    r = await client.post("/signup", json={
        "uniqueId": "jane@example.com", "country": "usa", "profileType": "personal", "password": PASSWORD,
    })
    assert r.status_code == 201, r.text
    assert r.json()["data"]["email"] == "jane@example.com"
    assert r.json()["data"]["uniqueId"] == "jane@example.com"

    r = await sign_in(client, "jane@example.com")
    assert r.status_code == 200
    assert r.json()["data"]["accessToken"]


async def test_signup_outside_nigeria_with_mixed_case_after_lowercase_onboard(client):
    await onboard(client, unique_id="sam@example.com", country="canada")
    r = await client.post("/signup", json={
        "uniqueId": "Sam@EXAMPLE.com", "country": "canada", "profileType": "personal", "password": PASSWORD,
    })
    assert r.status_code == 201, r.text
    assert (await sign_in(client, "sam@example.com")).status_code == 200


async def test_nigerian_onboarding_keeps_national_id_out_of_audit_email(client):
    await onboard(client)
    await onboard(client, unique_id="jane@example.com", country="usa")

    async with SessionLocal() as s:
        logs = (await s.execute(select(AuditLog).order_by(AuditLog.id))).scalars().all()
    assert [log.email for log in logs] == ["", "jane@example.com"]
