from datetime import datetime, timedelta, timezone

import pyotp
from sqlalchemy import func, select, update

from stash_auth.core.db import SessionLocal
from stash_auth.models import AuditLog, LogAction, LogStatus, Otp, OtpPurpose
from tests.conftest import (
    PASSWORD, bearer, load_auth, onboard, onboard_and_signup, sign_in, token_for,
)


async def _verify_email(client, services, email="ada@example.com"):
    r = await client.get("/verify_email", params={"email": email, "verificationCode": services.notifier.last_code()})
    assert r.status_code == 200, r.text


async def test_signup_then_signin(client, services):
    data = await onboard_and_signup(client)
    assert data["email"] == "ada@example.com"
    assert data["onboardStage"] == "signed_up"
    assert data["profile"]["kind"] == "personal"
    assert data["verifications"] == {"email": False, "mobile": False, "uniqueId": True}
    # signup mails the email verification code
    assert services.notifier.sent[-1]["email"] == "ada@example.com"

    r = await sign_in(client, "ada@example.com")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "success"
    assert body["action"] == "signin"
    assert body["data"]["accessToken"]
    assert body["data"]["isMFAAuthenticated"] is False

    # the mobile number is a username too
    r = await sign_in(client, "08012345678")
    assert r.status_code == 200


async def test_business_signup_returns_api_keys_once(client):
    data = await onboard_and_signup(client, profile_type="business", businessName="Acme Ltd")
    keys = data["profile"]["apiKeys"]
    assert keys["publicKey"].startswith("pk_")
    assert keys["secretKey"].startswith("sk_")

    r = await sign_in(client, "ada@example.com")
    assert "apiKeys" not in r.text


async def test_signup_without_onboarding_is_rejected(client):
    r = await client.post("/signup", json={
        "uniqueId": "99999999999", "country": "nigeria", "profileType": "personal",
        "firstName": "Ada", "lastName": "Obi", "email": "ada@example.com", "password": PASSWORD,
    })
    assert r.status_code == 400
    assert r.json()["message"] == "you have not onboarded"


async def test_duplicate_signup_and_email(client):
    await onboard_and_signup(client)
    r = await client.post("/signup", json={
        "uniqueId": "22177949415", "country": "nigeria", "profileType": "personal",
        "firstName": "Ada", "lastName": "Obi", "email": "ada@example.com", "password": PASSWORD,
    })
    assert r.status_code == 409

    await onboard(client, unique_id="33188050526")
    r = await client.post("/signup", json={
        "uniqueId": "33188050526", "country": "nigeria", "profileType": "personal",
        "firstName": "Bola", "lastName": "Ade", "email": "ADA@example.com", "password": PASSWORD,
    })
    assert r.status_code == 409
    assert r.json()["message"] == "Email already exists"


async def test_nigeria_signup_requires_names_and_email(client):
    await onboard(client)
    r = await client.post("/signup", json={
        "uniqueId": "22177949415", "country": "nigeria", "profileType": "personal", "password": PASSWORD,
    })
    assert r.status_code == 400
    assert r.json()["status"] == "fail"


async def test_signin_errors(client):
    await onboard_and_signup(client)
    r = await sign_in(client, "nobody@example.com")
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid credentials"

    r = await sign_in(client, "ada@example.com", "WrongPass1")
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid password"


async def test_totp_mfa_flow(client):
    await onboard_and_signup(client)
    token = await token_for(client, "ada@example.com")

    r = await client.post("/mfa/totp/setup", headers=bearer(token))
    assert r.status_code == 200, r.text
    secret = r.json()["data"]["secret"]
    assert r.json()["data"]["otpauthUrl"].startswith("otpauth://totp/")
    assert r.json()["data"]["qrBase64Png"]
    totp = pyotp.TOTP(secret)

    r = await client.post("/mfa/totp/enable", headers=bearer(token), json={"otp": totp.now()})
    assert r.status_code == 200, r.text

    r = await sign_in(client, "ada@example.com")
    assert r.status_code == 401
    assert r.json()["message"] == "MFA code required"

    valid = {totp.at(datetime.now(tz=timezone.utc) + timedelta(seconds=s)) for s in (-60, -30, 0, 30, 60)}
    wrong = next(c for c in ("000000", "111111", "222222", "333333") if c not in valid)
    r = await sign_in(client, "ada@example.com", mfa_code=wrong)
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid MFA code"
    assert "accessToken" not in r.text

    r = await sign_in(client, "ada@example.com", mfa_code=totp.now())
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["isMFAAuthenticated"] is True
    assert data["wasTotpEnabled"] is True

    r = await client.post("/mfa/disable", headers=bearer(data["accessToken"]),
                          json={"method": "totp", "password": PASSWORD})
    assert r.status_code == 200, r.text
    r = await sign_in(client, "ada@example.com")
    assert r.status_code == 200
    assert r.json()["data"]["wasTotpEnabled"] is False


async def test_failed_mfa_persists_nothing(client):
    await onboard_and_signup(client)
    token = await token_for(client, "ada@example.com")
    secret = (await client.post("/mfa/totp/setup", headers=bearer(token))).json()["data"]["secret"]
    await client.post("/mfa/totp/enable", headers=bearer(token), json={"otp": pyotp.TOTP(secret).now()})
    before = await load_auth("ada@example.com")

    await sign_in(client, "ada@example.com", mfa_code="12345678")

    after = await load_auth("ada@example.com")
    assert after.verification_codes == before.verification_codes
    async with SessionLocal() as s:
        otps = (await s.execute(select(Otp))).scalars().all()
    assert len(otps) == 1
    assert otps[0].purpose == OtpPurpose.totp_mfa


async def test_email_mfa_challenge_then_code(client, services):
    await onboard_and_signup(client)
    await _verify_email(client, services)
    token = await token_for(client, "ada@example.com")
    r = await client.post("/mfa/email/enable", headers=bearer(token))
    assert r.status_code == 200, r.text

    r = await sign_in(client, "ada@example.com")
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "MFA code sent"
    assert body["data"]["mfaRequired"] is True
    assert "accessToken" not in body["data"]
    code = services.notifier.last_code()

    r = await sign_in(client, "ada@example.com", mfa_code=code)
    assert r.status_code == 200
    assert r.json()["data"]["isMFAAuthenticated"] is True

    # one use per code
    r = await sign_in(client, "ada@example.com", mfa_code=code)
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid MFA code"


async def test_email_mfa_enable_requires_verified_email(client):
    await onboard_and_signup(client)
    token = await token_for(client, "ada@example.com")
    r = await client.post("/mfa/email/enable", headers=bearer(token))
    assert r.status_code == 400


async def test_expired_email_mfa_code(client, services):
    await onboard_and_signup(client)
    await _verify_email(client, services)
    token = await token_for(client, "ada@example.com")
    await client.post("/mfa/email/enable", headers=bearer(token))
    await sign_in(client, "ada@example.com")
    code = services.notifier.last_code()

    async with SessionLocal() as s, s.begin():
        await s.execute(update(Otp).values(expires_at=datetime.now(tz=timezone.utc) - timedelta(minutes=1)))

    r = await sign_in(client, "ada@example.com", mfa_code=code)
    assert r.status_code == 401
    assert r.json()["message"] == "MFA code has expired"


async def test_expired_email_mfa_code_accepted_when_not_enforced(client, services):
    services.settings = services.settings.model_copy(update={"EMAIL_MFA_ENFORCE_EXPIRY": False})
    await onboard_and_signup(client)
    await _verify_email(client, services)
    token = await token_for(client, "ada@example.com")
    await client.post("/mfa/email/enable", headers=bearer(token))
    await sign_in(client, "ada@example.com")
    code = services.notifier.last_code()

    async with SessionLocal() as s, s.begin():
        await s.execute(update(Otp).values(expires_at=datetime.now(tz=timezone.utc) - timedelta(minutes=1)))

    r = await sign_in(client, "ada@example.com", mfa_code=code)
    assert r.status_code == 200


async def test_forgot_and_reset_password(client, services):
    await onboard_and_signup(client)
    r = await client.post("/forgot_password", json={"email": "ada@example.com"})
    assert r.status_code == 200, r.text
    code = services.notifier.last_code()

    r = await client.post("/reset_password", json={
        "email": "ada@example.com", "verificationCode": "000000", "password": "NewPassw0rd",
    })
    assert r.status_code == 400
    assert r.json()["message"] == "Unauthorized: Invalid reset code."

    r = await client.post("/reset_password", json={
        "email": "ada@example.com", "verificationCode": code, "password": "NewPassw0rd",
    })
    assert r.status_code == 200
    assert r.json()["message"] == "password reset success"

    assert (await sign_in(client, "ada@example.com", "NewPassw0rd")).status_code == 200
    assert (await sign_in(client, "ada@example.com", PASSWORD)).status_code == 401

    # the code is gone once used
    r = await client.post("/reset_password", json={
        "email": "ada@example.com", "verificationCode": code, "password": "OtherPassw0rd",
    })
    assert r.json()["message"] == "Unauthorized: No reset code provided."


async def test_forgot_password_wants_exactly_one_identifier(client):
    r = await client.post("/forgot_password", json={"email": "ada@example.com", "phoneNumber": "08012345678"})
    assert r.status_code == 400
    body = r.json()
    assert body["status"] == "fail"
    assert body["action"] == "forgot_password"


async def test_change_password(client):
    await onboard_and_signup(client)
    token = await token_for(client, "ada@example.com")

    r = await client.put("/change_password", headers=bearer(token),
                         json={"currentPassword": "WrongPass1", "password": "NewPassw0rd"})
    assert r.status_code == 401

    r = await client.put("/change_password", headers=bearer(token),
                         json={"currentPassword": PASSWORD, "password": "NewPassw0rd"})
    assert r.status_code == 200
    assert (await sign_in(client, "ada@example.com", "NewPassw0rd")).status_code == 200


async def test_protected_route_without_token(client):
    r = await client.put("/change_password", json={"currentPassword": PASSWORD, "password": "NewPassw0rd"})
    assert r.status_code == 401
    assert r.json()["status"] == "fail"

    r = await client.put("/change_password", headers=bearer("garbage"),
                         json={"currentPassword": PASSWORD, "password": "NewPassw0rd"})
    assert r.json()["message"] == "Invalid or expired token"


async def test_every_request_is_audited(client):
    await onboard_and_signup(client)
    await sign_in(client, "ada@example.com", "WrongPass1")

    async with SessionLocal() as s:
        rows = (await s.execute(select(AuditLog).order_by(AuditLog.id))).scalars().all()
        count = (await s.execute(select(func.count()).select_from(AuditLog))).scalar_one()
    assert count == 3
    assert [r.action for r in rows] == [LogAction.onboard, LogAction.signup, LogAction.signin]
    assert rows[-1].status == LogStatus.fail
    assert rows[-1].code == 401
    assert rows[-1].email == "ada@example.com"
