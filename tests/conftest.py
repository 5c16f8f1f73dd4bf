import os
import tempfile

# settings are read at import time
_db_dir = tempfile.mkdtemp(prefix="stash-auth-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir}/test.db"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["PLAID_CLIENT_ID"] = "test-client"
os.environ["PLAID_SECRET_KEY"] = "test-plaid-secret"
os.environ["LOG_LEVEL"] = "WARNING"

import httpx
import pytest
from sqlalchemy import select

from stash_auth.api.deps import get_services
from stash_auth.core.config import settings
from stash_auth.core.db import Base, SessionLocal, engine
from stash_auth.core.exceptions import ProviderError
from stash_auth.main import app
from stash_auth.models import Auth
from stash_auth.services import Services
from stash_auth.services.stores import Stores

PASSWORD = "Passw0rd!"


class FakeNotifier:
    def __init__(self):
        self.sent: list[dict] = []

    async def send_code(self, *, email, phone, subject, code):
        self.sent.append({"email": email, "phone": phone, "subject": subject, "code": code})

    def last_code(self) -> str:
        return self.sent[-1]["code"]


class FakePlaid:
    def __init__(self):
        self.responses: dict[str, dict] = {}

    async def get_identity_verification(self, idv_id: str) -> dict:
        if idv_id not in self.responses:
            raise ProviderError("plaid", f"unknown identity verification {idv_id}")
        return self.responses[idv_id]


@pytest.fixture
async def db_setup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
def services() -> Services:
    return Services(settings=settings, stores=Stores(), plaid=FakePlaid(), notifier=FakeNotifier())


@pytest.fixture
async def client(db_setup, services):
    app.dependency_overrides[get_services] = lambda: services
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def session(db_setup):
    async with SessionLocal() as s:
        yield s


# --- helpers ---

async def onboard(client, unique_id="22177949415", country="nigeria", profile_type="personal"):
    r = await client.post("/onboard", json={"uniqueId": unique_id, "country": country, "profileType": profile_type})
    assert r.status_code == 201, r.text
    return r.json()["data"]


async def onboard_and_signup(
    client,
    unique_id="22177949415",
    email="ada@example.com",
    password=PASSWORD,
    phone="08012345678",
    profile_type="personal",
    **extra,
):
    await onboard(client, unique_id=unique_id, profile_type=profile_type)
    body = {
        "uniqueId": unique_id,
        "country": "nigeria",
        "profileType": profile_type,
        "firstName": "Ada",
        "lastName": "Obi",
        "email": email,
        "password": password,
        "mobile": {"phoneNumber": phone, "isoCode": "NG"},
        **extra,
    }
    r = await client.post("/signup", json=body)
    assert r.status_code == 201, r.text
    return r.json()["data"]


async def sign_in(client, username, password=PASSWORD, mfa_code=None):
    body = {"username": username, "password": password}
    if mfa_code is not None:
        body["mfaCode"] = mfa_code
    return await client.post("/signin", json=body)


async def token_for(client, username, password=PASSWORD) -> str:
    r = await sign_in(client, username, password)
    assert r.status_code == 200, r.text
    return r.json()["data"]["accessToken"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def load_auth(email: str) -> Auth:
    async with SessionLocal() as s:
        res = await s.execute(select(Auth).where(Auth.email == email))
        return res.scalar_one()
