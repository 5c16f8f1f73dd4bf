import datetime as dt
from typing import Any

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from stash_auth.api.deps import get_services
from stash_auth.api.v1._helpers import Outcome, run_in_transaction
from stash_auth.core.db import get_db
from stash_auth.core.exceptions import AuditContext, ConflictError
from stash_auth.core.verification import Country, KycType, select_kyc
from stash_auth.models.audit_log import LogAction
from stash_auth.models.auth import Auth
from stash_auth.schemas.auth import auth_data
from stash_auth.schemas.onboarding import BentoOnboardingIn, OnboardingIn
from stash_auth.services import Services

router = APIRouter(tags=["onboarding"])


@router.post("/onboard", status_code=201)
async def onboard(
    payload: OnboardingIn,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    stores = services.stores

    async def work(tx: AsyncSession) -> Outcome:
        # the nigerian unique id is a national id number, not an address
        audit = AuditContext(email="" if payload.country == Country.nigeria else payload.unique_id)
        existing = await stores.auth.find_by_unique_id(tx, payload.unique_id, payload.country.value)
        if existing is not None:
            raise ConflictError("user already onboarded", audit)

        plan = select_kyc(payload.country, payload.unique_id)
        if plan.email and await stores.auth.find_email_owner(tx, plan.email):
            raise ConflictError("Email already exists", audit)

        auth = await stores.auth.add(tx, Auth(
            unique_id=payload.unique_id,
            country=payload.country.value,
            profile_type=payload.profile_type,
            email=plan.email,
            kyc_type=plan.kyc_type,
            onboard_stage=plan.stage,
            referral_code=payload.reference,
            verifications={"email": False, "mobile": False, "unique_id": plan.unique_id_verified},
            verification_codes={},
        ))
        audit.auth_id = auth.id
        return Outcome(message="Onboarding success.", data=auth_data(auth), code=201, audit=audit)

    return await run_in_transaction(db, services, LogAction.onboard, work)


@router.post("/bento_onboard", status_code=201)
async def bento_onboard(
    payload: BentoOnboardingIn,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    # alternate entry point; nothing is recorded yet beyond the audit entry
    async def work(tx: AsyncSession) -> Outcome:
        return Outcome(message="Onboard success.", code=201)

    return await run_in_transaction(db, services, LogAction.onboard_bento, work)


def _parse_date(value: str | None) -> dt.date | None:
    if not value:
        return None
    try:
        return dt.date.fromisoformat(value)
    except ValueError:
        return None


def _relay(idv: dict[str, Any], idv_id: str) -> dict[str, Any]:
    user = idv.get("user") or {}
    name = user.get("name") or {}
    address = user.get("address") or {}
    return {
        "kycType": KycType.plaid.value,
        "kycData": {"kyc_check": idv.get("kyc_check"), "id": idv.get("id")},
        "plaid": idv_id,
        "mobile": {"phoneNumber": user.get("phone_number"), "isoCode": address.get("country")},
        "verifications": {"uniqueId": True, "mobile": True},
        "dob": user.get("date_of_birth"),
        "firstName": name.get("given_name"),
        "lastName": name.get("family_name"),
        "address": user.get("address"),
        "email": user.get("email_address"),
    }


@router.get("/verify_plaid_idv/{password}")
async def verify_plaid_idv(
    password: str = Path(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """`password` is the Plaid identity verification id returned by Link."""
    stores = services.stores

    async def work(tx: AsyncSession) -> Outcome:
        idv = await services.plaid.get_identity_verification(password)
        if not idv or idv.get("status") != "success":
            raise ConflictError("Failed to verify plaid idv")

        relay = _relay(idv, password)
        audit = AuditContext(email=relay["email"] or "", phone=relay["mobile"]["phoneNumber"] or "")

        # Link was opened with client_user_id = our auth id
        client_user_id = idv.get("client_user_id")
        auth = await stores.auth.get(tx, client_user_id) if client_user_id else None
        if auth is not None:
            audit.auth_id = auth.id
            auth.kyc_type = KycType.plaid
            auth.kyc_data = relay["kycData"]
            auth.plaid_idv_id = password
            phone = relay["mobile"]["phoneNumber"]
            if phone and not auth.phone_number and not await stores.auth.find_phone_owner(tx, phone, auth.id):
                auth.phone_number = phone
                auth.iso_code = relay["mobile"]["isoCode"]

            flags = dict(auth.verifications or {})
            flags["unique_id"] = True
            # plaid only vouches for the number it reported
            if phone and auth.phone_number == phone:
                flags["mobile"] = True
            auth.verifications = flags
            if relay["email"] and not auth.email and not await stores.auth.find_email_owner(tx, relay["email"]):
                auth.email = relay["email"].lower()
            auth.first_name = relay["firstName"] or auth.first_name
            auth.last_name = relay["lastName"] or auth.last_name
            auth.dob = _parse_date(relay["dob"]) or auth.dob
            auth.address = relay["address"] or auth.address

        return Outcome(message="verify plaid success.", data=relay, audit=audit)

    return await run_in_transaction(db, services, LogAction.plaid_verification, work)
