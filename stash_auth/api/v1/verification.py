from fastapi import APIRouter, Depends, Query
from pydantic import EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from stash_auth.api.deps import TokenClaims, get_services, get_token_claims
from stash_auth.api.v1._helpers import Outcome, run_in_transaction
from stash_auth.core.db import get_db
from stash_auth.core.exceptions import (
    AuditContext, BadRequestError, ConflictError, NotFoundError, UnauthorizedError,
)
from stash_auth.core.verification import (
    Channel, OnboardStage, VerificationType, advance_stage, check_code, issue_code, mark_verified, with_code,
)
from stash_auth.models.audit_log import LogAction
from stash_auth.schemas.auth import auth_data
from stash_auth.schemas.verification import SendVerificationIn
from stash_auth.services import Services

router = APIRouter(tags=["verification"])


@router.put("/send_verification")
async def send_verification(
    payload: SendVerificationIn,
    claims: TokenClaims = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    stores = services.stores
    kind = payload.type

    async def work(tx: AsyncSession) -> Outcome:
        auth = await stores.auth.get(tx, claims.auth_id)
        if auth is None:
            raise NotFoundError("User not found")
        audit = AuditContext(email=auth.email or "", phone=auth.phone_number or "", auth_id=auth.id,
                             profile_id=auth.profile_id or "")
        if (auth.verifications or {}).get(kind.value):
            raise BadRequestError(f"{kind.value} is already verified", audit)

        if kind == VerificationType.mobile:
            phone = payload.mobile.phone_number
            if await stores.auth.find_phone_owner(tx, phone, exclude_id=auth.id):
                raise ConflictError("Mobile number is already associated with another account",
                                    AuditContext(phone=phone, auth_id=auth.id))
            if not auth.phone_number:
                auth.phone_number = phone
                auth.iso_code = payload.mobile.iso_code

        # a new code replaces whatever was pending for this channel
        issued = issue_code(ttl_minutes=services.settings.CODE_TTL_MINUTES)
        auth.verification_codes = with_code(auth.verification_codes, Channel(kind.value), issued)

        email = auth.email if kind == VerificationType.email else None
        phone_to = auth.phone_number if kind == VerificationType.mobile else None

        async def send() -> None:
            await services.notifier.send_code(
                email=email, phone=phone_to, subject=f"Verify your {kind.value}", code=issued.code
            )

        return Outcome(
            message="Verification code sent successfully.",
            data={"verificationSent": True},
            audit=audit,
            after_commit=send,
        )

    return await run_in_transaction(db, services, LogAction.send_verification, work)


@router.get("/verify_email")
async def verify_email(
    email: EmailStr = Query(...),
    verification_code: str = Query(..., alias="verificationCode", min_length=1),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    stores = services.stores

    async def work(tx: AsyncSession) -> Outcome:
        auth = await stores.auth.find_by_email(tx, email)
        if auth is None:
            raise NotFoundError("User not found", AuditContext(email=email))
        audit = AuditContext(email=email, auth_id=auth.id, profile_id=auth.profile_id or "")

        flags = auth.verifications or {}
        decision = check_code(
            (auth.verification_codes or {}).get(Channel.email.value),
            verification_code,
            channel=Channel.email,
            already_verified=bool(flags.get("email")),
        )
        if not decision.accepted:
            raise UnauthorizedError(decision.message, audit)

        auth.verifications, auth.verification_codes = mark_verified(
            auth.verifications, auth.verification_codes, VerificationType.email
        )
        auth.onboard_stage = advance_stage(auth.onboard_stage, OnboardStage.verification)
        return Outcome(message="Email verification successful.", data=auth_data(auth), audit=audit)

    return await run_in_transaction(db, services, LogAction.email_verification, work)


@router.get("/verify_mobile")
async def verify_mobile(
    phone_number: str = Query(..., alias="phoneNumber", min_length=1),
    iso_code: str = Query(..., alias="isoCode", min_length=1),
    verification_code: str = Query(..., alias="verificationCode", min_length=1),
    claims: TokenClaims = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    stores = services.stores

    async def work(tx: AsyncSession) -> Outcome:
        auth = await stores.auth.get(tx, claims.auth_id)
        if auth is None or auth.phone_number != phone_number:
            raise NotFoundError("User not found", AuditContext(phone=phone_number))
        audit = AuditContext(phone=phone_number, auth_id=auth.id, profile_id=auth.profile_id or "")

        flags = auth.verifications or {}
        decision = check_code(
            (auth.verification_codes or {}).get(Channel.mobile.value),
            verification_code,
            channel=Channel.mobile,
            already_verified=bool(flags.get("mobile")),
        )
        if not decision.accepted:
            raise UnauthorizedError(decision.message, audit)

        auth.verifications, auth.verification_codes = mark_verified(
            auth.verifications, auth.verification_codes, VerificationType.mobile
        )
        if iso_code and not auth.iso_code:
            auth.iso_code = iso_code
        auth.onboard_stage = advance_stage(auth.onboard_stage, OnboardStage.verification)
        return Outcome(message="Mobile verification successful.", data=auth_data(auth), audit=audit)

    return await run_in_transaction(db, services, LogAction.mobile_verification, work)
