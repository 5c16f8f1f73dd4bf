from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stash_auth.api.deps import TokenClaims, get_services, get_token_claims
from stash_auth.api.v1._helpers import Outcome, run_in_transaction
from stash_auth.core.db import get_db
from stash_auth.core.exceptions import (
    AuditContext, BadRequestError, ConflictError, NotFoundError, UnauthorizedError,
)
from stash_auth.core.security import create_access_token, hash_password, verify_password
from stash_auth.core.verification import (
    Channel, MfaResult, OnboardStage, advance_stage, check_code, check_mfa, issue_code,
    mfa_mode, MfaMode, with_code, without_code,
)
from stash_auth.models.audit_log import LogAction
from stash_auth.models.auth import ProfileKind
from stash_auth.models.otp import OtpPurpose
from stash_auth.schemas.auth import (
    ChangePasswordIn, ForgotPasswordIn, ProfileOut, ResetPasswordIn, SignInIn, SignUpIn, auth_data,
)
from stash_auth.services import Services
from stash_auth.services.profiles import build_profile

router = APIRouter(tags=["auth"])


@router.post("/signup", status_code=201)
async def signup(
    payload: SignUpIn,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    stores = services.stores
    phone = payload.mobile.phone_number if payload.mobile else ""

    async def work(tx: AsyncSession) -> Outcome:
        # the unique id is reserved by /onboard; sign-up completes that record
        auth = await stores.auth.find_by_unique_id(tx, payload.unique_id, payload.country.value)
        audit = AuditContext(email=payload.email or "", phone=phone)
        if auth is None:
            raise BadRequestError("you have not onboarded", audit)
        audit.auth_id = auth.id
        if auth.password_hash:
            raise ConflictError("Account already signed up", audit)

        email = (payload.email or auth.email or "").lower()
        if not email:
            raise BadRequestError("Email is required", audit)
        if await stores.auth.find_email_owner(tx, email, exclude_id=auth.id):
            raise ConflictError("Email already exists", audit)
        if payload.mobile and await stores.auth.find_phone_owner(tx, payload.mobile.phone_number, exclude_id=auth.id):
            raise ConflictError("Mobile number is already associated with another account", audit)

        issued = issue_code(ttl_minutes=services.settings.CODE_TTL_MINUTES)
        auth.email = email
        if payload.mobile:
            auth.phone_number = payload.mobile.phone_number
            auth.iso_code = payload.mobile.iso_code
        auth.password_hash = hash_password(payload.password)
        auth.profile_type = payload.profile_type
        auth.first_name = payload.first_name or auth.first_name
        auth.last_name = payload.last_name or auth.last_name
        auth.onboard_stage = advance_stage(auth.onboard_stage, OnboardStage.signed_up)
        auth.verification_codes = with_code(auth.verification_codes, Channel.email, issued)
        auth.referral_code = payload.referral or auth.referral_code

        profile = await stores.profiles.add(tx, build_profile(payload.profile_type, auth.id, payload.model_dump()))
        auth.profile_id = profile.id
        audit.profile_id = profile.id
        await stores.settings.create_for(tx, auth.id, profile.id)

        profile_data = ProfileOut.from_model(profile).dump()
        if profile.kind == ProfileKind.business:
            # the only time the secret key leaves the service
            profile_data["apiKeys"] = {"publicKey": profile.api_public_key, "secretKey": profile.api_secret_key}

        async def send() -> None:
            await services.notifier.send_code(email=email, phone=None, subject="Verify your email", code=issued.code)

        return Outcome(
            message="Signup success.",
            data=auth_data(auth, profile=profile_data),
            code=201,
            audit=audit,
            after_commit=send,
        )

    return await run_in_transaction(db, services, LogAction.signup, work)


@router.post("/signin")
async def signin(
    payload: SignInIn,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    stores = services.stores
    cfg = services.settings

    async def work(tx: AsyncSession) -> Outcome:
        auth = await stores.auth.find_by_username(tx, payload.username)
        if auth is None or not auth.password_hash:
            raise BadRequestError("Invalid credentials")
        audit = AuditContext(
            email=auth.email or "", phone=auth.phone_number or "",
            auth_id=auth.id, profile_id=auth.profile_id or "",
        )
        if not verify_password(payload.password, auth.password_hash):
            raise UnauthorizedError("Invalid password", audit)

        security = await stores.settings.get_security(tx, auth.id)
        if security is None or auth.profile_id is None:
            raise NotFoundError("Failed to find user settings", audit)

        mode = mfa_mode(security.was_totp_enabled, security.was_email_enabled)
        otp = None
        if mode != MfaMode.none:
            purpose = OtpPurpose.totp_mfa if mode == MfaMode.totp else OtpPurpose.email_mfa
            otp = await stores.otps.latest(
                tx, auth_id=auth.id, profile_id=auth.profile_id, purpose=purpose, target=auth.id
            )
        outcome = check_mfa(
            mode,
            payload.mfa_code,
            totp_secret=otp.secret if otp and mode == MfaMode.totp else None,
            email_code=otp.code if otp and not otp.verified else None,
            email_code_expires_at=otp.expires_at if otp else None,
            enforce_email_expiry=cfg.EMAIL_MFA_ENFORCE_EXPIRY,
            totp_valid_window=cfg.TOTP_VALID_WINDOW,
        )

        if outcome.result == MfaResult.challenge:
            issued = issue_code(ttl_minutes=cfg.CODE_TTL_MINUTES)
            await stores.otps.upsert(
                tx,
                auth_id=auth.id,
                profile_id=auth.profile_id,
                purpose=OtpPurpose.email_mfa,
                target=auth.id,
                email=auth.email,
                code=issued.code,
                expires_at=issued.expiration,
            )
            email = auth.email

            async def send() -> None:
                await services.notifier.send_code(email=email, phone=None, subject="Your sign-in code", code=issued.code)

            return Outcome(
                message=outcome.message,
                data={"mfaRequired": True, "verificationSent": True, "wasEmailEnabled": True},
                audit=audit,
                after_commit=send,
            )
        if not outcome.may_sign_in:
            raise UnauthorizedError(outcome.message, audit)

        if mode == MfaMode.email and otp is not None:
            otp.verified = True   # one use per code

        token = create_access_token(
            subject=auth.id,
            extra={
                "username": auth.email,
                "mfaEnabled": mode != MfaMode.none,
                "mfaCompleted": outcome.completed,
            },
        )
        return Outcome(
            message="Sign in success.",
            data={
                "auth": auth_data(auth),
                "accessToken": token,
                "wasTotpEnabled": security.was_totp_enabled,
                "wasEmailEnabled": security.was_email_enabled,
                "isMFAAuthenticated": outcome.completed,
            },
            audit=audit,
        )

    return await run_in_transaction(db, services, LogAction.signin, work)


@router.post("/forgot_password")
async def forgot_password(
    payload: ForgotPasswordIn,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    stores = services.stores

    async def work(tx: AsyncSession) -> Outcome:
        auth = await stores.auth.find_by_email_or_phone(tx, payload.email, payload.phone_number)
        if auth is None:
            raise BadRequestError("User not found")

        issued = issue_code(ttl_minutes=services.settings.CODE_TTL_MINUTES)
        auth.verification_codes = with_code(auth.verification_codes, Channel.reset_password, issued)
        email = auth.email if payload.email else None
        phone = auth.phone_number

        async def send() -> None:
            await services.notifier.send_code(email=email, phone=phone, subject="Reset your password", code=issued.code)

        return Outcome(
            message="Password reset code sent.",
            audit=AuditContext(email=auth.email or "", phone=auth.phone_number or "", auth_id=auth.id),
            after_commit=send,
        )

    return await run_in_transaction(db, services, LogAction.forgot_password, work)


@router.post("/reset_password")
async def reset_password(
    payload: ResetPasswordIn,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    stores = services.stores

    async def work(tx: AsyncSession) -> Outcome:
        auth = await stores.auth.find_by_email_or_phone(tx, payload.email, payload.phone_number)
        if auth is None:
            raise BadRequestError("User not found")
        audit = AuditContext(email=auth.email or "", phone=auth.phone_number or "", auth_id=auth.id)

        decision = check_code(
            (auth.verification_codes or {}).get(Channel.reset_password.value),
            payload.verification_code,
            channel=Channel.reset_password,
        )
        if not decision.accepted:
            raise BadRequestError(decision.message, audit)

        auth.password_hash = hash_password(payload.password)
        auth.verification_codes = without_code(auth.verification_codes, Channel.reset_password)
        return Outcome(message="password reset success", data=auth_data(auth), audit=audit)

    return await run_in_transaction(db, services, LogAction.reset_password, work)


@router.put("/change_password")
async def change_password(
    payload: ChangePasswordIn,
    claims: TokenClaims = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    stores = services.stores

    async def work(tx: AsyncSession) -> Outcome:
        auth = await stores.auth.get(tx, claims.auth_id)
        if auth is None:
            raise UnauthorizedError("Unauthorized")
        audit = AuditContext(email=auth.email or "", phone=auth.phone_number or "", auth_id=auth.id)
        if not verify_password(payload.current_password, auth.password_hash):
            raise UnauthorizedError("Current password is incorrect", audit)

        auth.password_hash = hash_password(payload.password)
        return Outcome(message="password change success", data=auth_data(auth), audit=audit)

    return await run_in_transaction(db, services, LogAction.change_password, work)
