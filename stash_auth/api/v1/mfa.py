from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stash_auth.api.deps import TokenClaims, get_services, get_token_claims
from stash_auth.api.v1._helpers import Outcome, run_in_transaction
from stash_auth.core.db import get_db
from stash_auth.core.exceptions import AuditContext, BadRequestError, NotFoundError, UnauthorizedError
from stash_auth.core.security import (
    generate_totp_secret, qr_png_base64_from_text, totp_uri_from_secret, verify_password,
)
from stash_auth.core.verification import verify_totp
from stash_auth.models.audit_log import LogAction
from stash_auth.models.otp import OtpPurpose
from stash_auth.schemas.mfa import MfaCodeIn, MfaDisableIn, MfaMethod, TotpSetupOut
from stash_auth.services import Services

router = APIRouter(prefix="/mfa", tags=["mfa"])


async def _load(tx: AsyncSession, services: Services, auth_id: str):
    auth = await services.stores.auth.get(tx, auth_id)
    if auth is None or auth.profile_id is None:
        raise UnauthorizedError("Unauthorized")
    security = await services.stores.settings.get_security(tx, auth.id)
    if security is None:
        raise NotFoundError("Failed to find user settings")
    return auth, security


def _audit_for(auth) -> AuditContext:
    return AuditContext(email=auth.email or "", phone=auth.phone_number or "",
                        auth_id=auth.id, profile_id=auth.profile_id or "")


@router.post("/totp/setup")
async def totp_setup(
    claims: TokenClaims = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    async def work(tx: AsyncSession) -> Outcome:
        auth, security = await _load(tx, services, claims.auth_id)
        if security.was_totp_enabled:
            raise BadRequestError("TOTP MFA is already enabled", _audit_for(auth))

        # replaces any unconfirmed secret; stays inactive until /mfa/totp/enable
        secret = generate_totp_secret()
        await services.stores.otps.upsert(
            tx, auth_id=auth.id, profile_id=auth.profile_id, purpose=OtpPurpose.totp_mfa,
            target=auth.id, email=auth.email, secret=secret,
        )
        otpauth = totp_uri_from_secret(secret, name=auth.email or auth.id)
        out = TotpSetupOut(secret=secret, otpauth_url=otpauth, qr_base64_png=qr_png_base64_from_text(otpauth))
        return Outcome(message="TOTP secret created.", data=out.dump(), audit=_audit_for(auth))

    return await run_in_transaction(db, services, LogAction.mfa_setup, work)


@router.post("/totp/enable")
async def totp_enable(
    body: MfaCodeIn,
    claims: TokenClaims = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    async def work(tx: AsyncSession) -> Outcome:
        auth, security = await _load(tx, services, claims.auth_id)
        audit = _audit_for(auth)
        otp = await services.stores.otps.latest(
            tx, auth_id=auth.id, profile_id=auth.profile_id, purpose=OtpPurpose.totp_mfa, target=auth.id
        )
        if otp is None or not otp.secret:
            raise BadRequestError("No TOTP secret configured. Call /mfa/totp/setup first", audit)
        if not verify_totp(body.otp, otp.secret, services.settings.TOTP_VALID_WINDOW):
            raise BadRequestError("Invalid MFA code", audit)

        otp.verified = True
        security.was_totp_enabled = True
        return Outcome(message="TOTP MFA enabled.", data={"wasTotpEnabled": True}, audit=audit)

    return await run_in_transaction(db, services, LogAction.mfa_enable, work)


@router.post("/email/enable")
async def email_enable(
    claims: TokenClaims = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    async def work(tx: AsyncSession) -> Outcome:
        auth, security = await _load(tx, services, claims.auth_id)
        if not (auth.verifications or {}).get("email"):
            raise BadRequestError("Email must be verified before enabling email MFA", _audit_for(auth))
        security.was_email_enabled = True
        return Outcome(message="Email MFA enabled.", data={"wasEmailEnabled": True}, audit=_audit_for(auth))

    return await run_in_transaction(db, services, LogAction.mfa_enable, work)


@router.post("/disable")
async def mfa_disable(
    body: MfaDisableIn,
    claims: TokenClaims = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    async def work(tx: AsyncSession) -> Outcome:
        auth, security = await _load(tx, services, claims.auth_id)
        audit = _audit_for(auth)
        if not verify_password(body.password, auth.password_hash):
            raise UnauthorizedError("Invalid password", audit)

        if body.method == MfaMethod.totp:
            security.was_totp_enabled = False
            otp = await services.stores.otps.latest(
                tx, auth_id=auth.id, profile_id=auth.profile_id, purpose=OtpPurpose.totp_mfa, target=auth.id
            )
            if otp is not None:
                otp.deleted = True
        else:
            security.was_email_enabled = False
        return Outcome(
            message="MFA disabled.",
            data={"wasTotpEnabled": security.was_totp_enabled, "wasEmailEnabled": security.was_email_enabled},
            audit=audit,
        )

    return await run_in_transaction(db, services, LogAction.mfa_disable, work)
