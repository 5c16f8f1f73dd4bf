"""
Verification / MFA decision rules.

Everything here is pure: callers pass in the stored state of an account and
the submitted input, and get back a typed outcome plus the next state.
Persistence is done by the request handlers.
"""
import enum
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import pyotp

CODE_LENGTH = 6
CODE_TTL_MINUTES = 15


class Channel(str, enum.Enum):
    email = "email"
    mobile = "mobile"
    reset_password = "reset_password"


class VerificationType(str, enum.Enum):
    """Channels a user can ask a verification code for."""
    email = "email"
    mobile = "mobile"


class Rejection(str, enum.Enum):
    already_verified = "already_verified"
    no_code = "no_code"
    invalid_code = "invalid_code"
    expired_code = "expired_code"


class OnboardStage(str, enum.Enum):
    on_boarding = "on_boarding"
    signed_up = "signed_up"
    verification = "verification"


class KycType(str, enum.Enum):
    prembly = "prembly"   # national ID check, Nigeria
    plaid = "plaid"


class Country(str, enum.Enum):
    nigeria = "nigeria"
    usa = "usa"
    uk = "uk"
    canada = "canada"


class MfaMode(str, enum.Enum):
    none = "none"
    totp = "totp"
    email = "email"


class MfaResult(str, enum.Enum):
    not_required = "not_required"
    passed = "passed"
    required = "required"     # enabled but no code submitted
    challenge = "challenge"   # email MFA: a fresh code must be issued and sent
    failed = "failed"
    expired = "expired"


_MESSAGES = {
    Channel.email: {
        Rejection.already_verified: "Email is already verified.",
        Rejection.no_code: "No email verification code was issued.",
        Rejection.invalid_code: "Invalid verification code.",
        Rejection.expired_code: "Verification code has expired.",
    },
    Channel.mobile: {
        Rejection.already_verified: "Mobile is already verified.",
        Rejection.no_code: "No mobile verification code was issued.",
        Rejection.invalid_code: "Invalid verification code.",
        Rejection.expired_code: "Verification code has expired.",
    },
    Channel.reset_password: {
        Rejection.no_code: "Unauthorized: No reset code provided.",
        Rejection.invalid_code: "Unauthorized: Invalid reset code.",
        Rejection.expired_code: "Unauthorized: Reset code has expired.",
    },
}


@dataclass(frozen=True)
class Decision:
    accepted: bool
    reason: Rejection | None = None
    message: str = ""

    @classmethod
    def accept(cls) -> "Decision":
        return cls(accepted=True)

    @classmethod
    def reject(cls, channel: Channel, reason: Rejection) -> "Decision":
        return cls(accepted=False, reason=reason, message=_MESSAGES[channel][reason])


@dataclass(frozen=True)
class IssuedCode:
    code: str
    expiration: datetime

    def as_dict(self) -> dict[str, str]:
        return {"code": self.code, "expiration": self.expiration.isoformat()}


@dataclass(frozen=True)
class KycPlan:
    kyc_type: KycType
    stage: OnboardStage
    email: str | None
    unique_id_verified: bool


@dataclass(frozen=True)
class MfaOutcome:
    result: MfaResult
    message: str = ""

    @property
    def completed(self) -> bool:
        return self.result == MfaResult.passed

    @property
    def may_sign_in(self) -> bool:
        return self.result in (MfaResult.not_required, MfaResult.passed)


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_utc(value: datetime | str) -> datetime:
    # sqlite hands datetimes back naive; they are stored as UTC
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def generate_code(length: int = CODE_LENGTH) -> str:
    first = str(secrets.randbelow(9) + 1)
    return first + "".join(str(secrets.randbelow(10)) for _ in range(length - 1))


def issue_code(now: datetime | None = None, ttl_minutes: int = CODE_TTL_MINUTES) -> IssuedCode:
    now = now or utcnow()
    return IssuedCode(code=generate_code(), expiration=now + timedelta(minutes=ttl_minutes))


def with_code(codes: dict[str, Any] | None, channel: Channel, issued: IssuedCode) -> dict[str, Any]:
    """Return a new code map where `channel` holds only `issued`."""
    updated = dict(codes or {})
    updated[channel.value] = issued.as_dict()
    return updated


def without_code(codes: dict[str, Any] | None, channel: Channel) -> dict[str, Any]:
    updated = dict(codes or {})
    updated.pop(channel.value, None)
    return updated


def check_code(
    stored: dict[str, Any] | None,
    submitted: str,
    *,
    channel: Channel,
    already_verified: bool = False,
    now: datetime | None = None,
) -> Decision:
    """Decide whether `submitted` consumes the code stored for `channel`."""
    if already_verified and channel != Channel.reset_password:
        return Decision.reject(channel, Rejection.already_verified)
    if not stored or not stored.get("code"):
        return Decision.reject(channel, Rejection.no_code)
    if str(stored["code"]) != str(submitted):
        return Decision.reject(channel, Rejection.invalid_code)
    now = now or utcnow()
    if now > as_utc(stored["expiration"]):
        return Decision.reject(channel, Rejection.expired_code)
    return Decision.accept()


def mark_verified(
    verifications: dict[str, bool] | None,
    codes: dict[str, Any] | None,
    channel: VerificationType,
) -> tuple[dict[str, bool], dict[str, Any]]:
    """Flip the channel flag on and drop its consumed code. Flags are never turned off."""
    flags = dict(verifications or {})
    flags[channel.value] = True
    return flags, without_code(codes, Channel(channel.value))


_STAGE_ORDER = [OnboardStage.on_boarding, OnboardStage.signed_up, OnboardStage.verification]


def advance_stage(current: OnboardStage | None, target: OnboardStage) -> OnboardStage:
    if current is None:
        return target
    if _STAGE_ORDER.index(target) < _STAGE_ORDER.index(current):
        return current
    return target


def select_kyc(country: Country, unique_id: str) -> KycPlan:
    if country == Country.nigeria:
        return KycPlan(
            kyc_type=KycType.prembly,
            stage=OnboardStage.on_boarding,
            email=None,
            unique_id_verified=True,
        )
    # outside Nigeria the unique id is the user's email address
    return KycPlan(
        kyc_type=KycType.plaid,
        stage=OnboardStage.on_boarding,
        email=unique_id.lower(),
        unique_id_verified=True,
    )


# --- MFA ---

def mfa_mode(was_totp_enabled: bool, was_email_enabled: bool) -> MfaMode:
    if was_totp_enabled:
        return MfaMode.totp
    if was_email_enabled:
        return MfaMode.email
    return MfaMode.none


def verify_totp(code: str, secret: str, valid_window: int = 1) -> bool:
    return pyotp.TOTP(secret).verify(code, valid_window=valid_window)


def check_mfa(
    mode: MfaMode,
    submitted: str | None,
    *,
    totp_secret: str | None = None,
    email_code: str | None = None,
    email_code_expires_at: datetime | None = None,
    enforce_email_expiry: bool = True,
    totp_valid_window: int = 1,
    now: datetime | None = None,
) -> MfaOutcome:
    if mode == MfaMode.none:
        return MfaOutcome(MfaResult.not_required)

    if mode == MfaMode.totp:
        if not submitted:
            return MfaOutcome(MfaResult.required, "MFA code required")
        if not totp_secret or not verify_totp(submitted, totp_secret, totp_valid_window):
            return MfaOutcome(MfaResult.failed, "Invalid MFA code")
        return MfaOutcome(MfaResult.passed)

    if not submitted:
        return MfaOutcome(MfaResult.challenge, "MFA code sent")
    if not email_code or str(email_code) != submitted:
        return MfaOutcome(MfaResult.failed, "Invalid MFA code")
    if enforce_email_expiry and email_code_expires_at is not None:
        if (now or utcnow()) > as_utc(email_code_expires_at):
            return MfaOutcome(MfaResult.expired, "MFA code has expired")
    return MfaOutcome(MfaResult.passed)
