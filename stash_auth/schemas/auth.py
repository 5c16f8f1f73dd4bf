import datetime as dt
from typing import Any
from pydantic import EmailStr, Field, model_validator

from stash_auth.core.verification import Country, KycType, OnboardStage
from stash_auth.models.auth import ProfileKind
from stash_auth.schemas.common import CamelModel, MobileIn


class SignUpIn(CamelModel):
    unique_id: str = Field(..., min_length=1)
    employee_id: str | None = None
    profile_type: ProfileKind
    first_name: str | None = None
    last_name: str | None = None
    business_name: str | None = None
    country: Country
    email: EmailStr | None = None
    mobile: MobileIn | None = None
    password: str = Field(..., min_length=8, max_length=20)
    referral: str | None = None

    @model_validator(mode="after")
    def _required_by_country_and_type(self) -> "SignUpIn":
        if self.country == Country.nigeria:
            missing = [n for n in ("first_name", "last_name", "email") if not getattr(self, n)]
            if missing:
                raise ValueError(f"{', '.join(missing)} required for nigeria")
        else:
            # /onboard stores the email-shaped id lowercased
            self.unique_id = self.unique_id.lower()
        if self.profile_type == ProfileKind.business and not self.business_name:
            raise ValueError("business_name is required for business profiles")
        return self


class SignInIn(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=20)
    mfa_code: str | None = Field(None, min_length=1)


class ForgotPasswordIn(CamelModel):
    email: EmailStr | None = None
    phone_number: str | None = Field(None, pattern=r"^[0-9]{10,15}$")

    @model_validator(mode="after")
    def _one_identifier(self) -> "ForgotPasswordIn":
        if bool(self.email) == bool(self.phone_number):
            raise ValueError("Either email or phone number must be provided, not both")
        return self


class ResetPasswordIn(CamelModel):
    email: EmailStr | None = None
    phone_number: str | None = None
    verification_code: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=20)

    @model_validator(mode="after")
    def _some_identifier(self) -> "ResetPasswordIn":
        if not (self.email or self.phone_number):
            raise ValueError("Email or Phone number is required")
        return self


class ChangePasswordIn(CamelModel):
    current_password: str = Field(..., min_length=8)
    password: str = Field(..., min_length=8, max_length=20)


# --- output ---

class VerificationsOut(CamelModel):
    email: bool = False
    mobile: bool = False
    unique_id: bool = False


class MobileOut(CamelModel):
    phone_number: str | None = None
    iso_code: str | None = None


class AuthOut(CamelModel):
    id: str
    email: str | None = None
    mobile: MobileOut
    country: str
    unique_id: str
    profile_type: ProfileKind
    profile_id: str | None = None
    verifications: VerificationsOut
    onboard_stage: OnboardStage | None = None
    kyc_type: KycType | None = None
    referral_code: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    dob: dt.date | None = None

    @staticmethod
    def from_model(a) -> "AuthOut":
        return AuthOut(
            id=a.id,
            email=a.email,
            mobile=MobileOut(phone_number=a.phone_number, iso_code=a.iso_code),
            country=a.country,
            unique_id=a.unique_id,
            profile_type=a.profile_type,
            profile_id=a.profile_id,
            verifications=VerificationsOut(**(a.verifications or {})),
            onboard_stage=a.onboard_stage,
            kyc_type=a.kyc_type,
            referral_code=a.referral_code,
            first_name=a.first_name,
            last_name=a.last_name,
            dob=a.dob,
        )


class ProfileOut(CamelModel):
    id: str
    kind: ProfileKind
    verified: bool
    is_default: bool
    first_name: str | None = None
    last_name: str | None = None
    business_name: str | None = None
    api_public_key: str | None = None
    employee_id: str | None = None

    @staticmethod
    def from_model(p) -> "ProfileOut":
        return ProfileOut(
            id=p.id,
            kind=p.kind,
            verified=p.verified,
            is_default=p.is_default,
            first_name=p.first_name,
            last_name=p.last_name,
            business_name=p.business_name,
            api_public_key=p.api_public_key,
            employee_id=p.employee_id,
        )


def auth_data(auth, **extra: Any) -> dict[str, Any]:
    data = AuthOut.from_model(auth).dump()
    data.update(extra)
    return data
