import enum
import uuid
import datetime as dt
from typing import Any
from sqlalchemy import String, Enum, Boolean, JSON, DateTime, Date, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from stash_auth.core.db import Base
from stash_auth.core.verification import OnboardStage, KycType


class ProfileKind(str, enum.Enum):
    personal = "personal"
    business = "business"
    admin = "admin"


def _default_verifications() -> dict[str, bool]:
    return {"email": False, "mobile": False, "unique_id": False}


class Auth(Base):
    __tablename__ = "auths"
    __table_args__ = (UniqueConstraint("unique_id", "country", name="uq_auth_unique_id_country"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str | None] = mapped_column(String(255), unique=True, index=True, nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(32), index=True, nullable=True)
    iso_code: Mapped[str | None] = mapped_column(String(8), nullable=True)

    country: Mapped[str] = mapped_column(String(32))
    unique_id: Mapped[str] = mapped_column(String(255))   # national ID (NG) or email
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    profile_type: Mapped[ProfileKind] = mapped_column(Enum(ProfileKind), default=ProfileKind.personal)
    profile_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    # whole-dict reassignment only; the JSON columns are not mutation-tracked
    verifications: Mapped[dict[str, bool]] = mapped_column(JSON, default=_default_verifications)
    verification_codes: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    onboard_stage: Mapped[OnboardStage | None] = mapped_column(Enum(OnboardStage), nullable=True)
    kyc_type: Mapped[KycType | None] = mapped_column(Enum(KycType), nullable=True)
    kyc_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    plaid_idv_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    referral_code: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # relayed by KYC providers
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    dob: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    address: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
