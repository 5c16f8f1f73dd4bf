"""create auth tables

Revision ID: 5c1f0e2a9b71
Revises:
Create Date: 2026-10-19 10:12:44.201377

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c1f0e2a9b71'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PROFILE_KIND = sa.Enum("personal", "business", "admin", name="profilekind")
ONBOARD_STAGE = sa.Enum("on_boarding", "signed_up", "verification", name="onboardstage")
KYC_TYPE = sa.Enum("prembly", "plaid", name="kyctype")
OTP_PURPOSE = sa.Enum("email_mfa", "totp_mfa", name="otppurpose")
LOG_STATUS = sa.Enum("success", "fail", name="logstatus")
LOG_ACTION = sa.Enum(
    "signup", "signin", "forgot_password", "reset_password", "change_password",
    "send_verification", "onboard", "onboard_bento", "email_verification",
    "mobile_verification", "plaid_verification", "mfa_setup", "mfa_enable", "mfa_disable",
    name="logaction",
)


def upgrade() -> None:
    op.create_table(
        "auths",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("iso_code", sa.String(8), nullable=True),
        sa.Column("country", sa.String(32), nullable=False),
        sa.Column("unique_id", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("profile_type", PROFILE_KIND, nullable=False),
        sa.Column("profile_id", sa.String(36), nullable=True),
        sa.Column("verifications", sa.JSON(), nullable=False),
        sa.Column("verification_codes", sa.JSON(), nullable=False),
        sa.Column("onboard_stage", ONBOARD_STAGE, nullable=True),
        sa.Column("kyc_type", KYC_TYPE, nullable=True),
        sa.Column("kyc_data", sa.JSON(), nullable=True),
        sa.Column("plaid_idv_id", sa.String(64), nullable=True),
        sa.Column("referral_code", sa.String(64), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("dob", sa.Date(), nullable=True),
        sa.Column("address", sa.JSON(), nullable=True),
        sa.Column("deleted", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("unique_id", "country", name="uq_auth_unique_id_country"),
    )
    op.create_index("ix_auths_email", "auths", ["email"], unique=True)
    op.create_index("ix_auths_phone_number", "auths", ["phone_number"])

    op.create_table(
        "profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("auth_id", sa.String(36), sa.ForeignKey("auths.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", PROFILE_KIND, nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("business_name", sa.String(255), nullable=True),
        sa.Column("api_public_key", sa.String(128), nullable=True),
        sa.Column("api_secret_key", sa.String(128), nullable=True),
        sa.Column("employee_id", sa.String(64), nullable=True),
    )
    op.create_index("ix_profiles_auth_id", "profiles", ["auth_id"], unique=True)

    op.create_table(
        "settings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("auth_id", sa.String(36), sa.ForeignKey("auths.id", ondelete="CASCADE"), nullable=False),
        sa.Column("profile_id", sa.String(36), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("appearance_mode", sa.String(16), nullable=False),
        sa.Column("notifications", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_settings_auth_id", "settings", ["auth_id"])

    op.create_table(
        "auth_settings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("auth_id", sa.String(36), sa.ForeignKey("auths.id", ondelete="CASCADE"), nullable=False),
        sa.Column("setting_id", sa.String(36), sa.ForeignKey("settings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("was_totp_enabled", sa.Boolean(), nullable=False),
        sa.Column("was_email_enabled", sa.Boolean(), nullable=False),
        sa.Column("face_touch_id", sa.Boolean(), nullable=False),
        sa.Column("transfer_pin", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_auth_settings_auth_id", "auth_settings", ["auth_id"], unique=True)

    op.create_table(
        "otps",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("public_id", sa.String(48), nullable=False),
        sa.Column("auth_id", sa.String(36), sa.ForeignKey("auths.id", ondelete="CASCADE"), nullable=False),
        sa.Column("profile_id", sa.String(36), nullable=False),
        sa.Column("purpose", OTP_PURPOSE, nullable=False),
        sa.Column("target", sa.String(36), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("code", sa.String(16), nullable=True),
        sa.Column("secret", sa.String(64), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified", sa.Boolean(), nullable=False),
        sa.Column("deleted", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("auth_id", "profile_id", "purpose", "target", name="uq_otp_scope"),
    )
    op.create_index("ix_otps_auth_id", "otps", ["auth_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user", sa.String(32), nullable=False),
        sa.Column("action", LOG_ACTION, nullable=False),
        sa.Column("status", LOG_STATUS, nullable=False),
        sa.Column("code", sa.Integer(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("auth_id", sa.String(36), nullable=False),
        sa.Column("profile_id", sa.String(36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_index("ix_otps_auth_id", table_name="otps")
    op.drop_table("otps")
    op.drop_index("ix_auth_settings_auth_id", table_name="auth_settings")
    op.drop_table("auth_settings")
    op.drop_index("ix_settings_auth_id", table_name="settings")
    op.drop_table("settings")
    op.drop_index("ix_profiles_auth_id", table_name="profiles")
    op.drop_table("profiles")
    op.drop_index("ix_auths_phone_number", table_name="auths")
    op.drop_index("ix_auths_email", table_name="auths")
    op.drop_table("auths")
