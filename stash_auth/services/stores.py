"""
Store access objects.

They hold no session of their own: every call gets the transaction handle of
the request that is using it.
"""
import datetime as dt
from dataclasses import dataclass, field

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from stash_auth.core.exceptions import AuditContext
from stash_auth.models.auth import Auth
from stash_auth.models.profile import Profile
from stash_auth.models.setting import Setting, AuthSetting
from stash_auth.models.otp import Otp, OtpPurpose
from stash_auth.models.audit_log import AuditLog, LogAction, LogStatus


class AuthStore:
    async def get(self, tx: AsyncSession, auth_id: str) -> Auth | None:
        res = await tx.execute(select(Auth).where(Auth.id == auth_id, Auth.deleted.is_(False)))
        return res.scalar_one_or_none()

    async def find_by_email(self, tx: AsyncSession, email: str) -> Auth | None:
        res = await tx.execute(select(Auth).where(Auth.email == email.lower(), Auth.deleted.is_(False)))
        return res.scalar_one_or_none()

    async def find_by_username(self, tx: AsyncSession, username: str) -> Auth | None:
        """A username is either the email address or the mobile number."""
        q = select(Auth).where(
            or_(Auth.email == username.lower(), Auth.phone_number == username),
            Auth.deleted.is_(False),
        )
        res = await tx.execute(q.limit(1))
        return res.scalar_one_or_none()

    async def find_by_email_or_phone(
        self, tx: AsyncSession, email: str | None, phone_number: str | None
    ) -> Auth | None:
        conds = []
        if email:
            conds.append(Auth.email == email.lower())
        if phone_number:
            conds.append(Auth.phone_number == phone_number)
        if not conds:
            return None
        res = await tx.execute(select(Auth).where(or_(*conds), Auth.deleted.is_(False)).limit(1))
        return res.scalar_one_or_none()

    async def find_by_unique_id(self, tx: AsyncSession, unique_id: str, country: str) -> Auth | None:
        res = await tx.execute(select(Auth).where(Auth.unique_id == unique_id, Auth.country == country))
        return res.scalar_one_or_none()

    async def find_phone_owner(
        self, tx: AsyncSession, phone_number: str, exclude_id: str | None = None
    ) -> Auth | None:
        q = select(Auth).where(Auth.phone_number == phone_number)
        if exclude_id:
            q = q.where(Auth.id != exclude_id)
        res = await tx.execute(q.limit(1))
        return res.scalar_one_or_none()

    async def find_email_owner(self, tx: AsyncSession, email: str, exclude_id: str | None = None) -> Auth | None:
        q = select(Auth).where(Auth.email == email.lower())
        if exclude_id:
            q = q.where(Auth.id != exclude_id)
        res = await tx.execute(q.limit(1))
        return res.scalar_one_or_none()

    async def add(self, tx: AsyncSession, auth: Auth) -> Auth:
        tx.add(auth)
        await tx.flush()
        return auth


class ProfileStore:
    async def add(self, tx: AsyncSession, profile: Profile) -> Profile:
        tx.add(profile)
        await tx.flush()
        return profile


class SettingsStore:
    async def get_security(self, tx: AsyncSession, auth_id: str) -> AuthSetting | None:
        res = await tx.execute(select(AuthSetting).where(AuthSetting.auth_id == auth_id))
        return res.scalar_one_or_none()

    async def create_for(self, tx: AsyncSession, auth_id: str, profile_id: str) -> tuple[Setting, AuthSetting]:
        setting = Setting(auth_id=auth_id, profile_id=profile_id, appearance_mode="light", notifications=True)
        tx.add(setting)
        await tx.flush()
        security = AuthSetting(
            auth_id=auth_id,
            setting_id=setting.id,
            was_totp_enabled=False,
            was_email_enabled=False,
            face_touch_id=False,
            transfer_pin=False,
        )
        tx.add(security)
        await tx.flush()
        return setting, security


class OtpStore:
    async def latest(
        self, tx: AsyncSession, *, auth_id: str, profile_id: str, purpose: OtpPurpose, target: str
    ) -> Otp | None:
        q = (
            select(Otp)
            .where(
                Otp.auth_id == auth_id,
                Otp.profile_id == profile_id,
                Otp.purpose == purpose,
                Otp.target == target,
                Otp.deleted.is_(False),
            )
            .order_by(Otp.updated_at.desc())
            .limit(1)
        )
        res = await tx.execute(q)
        return res.scalar_one_or_none()

    async def upsert(
        self,
        tx: AsyncSession,
        *,
        auth_id: str,
        profile_id: str,
        purpose: OtpPurpose,
        target: str,
        email: str | None = None,
        code: str | None = None,
        secret: str | None = None,
        expires_at: dt.datetime | None = None,
    ) -> Otp:
        """Overwrite the outstanding record for this scope, or create it."""
        # soft-deleted rows are revived; the scope is unique
        res = await tx.execute(
            select(Otp).where(
                Otp.auth_id == auth_id,
                Otp.profile_id == profile_id,
                Otp.purpose == purpose,
                Otp.target == target,
            )
        )
        otp = res.scalar_one_or_none()
        if otp is None:
            otp = Otp(auth_id=auth_id, profile_id=profile_id, purpose=purpose, target=target)
            tx.add(otp)
        otp.email = email
        otp.code = code
        otp.secret = secret
        otp.expires_at = expires_at
        otp.verified = False
        otp.deleted = False
        await tx.flush()
        return otp


class AuditLogStore:
    async def record(
        self,
        tx: AsyncSession,
        *,
        action: LogAction,
        status: LogStatus,
        code: int,
        message: str,
        audit: AuditContext,
        user: str = "auth",
    ) -> AuditLog:
        entry = AuditLog(
            user=user,
            action=action,
            status=status,
            code=code,
            message=message,
            email=audit.email or "",
            phone=audit.phone or "",
            auth_id=audit.auth_id or "",
            profile_id=audit.profile_id or "",
        )
        tx.add(entry)
        await tx.flush()
        return entry


@dataclass
class Stores:
    auth: AuthStore = field(default_factory=AuthStore)
    profiles: ProfileStore = field(default_factory=ProfileStore)
    settings: SettingsStore = field(default_factory=SettingsStore)
    otps: OtpStore = field(default_factory=OtpStore)
    audit: AuditLogStore = field(default_factory=AuditLogStore)
