from stash_auth.models.auth import Auth, ProfileKind
from stash_auth.models.profile import Profile
from stash_auth.models.setting import Setting, AuthSetting
from stash_auth.models.otp import Otp, OtpPurpose
from stash_auth.models.audit_log import AuditLog, LogAction, LogStatus
