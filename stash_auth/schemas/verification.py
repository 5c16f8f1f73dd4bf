from pydantic import EmailStr, model_validator

from stash_auth.core.verification import VerificationType
from stash_auth.schemas.common import CamelModel, MobileIn


class SendVerificationIn(CamelModel):
    type: VerificationType
    email: EmailStr | None = None
    mobile: MobileIn | None = None

    @model_validator(mode="after")
    def _target_present(self) -> "SendVerificationIn":
        if not (self.email or self.mobile):
            raise ValueError("Email or Mobile is required")
        if self.type == VerificationType.mobile and not self.mobile:
            raise ValueError("mobile is required for mobile verification")
        return self
