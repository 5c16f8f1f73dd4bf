from pydantic import EmailStr, Field, TypeAdapter, ValidationError, model_validator

from stash_auth.core.verification import Country
from stash_auth.models.auth import ProfileKind
from stash_auth.schemas.common import CamelModel

_email = TypeAdapter(EmailStr)


class OnboardingIn(CamelModel):
    profile_type: ProfileKind
    country: Country
    unique_id: str = Field(..., min_length=1)
    reference: str | None = None

    @model_validator(mode="after")
    def _unique_id_shape(self) -> "OnboardingIn":
        # outside Nigeria the unique id is the email address
        if self.country != Country.nigeria:
            try:
                _email.validate_python(self.unique_id)
            except ValidationError:
                raise ValueError("Unique ID must be an email address outside nigeria")
            self.unique_id = self.unique_id.lower()
        return self


class BentoOnboardingIn(CamelModel):
    reference: str | None = None
