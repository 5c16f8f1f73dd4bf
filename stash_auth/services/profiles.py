from collections.abc import Callable
from typing import Any

from stash_auth.core.security import generate_api_key_pair
from stash_auth.models.auth import ProfileKind
from stash_auth.models.profile import Profile


def _personal(auth_id: str, data: dict[str, Any]) -> Profile:
    return Profile(
        auth_id=auth_id,
        kind=ProfileKind.personal,
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
    )


def _business(auth_id: str, data: dict[str, Any]) -> Profile:
    public_key, secret_key = generate_api_key_pair()
    return Profile(
        auth_id=auth_id,
        kind=ProfileKind.business,
        business_name=data.get("business_name"),
        api_public_key=public_key,
        api_secret_key=secret_key,
    )


def _admin(auth_id: str, data: dict[str, Any]) -> Profile:
    return Profile(
        auth_id=auth_id,
        kind=ProfileKind.admin,
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
        employee_id=data.get("employee_id"),
    )


_BUILDERS: dict[ProfileKind, Callable[[str, dict[str, Any]], Profile]] = {
    ProfileKind.personal: _personal,
    ProfileKind.business: _business,
    ProfileKind.admin: _admin,
}


def build_profile(kind: ProfileKind, auth_id: str, data: dict[str, Any]) -> Profile:
    """Create the (unsaved) profile row for `kind`."""
    profile = _BUILDERS[kind](auth_id, data)
    profile.verified = True
    profile.is_default = True
    return profile
