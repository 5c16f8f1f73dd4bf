from dataclasses import dataclass

from stash_auth.core.config import Settings
from stash_auth.services.notifier import Notifier
from stash_auth.services.plaid import PlaidClient
from stash_auth.services.stores import Stores


@dataclass
class Services:
    """Everything a request handler talks to besides its transaction."""
    settings: Settings
    stores: Stores
    plaid: PlaidClient
    notifier: Notifier


def build_services(settings: Settings) -> Services:
    return Services(
        settings=settings,
        stores=Stores(),
        plaid=PlaidClient(settings),
        notifier=Notifier(settings),
    )
