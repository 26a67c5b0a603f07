"""Organization model and request authentication."""

from .dependencies import CurrentUser, get_current_user, verify_cron_secret
from .models import Organization
from .schemas import AuthenticatedUser

__all__ = [
    "Organization",
    "AuthenticatedUser",
    "CurrentUser",
    "get_current_user",
    "verify_cron_secret",
]
