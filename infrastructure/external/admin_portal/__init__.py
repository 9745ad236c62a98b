"""Outbound sync with the admin portal."""
from .client import AdminPortalClient
from .exceptions import NotificationError

__all__ = ["AdminPortalClient", "NotificationError"]
