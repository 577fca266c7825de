"""Users module — the User model, directory service and balance administration."""

from leavedesk.users.models import User

__all__ = ["User"]
