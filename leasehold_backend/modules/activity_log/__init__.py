"""Activity feed (audit trail) collaborator."""

from .models import Activity, ActivityType
from .services import ActivityLogData, log_activity

__all__ = [
    "Activity",
    "ActivityType",
    "ActivityLogData",
    "log_activity",
]
