from .job import Job, JobMeta
from .bulk_action_log import BulkActionLog
from .notification import Notification
from .directory import User, Organization

__all__ = ["Job", "JobMeta", "BulkActionLog", "Notification", "User", "Organization"]
