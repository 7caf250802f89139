from bilgeverse.models.user import User
from bilgeverse.models.period import Period
from bilgeverse.models.period_content import Announcement, Event, ItemRequest, StudentNote, StudentReport, Wish
from bilgeverse.models.ledger import ExperienceTransaction, PointReason, PointsTransaction
from bilgeverse.models.weekly_report import WeeklyReport, WeeklyReportQuestion
from bilgeverse.models.admin_audit_log import AdminAuditLog

__all__ = [
    "User",
    "Period",
    "Event",
    "ItemRequest",
    "Wish",
    "StudentNote",
    "StudentReport",
    "Announcement",
    "PointReason",
    "PointsTransaction",
    "ExperienceTransaction",
    "WeeklyReport",
    "WeeklyReportQuestion",
    "AdminAuditLog",
]
