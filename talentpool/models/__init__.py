from talentpool.models.user import User
from talentpool.models.job import Job
from talentpool.models.application import Application
from talentpool.models.invitation import JobInvitation
from talentpool.models.interaction import TalentPoolInteraction
from talentpool.models.notification import NotificationOutbox

__all__ = [
    "User",
    "Job",
    "Application",
    "JobInvitation",
    "TalentPoolInteraction",
    "NotificationOutbox",
]
