"""
Celery Task Modules

Background tasks for talent pool engagement:
- notifications.py: Outbox delivery of invitation and sourcing emails
"""

from talentpool.tasks.notifications import deliver_notification

__all__ = [
    "deliver_notification",
]
