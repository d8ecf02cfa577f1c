"""
Notification Outbox Model - Pending outbound email

Rows are written in the same transaction as the invitation or sourced
application they announce, then delivered by a Celery worker. Delivery
state never feeds back into the primary record.

Status Flow:
    pending → sent
    pending → failed (retries exhausted)

A pending row with dispatched_at set is owned by the worker; the periodic
flush only picks it up again once that hand-off has gone stale.
"""

from sqlalchemy import Column, String, Integer, Text, DateTime, JSON
from talentpool.database import Base, utcnow
import uuid

KIND_JOB_INVITATION = "job_invitation"
KIND_SOURCED_TO_PIPELINE = "sourced_to_pipeline"

OUTBOX_PENDING = "pending"
OUTBOX_SENT = "sent"
OUTBOX_FAILED = "failed"


class NotificationOutbox(Base):
    __tablename__ = "notification_outbox"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    kind = Column(String(40), nullable=False)
    recipient = Column(String(255), nullable=False)
    candidate_id = Column(String, nullable=True, index=True)
    related_id = Column(String, nullable=True)  # invitation or application id
    subject = Column(String(500), nullable=False)
    body = Column(Text, nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    status = Column(String(20), nullable=False, default=OUTBOX_PENDING, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    dispatched_at = Column(DateTime, nullable=True)  # last hand-off to the broker
    sent_at = Column(DateTime, nullable=True)
