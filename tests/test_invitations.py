"""
Tests for the invitation lifecycle.

Run with: pytest tests/test_invitations.py -v
"""
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import func, select, update

from talentpool.models import Application, Job, JobInvitation, NotificationOutbox, TalentPoolInteraction
from talentpool.services.errors import AlreadyActioned, Expired, InvalidState, NotFound
from talentpool.services.invitations import (
    accept_invitation,
    create_invitation,
    decline_invitation,
    expire_stale_invitations,
    mark_applied,
    view_invitation,
)
from talentpool.services.sourcing import source_candidate

from tests.conftest import NOW


async def invite(db, candidate_id="cand-alice", job_id="job-backend", now=NOW, **kwargs):
    return await create_invitation(
        db,
        job_id=job_id,
        candidate_id=candidate_id,
        inviter_id="admin-1",
        inviter_name="Riley Recruiter",
        now=now,
        **kwargs,
    )


async def ledger_types(db, candidate_id="cand-alice"):
    result = await db.execute(
        select(TalentPoolInteraction.interaction_type)
        .where(TalentPoolInteraction.candidate_id == candidate_id)
        .order_by(TalentPoolInteraction.created_at)
    )
    return [row[0] for row in result.all()]


async def invitation_count(db, candidate_id="cand-alice", job_id="job-backend"):
    result = await db.execute(
        select(func.count(JobInvitation.id)).where(
            JobInvitation.candidate_id == candidate_id,
            JobInvitation.job_id == job_id,
        )
    )
    return result.scalar()


async def close_job(db, job_id="job-backend"):
    await db.execute(update(Job).where(Job.id == job_id).values(status="Closed"))
    await db.commit()


def transitions(status):
    return REGISTRY.get_sample_value("invitation_transitions_total", {"to_status": status}) or 0.0


class TestCreateInvitation:
    """Preconditions and side effects of inviting a candidate."""

    @pytest.mark.asyncio
    async def test_creates_sent_invitation(self, db, seed, dispatch):
        invitation = await invite(db, message="Loved your pipeline work")

        assert invitation.status == "sent"
        assert len(invitation.invitation_token) == 64
        int(invitation.invitation_token, 16)  # hex encoded
        assert invitation.sent_at == NOW
        assert invitation.expires_at == NOW + timedelta(days=30)
        assert invitation.invited_by == "admin-1"

        assert await ledger_types(db) == ["sent_invitation"]

        outbox = (await db.execute(select(NotificationOutbox))).scalars().all()
        assert len(outbox) == 1
        assert outbox[0].status == "pending"
        assert outbox[0].recipient == "alice@example.com"
        assert outbox[0].related_id == invitation.id
        assert invitation.invitation_token in outbox[0].body
        assert "Loved your pipeline work" in outbox[0].body
        dispatch.assert_called_once_with([outbox[0].id])

    @pytest.mark.asyncio
    async def test_tokens_are_unique(self, db, seed):
        first = await invite(db, candidate_id="cand-alice")
        second = await invite(db, candidate_id="cand-bob")
        assert first.invitation_token != second.invitation_token

    @pytest.mark.asyncio
    async def test_template_subject_and_content(self, db, seed):
        invitation = await invite(
            db, template_id="tpl-1", subject="A role for you", content="Custom body"
        )
        assert invitation.extra["templateId"] == "tpl-1"

        entry = (await db.execute(select(NotificationOutbox))).scalar_one()
        assert entry.subject == "A role for you"
        assert entry.body.startswith("Custom body")

    @pytest.mark.asyncio
    async def test_unknown_candidate(self, db, seed):
        with pytest.raises(NotFound):
            await invite(db, candidate_id="nobody")

    @pytest.mark.asyncio
    async def test_unknown_job(self, db, seed):
        with pytest.raises(NotFound):
            await invite(db, job_id="no-such-job")

    @pytest.mark.asyncio
    async def test_admin_cannot_be_invited(self, db, seed):
        with pytest.raises(InvalidState) as exc_info:
            await invite(db, candidate_id="admin-1")
        assert exc_info.value.reason == "admin_candidate"

    @pytest.mark.asyncio
    async def test_inactive_job(self, db, seed):
        with pytest.raises(InvalidState) as exc_info:
            await invite(db, job_id="job-closed")
        assert exc_info.value.reason == "job_inactive"
        assert await ledger_types(db) == []

    @pytest.mark.asyncio
    async def test_existing_application_blocks(self, db, seed, dispatch):
        db.add(Application(job_id="job-backend", user_id="cand-alice", status="Applied", applied_at=NOW))
        await db.commit()

        with pytest.raises(InvalidState) as exc_info:
            await invite(db)
        assert exc_info.value.reason == "already_applied"
        assert "already has an application" in exc_info.value.message
        assert await invitation_count(db) == 0
        dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_open_invitation_blocks_duplicate(self, db, seed):
        await invite(db)

        with pytest.raises(InvalidState) as exc_info:
            await invite(db, now=NOW + timedelta(hours=1))
        assert exc_info.value.reason == "duplicate_invitation"
        assert await invitation_count(db) == 1
        assert await ledger_types(db) == ["sent_invitation"]

    @pytest.mark.asyncio
    async def test_viewed_invitation_still_blocks(self, db, seed):
        invitation = await invite(db)
        await view_invitation(db, invitation.invitation_token, now=NOW + timedelta(hours=1))

        with pytest.raises(InvalidState):
            await invite(db, now=NOW + timedelta(hours=2))

    @pytest.mark.asyncio
    async def test_expired_invitation_does_not_block(self, db, seed):
        stale = await invite(db, now=NOW - timedelta(days=31))

        fresh = await invite(db)

        assert fresh.status == "sent"
        assert stale.status == "expired"
        assert await invitation_count(db) == 2

    @pytest.mark.asyncio
    async def test_declined_invitation_does_not_block(self, db, seed):
        first = await invite(db)
        await decline_invitation(db, first.invitation_token, now=NOW + timedelta(days=1))

        second = await invite(db, now=NOW + timedelta(days=2))
        assert second.status == "sent"

    @pytest.mark.asyncio
    async def test_database_rejects_concurrent_duplicate(self, db, seed, dispatch):
        """A request that passed the pre-insert check still loses to the unique index."""
        await invite(db)

        with patch(
            "talentpool.services.invitations.find_open_invitation",
            AsyncMock(return_value=None),
        ):
            with pytest.raises(InvalidState) as exc_info:
                await invite(db, now=NOW + timedelta(minutes=1))

        assert exc_info.value.reason == "duplicate_invitation"
        assert await invitation_count(db) == 1
        assert await ledger_types(db) == ["sent_invitation"]
        assert dispatch.call_count == 1

    @pytest.mark.asyncio
    async def test_source_then_invite_is_rejected(self, db, seed):
        await source_candidate(db, job_id="job-backend", candidate_id="cand-alice", actor_id="admin-1", now=NOW)

        with pytest.raises(InvalidState) as exc_info:
            await invite(db, now=NOW + timedelta(minutes=5))
        assert "already has an application" in exc_info.value.message


class TestViewInvitation:
    """Resolving a token is a command: first view marks it viewed."""

    @pytest.mark.asyncio
    async def test_first_view_marks_viewed(self, db, seed):
        invitation = await invite(db)
        viewed_before = transitions("viewed")

        view = await view_invitation(db, invitation.invitation_token, now=NOW + timedelta(hours=1))

        assert view.valid is True
        assert view.reason is None
        assert view.invitation.status == "viewed"
        assert view.invitation.viewed_at == NOW + timedelta(hours=1)
        assert view.job.id == "job-backend"
        assert view.candidate.id == "cand-alice"
        assert view.inviter.id == "admin-1"
        assert await ledger_types(db) == ["sent_invitation", "viewed_invitation"]
        assert transitions("viewed") - viewed_before == 1

    @pytest.mark.asyncio
    async def test_repeat_views_are_read_only(self, db, seed):
        invitation = await invite(db)
        token = invitation.invitation_token
        await view_invitation(db, token, now=NOW + timedelta(hours=1))
        viewed_before = transitions("viewed")

        second = await view_invitation(db, token, now=NOW + timedelta(hours=5))
        third = await view_invitation(db, token, now=NOW + timedelta(days=2))

        assert second.valid and third.valid
        assert third.invitation.viewed_at == NOW + timedelta(hours=1)
        assert await ledger_types(db) == ["sent_invitation", "viewed_invitation"]
        assert transitions("viewed") == viewed_before

    @pytest.mark.asyncio
    @pytest.mark.parametrize("concurrent_status,valid,reason", [
        ("declined", False, "declined"),
        ("applied", False, "applied"),
        ("expired", False, "expired"),
        ("viewed", True, None),
    ])
    async def test_status_changed_between_read_and_update(
        self, db, seed, concurrent_status, valid, reason
    ):
        invitation = await invite(db)
        invitation_id = invitation.id
        token = invitation.invitation_token

        async def moved_elsewhere(session, row, to_status, **values):
            await session.execute(
                update(JobInvitation)
                .where(JobInvitation.id == row.id)
                .values(status=concurrent_status)
                .execution_options(synchronize_session=False)
            )
            await session.refresh(row)
            return False

        with patch("talentpool.services.invitations._transition", moved_elsewhere):
            view = await view_invitation(db, token, now=NOW + timedelta(hours=1))

        assert view.valid is valid
        assert view.reason == reason
        assert view.invitation.id == invitation_id
        assert view.invitation.status == concurrent_status
        assert await ledger_types(db) == ["sent_invitation"]

    @pytest.mark.asyncio
    async def test_unknown_token(self, db, seed):
        view = await view_invitation(db, "f" * 64, now=NOW)
        assert view.valid is False
        assert view.reason == "not_found"
        assert view.invitation is None

    @pytest.mark.asyncio
    async def test_empty_token(self, db, seed):
        view = await view_invitation(db, "", now=NOW)
        assert view.reason == "not_found"

    @pytest.mark.asyncio
    async def test_expired_after_deadline(self, db, seed):
        invitation = await invite(db)

        view = await view_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=31))

        assert view.valid is False
        assert view.reason == "expired"
        assert invitation.status == "expired"
        assert "viewed_invitation" not in await ledger_types(db)

        again = await view_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=32))
        assert again.reason == "expired"

    @pytest.mark.asyncio
    async def test_valid_at_exact_deadline(self, db, seed):
        invitation = await invite(db)
        view = await view_invitation(db, invitation.invitation_token, now=invitation.expires_at)
        assert view.valid is True

    @pytest.mark.asyncio
    async def test_viewed_invitation_expires_too(self, db, seed):
        invitation = await invite(db)
        await view_invitation(db, invitation.invitation_token, now=NOW + timedelta(hours=1))

        view = await view_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=40))
        assert view.reason == "expired"
        assert invitation.status == "expired"

    @pytest.mark.asyncio
    async def test_declined_stays_declined_after_deadline(self, db, seed):
        invitation = await invite(db)
        await decline_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=1))

        view = await view_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=60))

        assert view.valid is False
        assert view.reason == "declined"
        assert invitation.status == "declined"

    @pytest.mark.asyncio
    async def test_applied_invitation(self, db, seed):
        invitation = await invite(db)
        await accept_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=1))

        view = await view_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=2))
        assert view.valid is False
        assert view.reason == "applied"

    @pytest.mark.asyncio
    async def test_job_closed_after_invite(self, db, seed):
        invitation = await invite(db)
        await close_job(db)

        view = await view_invitation(db, invitation.invitation_token, now=NOW + timedelta(hours=1))

        assert view.valid is False
        assert view.reason == "job_inactive"
        assert invitation.status == "sent"


class TestRespondToInvitation:
    """Decline and accept."""

    @pytest.mark.asyncio
    async def test_decline(self, db, seed):
        invitation = await invite(db)

        declined = await decline_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=1))

        assert declined.status == "declined"
        assert declined.responded_at == NOW + timedelta(days=1)
        assert await ledger_types(db) == ["sent_invitation", "declined_invitation"]

    @pytest.mark.asyncio
    async def test_decline_twice(self, db, seed):
        invitation = await invite(db)
        await decline_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=1))

        with pytest.raises(AlreadyActioned) as exc_info:
            await decline_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=2))
        assert exc_info.value.reason == "declined"
        assert (await ledger_types(db)).count("declined_invitation") == 1

    @pytest.mark.asyncio
    async def test_decline_after_viewing(self, db, seed):
        invitation = await invite(db)
        await view_invitation(db, invitation.invitation_token, now=NOW + timedelta(hours=1))

        declined = await decline_invitation(db, invitation.invitation_token, now=NOW + timedelta(hours=2))
        assert declined.status == "declined"

    @pytest.mark.asyncio
    async def test_decline_expired(self, db, seed):
        invitation = await invite(db)

        with pytest.raises(Expired):
            await decline_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=31))
        assert invitation.status == "expired"

    @pytest.mark.asyncio
    async def test_decline_unknown_token(self, db, seed):
        with pytest.raises(NotFound):
            await decline_invitation(db, "0" * 64, now=NOW)

    @pytest.mark.asyncio
    async def test_accept_creates_application(self, db, seed):
        invitation = await invite(db)

        application = await accept_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=1))

        assert application.job_id == "job-backend"
        assert application.user_id == "cand-alice"
        assert application.source_type == "invitation"
        assert application.status == "Applied"
        assert invitation.status == "applied"
        assert invitation.responded_at == NOW + timedelta(days=1)

    @pytest.mark.asyncio
    async def test_accept_twice(self, db, seed):
        invitation = await invite(db)
        await accept_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=1))

        with pytest.raises(AlreadyActioned) as exc_info:
            await accept_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=2))
        assert exc_info.value.reason == "applied"

        result = await db.execute(select(func.count(Application.id)))
        assert result.scalar() == 1

    @pytest.mark.asyncio
    async def test_accept_closed_job(self, db, seed):
        invitation = await invite(db)
        await close_job(db)

        with pytest.raises(InvalidState) as exc_info:
            await accept_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=1))
        assert exc_info.value.reason == "job_inactive"

    @pytest.mark.asyncio
    async def test_accept_after_sourcing(self, db, seed):
        invitation = await invite(db)
        await source_candidate(
            db, job_id="job-backend", candidate_id="cand-alice", actor_id="admin-1",
            now=NOW + timedelta(hours=1),
        )

        with pytest.raises(InvalidState) as exc_info:
            await accept_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=1))
        assert exc_info.value.reason == "already_applied"

    @pytest.mark.asyncio
    async def test_accept_expired(self, db, seed):
        invitation = await invite(db)
        with pytest.raises(Expired):
            await accept_invitation(db, invitation.invitation_token, now=NOW + timedelta(days=45))


class TestMarkApplied:
    """External apply paths close the open invitation."""

    @pytest.mark.asyncio
    async def test_marks_open_invitation(self, db, seed):
        invitation = await invite(db)

        assert await mark_applied(db, "job-backend", "cand-alice", now=NOW + timedelta(days=1)) is True
        assert invitation.status == "applied"

    @pytest.mark.asyncio
    async def test_nothing_open(self, db, seed):
        assert await mark_applied(db, "job-backend", "cand-alice", now=NOW) is False

    @pytest.mark.asyncio
    async def test_expired_invitation_is_not_marked(self, db, seed):
        invitation = await invite(db)

        assert await mark_applied(db, "job-backend", "cand-alice", now=NOW + timedelta(days=31)) is False
        assert invitation.status == "sent"


class TestExpireStaleInvitations:
    """Periodic sweep used for listing freshness."""

    @pytest.mark.asyncio
    async def test_expires_only_past_deadline(self, db, seed):
        stale = await invite(db, candidate_id="cand-alice", now=NOW - timedelta(days=40))
        fresh = await invite(db, candidate_id="cand-bob", now=NOW)
        declined = await invite(db, candidate_id="cand-carol", now=NOW - timedelta(days=40))
        await decline_invitation(db, declined.invitation_token, now=NOW - timedelta(days=39))

        expired = await expire_stale_invitations(db, now=NOW)

        assert expired == 1
        await db.refresh(stale)
        await db.refresh(fresh)
        await db.refresh(declined)
        assert stale.status == "expired"
        assert fresh.status == "sent"
        assert declined.status == "declined"

    @pytest.mark.asyncio
    async def test_sweep_is_idempotent(self, db, seed):
        await invite(db, now=NOW - timedelta(days=40))

        assert await expire_stale_invitations(db, now=NOW) == 1
        assert await expire_stale_invitations(db, now=NOW) == 0
