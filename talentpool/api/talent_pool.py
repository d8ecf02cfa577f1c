from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from talentpool.database import get_db
from talentpool.models import Job, User
from talentpool.schemas import (
    AnalyticsResponse,
    BulkInviteRequest,
    BulkResponse,
    BulkSourceRequest,
    CandidateDetailResponse,
    EmailHistoryResponse,
    ErrorResponse,
    InvitationResponse,
    InviteRequest,
    InviteResponse,
    NoteRequest,
    NoteResponse,
    RecommendationsResponse,
    RecruiterActivityResponse,
    SourceRequest,
    SourceResponse,
    TalentPoolListResponse,
)
from talentpool.schemas.talent_pool import SourcedApplication
from talentpool.auth import SessionUser, get_current_user, require_premium
from talentpool.services import analytics, talent_pool
from talentpool.services.invitations import create_invitation
from talentpool.services.matcher import MatchResult
from talentpool.services.notifications import invitation_url
from talentpool.services.sourcing import source_candidate

router = APIRouter(
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    }
)


@router.get("", response_model=TalentPoolListResponse)
async def list_candidates(
    search: Optional[str] = Query(None),
    skills: Optional[str] = Query(None, description="Comma-separated skill tags"),
    location: Optional[str] = Query(None),
    available_only: bool = Query(False, alias="availableOnly"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
    _: SessionUser = Depends(get_current_user),
):
    return await talent_pool.search_candidates(
        db,
        search=search,
        skills=talent_pool.parse_skills(skills),
        location=location,
        available_only=available_only,
        page=page,
        limit=limit,
    )


@router.get("/analytics", response_model=AnalyticsResponse)
async def get_analytics(
    time_range: str = Query("30d", alias="range"),
    db: AsyncSession = Depends(get_db),
    _: SessionUser = Depends(require_premium),
):
    return await analytics.summarize(db, time_range)


@router.get("/activity", response_model=RecruiterActivityResponse)
async def get_recruiter_activity(
    time_range: str = Query("30d", alias="range"),
    db: AsyncSession = Depends(get_db),
    user: SessionUser = Depends(get_current_user),
):
    return await analytics.recruiter_activity(db, user.id, time_range)


@router.post("/bulk-invite", response_model=BulkResponse)
async def bulk_invite(
    request: BulkInviteRequest,
    db: AsyncSession = Depends(get_db),
    user: SessionUser = Depends(get_current_user),
):
    return await talent_pool.bulk_invite(
        db,
        candidate_ids=request.candidate_ids,
        job_id=request.job_id,
        inviter_id=user.id,
        inviter_name=user.name,
        message=request.custom_message,
        template_id=request.template_id,
        subject=request.subject,
        content=request.content,
    )


@router.post("/bulk-source", response_model=BulkResponse)
async def bulk_source(
    request: BulkSourceRequest,
    db: AsyncSession = Depends(get_db),
    user: SessionUser = Depends(get_current_user),
):
    return await talent_pool.bulk_source(
        db,
        candidate_ids=request.candidate_ids,
        job_id=request.job_id,
        actor_id=user.id,
        actor_name=user.name,
        notes=request.notes,
        initial_status=request.status,
    )


@router.get("/{candidate_id}", response_model=CandidateDetailResponse)
async def get_candidate(
    candidate_id: str,
    db: AsyncSession = Depends(get_db),
    user: SessionUser = Depends(get_current_user),
):
    return await talent_pool.get_candidate_detail(
        db, candidate_id, viewer_id=user.id, viewer_name=user.name
    )


@router.post("/{candidate_id}/invite", response_model=InviteResponse)
async def invite_candidate(
    candidate_id: str,
    request: InviteRequest,
    db: AsyncSession = Depends(get_db),
    user: SessionUser = Depends(get_current_user),
):
    invitation = await create_invitation(
        db,
        job_id=request.job_id,
        candidate_id=candidate_id,
        inviter_id=user.id,
        inviter_name=user.name,
        message=request.custom_message,
        template_id=request.template_id,
        subject=request.subject,
        content=request.content,
    )
    return InviteResponse(
        invitation=InvitationResponse.model_validate(invitation),
        token=invitation.invitation_token,
        invitation_url=invitation_url(invitation.invitation_token),
    )


@router.post("/{candidate_id}/source", response_model=SourceResponse)
async def source_to_job(
    candidate_id: str,
    request: SourceRequest,
    db: AsyncSession = Depends(get_db),
    user: SessionUser = Depends(get_current_user),
):
    application = await source_candidate(
        db,
        job_id=request.job_id,
        candidate_id=candidate_id,
        actor_id=user.id,
        actor_name=user.name,
        notes=request.notes,
        initial_status=request.status,
    )
    return SourceResponse(application=SourcedApplication.model_validate(application))


@router.post("/{candidate_id}/notes", response_model=NoteResponse)
async def add_note(
    candidate_id: str,
    request: NoteRequest,
    db: AsyncSession = Depends(get_db),
    user: SessionUser = Depends(get_current_user),
):
    interaction = await talent_pool.add_note(
        db,
        candidate_id=candidate_id,
        admin_id=user.id,
        admin_name=user.name,
        notes=request.notes,
        job_id=request.job_id,
    )
    admin = await db.get(User, user.id)
    job = await db.get(Job, interaction.job_id) if interaction.job_id else None
    return {"interaction": talent_pool.serialize_interaction(interaction, admin, job)}


@router.get("/{candidate_id}/email-history", response_model=EmailHistoryResponse)
async def get_email_history(
    candidate_id: str,
    db: AsyncSession = Depends(get_db),
    _: SessionUser = Depends(require_premium),
):
    return await talent_pool.email_history(db, candidate_id)


def _recommended_job(result: MatchResult, has_applied: bool) -> dict:
    job = result.job
    return {
        "id": job.id,
        "title": job.title,
        "department": job.department,
        "location": job.location,
        "required_skills": job.required_skills,
        "min_experience": job.min_experience,
        "max_experience": job.max_experience,
        "has_applied": has_applied,
        "match_score": {
            "percentage": result.percentage,
            "level": result.level,
            "components": result.components,
            "matched_skills": result.matched_skills,
            "missing_skills": result.missing_skills,
        },
    }


@router.get("/{candidate_id}/recommended-jobs", response_model=RecommendationsResponse)
async def get_recommended_jobs(
    candidate_id: str,
    db: AsyncSession = Depends(get_db),
    _: SessionUser = Depends(require_premium),
):
    candidate, ranked = await talent_pool.recommend_jobs(db, candidate_id)
    return {
        "candidate": {
            "id": candidate.id,
            "name": candidate.display_name,
            "skills": list(candidate.skills or []),
            "experience": candidate.years_experience,
            "location": candidate.location,
        },
        "recommendations": {
            "top_matches": [_recommended_job(r, False) for r in ranked.top],
            "good_matches": [_recommended_job(r, False) for r in ranked.good],
            "other_matches": [_recommended_job(r, False) for r in ranked.other],
            "already_applied": [_recommended_job(r, True) for r in ranked.already_applied],
        },
        "summary": ranked.summary,
    }
