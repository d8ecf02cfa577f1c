from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from talentpool.database import get_db
from talentpool.models import Job
from talentpool.schemas import ErrorResponse, InvitationActionResponse, InvitationViewResponse
from talentpool.services.invitations import (
    InvitationView,
    accept_invitation,
    decline_invitation,
    view_invitation,
)

router = APIRouter(responses={400: {"model": ErrorResponse}})


def _view_response(view: InvitationView) -> InvitationViewResponse:
    invitation = view.invitation
    details = None
    if invitation is not None:
        job = view.job
        details = {
            "id": invitation.id,
            "status": invitation.status,
            "message": invitation.message,
            "sent_at": invitation.sent_at,
            "expires_at": invitation.expires_at,
            "job": {
                "id": job.id,
                "title": job.title,
                "status": job.status,
                "location": job.location,
                "department": job.department,
                "slug": job.slug,
            } if job else None,
            "candidate": {
                "id": view.candidate.id,
                "name": view.candidate.name,
                "email": view.candidate.email,
            } if view.candidate else None,
            "invited_by": view.inviter.display_name if view.inviter else None,
        }
    return InvitationViewResponse(
        valid=view.valid,
        reason=view.reason,
        error=view.message,
        invitation=details,
    )


@router.get("/{token}", response_model=InvitationViewResponse)
async def resolve_invitation(token: str, db: AsyncSession = Depends(get_db)):
    """Public: opening the link marks a fresh invitation as viewed."""
    view = await view_invitation(db, token)
    response = _view_response(view)
    if view.reason == "not_found":
        return JSONResponse(status_code=404, content=response.model_dump(by_alias=True, mode="json"))
    return response


@router.post("/{token}/decline", response_model=InvitationActionResponse)
async def decline(token: str, db: AsyncSession = Depends(get_db)):
    invitation = await decline_invitation(db, token)
    job = await db.get(Job, invitation.job_id)
    return InvitationActionResponse(
        message="Invitation declined successfully",
        status=invitation.status,
        job_title=job.title if job else None,
    )


@router.post("/{token}/accept", response_model=InvitationActionResponse)
async def accept(token: str, db: AsyncSession = Depends(get_db)):
    application = await accept_invitation(db, token)
    job = await db.get(Job, application.job_id)
    return InvitationActionResponse(
        message="Application submitted successfully",
        status="applied",
        job_title=job.title if job else None,
        application_id=application.id,
    )
