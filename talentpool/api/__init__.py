from fastapi import APIRouter
from talentpool.api import auth, invitations, talent_pool

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(talent_pool.router, prefix="/talent-pool", tags=["talent-pool"])
api_router.include_router(invitations.router, prefix="/invitations", tags=["invitations"])
