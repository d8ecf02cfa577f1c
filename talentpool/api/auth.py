from fastapi import APIRouter, Depends, Response, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from talentpool.auth import (
    COOKIE_NAME,
    TOKEN_EXPIRE_DAYS,
    SessionUser,
    create_session_token,
    get_current_user,
    verify_password,
)
from talentpool.config import get_settings
from talentpool.database import get_db
from talentpool.models import User
from talentpool.schemas import LoginRequest, LoginResponse, SessionResponse

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest, response: Response, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(User.email == request.email))
    user = result.scalar_one_or_none()

    if not user or not user.is_admin or not verify_password(request.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    token = create_session_token(
        user_id=user.id,
        name=user.display_name,
        email=user.email,
        premium=get_settings().premium_features_enabled,
    )
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        httponly=True,
        max_age=TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        samesite="lax",
    )
    return LoginResponse(success=True, message="Logged in successfully")


@router.post("/logout", response_model=LoginResponse)
async def logout(response: Response):
    response.delete_cookie(COOKIE_NAME)
    return LoginResponse(success=True, message="Logged out successfully")


@router.get("/check", response_model=SessionResponse)
async def check_auth(user: SessionUser = Depends(get_current_user)):
    return SessionResponse(
        authenticated=True,
        premium=user.premium,
        user={"id": user.id, "name": user.name, "email": user.email},
    )
