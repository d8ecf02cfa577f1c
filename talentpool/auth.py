from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request, HTTPException, status
from jose import JWTError, jwt
from talentpool.config import get_settings

settings = get_settings()

ALGORITHM = "HS256"
TOKEN_EXPIRE_DAYS = 30
COOKIE_NAME = "session_token"


@dataclass
class SessionUser:
    """The recruiter acting through the current session."""

    id: str
    name: Optional[str]
    email: Optional[str]
    premium: bool = False


def create_session_token(user_id: str, name: Optional[str], email: Optional[str], premium: bool) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=TOKEN_EXPIRE_DAYS)
    to_encode = {
        "exp": expire,
        "sub": user_id,
        "name": name,
        "email": email,
        "premium": premium,
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def verify_session_token(token: str) -> Optional[SessionUser]:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if not payload.get("sub"):
        return None
    return SessionUser(
        id=payload["sub"],
        name=payload.get("name"),
        email=payload.get("email"),
        premium=bool(payload.get("premium", False)),
    )


def verify_password(password: str) -> bool:
    return password == settings.app_password


async def get_current_user(request: Request) -> SessionUser:
    token = request.cookies.get(COOKIE_NAME)
    user = verify_session_token(token) if token else None
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user


async def require_premium(user: SessionUser = Depends(get_current_user)) -> SessionUser:
    if not (user.premium and get_settings().premium_features_enabled):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This feature requires a premium plan",
        )
    return user
