from typing import Optional

from talentpool.schemas.common import CamelModel, PersonSummary


class LoginRequest(CamelModel):
    email: str
    password: str


class LoginResponse(CamelModel):
    success: bool
    message: str


class SessionResponse(CamelModel):
    authenticated: bool
    premium: bool = False
    user: Optional[PersonSummary] = None
