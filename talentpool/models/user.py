"""
User Model - Platform accounts, read as the talent pool

Every non-admin user is a talent pool candidate. The engagement engine
never creates or deletes users; it only reads their profile attributes
and annotates them through interactions, invitations and applications.
"""

from sqlalchemy import Column, String, Integer, Text, DateTime, Boolean, JSON
from talentpool.database import Base, utcnow
import uuid

ADMIN_ROLE = "admin"
CANDIDATE_ROLE = "candidate"


class User(Base):
    """
    Platform user (recruiter/admin or candidate).

    Attributes:
        role: "admin" for recruiters, anything else is a candidate
        skills: JSON list of skill tags
        years_experience: Whole years of experience (nullable)
        location: Free-text location, e.g. "London, UK" or "Remote"
        available_for_opportunities: Candidate opted in to being contacted
        last_profile_update: Used to order the talent pool listing
    """

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    role = Column(String(20), nullable=False, default=CANDIDATE_ROLE, index=True)
    bio = Column(Text, nullable=True)
    skills = Column(JSON, nullable=False, default=list)
    years_experience = Column(Integer, nullable=True)
    location = Column(String(255), nullable=True)
    current_title = Column(String(255), nullable=True)
    current_company = Column(String(255), nullable=True)
    linkedin_url = Column(String(500), nullable=True)
    portfolio_url = Column(String(500), nullable=True)
    available_for_opportunities = Column(Boolean, nullable=False, default=False)
    last_profile_update = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @property
    def display_name(self) -> str:
        return self.name or self.email
