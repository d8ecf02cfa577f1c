from datetime import datetime
from typing import Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for wire models: snake_case in Python, camelCase in JSON."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class JobSummary(CamelModel):
    id: str
    title: str
    status: str
    location: Optional[str] = None
    department: Optional[str] = None
    slug: Optional[str] = None


class PersonSummary(CamelModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None


class Pagination(CamelModel):
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_more: bool


class ErrorResponse(CamelModel):
    error: str
    reason: Optional[str] = None


class ApplicationSummary(CamelModel):
    id: str
    status: str
    applied_at: Optional[datetime] = None
    source_type: Optional[str] = None
    sourced_at: Optional[datetime] = None
    sourced_by: Optional[PersonSummary] = None
    job: Optional[JobSummary] = None
