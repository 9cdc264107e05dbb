from enum import Enum
from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field, Relationship
from typing import List, Optional, TYPE_CHECKING
from datetime import datetime

from ..utils.utils import new_id, utc_now
from .base import ApiModel

if TYPE_CHECKING:
    from .rating import JobRecommendationRating


class JobStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    CLOSED = "CLOSED"


class CompanyInfo(ApiModel):
    id: str
    name: str
    logo: Optional[str] = None


class JobSummary(ApiModel):
    id: str
    title: str
    slug: Optional[str] = None
    location: Optional[str] = None
    work_type: Optional[str] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    company: Optional[CompanyInfo] = None


class Company(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    industry: Optional[str] = None
    logo: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    jobs: List["Job"] = Relationship(back_populates="company")


class Job(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    title: str
    slug: Optional[str] = Field(default=None, index=True)
    company_id: str = Field(foreign_key="company.id")
    location: Optional[str] = None
    work_type: Optional[str] = None
    experience: Optional[str] = None
    is_remote: bool = Field(default=False)
    is_hybrid: bool = Field(default=False)
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    salary_currency: Optional[str] = None
    accommodations: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    accommodation_details: Optional[str] = None
    requirements: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    preferred_skills: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    benefits: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    status: JobStatus = Field(default=JobStatus.DRAFT)
    is_active: bool = Field(default=True)
    application_deadline: Optional[datetime] = None
    published_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    company: Optional[Company] = Relationship(back_populates="jobs")
    recommendation_ratings: List["JobRecommendationRating"] = Relationship(back_populates="job")


class JobApplication(SQLModel, table=True):
    __tablename__ = "job_application"

    id: str = Field(default_factory=new_id, primary_key=True)
    job_id: str = Field(foreign_key="job.id", index=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    status: str = Field(default="PENDING")
    created_at: datetime = Field(default_factory=utc_now)
