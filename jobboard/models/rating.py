from enum import Enum
from pydantic import conint, confloat, constr
from sqlalchemy import Index, UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship
from typing import List, Literal, Optional, TYPE_CHECKING
from datetime import datetime

from ..utils.utils import new_id, utc_now
from .base import ApiModel
from .job import JobSummary
from .user import UserSummary

if TYPE_CHECKING:
    from .job import Job
    from .user import User

# 1..10 inclusive; strict so that "8" and 3.5 are rejected rather than coerced
RatingValue = conint(strict=True, ge=1, le=10)
MatchScoreValue = confloat(ge=0, le=100)

SORT_FIELDS = {
    "createdAt": "created_at",
    "rating": "rating",
    "matchScore": "match_score",
}


class RatingReason(str, Enum):
    PERFECT_MATCH = "PERFECT_MATCH"
    GOOD_FIT = "GOOD_FIT"
    SOME_INTEREST = "SOME_INTEREST"
    NOT_RELEVANT = "NOT_RELEVANT"
    POOR_MATCH = "POOR_MATCH"
    ALREADY_APPLIED = "ALREADY_APPLIED"
    LOCATION_ISSUE = "LOCATION_ISSUE"
    SALARY_MISMATCH = "SALARY_MISMATCH"
    SKILL_MISMATCH = "SKILL_MISMATCH"
    ACCOMMODATION_CONCERN = "ACCOMMODATION_CONCERN"


def is_valid_rating(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= 10


class JobRecommendationRating(SQLModel, table=True):
    __tablename__ = "job_recommendation_rating"
    __table_args__ = (
        UniqueConstraint("user_id", "job_id", name="uq_recommendation_rating_user_job"),
        Index("ix_recommendation_rating_created_at", "created_at"),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    job_id: str = Field(foreign_key="job.id", index=True)
    rating: int
    feedback: Optional[str] = None
    reason: Optional[RatingReason] = None
    recommended_by: Optional[str] = None
    match_score: Optional[float] = None
    is_helpful: Optional[bool] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    user: Optional["User"] = Relationship(back_populates="recommendation_ratings")
    job: Optional["Job"] = Relationship(back_populates="recommendation_ratings")


class RatingCreate(ApiModel):
    job_id: constr(min_length=1)
    rating: RatingValue
    feedback: Optional[str] = None
    reason: Optional[RatingReason] = None
    recommended_by: Optional[str] = None
    match_score: Optional[MatchScoreValue] = None
    is_helpful: Optional[bool] = None


class RatingUpdate(ApiModel):
    rating: Optional[RatingValue] = None
    feedback: Optional[str] = None
    reason: Optional[RatingReason] = None
    recommended_by: Optional[str] = None
    match_score: Optional[MatchScoreValue] = None
    is_helpful: Optional[bool] = None


class RatingQuery(ApiModel):
    user_id: Optional[str] = None
    job_id: Optional[str] = None
    rating: Optional[conint(ge=1, le=10)] = None
    reason: Optional[RatingReason] = None
    recommended_by: Optional[str] = None
    is_helpful: Optional[bool] = None
    page: conint(ge=1) = 1
    limit: conint(ge=1, le=100) = 10
    sort_by: Literal["createdAt", "rating", "matchScore"] = "createdAt"
    sort_order: Literal["asc", "desc"] = "desc"


class RatingRead(ApiModel):
    id: str
    user_id: str
    job_id: str
    rating: int
    feedback: Optional[str] = None
    reason: Optional[RatingReason] = None
    recommended_by: Optional[str] = None
    match_score: Optional[float] = None
    is_helpful: Optional[bool] = None
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None
    job: Optional[JobSummary] = None


class Pagination(ApiModel):
    page: int
    limit: int
    total: int
    total_pages: int


class PaginatedRatingResponse(ApiModel):
    data: List[RatingRead]
    pagination: Pagination


class RatingCount(ApiModel):
    rating: int
    count: int


class ReasonCount(ApiModel):
    reason: Optional[RatingReason] = None
    count: int


class JobRatingStats(ApiModel):
    total_ratings: int
    average_rating: Optional[float] = None
    average_match_score: Optional[float] = None
    helpful_ratings: int
    rating_distribution: List[RatingCount]


class UserRatingStats(JobRatingStats):
    reason_distribution: List[ReasonCount]


class MessageResponse(ApiModel):
    message: str
