from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import Field, constr, field_validator

from .base import ApiModel
from .job import Job
from .rating import RatingRead, RatingReason, RatingValue
from .user import UserProfile


class MatchFactors(ApiModel):
    skills_match: float = 50
    accommodation_match: float = 50
    location_match: float = 50
    work_arrangement_match: float = 50
    industry_match: float = 50
    experience_match: float = 50


class ScoredRecommendation(ApiModel):
    job_id: str
    rating: int
    match_score: float
    reason: Optional[RatingReason] = None
    feedback: Optional[str] = None
    recommended_by: str = "AI"
    match_factors: MatchFactors = Field(default_factory=MatchFactors)

    @field_validator("rating", mode="before")
    @classmethod
    def round_fractional_rating(cls, value):
        if isinstance(value, float):
            return int(round(value))
        return value

    @field_validator("reason", mode="before")
    @classmethod
    def unknown_reason_to_none(cls, value):
        if value is None or isinstance(value, RatingReason):
            return value
        try:
            return RatingReason(value)
        except ValueError:
            return None


class RecommendationAnalysis(ApiModel):
    total_jobs_analyzed: int = 0
    top_matching_factors: List[str] = Field(default_factory=list)
    recommended_skill_improvements: List[str] = Field(default_factory=list)
    accommodation_insights: List[str] = Field(default_factory=list)


class ScoringResult(ApiModel):
    recommendations: List[ScoredRecommendation] = Field(default_factory=list)
    analysis: RecommendationAnalysis = Field(default_factory=RecommendationAnalysis)


@dataclass
class ScoringPreferences:
    max_recommendations: int = 10
    min_match_score: float = 50
    prioritize_accommodations: bool = True
    exclude_applied_jobs: List[str] = field(default_factory=list)


@dataclass
class ScoringRequest:
    user_profile: UserProfile
    available_jobs: List[Job]
    preferences: ScoringPreferences


class RecommendationResponse(ApiModel):
    recommendations: List[RatingRead]
    cached: bool = False
    generated_at: Optional[datetime] = None
    analysis: Optional[RecommendationAnalysis] = None
    message: Optional[str] = None


class RecommendationFeedback(ApiModel):
    job_id: constr(min_length=1)
    rating: RatingValue
    feedback: Optional[str] = None
    reason: Optional[RatingReason] = None
    is_helpful: Optional[bool] = None


# Analytics

AnalyticsPeriod = Literal["7d", "30d", "90d"]

PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90}


class AnalyticsOverview(ApiModel):
    total_recommendations: int
    average_rating: float
    conversion_rate: float
    period: AnalyticsPeriod
    start_date: datetime
    end_date: datetime


class RatingBucket(ApiModel):
    rating: int
    count: int


class ReasonBucket(ApiModel):
    reason: Optional[RatingReason] = None
    count: int


class HelpfulnessStats(ApiModel):
    helpful: int = 0
    not_helpful: int = 0


class MatchScoreStats(ApiModel):
    average: float = 0
    minimum: float = 0
    maximum: float = 0


class TopRatedJob(ApiModel):
    job_id: str
    job_title: Optional[str] = None
    company_name: Optional[str] = None
    rating: int
    match_score: Optional[float] = None
    reason: Optional[RatingReason] = None


class UserEngagement(ApiModel):
    user_id: str
    recommendation_count: int
    average_rating: Optional[float] = None


class AccommodationInsight(ApiModel):
    accommodations: List[str]
    job_count: int


class AnalyticsReport(ApiModel):
    overview: AnalyticsOverview
    rating_distribution: List[RatingBucket]
    reason_distribution: List[ReasonBucket]
    helpfulness_stats: HelpfulnessStats
    match_score_stats: MatchScoreStats
    top_rated_jobs: List[TopRatedJob]
    user_engagement: List[UserEngagement]
    accommodation_insights: List[AccommodationInsight]


class AdminActionRequest(ApiModel):
    action: Literal["regenerate_all", "cleanup_old", "refresh_user"]
    user_id: Optional[str] = None


class AdminActionResult(ApiModel):
    message: str
    data: dict[str, Any]


class RecommendationUpdateResponse(ApiModel):
    message: str
    recommendation: RatingRead


class RecommendationDeleteResponse(ApiModel):
    message: str
    deleted_count: int
