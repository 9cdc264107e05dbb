"""Generates and maintains AI job recommendations for one user.

A request is served from recent ratings when any exist inside the cache
window; otherwise eligible jobs are scored and every scored job is upserted
as a rating. Upserts run concurrently and each one reports its own outcome,
so a single failing job never sinks the batch.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import desc, or_
from sqlalchemy.orm import selectinload
from sqlmodel import select

from ..db.rating_store import RatingFilter, RatingStore, RecordNotFoundError
from ..models.job import Job, JobApplication, JobStatus
from ..models.rating import JobRecommendationRating, RatingRead, is_valid_rating
from ..models.recommendation import (
    RecommendationResponse,
    ScoredRecommendation,
    ScoringPreferences,
    ScoringRequest,
    ScoringResult,
)
from ..models.user import UserProfile
from ..utils.utils import hours_ago, utc_now
from .errors import (
    InvalidInputError,
    ProfileIncompleteError,
    ProfileNotFoundError,
    RatingNotFoundError,
    ScoringFailedError,
)
from .scoring import JobScorer

logger = logging.getLogger(__name__)

NO_JOBS_MESSAGE = "No suitable jobs available at the moment"


@dataclass
class PersistOutcome:
    job_id: str
    rating: Optional[JobRecommendationRating] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.rating is not None


class RecommendationGenerator:
    def __init__(
        self,
        store: RatingStore,
        scorer: JobScorer,
        cache_hours: int = 24,
        max_candidate_jobs: int = 50,
        min_match_score: float = 50,
    ):
        self.store = store
        self.scorer = scorer
        self.cache_hours = cache_hours
        self.max_candidate_jobs = max_candidate_jobs
        self.min_match_score = min_match_score

    async def get_recommendations(self, user_id: str, limit: int = 10, regenerate: bool = False) -> RecommendationResponse:
        if not regenerate:
            cached = await self.cached_recommendations(user_id, limit)
            if cached:
                logger.info("Serving %d cached recommendations for user %s", len(cached), user_id)
                return RecommendationResponse(
                    recommendations=[RatingRead.model_validate(r) for r in cached],
                    cached=True,
                    generated_at=max(r.created_at for r in cached),
                )

        profile = await self._load_completed_profile(user_id)
        applied_job_ids = await self._applied_job_ids(user_id)
        jobs = await self._eligible_jobs(applied_job_ids)
        if not jobs:
            return RecommendationResponse(recommendations=[], message=NO_JOBS_MESSAGE)

        result = await self._score(ScoringRequest(
            user_profile=profile,
            available_jobs=jobs,
            preferences=ScoringPreferences(
                max_recommendations=limit,
                min_match_score=self.min_match_score,
                prioritize_accommodations=True,
                exclude_applied_jobs=applied_job_ids,
            ),
        ))

        outcomes = await self.persist(user_id, result.recommendations)
        saved = [outcome.rating for outcome in outcomes if outcome.ok]
        return RecommendationResponse(
            recommendations=[RatingRead.model_validate(r) for r in saved],
            analysis=result.analysis,
            cached=False,
            generated_at=utc_now(),
        )

    async def cached_recommendations(self, user_id: str, limit: int) -> List[JobRecommendationRating]:
        items, _ = await self.store.list(
            RatingFilter(user_id=user_id, created_after=hours_ago(self.cache_hours)),
            sort=[("rating", "desc")],
            page=1,
            page_size=limit,
        )
        return items

    async def persist(self, user_id: str, recommendations: List[ScoredRecommendation]) -> List[PersistOutcome]:
        # one upsert per job; the first entry for a job wins
        unique = {}
        for rec in recommendations:
            unique.setdefault(rec.job_id, rec)
        return list(await asyncio.gather(
            *(self._persist_one(user_id, rec) for rec in unique.values())
        ))

    async def _persist_one(self, user_id: str, rec: ScoredRecommendation) -> PersistOutcome:
        fields = {
            "rating": rec.rating,
            "feedback": rec.feedback,
            "reason": rec.reason,
            "recommended_by": rec.recommended_by,
            "match_score": rec.match_score,
        }
        try:
            rating = await self.store.upsert(user_id, rec.job_id, fields)
        except Exception as exc:
            logger.error("Error saving recommendation for job %s: %s", rec.job_id, exc)
            return PersistOutcome(job_id=rec.job_id, error=str(exc))
        return PersistOutcome(job_id=rec.job_id, rating=rating)

    async def _score(self, request: ScoringRequest) -> ScoringResult:
        try:
            return await self.scorer.score(request)
        except ScoringFailedError:
            raise
        except Exception as exc:
            logger.exception("Scorer failed for profile %s", request.user_profile.id)
            raise ScoringFailedError() from exc

    async def _load_completed_profile(self, user_id: str) -> UserProfile:
        async with self.store.session() as session:
            result = await session.execute(select(UserProfile).where(UserProfile.user_id == user_id))
            profile = result.scalar_one_or_none()
        if profile is None:
            raise ProfileNotFoundError()
        if not profile.is_completed:
            raise ProfileIncompleteError()
        return profile

    async def _applied_job_ids(self, user_id: str) -> List[str]:
        async with self.store.session() as session:
            result = await session.execute(
                select(JobApplication.job_id).where(JobApplication.user_id == user_id)
            )
            return list(result.scalars().all())

    async def _eligible_jobs(self, applied_job_ids: List[str]) -> List[Job]:
        statement = (
            select(Job)
            .options(selectinload(Job.company))
            .where(
                Job.status == JobStatus.PUBLISHED,
                Job.is_active.is_(True),
                or_(Job.application_deadline >= utc_now(), Job.application_deadline.is_(None)),
            )
            .order_by(desc(Job.published_at))
            .limit(self.max_candidate_jobs)
        )
        if applied_job_ids:
            statement = statement.where(Job.id.not_in(applied_job_ids))

        async with self.store.session() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

    async def update_recommendation(self, user_id: str, job_id: str, fields: dict) -> JobRecommendationRating:
        if not job_id or not is_valid_rating(fields.get("rating")):
            raise InvalidInputError()
        try:
            return await self.store.update_by_user_and_job(user_id, job_id, fields)
        except RecordNotFoundError:
            raise RatingNotFoundError("Recommendation not found")

    async def delete_recommendations(self, user_id: str, job_id: Optional[str] = None) -> int:
        if job_id:
            try:
                await self.store.delete_by_user_and_job(user_id, job_id)
            except RecordNotFoundError:
                raise RatingNotFoundError("Recommendation not found")
            return 1
        return await self.store.delete_many(RatingFilter(user_id=user_id))
