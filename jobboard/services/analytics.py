import asyncio
import logging
from collections import Counter
from typing import List, Optional

from sqlmodel import select

from ..db.rating_store import RatingFilter, RatingStore
from ..models.recommendation import (
    PERIOD_DAYS,
    AccommodationInsight,
    AdminActionResult,
    AnalyticsOverview,
    AnalyticsReport,
    HelpfulnessStats,
    MatchScoreStats,
    RatingBucket,
    ReasonBucket,
    TopRatedJob,
    UserEngagement,
)
from ..models.user import ProfileStatus, UserProfile
from ..utils.utils import days_ago, hours_ago, utc_now
from .errors import InvalidInputError, MissingUserIdError

logger = logging.getLogger(__name__)

TOP_LIMIT = 10


def conversion_rate(applications: int, recommendations: int) -> float:
    if recommendations == 0:
        return 0.0
    return applications / recommendations * 100


class RecommendationAnalytics:
    """Read-only reporting over ratings plus the admin maintenance actions."""

    def __init__(
        self,
        store: RatingStore,
        cache_hours: int = 24,
        cleanup_after_days: int = 30,
        batch_concurrency: int = 10,
    ):
        self.store = store
        self.cache_hours = cache_hours
        self.cleanup_after_days = cleanup_after_days
        self.batch_concurrency = batch_concurrency

    async def report(self, period: str = "7d", user_id: Optional[str] = None) -> AnalyticsReport:
        if period not in PERIOD_DAYS:
            period = "7d"
        end_date = utc_now()
        start_date = days_ago(PERIOD_DAYS[period])
        where = RatingFilter(user_id=user_id, created_after=start_date)

        aggregates = await self.store.aggregate(
            where,
            avg_fields=["rating", "match_score"],
            min_fields=["match_score"],
            max_fields=["match_score"],
        )
        total = aggregates["count"]

        ratings = await self.store.group_by(where, "rating")
        reasons = await self.store.group_by(where, "reason", exclude_null=True, order="count", descending=True)
        helpfulness = await self.store.group_by(where, "is_helpful", exclude_null=True)
        engagement = await self.store.group_by(
            where, "user_id", avg_field="rating", order="count", descending=True, limit=TOP_LIMIT
        )
        top_rated, _ = await self.store.list(
            where,
            sort=[("rating", "desc"), ("match_score", "desc")],
            page=1,
            page_size=TOP_LIMIT,
        )
        applications = await self.store.count_applications_for(where)
        accommodation_sets = await self.store.rated_job_accommodations(where)

        helpful_counts = {row.value: row.count for row in helpfulness}

        return AnalyticsReport(
            overview=AnalyticsOverview(
                total_recommendations=total,
                average_rating=aggregates["avg"]["rating"] or 0,
                conversion_rate=conversion_rate(applications, total),
                period=period,
                start_date=start_date,
                end_date=end_date,
            ),
            rating_distribution=[RatingBucket(rating=row.value, count=row.count) for row in ratings],
            reason_distribution=[ReasonBucket(reason=row.value, count=row.count) for row in reasons],
            helpfulness_stats=HelpfulnessStats(
                helpful=helpful_counts.get(True, 0),
                not_helpful=helpful_counts.get(False, 0),
            ),
            match_score_stats=MatchScoreStats(
                average=aggregates["avg"]["match_score"] or 0,
                minimum=aggregates["min"]["match_score"] or 0,
                maximum=aggregates["max"]["match_score"] or 0,
            ),
            top_rated_jobs=[
                TopRatedJob(
                    job_id=rec.job_id,
                    job_title=rec.job.title if rec.job else None,
                    company_name=rec.job.company.name if rec.job and rec.job.company else None,
                    rating=rec.rating,
                    match_score=rec.match_score,
                    reason=rec.reason,
                )
                for rec in top_rated
            ],
            user_engagement=[
                UserEngagement(user_id=row.value, recommendation_count=row.count, average_rating=row.average)
                for row in engagement
            ],
            accommodation_insights=self._accommodation_insights(accommodation_sets),
        )

    @staticmethod
    def _accommodation_insights(accommodation_sets: List[List[str]]) -> List[AccommodationInsight]:
        counts = Counter(tuple(sorted(set(tags))) for tags in accommodation_sets)
        return [
            AccommodationInsight(accommodations=list(tags), job_count=count)
            for tags, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        ]

    async def run_action(self, action: str, user_id: Optional[str] = None) -> AdminActionResult:
        if action == "regenerate_all":
            processed = await self.regenerate_all()
            return AdminActionResult(
                message=f"Triggered regeneration for {processed} users",
                data={"processedUsers": processed},
            )
        if action == "cleanup_old":
            deleted = await self.cleanup_old()
            return AdminActionResult(
                message=f"Cleaned up {deleted} old recommendations",
                data={"deletedCount": deleted},
            )
        if action == "refresh_user":
            deleted = await self.refresh_user(user_id)
            return AdminActionResult(
                message=f"Cleared {deleted} recommendations for user",
                data={"deletedCount": deleted},
            )
        raise InvalidInputError("Invalid action")

    async def regenerate_all(self) -> int:
        """Expire ratings older than the cache window for every completed profile.

        Users are processed with bounded concurrency; the return value counts
        the users whose cleanup succeeded.
        """
        async with self.store.session() as session:
            result = await session.execute(
                select(UserProfile.user_id).where(UserProfile.status == ProfileStatus.COMPLETED)
            )
            user_ids = list(result.scalars().all())

        cutoff = hours_ago(self.cache_hours)
        semaphore = asyncio.Semaphore(self.batch_concurrency)

        async def expire(uid):
            async with semaphore:
                await self.store.delete_many(RatingFilter(user_id=uid, created_before=cutoff))
                return uid

        results = await asyncio.gather(*(expire(uid) for uid in user_ids), return_exceptions=True)
        failures = [r for r in results if isinstance(r, Exception)]
        for failure in failures:
            logger.error("Regeneration cleanup failed: %s", failure)

        processed = len(results) - len(failures)
        logger.info("regenerate_all processed %d of %d users", processed, len(user_ids))
        return processed

    async def cleanup_old(self) -> int:
        deleted = await self.store.delete_many(
            RatingFilter(created_before=days_ago(self.cleanup_after_days))
        )
        logger.info("cleanup_old deleted %d ratings", deleted)
        return deleted

    async def refresh_user(self, user_id: Optional[str]) -> int:
        if not user_id:
            raise MissingUserIdError()
        deleted = await self.store.delete_many(RatingFilter(user_id=user_id))
        logger.info("refresh_user cleared %d ratings for user %s", deleted, user_id)
        return deleted
