import math
from typing import Optional

from ..db.rating_store import DuplicateKeyError, RatingFilter, RatingStore, RecordNotFoundError
from ..models.job import Job
from ..models.rating import (
    SORT_FIELDS,
    JobRatingStats,
    JobRecommendationRating,
    PaginatedRatingResponse,
    Pagination,
    RatingCount,
    RatingCreate,
    RatingQuery,
    RatingRead,
    RatingUpdate,
    ReasonCount,
    UserRatingStats,
    is_valid_rating,
)
from ..models.user import User
from .errors import (
    DuplicateRatingError,
    ForbiddenError,
    InvalidInputError,
    JobNotFoundError,
    RatingNotFoundError,
    UserNotFoundError,
)


class RatingService:
    """Business rules over the rating store.

    Lookups return ``None`` on absence and leave the 404 decision to the
    caller; mutations raise typed errors. Existence is always checked before
    ownership, so a missing id is reported as not found even to non-owners.
    """

    def __init__(self, store: RatingStore):
        self.store = store

    async def list(self, query: Optional[RatingQuery] = None) -> PaginatedRatingResponse:
        query = query or RatingQuery()
        rating_filter = RatingFilter(
            user_id=query.user_id,
            job_id=query.job_id,
            rating=query.rating,
            reason=query.reason,
            recommended_by=query.recommended_by,
            is_helpful=query.is_helpful,
        )
        items, total = await self.store.list(
            rating_filter,
            sort=[(SORT_FIELDS[query.sort_by], query.sort_order)],
            page=query.page,
            page_size=query.limit,
        )
        return PaginatedRatingResponse(
            data=[RatingRead.model_validate(item) for item in items],
            pagination=Pagination(
                page=query.page,
                limit=query.limit,
                total=total,
                total_pages=math.ceil(total / query.limit),
            ),
        )

    async def get_by_id(self, rating_id: str) -> Optional[JobRecommendationRating]:
        return await self.store.get(rating_id)

    async def get_by_user_and_job(self, user_id: str, job_id: str) -> Optional[JobRecommendationRating]:
        return await self.store.get_by_user_and_job(user_id, job_id)

    async def create(self, user_id: str, data: RatingCreate) -> JobRecommendationRating:
        async with self.store.session() as session:
            user = await session.get(User, user_id)
            job = await session.get(Job, data.job_id)
        if not user:
            raise UserNotFoundError()
        if not job:
            raise JobNotFoundError()

        if await self.store.get_by_user_and_job(user_id, data.job_id):
            raise DuplicateRatingError()

        # user_id always comes from the authenticated caller
        rating = JobRecommendationRating(user_id=user_id, **data.model_dump(exclude_unset=True))
        try:
            return await self.store.create(rating)
        except DuplicateKeyError:
            raise DuplicateRatingError()

    async def update(self, rating_id: str, caller_user_id: str, data: RatingUpdate) -> JobRecommendationRating:
        await self._get_owned(rating_id, caller_user_id)

        fields = data.model_dump(exclude_unset=True)
        if "rating" in fields and not is_valid_rating(fields["rating"]):
            raise InvalidInputError("Rating must be an integer between 1 and 10")

        try:
            return await self.store.update(rating_id, fields)
        except RecordNotFoundError:
            raise RatingNotFoundError()

    async def delete(self, rating_id: str, caller_user_id: str) -> None:
        await self._get_owned(rating_id, caller_user_id)
        try:
            await self.store.delete(rating_id)
        except RecordNotFoundError:
            raise RatingNotFoundError()

    async def _get_owned(self, rating_id: str, caller_user_id: str) -> JobRecommendationRating:
        rating = await self.store.get(rating_id)
        if rating is None:
            raise RatingNotFoundError()
        if rating.user_id != caller_user_id:
            raise ForbiddenError("Unauthorized: You can only modify your own ratings")
        return rating

    async def get_user_stats(self, user_id: str) -> UserRatingStats:
        rating_filter = RatingFilter(user_id=user_id)
        base = await self._stats(rating_filter)
        reasons = await self.store.group_by(rating_filter, "reason", exclude_null=True)
        return UserRatingStats(
            **base.model_dump(),
            reason_distribution=[ReasonCount(reason=row.value, count=row.count) for row in reasons],
        )

    async def get_job_stats(self, job_id: str) -> JobRatingStats:
        return await self._stats(RatingFilter(job_id=job_id))

    async def _stats(self, rating_filter: RatingFilter) -> JobRatingStats:
        aggregates = await self.store.aggregate(rating_filter, avg_fields=["rating", "match_score"])
        helpful = await self.store.count(
            RatingFilter(
                user_id=rating_filter.user_id,
                job_id=rating_filter.job_id,
                is_helpful=True,
            )
        )
        distribution = await self.store.group_by(rating_filter, "rating")
        return JobRatingStats(
            total_ratings=aggregates["count"],
            average_rating=aggregates["avg"]["rating"],
            average_match_score=aggregates["avg"]["match_score"],
            helpful_ratings=helpful,
            rating_distribution=[RatingCount(rating=row.value, count=row.count) for row in distribution],
        )
