"""Persistence for recommendation ratings.

The (user_id, job_id) uniqueness rule lives in the table's unique constraint;
every write here relies on it rather than on a read-before-write check. Each
call runs in its own session so callers can issue calls concurrently.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, asc, delete, desc, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlmodel import select

from ..models.job import Job, JobApplication
from ..models.rating import JobRecommendationRating as Rating
from ..models.rating import RatingReason
from ..utils.utils import new_id, utc_now

_DIALECT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}

MUTABLE_FIELDS = {
    "rating",
    "feedback",
    "reason",
    "recommended_by",
    "match_score",
    "is_helpful",
}

QUERYABLE_FIELDS = MUTABLE_FIELDS | {"id", "user_id", "job_id", "created_at", "updated_at"}


class DuplicateKeyError(Exception):
    pass


class RecordNotFoundError(Exception):
    pass


@dataclass
class RatingFilter:
    user_id: Optional[str] = None
    job_id: Optional[str] = None
    rating: Optional[int] = None
    reason: Optional[RatingReason] = None
    recommended_by: Optional[str] = None
    is_helpful: Optional[bool] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None

    def clauses(self) -> list:
        clauses = []
        if self.user_id is not None:
            clauses.append(Rating.user_id == self.user_id)
        if self.job_id is not None:
            clauses.append(Rating.job_id == self.job_id)
        if self.rating is not None:
            clauses.append(Rating.rating == self.rating)
        if self.reason is not None:
            clauses.append(Rating.reason == self.reason)
        if self.recommended_by is not None:
            clauses.append(Rating.recommended_by == self.recommended_by)
        if self.is_helpful is not None:
            clauses.append(Rating.is_helpful == self.is_helpful)
        if self.created_after is not None:
            clauses.append(Rating.created_at >= self.created_after)
        if self.created_before is not None:
            clauses.append(Rating.created_at < self.created_before)
        return clauses


@dataclass
class GroupRow:
    value: Any
    count: int
    average: Optional[float] = None


def _column(field_name: str):
    if field_name not in QUERYABLE_FIELDS:
        raise ValueError(f"Unknown rating field: {field_name}")
    return getattr(Rating, field_name)


def _writable(fields: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be written: {sorted(unknown)}")
    return dict(fields)


class RatingStore:
    def __init__(self, session_maker):
        self._session_maker = session_maker

    def session(self):
        return self._session_maker()

    def _select(self):
        return select(Rating).options(
            selectinload(Rating.user),
            selectinload(Rating.job).selectinload(Job.company),
        )

    async def get(self, rating_id: str) -> Optional[Rating]:
        async with self.session() as session:
            result = await session.execute(self._select().where(Rating.id == rating_id))
            return result.scalar_one_or_none()

    async def get_by_user_and_job(self, user_id: str, job_id: str) -> Optional[Rating]:
        async with self.session() as session:
            result = await session.execute(
                self._select().where(Rating.user_id == user_id, Rating.job_id == job_id)
            )
            return result.scalar_one_or_none()

    async def list(
        self,
        filter: RatingFilter,
        sort: Sequence[Tuple[str, str]] = (("created_at", "desc"),),
        page: int = 1,
        page_size: int = 10,
    ) -> Tuple[List[Rating], int]:
        clauses = filter.clauses()

        statement = self._select().where(*clauses)
        for field_name, direction in sort:
            order_func = desc if direction == "desc" else asc
            statement = statement.order_by(order_func(_column(field_name)))
        statement = statement.order_by(asc(Rating.id))
        statement = statement.offset((page - 1) * page_size).limit(page_size)

        count_statement = select(func.count()).select_from(Rating).where(*clauses)

        async with self.session() as session:
            result = await session.execute(statement)
            items = list(result.scalars().all())
            total = (await session.execute(count_statement)).scalar_one()
        return items, total

    async def count(self, filter: RatingFilter) -> int:
        statement = select(func.count()).select_from(Rating).where(*filter.clauses())
        async with self.session() as session:
            return (await session.execute(statement)).scalar_one()

    async def create(self, rating: Rating) -> Rating:
        async with self.session() as session:
            session.add(rating)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                existing = await session.execute(
                    select(Rating.id).where(
                        Rating.user_id == rating.user_id, Rating.job_id == rating.job_id
                    )
                )
                if existing.first() is not None:
                    raise DuplicateKeyError(
                        f"Rating already exists for user {rating.user_id} and job {rating.job_id}"
                    )
                raise
        return await self.get(rating.id)

    async def upsert(self, user_id: str, job_id: str, fields: Dict[str, Any]) -> Rating:
        fields = _writable(fields)
        now = utc_now()
        async with self.session() as session:
            insert = _DIALECT_INSERTS.get(session.get_bind().dialect.name)
            if insert is None:
                await self._upsert_generic(session, user_id, job_id, fields, now)
            else:
                statement = (
                    insert(Rating)
                    .values(
                        id=new_id(),
                        user_id=user_id,
                        job_id=job_id,
                        created_at=now,
                        updated_at=now,
                        **fields,
                    )
                    .on_conflict_do_update(
                        index_elements=["user_id", "job_id"],
                        set_={**fields, "updated_at": now},
                    )
                )
                await session.execute(statement)
                await session.commit()
        return await self.get_by_user_and_job(user_id, job_id)

    async def _upsert_generic(self, session, user_id, job_id, fields, now):
        # For dialects without INSERT ... ON CONFLICT: try insert, fall back to update
        session.add(
            Rating(user_id=user_id, job_id=job_id, created_at=now, updated_at=now, **fields)
        )
        try:
            await session.commit()
            return
        except IntegrityError:
            await session.rollback()
        result = await session.execute(
            select(Rating).where(Rating.user_id == user_id, Rating.job_id == job_id)
        )
        existing = result.scalar_one()
        for key, value in fields.items():
            setattr(existing, key, value)
        existing.updated_at = now
        await session.commit()

    async def update(self, rating_id: str, fields: Dict[str, Any]) -> Rating:
        return await self._update_where(Rating.id == rating_id, _writable(fields))

    async def update_by_user_and_job(self, user_id: str, job_id: str, fields: Dict[str, Any]) -> Rating:
        return await self._update_where(
            and_(Rating.user_id == user_id, Rating.job_id == job_id), _writable(fields)
        )

    async def _update_where(self, condition, fields) -> Rating:
        async with self.session() as session:
            result = await session.execute(select(Rating).where(condition))
            rating = result.scalar_one_or_none()
            if rating is None:
                raise RecordNotFoundError("Recommendation rating not found")
            for key, value in fields.items():
                setattr(rating, key, value)
            rating.updated_at = utc_now()
            session.add(rating)
            await session.commit()
            rating_id = rating.id
        return await self.get(rating_id)

    async def delete(self, rating_id: str) -> None:
        await self._delete_one(Rating.id == rating_id)

    async def delete_by_user_and_job(self, user_id: str, job_id: str) -> None:
        await self._delete_one(and_(Rating.user_id == user_id, Rating.job_id == job_id))

    async def _delete_one(self, condition) -> None:
        async with self.session() as session:
            result = await session.execute(select(Rating).where(condition))
            rating = result.scalar_one_or_none()
            if rating is None:
                raise RecordNotFoundError("Recommendation rating not found")
            await session.delete(rating)
            await session.commit()

    async def delete_many(self, filter: RatingFilter) -> int:
        async with self.session() as session:
            result = await session.execute(delete(Rating).where(*filter.clauses()))
            await session.commit()
            return result.rowcount or 0

    async def aggregate(
        self,
        filter: RatingFilter,
        avg_fields: Sequence[str] = (),
        min_fields: Sequence[str] = (),
        max_fields: Sequence[str] = (),
    ) -> Dict[str, Any]:
        """Count plus avg/min/max over numeric fields.

        Returns ``{"count": n, "avg": {...}, "min": {...}, "max": {...}}``; an
        empty match yields ``None`` for every avg/min/max entry.
        """
        labelled = [func.count().label("count")]
        for name, fn, fields in (
            ("avg", func.avg, avg_fields),
            ("min", func.min, min_fields),
            ("max", func.max, max_fields),
        ):
            labelled.extend(fn(_column(f)).label(f"{name}__{f}") for f in fields)

        statement = select(*labelled).select_from(Rating).where(*filter.clauses())
        async with self.session() as session:
            row = (await session.execute(statement)).one()._mapping

        aggregates: Dict[str, Any] = {"count": row["count"], "avg": {}, "min": {}, "max": {}}
        for key, value in row.items():
            if "__" in key:
                name, field_name = key.split("__", 1)
                aggregates[name][field_name] = float(value) if value is not None else None
        return aggregates

    async def group_by(
        self,
        filter: RatingFilter,
        by: str,
        avg_field: Optional[str] = None,
        exclude_null: bool = False,
        order: str = "value",
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[GroupRow]:
        column = _column(by)
        count_column = func.count().label("count")
        selected = [column, count_column]
        if avg_field:
            selected.append(func.avg(_column(avg_field)).label("average"))

        statement = select(*selected).where(*filter.clauses()).group_by(column)
        if exclude_null:
            statement = statement.where(column.is_not(None))

        order_func = desc if descending else asc
        ordering = count_column if order == "count" else column
        statement = statement.order_by(order_func(ordering), asc(column))
        if limit:
            statement = statement.limit(limit)

        async with self.session() as session:
            rows = (await session.execute(statement)).all()

        return [
            GroupRow(
                value=row[0],
                count=row[1],
                average=float(row[2]) if avg_field and row[2] is not None else None,
            )
            for row in rows
        ]

    async def count_applications_for(self, filter: RatingFilter) -> int:
        """Applications whose (job_id, user_id) matches a rating in ``filter``."""
        statement = (
            select(func.count(JobApplication.id))
            .select_from(JobApplication)
            .join(
                Rating,
                and_(
                    Rating.job_id == JobApplication.job_id,
                    Rating.user_id == JobApplication.user_id,
                ),
            )
            .where(*filter.clauses())
        )
        async with self.session() as session:
            return (await session.execute(statement)).scalar_one()

    async def rated_job_accommodations(self, filter: RatingFilter) -> List[List[str]]:
        rated_jobs = select(Rating.job_id).where(*filter.clauses())
        statement = select(Job.accommodations).where(Job.id.in_(rated_jobs))
        async with self.session() as session:
            result = await session.execute(statement)
            return [list(accommodations or []) for accommodations in result.scalars().all()]
