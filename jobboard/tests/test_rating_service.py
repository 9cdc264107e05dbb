import pytest

from jobboard.models.rating import RatingCreate, RatingQuery, RatingReason, RatingUpdate
from jobboard.services.errors import (
    DuplicateRatingError,
    ForbiddenError,
    InvalidInputError,
    JobNotFoundError,
    RatingNotFoundError,
    UserNotFoundError,
)
from jobboard.services.rating import RatingService

from conftest import make_company, make_job, make_rating, make_user


@pytest.fixture
def service(store):
    return RatingService(store)


@pytest.mark.asyncio
async def test_create_then_duplicate_keeps_original(session_maker, service):
    user = await make_user(session_maker)
    job = await make_job(session_maker, await make_company(session_maker))

    created = await service.create(user.id, RatingCreate(job_id=job.id, rating=8))
    assert created.user_id == user.id
    assert created.rating == 8

    with pytest.raises(DuplicateRatingError):
        await service.create(user.id, RatingCreate(job_id=job.id, rating=5))

    stored = await service.get_by_user_and_job(user.id, job.id)
    assert stored.rating == 8


@pytest.mark.asyncio
async def test_create_checks_user_then_job(session_maker, service):
    job = await make_job(session_maker, await make_company(session_maker))
    user = await make_user(session_maker)

    with pytest.raises(UserNotFoundError):
        await service.create("ghost", RatingCreate(job_id="missing-job", rating=5))
    with pytest.raises(JobNotFoundError):
        await service.create(user.id, RatingCreate(job_id="missing-job", rating=5))

    assert (await service.create(user.id, RatingCreate(job_id=job.id, rating=5))).job_id == job.id


@pytest.mark.asyncio
async def test_update_by_owner(session_maker, service):
    owner = await make_user(session_maker)
    job = await make_job(session_maker, await make_company(session_maker))
    rating = await make_rating(session_maker, owner, job, rating=4)

    updated = await service.update(rating.id, owner.id, RatingUpdate(rating=9, reason=RatingReason.PERFECT_MATCH))

    assert updated.rating == 9
    assert updated.reason == RatingReason.PERFECT_MATCH


@pytest.mark.asyncio
async def test_update_by_non_owner_is_forbidden_and_leaves_rating(session_maker, service):
    owner = await make_user(session_maker)
    intruder = await make_user(session_maker, email="intruder@example.com")
    job = await make_job(session_maker, await make_company(session_maker))
    rating = await make_rating(session_maker, owner, job, rating=4)

    with pytest.raises(ForbiddenError):
        await service.update(rating.id, intruder.id, RatingUpdate(rating=9))
    with pytest.raises(ForbiddenError):
        await service.delete(rating.id, intruder.id)

    assert (await service.get_by_id(rating.id)).rating == 4


@pytest.mark.asyncio
async def test_missing_rating_is_not_found_before_forbidden(service):
    with pytest.raises(RatingNotFoundError):
        await service.update("nonexistent-id", "anyone", RatingUpdate(rating=5))
    with pytest.raises(RatingNotFoundError):
        await service.delete("nonexistent-id", "anyone")


@pytest.mark.asyncio
async def test_update_revalidates_rating(session_maker, service):
    owner = await make_user(session_maker)
    job = await make_job(session_maker, await make_company(session_maker))
    rating = await make_rating(session_maker, owner, job, rating=4)

    # model_construct skips the schema so the service check is what runs
    with pytest.raises(InvalidInputError):
        await service.update(rating.id, owner.id, RatingUpdate.model_construct(rating=11))


@pytest.mark.asyncio
async def test_delete_by_owner(session_maker, service):
    owner = await make_user(session_maker)
    job = await make_job(session_maker, await make_company(session_maker))
    rating = await make_rating(session_maker, owner, job)

    await service.delete(rating.id, owner.id)

    assert await service.get_by_id(rating.id) is None


@pytest.mark.asyncio
async def test_list_pagination(session_maker, service):
    user = await make_user(session_maker)
    company = await make_company(session_maker)
    for i in range(25):
        await make_rating(session_maker, user, await make_job(session_maker, company, title=f"Job {i}"), age_hours=i)

    result = await service.list(RatingQuery(user_id=user.id, page=3, limit=5))

    assert result.pagination.total == 25
    assert result.pagination.total_pages == 5
    assert len(result.data) == 5
    # newest first: page 3 holds the 11th to 15th newest
    assert [r.job.title for r in result.data] == [f"Job {i}" for i in range(10, 15)]


@pytest.mark.asyncio
async def test_list_total_pages_rounds_up(session_maker, service):
    user = await make_user(session_maker)
    company = await make_company(session_maker)
    for i in range(7):
        await make_rating(session_maker, user, await make_job(session_maker, company, title=f"Job {i}"))

    result = await service.list(RatingQuery(limit=3))
    assert result.pagination.total_pages == 3


@pytest.mark.asyncio
async def test_user_stats(session_maker, service):
    user = await make_user(session_maker)
    company = await make_company(session_maker)
    rows = [
        (9, 90.0, True, RatingReason.PERFECT_MATCH),
        (7, 70.0, True, RatingReason.GOOD_FIT),
        (7, 65.0, False, RatingReason.GOOD_FIT),
        (2, 20.0, None, None),
    ]
    for i, (value, score, helpful, reason) in enumerate(rows):
        await make_rating(
            session_maker, user, await make_job(session_maker, company, title=f"Job {i}"),
            rating=value, match_score=score, is_helpful=helpful, reason=reason,
        )

    stats = await service.get_user_stats(user.id)

    assert stats.total_ratings == 4
    assert stats.average_rating == pytest.approx(25 / 4)
    assert stats.average_match_score == pytest.approx(245 / 4)
    assert stats.helpful_ratings == 2
    assert [(b.rating, b.count) for b in stats.rating_distribution] == [(2, 1), (7, 2), (9, 1)]
    assert sum(b.count for b in stats.rating_distribution) == stats.total_ratings
    assert {(b.reason, b.count) for b in stats.reason_distribution} == {
        (RatingReason.PERFECT_MATCH, 1),
        (RatingReason.GOOD_FIT, 2),
    }


@pytest.mark.asyncio
async def test_job_stats_for_unrated_job(session_maker, service):
    job = await make_job(session_maker, await make_company(session_maker))

    stats = await service.get_job_stats(job.id)

    assert stats.total_ratings == 0
    assert stats.average_rating is None
    assert stats.helpful_ratings == 0
    assert stats.rating_distribution == []
