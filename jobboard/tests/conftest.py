from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlmodel import SQLModel

from jobboard import db
from jobboard.core.config import Settings
from jobboard.db.rating_store import RatingStore
from jobboard.main import create_app
from jobboard.models.job import Company, Job, JobApplication, JobStatus
from jobboard.models.rating import JobRecommendationRating
from jobboard.models.recommendation import (
    RecommendationAnalysis,
    ScoredRecommendation,
    ScoringResult,
)
from jobboard.models.user import User, UserProfile, UserRole
from jobboard.utils.auth import create_access_token
from jobboard.utils.utils import hours_ago, utc_now

SECRET_KEY = "test-secret-key"


class FakeScorer:
    """Stands in for the AI scorer; ranks jobs in the order given."""

    def __init__(self, recommendations=None, error=None):
        self.recommendations = recommendations
        self.error = error
        self.calls = []

    async def score(self, request):
        self.calls.append(request)
        if self.error:
            raise self.error
        if self.recommendations is not None:
            recommendations = self.recommendations
        else:
            recommendations = [
                ScoredRecommendation(
                    job_id=job.id,
                    rating=max(1, 9 - index),
                    match_score=90 - index * 5,
                    reason="GOOD_FIT",
                    feedback=f"Good fit for {job.title}",
                )
                for index, job in enumerate(request.available_jobs)
            ]
        return ScoringResult(
            recommendations=recommendations[: request.preferences.max_recommendations],
            analysis=RecommendationAnalysis(total_jobs_analyzed=len(request.available_jobs)),
        )


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        SECRET_KEY=SECRET_KEY,
        GEMINI_API_KEY=None,
    )


@pytest_asyncio.fixture(scope="function")
async def async_engine(settings):
    engine = db.init_db(settings)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(async_engine):
    return db.create_session_maker(async_engine)


@pytest_asyncio.fixture
async def async_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def store(session_maker):
    return RatingStore(session_maker)


@pytest.fixture
def fake_scorer():
    return FakeScorer()


@pytest_asyncio.fixture
async def app(settings, fake_scorer):
    app = create_app(settings, scorer=fake_scorer)
    await db.create_tables(app.state.engine)
    yield app
    await app.state.engine.dispose()


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def auth_headers(user):
    token = create_access_token(
        data={"sub": user.email}, secret_key=SECRET_KEY, expires_delta=timedelta(minutes=30)
    )
    return {"Authorization": f"Bearer {token}"}


async def add_all(session_maker, *instances):
    async with session_maker() as session:
        session.add_all(instances)
        await session.commit()
    return instances


async def make_user(session_maker, email="jane@example.com", role=UserRole.USER, profile_status=None, **kwargs):
    user = User(
        email=email,
        name=kwargs.pop("name", email.split("@")[0].title()),
        hashed_password=kwargs.pop("hashed_password", "not-a-real-hash"),
        role=role,
        **kwargs,
    )
    instances = [user]
    if profile_status is not None:
        instances.append(UserProfile(
            user_id=user.id,
            status=profile_status,
            full_name=user.name,
            location="Bangkok",
            disability_types=["Visual"],
            hard_skills=["Python"],
            industries=["Technology"],
            work_arrangement="Remote",
        ))
    await add_all(session_maker, *instances)
    return user


async def make_company(session_maker, name="Acme", industry="Technology"):
    company = Company(name=name, industry=industry)
    await add_all(session_maker, company)
    return company


async def make_job(session_maker, company, title="Developer", **kwargs):
    kwargs.setdefault("status", JobStatus.PUBLISHED)
    kwargs.setdefault("published_at", utc_now())
    job = Job(title=title, slug=title.lower().replace(" ", "-"), company_id=company.id, **kwargs)
    await add_all(session_maker, job)
    return job


async def make_rating(session_maker, user, job, rating=7, age_hours=0, **kwargs):
    created = hours_ago(age_hours)
    record = JobRecommendationRating(
        user_id=user.id,
        job_id=job.id,
        rating=rating,
        created_at=created,
        updated_at=created,
        **kwargs,
    )
    await add_all(session_maker, record)
    return record


async def make_application(session_maker, user, job):
    application = JobApplication(user_id=user.id, job_id=job.id)
    await add_all(session_maker, application)
    return application
