import asyncio
import random
from datetime import timedelta

from jobboard import db
from jobboard.core.config import get_settings
from jobboard.models.job import Company, Job, JobStatus
from jobboard.models.user import ProfileStatus, User, UserProfile, UserRole
from jobboard.utils.auth import get_password_hash
from jobboard.utils.utils import utc_now

sample_companies = [
    ("Brightpath Software", "Technology"),
    ("Harbor Health", "Healthcare"),
    ("Northwind Logistics", "Logistics"),
    ("Clearview Finance", "Finance"),
]

sample_titles = [
    "Frontend Developer", "Data Analyst", "Customer Support Specialist",
    "QA Engineer", "Technical Writer", "Accessibility Tester",
    "Backend Developer", "Project Coordinator", "UX Researcher",
]

sample_accommodations = [
    "Screen reader support", "Flexible hours", "Remote work",
    "Sign language interpreter", "Accessible workspace", "Captioned meetings",
]

work_types = ["Remote", "Hybrid", "On-site"]


async def add_jobs(num_jobs: int):
    settings = get_settings()
    engine = db.init_db(settings)
    session_maker = db.create_session_maker(engine)

    async with session_maker() as session:
        companies = [Company(name=name, industry=industry) for name, industry in sample_companies]
        session.add_all(companies)

        for _ in range(num_jobs):
            company = random.choice(companies)
            title = random.choice(sample_titles)
            work_type = random.choice(work_types)
            salary_min = random.randrange(25000, 60000, 5000)
            session.add(Job(
                title=title,
                slug=f"{title.lower().replace(' ', '-')}-{random.randint(1000, 9999)}",
                company_id=company.id,
                location=random.choice(["Bangkok", "Chiang Mai", "Remote"]),
                work_type=work_type,
                is_remote=work_type == "Remote",
                is_hybrid=work_type == "Hybrid",
                salary_min=salary_min,
                salary_max=salary_min + 15000,
                salary_currency="THB",
                accommodations=random.sample(sample_accommodations, 2),
                requirements=["Good communication"],
                status=JobStatus.PUBLISHED,
                published_at=utc_now() - timedelta(days=random.randint(0, 20)),
                application_deadline=utc_now() + timedelta(days=random.randint(10, 60)),
            ))

        admin = User(
            email="admin@example.com",
            name="Admin",
            hashed_password=get_password_hash("admin1234"),
            role=UserRole.ADMIN,
        )
        seeker = User(
            email="seeker@example.com",
            name="Job Seeker",
            hashed_password=get_password_hash("seeker1234"),
        )
        session.add_all([admin, seeker])
        session.add(UserProfile(
            user_id=seeker.id,
            status=ProfileStatus.COMPLETED,
            full_name="Job Seeker",
            location="Bangkok",
            disability_types=["Visual impairment"],
            assistive_tech=["Screen reader"],
            hard_skills=["Python", "SQL"],
            soft_skills=["Teamwork"],
            industries=["Technology"],
            work_arrangement="Remote",
        ))

        await session.commit()

    await db.close_engine(engine)
    print(f"{len(sample_companies)} companies and {num_jobs} jobs have been added to the database.")


if __name__ == "__main__":
    num_jobs_to_add = 20  # You can change this number
    asyncio.run(add_jobs(num_jobs_to_add))
