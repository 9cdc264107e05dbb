import json

import pytest

from jobboard.models.job import Company, Job
from jobboard.models.rating import RatingReason
from jobboard.models.recommendation import ScoringPreferences, ScoringRequest
from jobboard.models.user import ProfileStatus, UserProfile
from jobboard.services.errors import ScoringFailedError
from jobboard.services.scoring import (
    GeminiJobScorer,
    build_prompt,
    fallback_recommendations,
    parse_response,
)


def scoring_request(job_count=3, max_recommendations=10):
    company = Company(id="c1", name="Acme", industry="Technology")
    jobs = []
    for i in range(job_count):
        job = Job(
            id=f"job-{i}",
            title=f"Engineer {i}",
            company_id=company.id,
            work_type="Remote",
            is_remote=i % 2 == 0,
            accommodations=["Screen reader"] if i == 0 else [],
        )
        job.company = company
        jobs.append(job)
    profile = UserProfile(
        id="p1",
        user_id="u1",
        status=ProfileStatus.COMPLETED,
        location="Bangkok",
        hard_skills=["Python", "SQL"],
        industries=["Technology"],
        work_arrangement="Remote",
    )
    return ScoringRequest(
        user_profile=profile,
        available_jobs=jobs,
        preferences=ScoringPreferences(max_recommendations=max_recommendations),
    )


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return FakeResponse(self.text)


def model_reply(recommendations):
    payload = {
        "recommendations": recommendations,
        "analysis": {
            "totalJobsAnalyzed": 3,
            "topMatchingFactors": ["Skills"],
            "recommendedSkillImprovements": [],
            "accommodationInsights": [],
        },
    }
    return "```json\n" + json.dumps(payload) + "\n```"


def test_build_prompt_lists_jobs_and_preferences():
    prompt = build_prompt(scoring_request())

    assert "Job ID: job-0" in prompt
    assert "Company: Acme" in prompt
    assert "Hard skills: Python, SQL" in prompt
    assert "Maximum recommendations: 10" in prompt


def test_parse_response_strips_fences():
    result = parse_response(model_reply([{"jobId": "job-1", "rating": 7, "matchScore": 70}]))
    assert result.recommendations[0].job_id == "job-1"
    assert result.analysis.top_matching_factors == ["Skills"]


def test_fallback_ranks_first_five_jobs():
    result = fallback_recommendations(scoring_request(job_count=7))

    assert [r.job_id for r in result.recommendations] == [f"job-{i}" for i in range(5)]
    assert [r.rating for r in result.recommendations] == [8, 7, 6, 5, 4]
    assert [r.match_score for r in result.recommendations] == [85, 77, 69, 61, 53]
    assert all(r.reason == RatingReason.GOOD_FIT for r in result.recommendations)
    assert result.recommendations[0].match_factors.accommodation_match == 80
    assert result.analysis.total_jobs_analyzed == 7


@pytest.mark.asyncio
async def test_scorer_without_api_key_uses_fallback():
    result = await GeminiJobScorer(api_key=None).score(scoring_request())
    assert len(result.recommendations) == 3
    assert result.recommendations[0].recommended_by == "AI"


@pytest.mark.asyncio
async def test_scorer_sanitizes_model_output():
    model = FakeModel(model_reply([
        {"jobId": "job-0", "rating": 14, "matchScore": 130, "reason": "PERFECT_MATCH", "recommendedBy": "GPT"},
        {"jobId": "not-a-candidate", "rating": 8, "matchScore": 80},
        {"jobId": "", "rating": 8, "matchScore": 80},
        {"jobId": "job-1", "rating": 0, "matchScore": -5},
        {"jobId": "job-2", "rating": 6, "matchScore": 60},
    ]))
    scorer = GeminiJobScorer(model=model)

    result = await scorer.score(scoring_request(max_recommendations=2))

    assert len(model.prompts) == 1
    assert [r.job_id for r in result.recommendations] == ["job-0", "job-1"]
    first, second = result.recommendations
    assert (first.rating, first.match_score, first.recommended_by) == (10, 100, "AI")
    assert (second.rating, second.match_score) == (1, 0)


@pytest.mark.asyncio
async def test_scorer_falls_back_on_unparsable_output():
    scorer = GeminiJobScorer(model=FakeModel("I cannot help with that"))

    result = await scorer.score(scoring_request())

    assert [r.rating for r in result.recommendations] == [8, 7, 6]


@pytest.mark.asyncio
async def test_scorer_api_error_raises_scoring_failed():
    scorer = GeminiJobScorer(model=FakeModel(error=ConnectionError("timeout")))

    with pytest.raises(ScoringFailedError):
        await scorer.score(scoring_request())


@pytest.mark.asyncio
async def test_scorer_keeps_good_items_next_to_malformed_ones():
    model = FakeModel(model_reply([
        {"jobId": "job-2", "rating": 9, "matchScore": 92, "reason": "PERFECT_MATCH"},
        {"jobId": "job-1", "rating": 7.5, "matchScore": 75, "reason": "GOOD_FIT"},
        {"jobId": "job-0", "rating": 6, "matchScore": 61, "reason": "AMAZING"},
        {"rating": 5, "matchScore": 50},
    ]))

    result = await GeminiJobScorer(model=model).score(scoring_request())

    assert [r.job_id for r in result.recommendations] == ["job-2", "job-1", "job-0"]
    assert [r.rating for r in result.recommendations] == [9, 8, 6]
    assert result.recommendations[0].reason == RatingReason.PERFECT_MATCH
    assert result.recommendations[2].reason is None
    assert result.analysis.top_matching_factors == ["Skills"]


@pytest.mark.asyncio
async def test_scorer_drops_repeated_job_ids():
    model = FakeModel(model_reply([
        {"jobId": "job-0", "rating": 9, "matchScore": 90},
        {"jobId": "job-0", "rating": 4, "matchScore": 40},
        {"jobId": "job-1", "rating": 7, "matchScore": 70},
    ]))

    result = await GeminiJobScorer(model=model).score(scoring_request())

    assert [(r.job_id, r.rating) for r in result.recommendations] == [("job-0", 9), ("job-1", 7)]


def test_parse_response_rejects_non_object_reply():
    with pytest.raises(ValueError):
        parse_response("[1, 2, 3]")
