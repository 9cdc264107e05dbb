"""Job scoring collaborators.

``JobScorer`` is the narrow interface the recommendation generator depends
on. ``GeminiJobScorer`` asks Google Gemini to rank the candidate jobs and
falls back to a fixed ranking when no API key is configured or the model
answers with something that is not the expected JSON.
"""
import json
import logging
import re
from typing import List, Protocol

import google.generativeai as genai
from pydantic import ValidationError

from ..models.rating import RatingReason
from ..models.recommendation import (
    MatchFactors,
    RecommendationAnalysis,
    ScoredRecommendation,
    ScoringRequest,
    ScoringResult,
)
from .errors import ScoringFailedError

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*")

SYSTEM_PROMPT = """You match job seekers with disabilities to inclusive job openings.
Weigh the factors as follows: accommodation fit 30%, skills 25%, work
arrangement 20%, industry and role 15%, location 10%.

Rating scale (1-10) and the reason to report with it:
- 9-10 PERFECT_MATCH
- 7-8 GOOD_FIT
- 5-6 SOME_INTEREST
- 3-4 NOT_RELEVANT
- 1-2 POOR_MATCH
Other allowed reasons: ALREADY_APPLIED, LOCATION_ISSUE, SALARY_MISMATCH,
SKILL_MISMATCH, ACCOMMODATION_CONCERN.

Use respectful, person-first language in feedback and keep it actionable.

Answer with JSON only, shaped as:
{"recommendations": [{"jobId": str, "rating": int, "matchScore": number,
  "reason": str, "feedback": str, "matchFactors": {"skillsMatch": number,
  "accommodationMatch": number, "locationMatch": number,
  "workArrangementMatch": number, "industryMatch": number,
  "experienceMatch": number}}],
 "analysis": {"totalJobsAnalyzed": int, "topMatchingFactors": [str],
  "recommendedSkillImprovements": [str], "accommodationInsights": [str]}}
"""


class JobScorer(Protocol):
    async def score(self, request: ScoringRequest) -> ScoringResult:
        ...


def _joined(values, default="Not specified"):
    return ", ".join(values) if values else default


def build_prompt(request: ScoringRequest) -> str:
    profile = request.user_profile
    preferences = request.preferences

    lines = [
        SYSTEM_PROMPT,
        "## Candidate",
        f"- Location: {profile.location or 'Not specified'}",
        f"- Disability types: {_joined(profile.disability_types)}",
        f"- Support needs: {profile.support_needs or 'Not specified'}",
        f"- Assistive technology: {_joined(profile.assistive_tech, 'None specified')}",
        f"- Accommodation requirements: {profile.accommodations or 'Not specified'}",
        f"- Soft skills: {_joined(profile.soft_skills)}",
        f"- Hard skills: {_joined(profile.hard_skills)}",
        f"- Target industries: {_joined(profile.industries)}",
        f"- Work arrangement: {profile.work_arrangement or 'Not specified'}",
        f"- Summary: {profile.custom_summary or 'Not provided'}",
        "",
        "## Jobs",
    ]
    for index, job in enumerate(request.available_jobs, start=1):
        company = job.company.name if job.company else "Unknown"
        if job.salary_min and job.salary_max:
            salary = f"{job.salary_min} - {job.salary_max} {job.salary_currency or ''}".strip()
        else:
            salary = "Not specified"
        lines.extend([
            f"### Job {index}: {job.title}",
            f"- Job ID: {job.id}",
            f"- Company: {company}",
            f"- Location: {job.location or 'Not specified'}",
            f"- Work type: {job.work_type or 'Not specified'}",
            f"- Experience level: {job.experience or 'Not specified'}",
            f"- Remote: {'Yes' if job.is_remote else 'No'}; Hybrid: {'Yes' if job.is_hybrid else 'No'}",
            f"- Salary: {salary}",
            f"- Accommodations: {_joined(job.accommodations)}",
            f"- Accommodation details: {job.accommodation_details or 'Not provided'}",
            f"- Requirements: {_joined(job.requirements)}",
            f"- Preferred skills: {_joined(job.preferred_skills)}",
        ])
    lines.extend([
        "",
        "## Preferences",
        f"- Maximum recommendations: {preferences.max_recommendations}",
        f"- Minimum match score: {preferences.min_match_score}%",
        f"- Prioritize accommodations: {'Yes' if preferences.prioritize_accommodations else 'No'}",
        f"- Exclude applied jobs: {_joined(preferences.exclude_applied_jobs, 'None')}",
    ])
    return "\n".join(lines)


def _clamp(value, low, high):
    return max(low, min(high, value))


def parse_response(text: str) -> ScoringResult:
    """Parse the model's JSON reply.

    Items are validated one at a time and a malformed item is dropped, so one
    bad entry does not cost the rest of the reply. Raises ``ValueError`` when
    the reply as a whole is not the expected JSON object.
    """
    payload = json.loads(_FENCE.sub("", text).strip())
    if not isinstance(payload, dict):
        raise ValueError("Scorer reply is not a JSON object")
    items = payload.get("recommendations") or []
    if not isinstance(items, list):
        raise ValueError("Scorer reply recommendations is not a list")

    recommendations = []
    for item in items:
        try:
            recommendations.append(ScoredRecommendation.model_validate(item))
        except ValidationError as exc:
            logger.warning("Dropping malformed scored item: %s", exc.errors(include_url=False))
    return ScoringResult(
        recommendations=recommendations,
        analysis=RecommendationAnalysis.model_validate(payload.get("analysis") or {}),
    )


def sanitize(result: ScoringResult, request: ScoringRequest) -> ScoringResult:
    candidate_ids = {job.id for job in request.available_jobs}
    seen = set()
    recommendations: List[ScoredRecommendation] = []
    for rec in result.recommendations:
        if not rec.job_id or rec.job_id not in candidate_ids or rec.job_id in seen:
            continue
        seen.add(rec.job_id)
        factors = MatchFactors(**{
            name: _clamp(value, 0, 100)
            for name, value in rec.match_factors.model_dump().items()
        })
        recommendations.append(rec.model_copy(update={
            "rating": _clamp(rec.rating, 1, 10),
            "match_score": _clamp(float(rec.match_score), 0, 100),
            "recommended_by": "AI",
            "match_factors": factors,
        }))
    return ScoringResult(
        recommendations=recommendations[: request.preferences.max_recommendations],
        analysis=result.analysis,
    )


def fallback_recommendations(request: ScoringRequest) -> ScoringResult:
    profile = request.user_profile
    recommendations = []
    for index, job in enumerate(request.available_jobs[:5]):
        company = job.company.name if job.company else "the company"
        setting = "remote work options" if job.is_remote else "on-site opportunities"
        industry = (job.company.industry or "").lower() if job.company else ""
        recommendations.append(ScoredRecommendation(
            job_id=job.id,
            rating=max(1, 8 - index),
            match_score=max(50, 85 - index * 8),
            reason=RatingReason.GOOD_FIT,
            feedback=(
                f"This {job.title} position at {company} shows potential alignment with "
                f"your profile. The role offers {setting}."
            ),
            recommended_by="AI",
            match_factors=MatchFactors(
                accommodation_match=80 if job.accommodations else 50,
                work_arrangement_match=90 if profile.work_arrangement == job.work_type else 60,
                industry_match=85 if industry and any(i.lower() in industry for i in profile.industries) else 60,
            ),
        ))

    return ScoringResult(
        recommendations=recommendations[: request.preferences.max_recommendations],
        analysis=RecommendationAnalysis(
            total_jobs_analyzed=len(request.available_jobs),
            top_matching_factors=["Skills alignment", "Work arrangement fit", "Location compatibility"],
            recommended_skill_improvements=["Communication skills", "Technical proficiency", "Industry knowledge"],
            accommodation_insights=["Remote work options available", "Assistive technology support", "Flexible scheduling"],
        ),
    )


class GeminiJobScorer:
    def __init__(self, api_key=None, model_name="gemini-2.5-flash", model=None):
        self.api_key = api_key
        self.model_name = model_name
        self._model = model

    @property
    def model(self):
        if self._model is None and self.api_key:
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name)
        return self._model

    async def score(self, request: ScoringRequest) -> ScoringResult:
        if self.model is None:
            logger.warning("No GEMINI_API_KEY configured, using fallback recommendations")
            return fallback_recommendations(request)

        logger.info(
            "Scoring %d jobs for profile %s",
            len(request.available_jobs),
            request.user_profile.id,
        )
        try:
            response = await self.model.generate_content_async(build_prompt(request))
            text = response.text
        except Exception as exc:
            logger.exception("Gemini request failed")
            raise ScoringFailedError() from exc

        try:
            result = parse_response(text)
        except ValueError:
            logger.warning("Unparsable scorer response, using fallback recommendations")
            logger.debug("Raw scorer response: %s", text)
            return fallback_recommendations(request)

        return sanitize(result, request)
