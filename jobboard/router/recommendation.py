import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ..db import get_rating_store
from ..db.rating_store import RatingStore
from ..models.rating import RatingRead
from ..models.recommendation import (
    AdminActionRequest,
    AdminActionResult,
    AnalyticsPeriod,
    AnalyticsReport,
    RecommendationDeleteResponse,
    RecommendationFeedback,
    RecommendationResponse,
    RecommendationUpdateResponse,
)
from ..models.user import User
from ..services.analytics import RecommendationAnalytics
from ..services.recommendation import RecommendationGenerator
from ..utils.auth import ensure_user_access, get_current_user, require_admin

logger = logging.getLogger(__name__)

router = APIRouter()


def get_generator(request: Request, store: RatingStore = Depends(get_rating_store)) -> RecommendationGenerator:
    settings = request.app.state.settings
    return RecommendationGenerator(
        store,
        request.app.state.scorer,
        cache_hours=settings.RECOMMENDATION_CACHE_HOURS,
        max_candidate_jobs=settings.MAX_CANDIDATE_JOBS,
        min_match_score=settings.MIN_MATCH_SCORE,
    )


def get_analytics(request: Request, store: RatingStore = Depends(get_rating_store)) -> RecommendationAnalytics:
    settings = request.app.state.settings
    return RecommendationAnalytics(
        store,
        cache_hours=settings.RECOMMENDATION_CACHE_HOURS,
        cleanup_after_days=settings.CLEANUP_AFTER_DAYS,
        batch_concurrency=settings.ADMIN_BATCH_CONCURRENCY,
    )


# /analytics must be registered before /{user_id}

@router.get("/analytics", response_model=AnalyticsReport)
async def recommendation_analytics(
    period: AnalyticsPeriod = "7d",
    user_id: Optional[str] = Query(None, alias="userId"),
    admin: User = Depends(require_admin),
    analytics: RecommendationAnalytics = Depends(get_analytics),
):
    return await analytics.report(period, user_id)


@router.post("/analytics", response_model=AdminActionResult)
async def recommendation_admin_action(
    body: AdminActionRequest,
    admin: User = Depends(require_admin),
    analytics: RecommendationAnalytics = Depends(get_analytics),
):
    logger.info("Admin %s triggered %s", admin.id, body.action)
    return await analytics.run_action(body.action, body.user_id)


@router.get("/{user_id}", response_model=RecommendationResponse, response_model_exclude_none=True)
async def get_recommendations(
    user_id: str,
    regenerate: bool = False,
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    generator: RecommendationGenerator = Depends(get_generator),
):
    ensure_user_access(current_user, user_id)
    return await generator.get_recommendations(user_id, limit=limit, regenerate=regenerate)


@router.post("/{user_id}", response_model=RecommendationUpdateResponse)
async def update_recommendation(
    user_id: str,
    body: RecommendationFeedback,
    current_user: User = Depends(get_current_user),
    generator: RecommendationGenerator = Depends(get_generator),
):
    ensure_user_access(current_user, user_id)
    fields = body.model_dump(exclude_unset=True, exclude={"job_id"})
    rating = await generator.update_recommendation(user_id, body.job_id, fields)
    return RecommendationUpdateResponse(
        message="Recommendation updated successfully",
        recommendation=RatingRead.model_validate(rating),
    )


@router.delete("/{user_id}", response_model=RecommendationDeleteResponse)
async def delete_recommendations(
    user_id: str,
    job_id: Optional[str] = Query(None, alias="jobId"),
    current_user: User = Depends(get_current_user),
    generator: RecommendationGenerator = Depends(get_generator),
):
    ensure_user_access(current_user, user_id)
    deleted = await generator.delete_recommendations(user_id, job_id)
    if job_id:
        message = "Recommendation deleted successfully"
    else:
        message = f"{deleted} recommendations deleted successfully"
    return RecommendationDeleteResponse(message=message, deleted_count=deleted)
