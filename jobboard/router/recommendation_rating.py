from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..db import get_rating_store
from ..db.rating_store import RatingStore
from ..models.rating import (
    JobRatingStats,
    MessageResponse,
    PaginatedRatingResponse,
    RatingCreate,
    RatingQuery,
    RatingRead,
    RatingReason,
    RatingUpdate,
    UserRatingStats,
)
from ..models.user import User
from ..services.rating import RatingService
from ..utils.auth import ensure_user_access, get_current_user

router = APIRouter()


def get_rating_service(store: RatingStore = Depends(get_rating_store)) -> RatingService:
    return RatingService(store)


@router.get("/", response_model=PaginatedRatingResponse)
async def list_ratings(
    user_id: Optional[str] = Query(None, alias="userId"),
    job_id: Optional[str] = Query(None, alias="jobId"),
    rating: Optional[int] = Query(None, ge=1, le=10),
    reason: Optional[RatingReason] = None,
    recommended_by: Optional[str] = Query(None, alias="recommendedBy"),
    is_helpful: Optional[bool] = Query(None, alias="isHelpful"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: Literal["createdAt", "rating", "matchScore"] = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    current_user: User = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service),
):
    query = RatingQuery(
        user_id=user_id,
        job_id=job_id,
        rating=rating,
        reason=reason,
        recommended_by=recommended_by,
        is_helpful=is_helpful,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return await service.list(query)


@router.post("/", response_model=RatingRead, status_code=status.HTTP_201_CREATED)
async def create_rating(
    data: RatingCreate,
    current_user: User = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service),
):
    return await service.create(current_user.id, data)


@router.get("/user/{user_id}/job/{job_id}", response_model=RatingRead)
async def get_rating_for_user_and_job(
    user_id: str,
    job_id: str,
    current_user: User = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service),
):
    ensure_user_access(current_user, user_id)
    rating = await service.get_by_user_and_job(user_id, job_id)
    if rating is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recommendation rating not found")
    return rating


@router.get("/user/{user_id}/stats", response_model=UserRatingStats)
async def get_user_stats(
    user_id: str,
    current_user: User = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service),
):
    ensure_user_access(current_user, user_id)
    return await service.get_user_stats(user_id)


@router.get("/job/{job_id}/stats", response_model=JobRatingStats)
async def get_job_stats(
    job_id: str,
    current_user: User = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service),
):
    return await service.get_job_stats(job_id)


@router.get("/{rating_id}", response_model=RatingRead)
async def get_rating(
    rating_id: str,
    current_user: User = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service),
):
    rating = await service.get_by_id(rating_id)
    if rating is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recommendation rating not found")
    return rating


@router.put("/{rating_id}", response_model=RatingRead)
async def update_rating(
    rating_id: str,
    data: RatingUpdate,
    current_user: User = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service),
):
    return await service.update(rating_id, current_user.id, data)


@router.delete("/{rating_id}", response_model=MessageResponse)
async def delete_rating(
    rating_id: str,
    current_user: User = Depends(get_current_user),
    service: RatingService = Depends(get_rating_service),
):
    await service.delete(rating_id, current_user.id)
    return MessageResponse(message="Recommendation rating deleted successfully")
