from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from pymongo.database import Database

from src.catalog.service.review_service import ReviewService

from ..dependencies import PageParams, get_current_user, get_db, page_params, require_admin
from ..errors import error_responses
from ..schemas.common import paged
from ..schemas.resources import ReviewCreate, ReviewUpdate

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.get("", summary="List reviews", responses=error_responses(400))
def list_reviews(
    entity: Optional[str] = None,
    user: Optional[str] = None,
    minRating: Optional[int] = Query(default=None, ge=1, le=10),
    maxRating: Optional[int] = Query(default=None, ge=1, le=10),
    search: Optional[str] = Query(default=None, description="Matches the comment text."),
    paging: PageParams = Depends(page_params),
    db: Database = Depends(get_db),
):
    result = ReviewService(db).list_reviews(entity, user, minRating, maxRating, search, paging.page, paging.limit)
    return paged("reviews", result)


@router.get("/my/reviews", summary="Caller's reviews", responses=error_responses(401))
def my_reviews(
    paging: PageParams = Depends(page_params),
    caller: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return paged("reviews", ReviewService(db).own_reviews(caller["_id"], paging.page, paging.limit))


@router.get("/my/entity/{entity_id}", summary="Caller's review of an entity", responses=error_responses(400, 401))
def my_review_for_entity(
    entity_id: str,
    caller: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    review = ReviewService(db).own_review_for_entity(caller["_id"], entity_id)
    return {"hasReviewed": review is not None, "review": review}


@router.get("/entity/{entity_id}", summary="Reviews of an entity", responses=error_responses(400, 404))
def reviews_for_entity(
    entity_id: str,
    minRating: Optional[int] = Query(default=None, ge=1, le=10),
    maxRating: Optional[int] = Query(default=None, ge=1, le=10),
    paging: PageParams = Depends(page_params),
    db: Database = Depends(get_db),
):
    result = ReviewService(db).reviews_for_entity(entity_id, minRating, maxRating, paging.page, paging.limit)
    return paged("reviews", result["page"], entity=result["entity"], stats=result["stats"])


@router.get("/user/{user_id}", summary="Reviews written by a user", responses=error_responses(400, 404))
def reviews_by_user(user_id: str, paging: PageParams = Depends(page_params), db: Database = Depends(get_db)):
    result = ReviewService(db).reviews_by_user(user_id, paging.page, paging.limit)
    return paged("reviews", result["page"], user=result["user"])


@router.get("/stats/{entity_id}", summary="Rating distribution of an entity", responses=error_responses(400, 404))
def review_stats(entity_id: str, db: Database = Depends(get_db)):
    return ReviewService(db).review_stats(entity_id)


@router.get("/{review_id}", summary="Get a review", responses=error_responses(400, 404))
def get_review(review_id: str, db: Database = Depends(get_db)):
    return {"review": ReviewService(db).get_review(review_id)}


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Review an entity",
    description="One review per user and entity. The entity's rating is recomputed afterwards.",
    responses=error_responses(400, 401, 404, 409, 422),
)
def create_review(
    body: ReviewCreate,
    caller: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return {"review": ReviewService(db).create_review(caller["_id"], body.to_document())}


@router.patch("/{review_id}", summary="Update own review", responses=error_responses(400, 401, 403, 404, 422))
def update_review(
    review_id: str,
    body: ReviewUpdate,
    caller: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return {"review": ReviewService(db).update_review(review_id, caller["_id"], body.to_document())}


@router.delete("/{review_id}", summary="Delete a review (owner or admin)", responses=error_responses(400, 401, 403, 404))
def delete_review(
    review_id: str,
    caller: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    deleted = ReviewService(db).delete_review(review_id, caller["_id"], caller.get("role", "user"))
    return {"message": "Review deleted", "deletedReview": deleted}


@router.delete("/admin/user/{user_id}", summary="Delete every review of a user (admin)", responses=error_responses(400, 401, 403))
def delete_reviews_by_user(user_id: str, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"deletedCount": ReviewService(db).delete_reviews_by_user(user_id)}


@router.delete(
    "/admin/entity/{entity_id}",
    summary="Delete every review of an entity (admin)",
    responses=error_responses(400, 401, 403),
)
def delete_reviews_by_entity(entity_id: str, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"deletedCount": ReviewService(db).delete_reviews_by_entity(entity_id)}
