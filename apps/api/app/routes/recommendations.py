from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from pymongo.database import Database

from src.catalog.config import AppConfig
from src.catalog.service.recommendation_service import RecommendationService

from ..dependencies import get_config, get_db, require_roles
from ..errors import error_responses
from ..schemas.recommendations import RecommendationOut, RecommendationsResponse

router = APIRouter(tags=["recommendations"])


@router.get(
    "/recommendations",
    response_model=RecommendationsResponse,
    summary="Personalised recommendations for the caller",
    description=(
        "Scores the caller's content-type and genre affinities from their review history "
        "and returns up to five entities they have not reviewed yet. Without usable history "
        "the best-rated entities are returned instead."
    ),
    responses=error_responses(401, 403, 404, 500),
)
def get_recommendations(
    caller: Dict[str, Any] = Depends(require_roles("user")),
    db: Database = Depends(get_db),
    config: AppConfig = Depends(get_config),
) -> RecommendationsResponse:
    service = RecommendationService(
        db,
        limit=config.recommendations.limit,
        candidate_pool_size=config.recommendations.candidate_pool_size,
    )
    recommendations = service.recommend_for_user(caller["_id"])
    return RecommendationsResponse(
        recommendations=[
            RecommendationOut(
                id=r.entity_id,
                title=r.title,
                type=r.type,
                posterUrl=r.poster_url,
                genres=r.genres,
            )
            for r in recommendations
        ]
    )
