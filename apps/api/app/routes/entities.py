from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from pymongo.database import Database

from src.catalog.errors import ValidationFailedError
from src.catalog.media import ImageStore, validate_image
from src.catalog.service.entity_service import EntityService

from ..dependencies import PageParams, get_db, get_image_store, page_params, require_admin
from ..errors import error_responses
from ..schemas.common import paged
from ..schemas.entities import EntityCreate, EntityUpdate, RatingOut

router = APIRouter(prefix="/entities", tags=["entities"])

EntityType = Literal["movie", "tv"]


def _filter(
    db: Database,
    entity_type: Optional[str],
    genre: Optional[str],
    start_year: Optional[int],
    end_year: Optional[int],
    min_rating: Optional[float],
    max_rating: Optional[float],
) -> Dict[str, Any]:
    entities = EntityService(db).filter_entities(entity_type, genre, start_year, end_year, min_rating, max_rating)
    return {"count": len(entities), "entities": entities}


# Filter routes are declared before "/{entity_id}" so they are not captured by it.


@router.get("/filter", summary="Filter movies and TV shows", responses=error_responses(422))
def filter_entities(
    type: Optional[EntityType] = None,
    genre: Optional[str] = None,
    startYear: Optional[int] = Query(default=None, ge=1800, le=3000),
    endYear: Optional[int] = Query(default=None, ge=1800, le=3000),
    minRating: Optional[float] = Query(default=None, ge=0, le=10),
    maxRating: Optional[float] = Query(default=None, ge=0, le=10),
    db: Database = Depends(get_db),
):
    return _filter(db, type, genre, startYear, endYear, minRating, maxRating)


@router.get("/movies/filter", summary="Filter movies", responses=error_responses(422))
def filter_movies(
    genre: Optional[str] = None,
    startYear: Optional[int] = Query(default=None, ge=1800, le=3000),
    endYear: Optional[int] = Query(default=None, ge=1800, le=3000),
    minRating: Optional[float] = Query(default=None, ge=0, le=10),
    maxRating: Optional[float] = Query(default=None, ge=0, le=10),
    db: Database = Depends(get_db),
):
    return _filter(db, "movie", genre, startYear, endYear, minRating, maxRating)


@router.get("/tv/filter", summary="Filter TV shows", responses=error_responses(422))
def filter_tv(
    genre: Optional[str] = None,
    startYear: Optional[int] = Query(default=None, ge=1800, le=3000),
    endYear: Optional[int] = Query(default=None, ge=1800, le=3000),
    minRating: Optional[float] = Query(default=None, ge=0, le=10),
    maxRating: Optional[float] = Query(default=None, ge=0, le=10),
    db: Database = Depends(get_db),
):
    return _filter(db, "tv", genre, startYear, endYear, minRating, maxRating)


@router.get("", summary="List movies and TV shows")
def list_entities(
    type: Optional[EntityType] = None,
    paging: PageParams = Depends(page_params),
    db: Database = Depends(get_db),
):
    return paged("entities", EntityService(db).list_entities(type, paging.page, paging.limit))


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create an entity (admin)",
    responses=error_responses(400, 401, 403, 422),
)
def create_entity(body: EntityCreate, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"entity": EntityService(db).create_entity(body.to_document())}


@router.get("/{entity_id}", summary="Get an entity", responses=error_responses(400, 404))
def get_entity(entity_id: str, db: Database = Depends(get_db)):
    return {"entity": EntityService(db).get_entity(entity_id)}


@router.patch(
    "/{entity_id}",
    summary="Update an entity (admin)",
    responses=error_responses(400, 401, 403, 404, 422),
)
def update_entity(entity_id: str, body: EntityUpdate, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"entity": EntityService(db).update_entity(entity_id, body.to_document())}


@router.delete(
    "/{entity_id}",
    summary="Delete an entity and its reviews (admin)",
    responses=error_responses(400, 401, 403, 404),
)
def delete_entity(entity_id: str, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"message": "Entity deleted", "deletedEntity": EntityService(db).delete_entity(entity_id)}


@router.post(
    "/{entity_id}/images",
    summary="Upload poster and/or cover images (admin)",
    responses=error_responses(400, 401, 403, 404),
)
def upload_images(
    entity_id: str,
    poster: Optional[UploadFile] = File(default=None),
    cover: Optional[UploadFile] = File(default=None),
    _admin=Depends(require_admin),
    db: Database = Depends(get_db),
    image_store: ImageStore = Depends(get_image_store),
):
    if poster is None and cover is None:
        raise ValidationFailedError("Provide a poster or cover image")

    for upload in (poster, cover):
        if upload is not None:
            validate_image(upload.content_type)

    service = EntityService(db)
    service.get_entity(entity_id)

    urls: Dict[str, Optional[str]] = {"poster": None, "cover": None}
    for name, upload in (("poster", poster), ("cover", cover)):
        if upload is not None:
            urls[name] = image_store.upload(upload.file.read(), upload.filename or name, upload.content_type)

    return {"entity": service.set_images(entity_id, poster_url=urls["poster"], cover_url=urls["cover"])}


@router.get(
    "/{entity_id}/rating",
    response_model=RatingOut,
    summary="Recompute and return an entity's rating",
    responses=error_responses(400, 404),
)
def get_rating(entity_id: str, db: Database = Depends(get_db)):
    return EntityService(db).get_rating(entity_id)
