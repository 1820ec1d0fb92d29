from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from pymongo.database import Database

from src.catalog.service.award_service import AwardService

from ..dependencies import PageParams, get_db, page_params, require_admin
from ..errors import error_responses
from ..schemas.common import paged
from ..schemas.resources import AwardBulkCreate, AwardCreate, AwardUpdate

router = APIRouter(prefix="/awards", tags=["awards"])


@router.get("", summary="List awards", responses=error_responses(400))
def list_awards(
    year: Optional[int] = None,
    category: Optional[str] = None,
    entity: Optional[str] = None,
    person: Optional[str] = None,
    search: Optional[str] = None,
    paging: PageParams = Depends(page_params),
    db: Database = Depends(get_db),
):
    result = AwardService(db).list_awards(year, category, entity, person, search, paging.page, paging.limit)
    return paged("awards", result)


@router.get("/categories", summary="Award categories with counts")
def categories(db: Database = Depends(get_db)):
    return {"categories": AwardService(db).categories()}


@router.get("/entity/{entity_id}", summary="Awards of an entity", responses=error_responses(400, 404))
def awards_for_entity(entity_id: str, paging: PageParams = Depends(page_params), db: Database = Depends(get_db)):
    return paged("awards", AwardService(db).awards_for_entity(entity_id, paging.page, paging.limit))


@router.get("/person/{person_id}", summary="Awards of a person", responses=error_responses(400, 404))
def awards_for_person(person_id: str, paging: PageParams = Depends(page_params), db: Database = Depends(get_db)):
    return paged("awards", AwardService(db).awards_for_person(person_id, paging.page, paging.limit))


@router.get("/year/{year}", summary="Awards of a year", responses=error_responses(400))
def awards_by_year(
    year: int,
    category: Optional[str] = None,
    paging: PageParams = Depends(page_params),
    db: Database = Depends(get_db),
):
    return paged("awards", AwardService(db).awards_by_year(year, category, paging.page, paging.limit), year=year)


@router.get("/{award_id}", summary="Get an award", responses=error_responses(400, 404))
def get_award(award_id: str, db: Database = Depends(get_db)):
    return {"award": AwardService(db).get_award(award_id)}


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create an award (admin)",
    responses=error_responses(400, 401, 403, 404, 422),
)
def create_award(body: AwardCreate, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"award": AwardService(db).create_award(body.to_document())}


@router.post(
    "/bulk",
    status_code=status.HTTP_201_CREATED,
    summary="Create several awards (admin)",
    responses=error_responses(400, 401, 403, 404, 422),
)
def create_awards(body: AwardBulkCreate, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    created = AwardService(db).create_awards([a.to_document() for a in body.awards])
    return {"count": len(created), "awards": created}


@router.patch("/{award_id}", summary="Update an award (admin)", responses=error_responses(400, 401, 403, 404, 422))
def update_award(award_id: str, body: AwardUpdate, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"award": AwardService(db).update_award(award_id, body.to_document())}


@router.delete("/{award_id}", summary="Delete an award (admin)", responses=error_responses(400, 401, 403, 404))
def delete_award(award_id: str, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"message": "Award deleted", "deletedAward": AwardService(db).delete_award(award_id)}


@router.delete(
    "/entity/{entity_id}",
    summary="Delete every award of an entity (admin)",
    responses=error_responses(400, 401, 403),
)
def delete_awards_by_entity(entity_id: str, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"deletedCount": AwardService(db).delete_awards_by_entity(entity_id)}


@router.delete(
    "/person/{person_id}",
    summary="Delete every award of a person (admin)",
    responses=error_responses(400, 401, 403),
)
def delete_awards_by_person(person_id: str, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"deletedCount": AwardService(db).delete_awards_by_person(person_id)}
