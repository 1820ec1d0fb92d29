from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile, status
from pymongo.database import Database

from src.catalog.media import ImageStore, validate_image
from src.catalog.service.person_service import PersonService

from ..dependencies import PageParams, get_db, get_image_store, page_params, require_admin
from ..errors import error_responses
from ..schemas.common import paged
from ..schemas.resources import PersonCreate, PersonRole, PersonUpdate

router = APIRouter(prefix="/people", tags=["people"])


@router.get("", summary="List people")
def list_people(
    role: Optional[PersonRole] = None,
    search: Optional[str] = None,
    paging: PageParams = Depends(page_params),
    db: Database = Depends(get_db),
):
    return paged("people", PersonService(db).list_people(role, search, paging.page, paging.limit))


@router.get("/role/{role}", summary="People with a given role", responses=error_responses(422))
def people_by_role(role: PersonRole, paging: PageParams = Depends(page_params), db: Database = Depends(get_db)):
    return paged("people", PersonService(db).people_by_role(role, paging.page, paging.limit), role=role)


@router.get("/{person_id}", summary="Get a person", responses=error_responses(400, 404))
def get_person(person_id: str, db: Database = Depends(get_db)):
    return {"person": PersonService(db).get_person(person_id)}


@router.get("/{person_id}/movies", summary="Filmography of a person", responses=error_responses(400, 404))
def filmography(person_id: str, paging: PageParams = Depends(page_params), db: Database = Depends(get_db)):
    return PersonService(db).filmography(person_id, paging.page, paging.limit)


@router.get("/{person_id}/stats", summary="Career statistics of a person", responses=error_responses(400, 404))
def person_stats(person_id: str, db: Database = Depends(get_db)):
    return PersonService(db).stats(person_id)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a person (admin)",
    responses=error_responses(401, 403, 422),
)
def create_person(body: PersonCreate, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"person": PersonService(db).create_person(body.to_document())}


@router.patch("/{person_id}", summary="Update a person (admin)", responses=error_responses(400, 401, 403, 404, 422))
def update_person(person_id: str, body: PersonUpdate, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"person": PersonService(db).update_person(person_id, body.to_document())}


@router.delete("/{person_id}", summary="Delete a person (admin)", responses=error_responses(400, 401, 403, 404))
def delete_person(person_id: str, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"message": "Person deleted", "deletedPerson": PersonService(db).delete_person(person_id)}


@router.post("/{person_id}/photo", summary="Upload a photo (admin)", responses=error_responses(400, 401, 403, 404))
def upload_photo(
    person_id: str,
    photo: UploadFile = File(...),
    _admin=Depends(require_admin),
    db: Database = Depends(get_db),
    image_store: ImageStore = Depends(get_image_store),
):
    validate_image(photo.content_type)
    service = PersonService(db)
    service.get_person(person_id)
    url = image_store.upload(photo.file.read(), photo.filename or "photo", photo.content_type)
    return {"person": service.set_photo(person_id, url)}
