from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from pymongo.database import Database

from src.catalog.service.character_service import CharacterService

from ..dependencies import PageParams, get_db, page_params, require_admin
from ..errors import error_responses
from ..schemas.common import paged
from ..schemas.resources import CharacterBulkCreate, CharacterCreate, CharacterUpdate

router = APIRouter(prefix="/characters", tags=["characters"])


@router.get("", summary="List characters", responses=error_responses(400))
def list_characters(
    entity: Optional[str] = None,
    actor: Optional[str] = None,
    search: Optional[str] = None,
    paging: PageParams = Depends(page_params),
    db: Database = Depends(get_db),
):
    result = CharacterService(db).list_characters(entity, actor, search, paging.page, paging.limit)
    return paged("characters", result)


@router.get("/entity/{entity_id}", summary="Characters of an entity", responses=error_responses(400, 404))
def characters_for_entity(entity_id: str, paging: PageParams = Depends(page_params), db: Database = Depends(get_db)):
    return paged("characters", CharacterService(db).characters_for_entity(entity_id, paging.page, paging.limit))


@router.get("/actor/{actor_id}", summary="Characters played by an actor", responses=error_responses(400, 404))
def characters_for_actor(actor_id: str, paging: PageParams = Depends(page_params), db: Database = Depends(get_db)):
    return paged("characters", CharacterService(db).characters_for_actor(actor_id, paging.page, paging.limit))


@router.get("/{character_id}", summary="Get a character", responses=error_responses(400, 404))
def get_character(character_id: str, db: Database = Depends(get_db)):
    return {"character": CharacterService(db).get_character(character_id)}


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a character (admin)",
    responses=error_responses(400, 401, 403, 404, 409, 422),
)
def create_character(body: CharacterCreate, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"character": CharacterService(db).create_character(body.to_document())}


@router.post(
    "/bulk",
    status_code=status.HTTP_201_CREATED,
    summary="Create several characters (admin)",
    responses=error_responses(400, 401, 403, 404, 409, 422),
)
def create_characters(body: CharacterBulkCreate, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    created = CharacterService(db).create_characters([c.to_document() for c in body.characters])
    return {"count": len(created), "characters": created}


@router.patch(
    "/{character_id}",
    summary="Update a character (admin)",
    responses=error_responses(400, 401, 403, 404, 409, 422),
)
def update_character(
    character_id: str,
    body: CharacterUpdate,
    _admin=Depends(require_admin),
    db: Database = Depends(get_db),
):
    return {"character": CharacterService(db).update_character(character_id, body.to_document())}


@router.delete("/{character_id}", summary="Delete a character (admin)", responses=error_responses(400, 401, 403, 404))
def delete_character(character_id: str, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"message": "Character deleted", "deletedCharacter": CharacterService(db).delete_character(character_id)}


@router.delete(
    "/entity/{entity_id}",
    summary="Delete every character of an entity (admin)",
    responses=error_responses(400, 401, 403),
)
def delete_characters_by_entity(entity_id: str, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"deletedCount": CharacterService(db).delete_characters_by_entity(entity_id)}
