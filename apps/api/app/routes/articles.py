from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status
from pymongo.database import Database

from src.catalog.service.article_service import ArticleService

from ..dependencies import PageParams, get_current_user, get_db, page_params, require_admin
from ..errors import error_responses
from ..schemas.common import paged
from ..schemas.resources import ArticleCreate, ArticleUpdate

router = APIRouter(prefix="/articles", tags=["articles"])


@router.get("", summary="List articles", responses=error_responses(400))
def list_articles(
    author: Optional[str] = None,
    entity: Optional[str] = None,
    search: Optional[str] = None,
    paging: PageParams = Depends(page_params),
    db: Database = Depends(get_db),
):
    return paged("articles", ArticleService(db).list_articles(author, entity, search, paging.page, paging.limit))


@router.get("/my/articles", summary="Caller's articles", responses=error_responses(401))
def my_articles(
    paging: PageParams = Depends(page_params),
    caller: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return paged("articles", ArticleService(db).own_articles(caller["_id"], paging.page, paging.limit))


@router.get("/author/{author_id}", summary="Articles by an author", responses=error_responses(400, 404))
def articles_by_author(author_id: str, paging: PageParams = Depends(page_params), db: Database = Depends(get_db)):
    result = ArticleService(db).articles_by_author(author_id, paging.page, paging.limit)
    return paged("articles", result["page"], author=result["author"])


@router.get("/entity/{entity_id}", summary="Articles about an entity", responses=error_responses(400, 404))
def articles_for_entity(entity_id: str, paging: PageParams = Depends(page_params), db: Database = Depends(get_db)):
    result = ArticleService(db).articles_for_entity(entity_id, paging.page, paging.limit)
    return paged("articles", result["page"], entity=result["entity"])


@router.get("/{article_id}", summary="Get an article", responses=error_responses(400, 404))
def get_article(article_id: str, db: Database = Depends(get_db)):
    return {"article": ArticleService(db).get_article(article_id)}


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Publish an article (verified users)",
    responses=error_responses(400, 401, 403, 404, 422),
)
def create_article(
    body: ArticleCreate,
    caller: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return {"article": ArticleService(db).create_article(caller, body.to_document())}


@router.patch("/{article_id}", summary="Update own article", responses=error_responses(400, 401, 403, 404, 422))
def update_article(
    article_id: str,
    body: ArticleUpdate,
    caller: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return {"article": ArticleService(db).update_article(article_id, caller["_id"], body.to_document())}


@router.delete("/{article_id}", summary="Delete an article (author or admin)", responses=error_responses(400, 401, 403, 404))
def delete_article(
    article_id: str,
    caller: Dict[str, Any] = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    deleted = ArticleService(db).delete_article(article_id, caller["_id"], caller.get("role", "user"))
    return {"message": "Article deleted", "deletedArticle": deleted}


@router.delete(
    "/admin/author/{author_id}",
    summary="Delete every article of an author (admin)",
    responses=error_responses(400, 401, 403),
)
def delete_articles_by_author(author_id: str, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"deletedCount": ArticleService(db).delete_articles_by_author(author_id)}


@router.delete(
    "/admin/entity/{entity_id}",
    summary="Delete every article about an entity (admin)",
    responses=error_responses(400, 401, 403),
)
def delete_articles_by_entity(entity_id: str, _admin=Depends(require_admin), db: Database = Depends(get_db)):
    return {"deletedCount": ArticleService(db).delete_articles_by_entity(entity_id)}
