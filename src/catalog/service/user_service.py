"""
Accounts: registration, credential checks, self-service profile and the
admin user directory.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from src.catalog.data.mongo import USERS, paginate, parse_object_id, serialize_document
from src.catalog.errors import AuthenticationError, ConflictError, NotFoundError, PermissionDeniedError
from src.catalog.logging_utils import configure_logger
from src.catalog.security import get_password_hash, verify_password
from src.catalog.service.base import PageResult, pick, regex, require_document, stamp_new, stamp_update, to_page_result

logger = configure_logger(__name__)

PROFILE_FIELDS = ("username", "email", "avatar", "bio")
ADMIN_FIELDS = PROFILE_FIELDS + ("role", "verified")
INVALID_CREDENTIALS = "Invalid credentials"


class UserService:
    def __init__(self, db: Database) -> None:
        self._db = db

    def _ensure_unique(self, changes: Mapping[str, Any], exclude: Optional[ObjectId] = None) -> None:
        clauses = [{k: changes[k]} for k in ("username", "email") if changes.get(k)]
        if not clauses:
            return
        query: Dict[str, Any] = {"$or": clauses}
        if exclude is not None:
            query["_id"] = {"$ne": exclude}
        existing = self._db[USERS].find_one(query, {"username": 1, "email": 1})
        if existing is None:
            return
        if changes.get("email") and existing.get("email") == changes["email"]:
            raise ConflictError("Email already registered")
        raise ConflictError("Username already taken")

    def _normalize(self, data: Mapping[str, Any], fields) -> Dict[str, Any]:
        changes = pick(data, fields)
        if changes.get("email"):
            changes["email"] = str(changes["email"]).strip().lower()
        return changes

    def _apply(self, user_id: ObjectId, changes: Dict[str, Any]) -> Dict[str, Any]:
        self._ensure_unique(changes, exclude=user_id)
        try:
            updated = self._db[USERS].find_one_and_update(
                {"_id": user_id},
                {"$set": stamp_update(changes)},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as exc:
            raise ConflictError("Username or email already exists") from exc
        if updated is None:
            raise NotFoundError("User not found")
        return serialize_document(updated)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def register(self, username: str, email: str, password: str) -> Dict[str, Any]:
        fields = self._normalize({"username": username, "email": email}, ("username", "email"))
        self._ensure_unique(fields)

        document = stamp_new(
            {
                **fields,
                "password": get_password_hash(password),
                "role": "user",
                "verified": False,
                "preferences": {},
            }
        )
        try:
            inserted = self._db[USERS].insert_one(document)
        except DuplicateKeyError as exc:
            raise ConflictError("Username or email already exists") from exc

        logger.info("User registered", extra={"event": "user.registered", "user_id": str(inserted.inserted_id)})
        return self.get_user(inserted.inserted_id)

    def authenticate(self, email: str, password: str) -> Dict[str, Any]:
        """Return the serialized user when the credentials match, else 401."""
        user = self._db[USERS].find_one({"email": email.strip().lower()})
        if user is None or not verify_password(password, user.get("password", "")):
            logger.info("Sign-in rejected", extra={"event": "auth.rejected"})
            raise AuthenticationError(INVALID_CREDENTIALS)
        return serialize_document(user)

    def find_by_id(self, user_id: ObjectId) -> Optional[Dict[str, Any]]:
        """Raw document lookup used by the auth dependency."""
        return self._db[USERS].find_one({"_id": user_id}, {"password": 0})

    # ------------------------------------------------------------------
    # Self-service
    # ------------------------------------------------------------------

    def get_user(self, user_id) -> Dict[str, Any]:
        oid = parse_object_id(user_id, "user")
        return serialize_document(require_document(self._db, USERS, oid, "User", {"password": 0}))

    def update_profile(self, user_id: ObjectId, data: Mapping[str, Any]) -> Dict[str, Any]:
        # role and verified are never taken from the caller here
        return self._apply(user_id, self._normalize(data, PROFILE_FIELDS))

    def delete_account(self, user_id: ObjectId) -> Dict[str, Any]:
        deleted = self._db[USERS].find_one_and_delete({"_id": user_id})
        if deleted is None:
            raise NotFoundError("User not found")
        logger.info("User deleted", extra={"event": "user.deleted", "user_id": str(user_id)})
        return {"id": str(user_id), "username": deleted.get("username"), "email": deleted.get("email")}

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def list_users(
        self,
        role: Optional[str] = None,
        verified: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> PageResult:
        query: Dict[str, Any] = {}
        if role:
            query["role"] = role
        if verified is not None:
            query["verified"] = verified
        if search:
            query["$or"] = [{"username": regex(search)}, {"email": regex(search)}]
        return to_page_result(paginate(self._db[USERS], query, page=page, limit=limit, projection={"password": 0}))

    def admin_update_user(self, user_id, data: Mapping[str, Any]) -> Dict[str, Any]:
        oid = parse_object_id(user_id, "user")
        return self._apply(oid, self._normalize(data, ADMIN_FIELDS))

    def admin_delete_user(self, user_id, acting_user_id: ObjectId) -> Dict[str, Any]:
        oid = parse_object_id(user_id, "user")
        if oid == acting_user_id:
            raise PermissionDeniedError("Admins cannot delete their own account from the admin directory")
        deleted = self._db[USERS].find_one_and_delete({"_id": oid})
        if deleted is None:
            raise NotFoundError("User not found")
        logger.info("User deleted", extra={"event": "user.deleted", "user_id": str(oid)})
        return {
            "id": str(oid),
            "username": deleted.get("username"),
            "email": deleted.get("email"),
            "role": deleted.get("role"),
        }
