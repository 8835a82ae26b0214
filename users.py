"""Employees (the ``users`` collection), the caller's own profile, and login."""

import logging
from typing import Any, Dict, List, Optional

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import hash_password, token_for, verify_password
from database import create_document, get_documents, now, parse_object_id, regex_search, serialize
from errors import ConflictError, NotFoundError, UnauthorizedError, UpstreamError, ValidationError
from media import ImageFile, MediaStore
from schemas import EmployeeCreate, EmployeeUpdate, PasswordChange, ProfileUpdate

logger = logging.getLogger(__name__)


def _get(db: Database, user_id: str, kind: str = "Employee") -> Dict[str, Any]:
    oid = parse_object_id(user_id)
    user = db["users"].find_one({"_id": oid}) if oid else None
    if not user:
        raise NotFoundError(kind)
    return user


def _email_taken(db: Database, email: str, exclude=None) -> bool:
    query: Dict[str, Any] = {"email": email.lower()}
    if exclude is not None:
        query["_id"] = {"$ne": exclude}
    return db["users"].find_one(query) is not None


def _save(db: Database, media: MediaStore, user: Dict[str, Any], updates: Dict[str, Any], image: Optional[ImageFile]) -> None:
    old_image = user.get("image") or {}
    if image:
        updates["image"] = media.upload(*image)
    updates["updated_at"] = now()
    try:
        db["users"].update_one({"_id": user["_id"]}, {"$set": updates})
    except DuplicateKeyError:
        raise ConflictError("Email already in use")
    if image and old_image.get("public_id"):
        try:
            media.delete(old_image["public_id"])
        except UpstreamError as e:
            logger.warning("left orphaned image %s: %s", old_image["public_id"], e)


def login(db: Database, email: str, password: str) -> Dict[str, Any]:
    user = db["users"].find_one({"email": email.lower()})
    if not user or not verify_password(password, user.get("password_hash", "")):
        raise UnauthorizedError("Invalid credentials")
    return {"token": token_for(user), "user": serialize(user)}


# --------------------- Employees ---------------------

def list_employees(db: Database, department: Optional[str] = None, search: Optional[str] = None) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {}
    if department:
        query["department"] = department
    if search:
        query.update(regex_search(["name", "email", "position"], search))
    return get_documents(db, "users", query)


def get_employee(db: Database, user_id: str) -> Dict[str, Any]:
    return _get(db, user_id)


def create_employee(db: Database, media: MediaStore, body: EmployeeCreate, image: Optional[ImageFile] = None) -> Dict[str, Any]:
    email = body.email.lower()
    if _email_taken(db, email):
        raise ConflictError("User with this email already exists")
    doc = body.model_dump(exclude={"password"})
    doc["email"] = email
    doc["password_hash"] = hash_password(body.password)
    doc["image"] = media.upload(*image) if image else None
    try:
        user_id = create_document(db, "users", doc)
    except DuplicateKeyError:
        raise ConflictError("User with this email already exists")
    logger.info("created %s account for %s", body.role, email)
    return _get(db, user_id)


def update_employee(
    db: Database,
    media: MediaStore,
    user_id: str,
    body: EmployeeUpdate,
    image: Optional[ImageFile] = None,
) -> Dict[str, Any]:
    user = _get(db, user_id)
    updates = body.model_dump(exclude_none=True, exclude={"password", "email"})
    if body.email and body.email.lower() != user["email"]:
        if _email_taken(db, body.email, exclude=user["_id"]):
            raise ConflictError("User with this email already exists")
        updates["email"] = body.email.lower()
    if body.password:
        updates["password_hash"] = hash_password(body.password)
    _save(db, media, user, updates, image)
    return _get(db, user_id)


def delete_employee(db: Database, media: MediaStore, user_id: str) -> None:
    user = _get(db, user_id)
    image = user.get("image") or {}
    if image.get("public_id"):
        media.delete(image["public_id"])
    db["users"].delete_one({"_id": user["_id"]})
    logger.info("deleted account %s", user["email"])


# --------------------- Profile ---------------------

def get_profile(db: Database, user_id: str) -> Dict[str, Any]:
    return _get(db, user_id, "User")


def update_profile(
    db: Database,
    media: MediaStore,
    user_id: str,
    body: ProfileUpdate,
    image: Optional[ImageFile] = None,
) -> Dict[str, Any]:
    user = _get(db, user_id, "User")
    updates = body.model_dump(exclude_none=True, exclude={"email"})
    if body.email and body.email.lower() != user["email"]:
        if _email_taken(db, body.email, exclude=user["_id"]):
            raise ConflictError("Email already in use")
        updates["email"] = body.email.lower()
    _save(db, media, user, updates, image)
    return _get(db, user_id, "User")


def change_password(db: Database, user_id: str, body: PasswordChange) -> None:
    user = _get(db, user_id, "User")
    if not verify_password(body.current_password, user.get("password_hash", "")):
        raise ValidationError("Current password is incorrect")
    db["users"].update_one(
        {"_id": user["_id"]},
        {"$set": {"password_hash": hash_password(body.new_password), "updated_at": now()}},
    )
