from typing import Any, Dict, List

from pymongo.database import Database

from database import create_document, get_documents, now, parse_object_id
from errors import ForbiddenError, NotFoundError, ValidationError
from schemas import NotificationCreate

NOTIFICATION_LIMIT = 50


def list_notifications(db: Database, user_id: str) -> List[Dict[str, Any]]:
    return get_documents(db, "notifications", {"user": parse_object_id(user_id)}, limit=NOTIFICATION_LIMIT)


def create_notification(db: Database, body: NotificationCreate) -> Dict[str, Any]:
    owner = parse_object_id(body.user_id)
    if owner is None:
        raise ValidationError(f"Invalid user id: {body.user_id}")
    doc = {
        "user": owner,
        "title": body.title,
        "message": body.message,
        "type": body.type,
        "is_read": False,
        "link": body.link,
    }
    notification_id = create_document(db, "notifications", doc)
    return db["notifications"].find_one({"_id": parse_object_id(notification_id)})


def _owned(db: Database, notification_id: str, user_id: str) -> Dict[str, Any]:
    oid = parse_object_id(notification_id)
    notification = db["notifications"].find_one({"_id": oid}) if oid else None
    if not notification:
        raise NotFoundError("Notification")
    if str(notification["user"]) != user_id:
        raise ForbiddenError("Notification belongs to another user")
    return notification


def mark_read(db: Database, notification_id: str, user_id: str, is_read: bool) -> Dict[str, Any]:
    notification = _owned(db, notification_id, user_id)
    db["notifications"].update_one(
        {"_id": notification["_id"]},
        {"$set": {"is_read": is_read, "updated_at": now()}},
    )
    return db["notifications"].find_one({"_id": notification["_id"]})


def delete_notification(db: Database, notification_id: str, user_id: str) -> None:
    notification = _owned(db, notification_id, user_id)
    db["notifications"].delete_one({"_id": notification["_id"]})
