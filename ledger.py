"""Transaction log. Entries are written only by explicit calls, never by order transitions."""

import logging
from typing import Any, Dict, List, Optional

from pymongo.database import Database

from database import create_document, get_documents, parse_object_id, regex_search
from errors import ValidationError
from schemas import TransactionCreate
from sequences import SequenceGenerator

logger = logging.getLogger(__name__)


def create_transaction(db: Database, body: TransactionCreate) -> Dict[str, Any]:
    doc = body.model_dump()
    if body.related_to is not None:
        related = parse_object_id(body.related_to)
        if related is None:
            raise ValidationError(f"Invalid related_to id: {body.related_to}")
        doc["related_to"] = related
    doc["transaction_id"] = SequenceGenerator(db).next_transaction_id()
    txn_id = create_document(db, "transactions", doc)
    logger.info("recorded %s %s of %.2f on %s", doc["transaction_id"], body.type, body.amount, body.account)
    return db["transactions"].find_one({"_id": parse_object_id(txn_id)})


def list_transactions(
    db: Database,
    type: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {}
    if type:
        query["type"] = type
    if status:
        query["status"] = status
    if search:
        query.update(regex_search(["transaction_id", "description", "account"], search))
    return get_documents(db, "transactions", query)
