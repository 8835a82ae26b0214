"""
Display identifiers: order numbers, transaction ids and category slugs.

Numbers are drawn from a counter document per scope (``counters`` collection)
incremented with a single ``$inc``, so concurrent creations never share a
number and deleting documents never frees one. The counter starts from the
collection's document count the first time a scope is used, which keeps the
first numbers of a fresh database identical to the count-based format
(``#ORD-12345``, ``TXN-12345``).
"""

import re

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

SEQUENCE_OFFSET = 12345

ORDER_PREFIX = "#ORD-"
TRANSACTION_PREFIX = "TXN-"
CATEGORY_PREFIX = "category-"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def format_sequence(prefix: str, count: int) -> str:
    return f"{prefix}{count + SEQUENCE_OFFSET:05d}"


def slugify(name: str) -> str:
    """Lowercase, collapse runs of non-alphanumerics to '-', strip edge hyphens."""
    return _NON_ALNUM.sub("-", name.lower()).strip("-")


class SequenceGenerator:
    def __init__(self, db: Database):
        self.db = db
        self.counters = db["counters"]

    def _seed(self, scope: str) -> None:
        if self.counters.find_one({"_id": scope}) is not None:
            return
        count = self.db[scope].count_documents({})
        try:
            self.counters.insert_one({"_id": scope, "seq": count})
        except DuplicateKeyError:
            # another request seeded it first
            pass

    def next_count(self, scope: str) -> int:
        self._seed(scope)
        doc = self.counters.find_one_and_update(
            {"_id": scope},
            {"$inc": {"seq": 1}},
            return_document=ReturnDocument.AFTER,
        )
        return doc["seq"] - 1

    def next(self, scope: str, prefix: str) -> str:
        return format_sequence(prefix, self.next_count(scope))

    def next_order_number(self) -> str:
        return self.next("orders", ORDER_PREFIX)

    def next_transaction_id(self) -> str:
        return self.next("transactions", TRANSACTION_PREFIX)

    def next_category_slug(self) -> str:
        return self.next("categories", CATEGORY_PREFIX)
