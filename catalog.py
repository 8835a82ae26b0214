"""
Products and categories.

Product status is derived from stock (see inventory.stock_status) and written
in the same update as the stock value. Images are uploaded before any
database write, and replaced images are removed from the media store only
after the new state has been saved.
"""

import logging
import math
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_documents, now, parse_object_id, regex_search
from errors import ConflictError, DependencyError, NotFoundError, UpstreamError, ValidationError
from inventory import stock_status
from media import ImageFile, MediaStore
from schemas import CategoryCreate, CategoryUpdate, ProductCreate, ProductUpdate
from sequences import SequenceGenerator, slugify

logger = logging.getLogger(__name__)


def _require(db: Database, collection: str, kind: str, id_str: str) -> Dict[str, Any]:
    oid = parse_object_id(id_str)
    doc = db[collection].find_one({"_id": oid}) if oid else None
    if not doc:
        raise NotFoundError(kind, None if oid is None else str(oid))
    return doc


def _discard_images(media: MediaStore, public_ids: List[str]) -> None:
    # called after the database write, so a failure here only leaves an orphaned file
    for public_id in public_ids:
        try:
            media.delete(public_id)
        except UpstreamError as e:
            logger.warning("left orphaned image %s: %s", public_id, e)


# --------------------- Products ---------------------

def populate_category(db: Database, products: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Replace each product's category id by ``{"_id", "name"}``."""
    ids = {p.get("category") for p in products if isinstance(p.get("category"), ObjectId)}
    names = {c["_id"]: c.get("name") for c in db["categories"].find({"_id": {"$in": list(ids)}}, {"name": 1})}
    for p in products:
        cid = p.get("category")
        if cid in names:
            p["category"] = {"_id": cid, "name": names[cid]}
    return products


def list_products(
    db: Database,
    category: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if category:
        query["category"] = parse_object_id(category) or category
    if status:
        query["status"] = status
    if search:
        query.update(regex_search(["name", "sku", "description"], search))

    page = max(page, 1)
    limit = max(limit, 1)
    total = db["products"].count_documents(query)
    docs = get_documents(db, "products", query, limit=limit, skip=(page - 1) * limit)
    return {
        "products": populate_category(db, docs),
        "pagination": {"total": total, "page": page, "limit": limit, "pages": math.ceil(total / limit)},
    }


def get_product(db: Database, product_id: str) -> Dict[str, Any]:
    return _require(db, "products", "Product", product_id)


def create_product(db: Database, media: MediaStore, body: ProductCreate, image: Optional[ImageFile] = None) -> Dict[str, Any]:
    category = _require(db, "categories", "Category", body.category)
    if db["products"].find_one({"sku": body.sku}):
        raise ConflictError("Product with this SKU already exists")

    images = []
    if image:
        images.append(media.upload(*image))

    doc = body.model_dump()
    doc.update({
        "category": category["_id"],
        "images": images,
        "status": stock_status(body.stock),
    })
    try:
        product_id = create_document(db, "products", doc)
    except DuplicateKeyError:
        _discard_images(media, [i["public_id"] for i in images])
        raise ConflictError("Product with this SKU already exists")
    logger.info("created product %s (%s)", body.sku, product_id)
    return get_product(db, product_id)


def update_product(
    db: Database,
    media: MediaStore,
    product_id: str,
    body: ProductUpdate,
    image: Optional[ImageFile] = None,
) -> Dict[str, Any]:
    product = get_product(db, product_id)
    updates = body.model_dump(exclude_none=True)
    if "category" in updates:
        updates["category"] = _require(db, "categories", "Category", updates["category"])["_id"]
    if "stock" in updates:
        updates["status"] = stock_status(updates["stock"])

    replaced: List[str] = []
    if image:
        uploaded = media.upload(*image)
        old = product.get("images") or []
        if old:
            replaced.append(old[0]["public_id"])
        updates["images"] = [uploaded]

    updates["updated_at"] = now()
    db["products"].update_one({"_id": product["_id"]}, {"$set": updates})
    _discard_images(media, replaced)
    return get_product(db, product_id)


def delete_product(db: Database, media: MediaStore, product_id: str) -> None:
    product = get_product(db, product_id)
    db["products"].delete_one({"_id": product["_id"]})
    _discard_images(media, [img["public_id"] for img in product.get("images") or []])
    logger.info("deleted product %s", product.get("sku"))


# --------------------- Categories ---------------------

def list_categories(
    db: Database,
    search: Optional[str] = None,
    parent_id: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {}
    if search:
        query.update(regex_search(["name", "description"], search))
    if parent_id:
        query["parent_category"] = None if parent_id == "null" else parse_object_id(parent_id)
    if is_active is not None:
        query["is_active"] = is_active
    return get_documents(db, "categories", query)


def get_category(db: Database, category_id: str) -> Dict[str, Any]:
    return _require(db, "categories", "Category", category_id)


def _parent(db: Database, parent_id: Optional[str], self_id: Optional[ObjectId] = None) -> Optional[ObjectId]:
    if not parent_id:
        return None
    parent = _require(db, "categories", "Parent category", parent_id)
    if self_id is not None and parent["_id"] == self_id:
        raise ValidationError("A category cannot be its own parent")
    return parent["_id"]


def _slug(db: Database, slug: Optional[str], name: str) -> str:
    slug = slugify(slug or name)
    return slug or SequenceGenerator(db).next_category_slug()


def create_category(db: Database, media: MediaStore, body: CategoryCreate, image: Optional[ImageFile] = None) -> Dict[str, Any]:
    name = body.name
    slug = _slug(db, body.slug, name)
    if db["categories"].find_one({"slug": slug}):
        raise ConflictError(f"Category with slug '{slug}' already exists")
    parent = _parent(db, body.parent_category)

    uploaded = media.upload(*image) if image else None
    doc = {
        "name": name,
        "slug": slug,
        "description": body.description,
        "parent_category": parent,
        "is_active": body.is_active,
        "image": uploaded,
    }
    try:
        category_id = create_document(db, "categories", doc)
    except DuplicateKeyError:
        if uploaded:
            _discard_images(media, [uploaded["public_id"]])
        raise ConflictError(f"Category with slug '{slug}' already exists")
    logger.info("created category %s", slug)
    return get_category(db, category_id)


def update_category(
    db: Database,
    media: MediaStore,
    category_id: str,
    body: CategoryUpdate,
    image: Optional[ImageFile] = None,
) -> Dict[str, Any]:
    category = get_category(db, category_id)
    updates: Dict[str, Any] = {}
    if body.name:
        updates["name"] = body.name
    if body.slug:
        slug = slugify(body.slug)
        if not slug:
            raise ValidationError("Slug must contain letters or digits")
        if db["categories"].find_one({"slug": slug, "_id": {"$ne": category["_id"]}}):
            raise ConflictError(f"Category with slug '{slug}' already exists")
        updates["slug"] = slug
    if body.description is not None:
        updates["description"] = body.description
    if body.parent_category is not None:
        updates["parent_category"] = _parent(db, body.parent_category, category["_id"])
    if body.is_active is not None:
        updates["is_active"] = body.is_active

    replaced: List[str] = []
    if image:
        updates["image"] = media.upload(*image)
        old = category.get("image") or {}
        if old.get("public_id"):
            replaced.append(old["public_id"])

    updates["updated_at"] = now()
    try:
        db["categories"].update_one({"_id": category["_id"]}, {"$set": updates})
    except DuplicateKeyError:
        if "image" in updates:
            _discard_images(media, [updates["image"]["public_id"]])
        raise ConflictError(f"Category with slug '{updates.get('slug')}' already exists")
    _discard_images(media, replaced)
    return get_category(db, category_id)


def delete_category(db: Database, media: MediaStore, category_id: str) -> None:
    category = get_category(db, category_id)
    in_use = db["products"].count_documents({"category": category["_id"]})
    if in_use > 0:
        raise DependencyError("Cannot delete category with associated products")

    db["categories"].delete_one({"_id": category["_id"]})
    image = category.get("image") or {}
    if image.get("public_id"):
        _discard_images(media, [image["public_id"]])
    logger.info("deleted category %s", category.get("slug"))
