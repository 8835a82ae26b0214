"""Pytest fixtures for AdminHub tests."""

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from auth import create_token
from database import create_document, ensure_indexes, get_db
from errors import UpstreamError
from inventory import stock_status
from media import MediaStore, get_media


class FakeMedia(MediaStore):
    """In-memory stand-in for Cloudinary."""

    def __init__(self):
        self.uploaded = []
        self.deleted = []
        self.fail_uploads = False
        self.fail_deletes = set()

    def upload(self, data, content_type):
        if self.fail_uploads:
            raise UpstreamError("Failed to upload image")
        public_id = f"adminhub/img{len(self.uploaded) + 1}"
        self.uploaded.append(public_id)
        return {"url": f"https://res.cloudinary.com/demo/{public_id}.png", "public_id": public_id}

    def delete(self, public_id):
        if public_id in self.fail_deletes:
            raise UpstreamError("Failed to delete image")
        self.deleted.append(public_id)


@pytest.fixture
def db():
    """A fresh in-memory database with the production indexes."""
    database = mongomock.MongoClient()["adminhub_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def client(db, media):
    from main import app

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_media] = lambda: media
    app.state.db = db
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.db = None


@pytest.fixture
def admin(db):
    user_id = create_document(db, "users", {
        "name": "Ada Admin",
        "email": "ada@adminhub.io",
        "password_hash": "",
        "role": "admin",
    })
    return {"id": user_id, "email": "ada@adminhub.io", "name": "Ada Admin", "role": "admin"}


@pytest.fixture
def auth_headers(admin):
    return {"Authorization": f"Bearer {create_token(admin)}"}


@pytest.fixture
def category(db):
    return make_category(db, "Shoes")


def make_category(db, name, slug=None, **extra):
    doc = {"name": name, "slug": slug or name.lower(), "is_active": True, "parent_category": None, "image": None}
    doc.update(extra)
    return ObjectId(create_document(db, "categories", doc))


def make_product(db, category_id, name, stock, price=10.0, sku=None, images=None):
    doc = {
        "name": name,
        "sku": sku or name.upper().replace(" ", "-"),
        "description": None,
        "price": price,
        "stock": stock,
        "category": category_id,
        "images": images or [],
        "status": stock_status(stock),
    }
    return ObjectId(create_document(db, "products", doc))


def stock_of(db, product_id):
    return db["products"].find_one({"_id": product_id})["stock"]
