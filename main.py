import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as SchemaValidationError
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

import catalog
import dashboard
import ledger
import notifications
import orders
import users
from auth import AuthUser, get_current_user
from database import DATABASE_URL, connect, create_document, ensure_indexes, get_db, now, serialize
from errors import AdminHubError
from media import MediaStore, get_media, read_upload
from schemas import (
    CategoryCreate,
    CategoryUpdate,
    EmployeeCreate,
    EmployeeUpdate,
    LoginRequest,
    NotificationCreate,
    NotificationUpdate,
    OrderCreate,
    OrderStatusUpdate,
    PasswordChange,
    ProductCreate,
    ProductUpdate,
    ProfileUpdate,
    Settings,
    SettingsUpdate,
    TransactionCreate,
)

# Environment
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("adminhub")


@asynccontextmanager
async def lifespan(app: FastAPI):
    client = None
    if getattr(app.state, "db", None) is None and DATABASE_URL:
        app.state.db = connect()
        client = app.state.db.client
        ensure_indexes(app.state.db)
        logger.info("connected to database %s", app.state.db.name)
    yield
    if client is not None:
        client.close()
        app.state.db = None


app = FastAPI(title="AdminHub API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --------------------- Errors ---------------------

def _error(status_code: int, message: str, error_type: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, "error_type": error_type})


def _first_error(errors) -> str:
    if not errors:
        return "Invalid request"
    err = errors[0]
    loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "form"))
    return f"{loc}: {err.get('msg')}" if loc else err.get("msg", "Invalid request")


@app.exception_handler(AdminHubError)
async def adminhub_error_handler(request: Request, exc: AdminHubError) -> JSONResponse:
    return _error(exc.status_code, str(exc), type(exc).__name__)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(400, _first_error(exc.errors()), "ValidationError")


@app.exception_handler(SchemaValidationError)
async def schema_validation_handler(request: Request, exc: SchemaValidationError) -> JSONResponse:
    return _error(400, _first_error(exc.errors()), "ValidationError")


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError) -> JSONResponse:
    return _error(409, "Duplicate value", "ConflictError")


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError) -> JSONResponse:
    logger.error("database error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error(500, "Database error", "DatabaseError")


# --------------------- Routes ---------------------

@app.get("/")
def root():
    return {"message": "AdminHub API is running"}


@app.get("/schema")
def get_schema():
    # Minimal schema surface for viewer
    return {
        "product": ProductCreate.model_json_schema(),
        "category": CategoryCreate.model_json_schema(),
        "order": OrderCreate.model_json_schema(),
        "transaction": TransactionCreate.model_json_schema(),
    }


# Auth
@app.post("/api/auth/login")
def login(req: LoginRequest, db: Database = Depends(get_db)):
    return users.login(db, req.email, req.password)


# Orders
@app.get("/api/orders")
def list_orders(status: Optional[str] = None, search: Optional[str] = None, db: Database = Depends(get_db)):
    return {"orders": serialize(orders.list_orders(db, status, search))}


@app.post("/api/orders", status_code=201)
def create_order(body: OrderCreate, user: AuthUser = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"order": serialize(orders.create_order(db, body))}


@app.get("/api/orders/{order_id}")
def get_order(order_id: str, db: Database = Depends(get_db)):
    return {"order": serialize(orders.get_order(db, order_id))}


@app.put("/api/orders/{order_id}")
def update_order(
    order_id: str,
    body: OrderStatusUpdate,
    user: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    order = orders.update_order_status(db, order_id, body.status, body.payment_status)
    return {"order": serialize(order)}


# Products
@app.get("/api/products")
def list_products(
    category: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    db: Database = Depends(get_db),
):
    return serialize(catalog.list_products(db, category, status, search, page, limit))


@app.get("/api/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    product = catalog.get_product(db, product_id)
    return {"product": serialize(catalog.populate_category(db, [product])[0])}


@app.post("/api/products", status_code=201)
def create_product(
    name: str = Form(...),
    sku: str = Form(...),
    price: float = Form(...),
    stock: int = Form(...),
    category: str = Form(...),
    description: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    user: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
    media: MediaStore = Depends(get_media),
):
    body = ProductCreate(name=name, sku=sku, price=price, stock=stock, category=category, description=description)
    product = catalog.create_product(db, media, body, read_upload(image))
    return {"product": serialize(catalog.populate_category(db, [product])[0])}


@app.put("/api/products/{product_id}")
def update_product(
    product_id: str,
    name: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    stock: Optional[int] = Form(None),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    user: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
    media: MediaStore = Depends(get_media),
):
    body = ProductUpdate(name=name, price=price, stock=stock, category=category, description=description)
    product = catalog.update_product(db, media, product_id, body, read_upload(image))
    return {"product": serialize(catalog.populate_category(db, [product])[0])}


@app.delete("/api/products/{product_id}")
def delete_product(
    product_id: str,
    user: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
    media: MediaStore = Depends(get_media),
):
    catalog.delete_product(db, media, product_id)
    return {"success": True}


# Categories
@app.get("/api/categories")
def list_categories(
    search: Optional[str] = None,
    parentId: Optional[str] = None,
    isActive: Optional[bool] = None,
    db: Database = Depends(get_db),
):
    return {"categories": serialize(catalog.list_categories(db, search, parentId, isActive))}


@app.get("/api/categories/{category_id}")
def get_category(category_id: str, db: Database = Depends(get_db)):
    return {"category": serialize(catalog.get_category(db, category_id))}


@app.post("/api/categories", status_code=201)
def create_category(
    name: str = Form(...),
    slug: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    parent_category: Optional[str] = Form(None),
    is_active: bool = Form(True),
    image: Optional[UploadFile] = File(None),
    user: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
    media: MediaStore = Depends(get_media),
):
    body = CategoryCreate(
        name=name, slug=slug, description=description, parent_category=parent_category, is_active=is_active
    )
    return {"category": serialize(catalog.create_category(db, media, body, read_upload(image)))}


@app.put("/api/categories/{category_id}")
def update_category(
    category_id: str,
    name: Optional[str] = Form(None),
    slug: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    parent_category: Optional[str] = Form(None),
    is_active: Optional[bool] = Form(None),
    image: Optional[UploadFile] = File(None),
    user: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
    media: MediaStore = Depends(get_media),
):
    body = CategoryUpdate(
        name=name, slug=slug, description=description, parent_category=parent_category, is_active=is_active
    )
    category = catalog.update_category(db, media, category_id, body, read_upload(image))
    return {"category": serialize(category)}


@app.delete("/api/categories/{category_id}")
def delete_category(
    category_id: str,
    user: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
    media: MediaStore = Depends(get_media),
):
    catalog.delete_category(db, media, category_id)
    return {"success": True}


# Transactions
@app.get("/api/transactions")
def list_transactions(
    type: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    db: Database = Depends(get_db),
):
    return {"transactions": serialize(ledger.list_transactions(db, type, status, search))}


@app.post("/api/transactions", status_code=201)
def create_transaction(body: TransactionCreate, user: AuthUser = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"transaction": serialize(ledger.create_transaction(db, body))}


# Notifications
@app.get("/api/notifications")
def list_notifications(user: AuthUser = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"notifications": serialize(notifications.list_notifications(db, user.id))}


@app.post("/api/notifications", status_code=201)
def create_notification(body: NotificationCreate, user: AuthUser = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"notification": serialize(notifications.create_notification(db, body))}


@app.put("/api/notifications/{notification_id}")
def update_notification(
    notification_id: str,
    body: NotificationUpdate,
    user: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    notification = notifications.mark_read(db, notification_id, user.id, body.is_read)
    return {"notification": serialize(notification)}


@app.delete("/api/notifications/{notification_id}")
def delete_notification(notification_id: str, user: AuthUser = Depends(get_current_user), db: Database = Depends(get_db)):
    notifications.delete_notification(db, notification_id, user.id)
    return {"success": True}


# Employees
@app.get("/api/employees")
def list_employees(
    department: Optional[str] = None,
    search: Optional[str] = None,
    user: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return {"employees": serialize(users.list_employees(db, department, search))}


@app.get("/api/employees/{employee_id}")
def get_employee(employee_id: str, user: AuthUser = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"employee": serialize(users.get_employee(db, employee_id))}


@app.post("/api/employees", status_code=201)
def create_employee(
    name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    role: str = Form("employee"),
    department: str = Form(""),
    position: str = Form(""),
    phone: str = Form(""),
    image: Optional[UploadFile] = File(None),
    user: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
    media: MediaStore = Depends(get_media),
):
    body = EmployeeCreate(
        name=name, email=email, password=password, role=role, department=department, position=position, phone=phone
    )
    return {"employee": serialize(users.create_employee(db, media, body, read_upload(image)))}


@app.put("/api/employees/{employee_id}")
def update_employee(
    employee_id: str,
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    role: Optional[str] = Form(None),
    department: Optional[str] = Form(None),
    position: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    user: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
    media: MediaStore = Depends(get_media),
):
    body = EmployeeUpdate(
        name=name, email=email, password=password or None, role=role, department=department, position=position, phone=phone
    )
    employee = users.update_employee(db, media, employee_id, body, read_upload(image))
    return {"employee": serialize(employee)}


@app.delete("/api/employees/{employee_id}")
def delete_employee(
    employee_id: str,
    user: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
    media: MediaStore = Depends(get_media),
):
    users.delete_employee(db, media, employee_id)
    return {"success": True}


# Profile
@app.get("/api/profile")
def get_profile(user: AuthUser = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"user": serialize(users.get_profile(db, user.id))}


@app.put("/api/profile")
def update_profile(
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    user: AuthUser = Depends(get_current_user),
    db: Database = Depends(get_db),
    media: MediaStore = Depends(get_media),
):
    body = ProfileUpdate(name=name, email=email or None, phone=phone)
    return {"user": serialize(users.update_profile(db, media, user.id, body, read_upload(image)))}


@app.put("/api/profile/password")
def change_password(body: PasswordChange, user: AuthUser = Depends(get_current_user), db: Database = Depends(get_db)):
    users.change_password(db, user.id, body)
    return {"success": True}


# Settings
def _load_settings(db: Database) -> dict:
    settings = db["settings"].find_one()
    if settings is None:
        create_document(db, "settings", Settings())
        settings = db["settings"].find_one()
    return settings


@app.get("/api/settings")
def get_settings(user: AuthUser = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"settings": serialize(_load_settings(db))}


@app.put("/api/settings")
def update_settings(body: SettingsUpdate, user: AuthUser = Depends(get_current_user), db: Database = Depends(get_db)):
    settings = _load_settings(db)
    updates = body.model_dump(exclude_none=True)
    updates["updated_at"] = now()
    db["settings"].update_one({"_id": settings["_id"]}, {"$set": updates})
    logger.info("settings updated by %s: %s", user.email, ", ".join(sorted(updates)))
    return {"settings": serialize(db["settings"].find_one({"_id": settings["_id"]}))}


# Dashboard
@app.get("/api/dashboard")
def get_dashboard(period: str = "month", user: AuthUser = Depends(get_current_user), db: Database = Depends(get_db)):
    return serialize(dashboard.summary(db, period))


@app.get("/test")
def test_database(request: Request):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    db = getattr(request.app.state, "db", None)
    if db is None:
        response["database"] = "⚠️  Available but not initialized"
        return response
    try:
        collections = db.list_collection_names()
        response["collections"] = collections[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except PyMongoError as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
