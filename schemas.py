"""
Database Schemas

MongoDB collection schemas and request bodies, as Pydantic models.
These schemas validate input at the API boundary; stored documents use the
same snake_case field names.

Collections:
- Product -> "products"
- Category -> "categories"
- Order -> "orders"
- Transaction -> "transactions"
- Notification -> "notifications"
- User -> "users"
- Settings -> "settings"
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

OrderStatus = Literal["Processing", "Completed", "Cancelled", "On Hold"]
PaymentStatus = Literal["Pending", "Paid", "Failed"]
TransactionType = Literal["Credit", "Debit"]
TransactionStatus = Literal["Completed", "Pending", "Failed"]
RelatedModel = Literal["Order", "User", "Product"]
NotificationType = Literal["info", "success", "warning", "error"]
Role = Literal["admin", "manager", "employee"]


# --------------------- Catalog ---------------------

class ProductCreate(BaseModel):
    """
    Products collection schema
    Collection name: "products"
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100, description="Product name")
    sku: str = Field(..., min_length=1, description="Stock keeping unit, unique")
    description: Optional[str] = Field(None, max_length=1000)
    price: float = Field(..., ge=0, description="Unit price")
    stock: int = Field(..., ge=0, description="Units in stock")
    category: str = Field(..., description="Category ObjectId as string")


class ProductUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    category: Optional[str] = None


class CategoryCreate(BaseModel):
    """
    Categories collection schema
    Collection name: "categories"
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=50, description="Category name")
    slug: Optional[str] = Field(None, description="URL slug, derived from name when empty")
    description: Optional[str] = Field(None, max_length=500)
    parent_category: Optional[str] = Field(None, description="Parent category ObjectId")
    is_active: bool = True


class CategoryUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=50)
    slug: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)
    parent_category: Optional[str] = None
    is_active: Optional[bool] = None


# --------------------- Orders ---------------------

class Customer(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None


class ShippingAddress(BaseModel):
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class OrderItemIn(BaseModel):
    product: str = Field(..., description="Product ObjectId as string")
    quantity: int = Field(..., ge=1)


class OrderCreate(BaseModel):
    """
    Orders collection input
    Collection name: "orders"
    """
    customer: Customer
    items: List[OrderItemIn] = Field(..., min_length=1)
    shipping_address: Optional[ShippingAddress] = None
    payment_method: str = Field("Cash on Delivery")
    notes: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None


# --------------------- Ledger ---------------------

class TransactionCreate(BaseModel):
    """
    Transactions collection input
    Collection name: "transactions"
    """
    description: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    type: TransactionType
    account: str = Field(..., min_length=1)
    status: TransactionStatus = "Completed"
    related_to: Optional[str] = Field(None, description="ObjectId of the related document")
    related_model: Optional[RelatedModel] = None

    @model_validator(mode="after")
    def check_reference(self):
        if (self.related_to is None) != (self.related_model is None):
            raise ValueError("related_to and related_model must be given together")
        return self


# --------------------- Notifications ---------------------

class NotificationCreate(BaseModel):
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    user_id: str
    type: NotificationType = "info"
    link: Optional[str] = None


class NotificationUpdate(BaseModel):
    is_read: bool


# --------------------- Users ---------------------

class EmployeeCreate(BaseModel):
    """
    Users collection input
    Collection name: "users"
    """
    name: str = Field(..., min_length=1, max_length=60)
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: Role = "employee"
    department: str = ""
    position: str = ""
    phone: str = ""


class EmployeeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=60)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8)
    role: Optional[Role] = None
    department: Optional[str] = None
    position: Optional[str] = None
    phone: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=60)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


# --------------------- Settings ---------------------

class NotificationSettings(BaseModel):
    email: bool = True
    push: bool = True


class Settings(BaseModel):
    """
    Store settings, a single document
    Collection name: "settings"
    """
    store_name: str = "AdminHub Store"
    store_email: str = "store@adminhub.com"
    store_phone: str = ""
    currency: str = "USD"
    timezone: str = "UTC"
    date_format: str = "MM/DD/YYYY"
    logo: str = ""
    favicon: str = ""
    theme: str = "dark"
    notification_settings: NotificationSettings = Field(default_factory=NotificationSettings)


class SettingsUpdate(BaseModel):
    store_name: Optional[str] = None
    store_email: Optional[str] = None
    store_phone: Optional[str] = None
    currency: Optional[str] = None
    timezone: Optional[str] = None
    date_format: Optional[str] = None
    logo: Optional[str] = None
    favicon: Optional[str] = None
    theme: Optional[str] = None
    notification_settings: Optional[NotificationSettings] = None
