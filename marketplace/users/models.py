from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from marketplace.core.utils import utcnow


class UserRole(str, Enum):
    CUSTOMER = "customer"
    VENDOR = "vendor"
    ADMIN = "admin"


class NotificationType(str, Enum):
    ORDER = "order"
    PAYMENT = "payment"
    DELIVERY = "delivery"


# --- Modèle User SQLModel ---

class UserBase(SQLModel):
    email: str = Field(index=True, unique=True, max_length=255)
    name: str = Field(max_length=255)
    role: UserRole = Field(default=UserRole.CUSTOMER)
    email_notifications: bool = Field(default=True)


class User(UserBase, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)


class UserRead(UserBase):
    id: int


# --- Panier ---

class CartItem(SQLModel, table=True):
    """Ligne du panier d'un utilisateur."""
    __tablename__ = "cart_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    product_id: int = Field(index=True)
    quantity: int = Field(ge=1)


# --- Notifications in-app ---

class Notification(SQLModel, table=True):
    __tablename__ = "notifications"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    message: str
    type: NotificationType = Field(default=NotificationType.ORDER)
    read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
