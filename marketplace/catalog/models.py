from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlmodel import Field, SQLModel

from marketplace.core.utils import utcnow


class ShopBase(SQLModel):
    name: str = Field(max_length=255)
    vendor_id: int = Field(foreign_key="users.id", index=True)
    latitude: Optional[float] = Field(default=None)
    longitude: Optional[float] = Field(default=None)


class Shop(ShopBase, table=True):
    __tablename__ = "shops"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)


class ShopRead(ShopBase):
    id: int


class ProductBase(SQLModel):
    name: str = Field(index=True, max_length=255)
    price: Decimal = Field(max_digits=12, decimal_places=2)
    # Remise en pourcentage (0-100)
    discount: Decimal = Field(default=Decimal("0"), max_digits=5, decimal_places=2)
    stock: int = Field(default=0)
    shop_id: int = Field(foreign_key="shops.id", index=True)
    vendor_id: int = Field(foreign_key="users.id", index=True)


class Product(ProductBase, table=True):
    __tablename__ = "products"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: Optional[datetime] = Field(default=None, sa_column_kwargs={"onupdate": utcnow})


class ProductRead(ProductBase):
    id: int
