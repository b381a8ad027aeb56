from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import field_validator
from sqlmodel import Field, SQLModel

from marketplace.core.utils import utcnow


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class CouponBase(SQLModel):
    code: str = Field(index=True, unique=True, max_length=50)
    discount_type: DiscountType
    discount_value: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    min_order_value: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    max_discount_amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    valid_from: datetime
    valid_until: datetime
    usage_limit: Optional[int] = Field(default=None, ge=0)
    used_count: int = Field(default=0, ge=0)
    is_active: bool = Field(default=True)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()


class Coupon(CouponBase, table=True):
    __tablename__ = "coupons"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)


class CouponRead(CouponBase):
    id: int


# --- Schémas API ---

class CouponValidationRequest(SQLModel):
    code: str = Field(min_length=1, max_length=50)
    order_amount: Decimal = Field(ge=0)


class CouponValidationResult(SQLModel):
    valid: bool = True
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    discount_amount: Decimal
