import logging
from datetime import datetime
from typing import List, Optional, Tuple

from fastcrud import FastCRUD
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.coupons.interfaces.repositories import AbstractCouponRepository
from marketplace.coupons.models import Coupon, CouponRead

logger = logging.getLogger(__name__)


class SQLAlchemyCouponRepository(AbstractCouponRepository):

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.crud = FastCRUD(Coupon)

    async def get_by_code(self, code: str) -> Optional[CouponRead]:
        return await self.crud.get(
            db=self.db, schema_to_select=CouponRead, return_as_model=True, code=code.strip().upper()
        )

    async def increment_usage(self, code: str) -> bool:
        stmt = (
            update(Coupon)
            .where(
                Coupon.code == code.strip().upper(),
                or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
            )
            .values(used_count=Coupon.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            logger.warning(f"[CouponRepository] Incrément d'utilisation refusé pour '{code}'.")
            return False
        return True

    async def list_active(self, moment: datetime, limit: int, offset: int) -> Tuple[List[CouponRead], int]:
        conditions = (
            Coupon.is_active.is_(True),
            Coupon.valid_from <= moment,
            Coupon.valid_until >= moment,
            or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
        )
        total = await self.db.scalar(select(func.count()).select_from(Coupon).where(*conditions))
        stmt = select(Coupon).where(*conditions).order_by(Coupon.valid_until).offset(offset).limit(limit)
        result = await self.db.execute(stmt)
        coupons = [CouponRead.model_validate(c, from_attributes=True) for c in result.scalars().all()]
        return coupons, total or 0
