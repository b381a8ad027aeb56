from typing import Annotated

from fastapi import Depends

from marketplace.coupons.interfaces.repositories import AbstractCouponRepository
from marketplace.coupons.repositories import SQLAlchemyCouponRepository
from marketplace.coupons.service import CouponService
from marketplace.users.dependencies import DbSessionDep


def get_coupon_repository(session: DbSessionDep) -> AbstractCouponRepository:
    return SQLAlchemyCouponRepository(db_session=session)


CouponRepositoryDep = Annotated[AbstractCouponRepository, Depends(get_coupon_repository)]


def get_coupon_service(coupon_repository: CouponRepositoryDep) -> CouponService:
    return CouponService(coupon_repository=coupon_repository)


CouponServiceDep = Annotated[CouponService, Depends(get_coupon_service)]
