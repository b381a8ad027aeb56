import logging
from typing import Annotated

from fastapi import Depends

from marketplace.addresses.dependencies import AddressRepositoryDep
from marketplace.catalog.dependencies import CatalogRepositoryDep
from marketplace.config import settings
from marketplace.coupons.dependencies import CouponServiceDep
from marketplace.geo.dependencies import GeocoderDep
from marketplace.notifications.dependencies import NotificationServiceDep
from marketplace.orders.interfaces.repositories import AbstractOrderRepository
from marketplace.orders.repositories import SQLAlchemyOrderRepository
from marketplace.orders.service import OrderService
from marketplace.payments.dependencies import PaymentGatewayDep
from marketplace.stock_movements.dependencies import StockMovementServiceDep
from marketplace.users.dependencies import DbSessionDep, UserRepositoryDep

logger = logging.getLogger(__name__)


def get_order_repository(session: DbSessionDep) -> AbstractOrderRepository:
    """Fournit une instance du repository de commandes."""
    logger.debug("Fourniture de SQLAlchemyOrderRepository")
    return SQLAlchemyOrderRepository(db_session=session)


OrderRepositoryDep = Annotated[AbstractOrderRepository, Depends(get_order_repository)]


def get_order_service(
    db: DbSessionDep,
    order_repository: OrderRepositoryDep,
    user_repository: UserRepositoryDep,
    catalog_repository: CatalogRepositoryDep,
    address_repository: AddressRepositoryDep,
    coupon_service: CouponServiceDep,
    payment_gateway: PaymentGatewayDep,
    notification_service: NotificationServiceDep,
    stock_service: StockMovementServiceDep,
    geocoder: GeocoderDep,
) -> OrderService:
    """
    Fournit une instance du service de gestion des commandes.

    Les règles configurables (devise, frais fixes, propriété vendeur) sont lues
    depuis les settings.
    """
    logger.debug("Fourniture de OrderService")
    return OrderService(
        db=db,
        order_repository=order_repository,
        user_repository=user_repository,
        catalog_repository=catalog_repository,
        address_repository=address_repository,
        coupon_service=coupon_service,
        payment_gateway=payment_gateway,
        notification_service=notification_service,
        stock_service=stock_service,
        geocoder=geocoder,
        currency=settings.ORDER_CURRENCY,
        flat_surcharge=settings.ORDER_FLAT_SURCHARGE,
        require_vendor_ownership_for_status=settings.ORDER_STATUS_REQUIRE_VENDOR_OWNERSHIP,
    )


OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
