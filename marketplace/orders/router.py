import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Header, Query, Response, status

from marketplace.auth.dependencies import CurrentAdmin, CurrentUser, CurrentVendor
from marketplace.config import settings
from marketplace.core.schemas import ApiResponse, Page
from marketplace.core.utils import content_range
from marketplace.orders.constants import OrderStatus
from marketplace.orders.dependencies import OrderServiceDep
from marketplace.orders.models import (
    OrderCreate,
    OrderRead,
    OrderStatusUpdate,
    OrderTrackingRead,
    PaymentConfirmation,
    ReconciliationEntry,
    TrackingUpdate,
    VendorActionRequest,
    VendorOrderStats,
)
from marketplace.stock_movements.dependencies import StockMovementServiceDep

logger = logging.getLogger(__name__)

order_router = APIRouter(
    prefix="/orders",
    tags=["Orders"],
)

PageLimit = Annotated[int, Query(ge=1, le=settings.MAX_PAGE_SIZE)]
PageOffset = Annotated[int, Query(ge=0)]


@order_router.post("/", response_model=ApiResponse[OrderRead], status_code=status.HTTP_201_CREATED)
async def create_order_endpoint(
    service: OrderServiceDep,
    current_user: CurrentUser,
    order_data: OrderCreate,
    response: Response,
    idempotency_key: Annotated[Optional[str], Header(alias="Idempotency-Key", max_length=100)] = None,
):
    """Crée une commande à partir du panier de l'utilisateur authentifié.

    Rejouer la requête avec le même en-tête `Idempotency-Key` retourne la
    commande déjà créée (HTTP 200).
    """
    order, created = await service.create_order(current_user, order_data, idempotency_key=idempotency_key)
    if created:
        logger.info(f"Commande {order.id} créée avec succès pour l'utilisateur {current_user.id}.")
    else:
        response.status_code = status.HTTP_200_OK
    return ApiResponse(data=order)


@order_router.get("/", response_model=ApiResponse[Page[OrderRead]])
async def list_orders_endpoint(
    service: OrderServiceDep,
    current_user: CurrentUser,
    response: Response,
    limit: PageLimit = settings.DEFAULT_PAGE_SIZE,
    offset: PageOffset = 0,
    order_status: Annotated[Optional[OrderStatus], Query(alias="status")] = None,
):
    """Liste les commandes visibles par l'utilisateur, filtrables par statut."""
    orders, total = await service.list_orders(current_user, limit=limit, offset=offset, status=order_status)
    response.headers["Content-Range"] = content_range("orders", offset, len(orders), total)
    return ApiResponse(data=Page(items=orders, total=total, limit=limit, offset=offset))


@order_router.get("/vendor/stats", response_model=ApiResponse[VendorOrderStats])
async def vendor_stats_endpoint(
    service: OrderServiceDep,
    current_vendor: CurrentVendor,
):
    """Compteurs et chiffre d'affaires des commandes du vendeur."""
    return ApiResponse(data=await service.vendor_stats(current_vendor))


@order_router.get("/admin/reconciliation", response_model=ApiResponse[Page[ReconciliationEntry]])
async def stock_reconciliation_endpoint(
    stock_service: StockMovementServiceDep,
    current_admin: CurrentAdmin,
    response: Response,
    limit: PageLimit = settings.DEFAULT_PAGE_SIZE,
    offset: PageOffset = 0,
):
    """Commandes dont les mouvements de stock ne sont pas équilibrés."""
    entries, total = await stock_service.find_unbalanced(limit=limit, offset=offset)
    if total:
        logger.warning(f"{total} commande(s) avec stock incohérent signalée(s) à l'admin {current_admin.id}.")
    response.headers["Content-Range"] = content_range("orders", offset, len(entries), total)
    return ApiResponse(data=Page(items=entries, total=total, limit=limit, offset=offset))


@order_router.get("/{order_id}", response_model=ApiResponse[OrderRead])
async def get_order_endpoint(
    service: OrderServiceDep,
    current_user: CurrentUser,
    order_id: int,
):
    return ApiResponse(data=await service.get_order(order_id, current_user))


@order_router.put("/{order_id}/status", response_model=ApiResponse[OrderRead])
async def update_order_status_endpoint(
    service: OrderServiceDep,
    current_vendor: CurrentVendor,
    order_id: int,
    status_update: OrderStatusUpdate,
):
    """Fait avancer le statut d'une commande (vendeur)."""
    order = await service.update_status(order_id, status_update.status, current_vendor)
    logger.info(f"Statut commande {order_id} mis à jour à '{status_update.status.value}' par user {current_vendor.id}.")
    return ApiResponse(data=order)


@order_router.put("/{order_id}/payment", response_model=ApiResponse[OrderRead])
async def confirm_payment_endpoint(
    service: OrderServiceDep,
    current_user: CurrentUser,
    order_id: int,
    confirmation: PaymentConfirmation,
):
    """Confirme un paiement en ligne après vérification de sa signature."""
    return ApiResponse(data=await service.confirm_payment(order_id, confirmation, current_user))


@order_router.put("/{order_id}/cancel", response_model=ApiResponse[OrderRead])
async def cancel_order_endpoint(
    service: OrderServiceDep,
    current_user: CurrentUser,
    order_id: int,
):
    """Annule une commande et remet ses produits en stock."""
    return ApiResponse(data=await service.cancel_order(order_id, current_user))


@order_router.put("/{order_id}/vendor-action", response_model=ApiResponse[OrderRead])
async def vendor_action_endpoint(
    service: OrderServiceDep,
    current_vendor: CurrentVendor,
    order_id: int,
    payload: VendorActionRequest,
):
    """Accepte ou refuse une commande payée à la livraison."""
    return ApiResponse(data=await service.vendor_action(order_id, payload.action, current_vendor))


@order_router.get("/{order_id}/tracking", response_model=ApiResponse[OrderTrackingRead])
async def get_tracking_endpoint(
    service: OrderServiceDep,
    current_user: CurrentUser,
    order_id: int,
):
    return ApiResponse(data=await service.get_tracking(order_id, current_user))


@order_router.put("/{order_id}/tracking", response_model=ApiResponse[OrderRead])
async def update_tracking_endpoint(
    service: OrderServiceDep,
    current_vendor: CurrentVendor,
    order_id: int,
    tracking: TrackingUpdate,
):
    """Met à jour la position et l'état de livraison (vendeur)."""
    return ApiResponse(data=await service.update_tracking(order_id, tracking, current_vendor))
