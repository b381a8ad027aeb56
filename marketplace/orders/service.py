import logging
import time
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.addresses.interfaces.repositories import AbstractAddressRepository
from marketplace.addresses.models import AddressRead
from marketplace.catalog.interfaces.repositories import AbstractCatalogRepository
from marketplace.core.utils import quantize_money, utcnow
from marketplace.coupons.service import CouponService
from marketplace.geo.distance import haversine_distance_meters
from marketplace.geo.geocoder import DEFAULT_COORDINATES, AbstractGeocoder
from marketplace.notifications.service import NotificationService
from marketplace.orders.constants import (
    ALLOWED_TRANSITIONS,
    CANCELLABLE_STATUSES,
    ORDER_STATUS_DISPLAY,
    RECEIPT_PREFIX,
    DeliveryStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    VendorAction,
)
from marketplace.orders.exceptions import (
    EmptyCartException,
    InvalidOrderStateException,
    InvalidSignatureException,
    OrderAccessDeniedException,
    OrderNotFoundException,
    ShippingAddressNotFoundException,
)
from marketplace.orders.interfaces.repositories import AbstractOrderRepository
from marketplace.orders.models import (
    GeoPoint,
    Order,
    OrderCreate,
    OrderItem,
    OrderRead,
    OrderTrackingRead,
    PaymentConfirmation,
    TrackingUpdate,
    VendorOrderStats,
)
from marketplace.orders.pricing import price_cart, subtotal_of, total_of
from marketplace.payments.gateway import AbstractPaymentGateway
from marketplace.stock_movements.service import StockMovementService
from marketplace.users.interfaces.repositories import AbstractUserRepository
from marketplace.users.models import UserRead, UserRole

logger = logging.getLogger(__name__)

RECENT_ORDERS_COUNT = 5

# Champs de TrackingUpdate -> colonnes de Order
TRACKING_COLUMNS = {
    "latitude": "current_latitude",
    "longitude": "current_longitude",
    "status": "delivery_status",
    "eta": "eta",
    "distance": "distance_meters",
    "route": "route",
}


def new_receipt_id() -> str:
    return f"{RECEIPT_PREFIX}{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


class OrderService:
    """Service applicatif du moteur de commandes.

    Les transitions d'état sont des écritures conditionnelles uniques; les
    effets de bord (stock, panier, notifications) sont exécutés ensuite, étape
    par étape, sans pouvoir invalider la commande déjà enregistrée.
    """

    def __init__(self,
                 db: AsyncSession,
                 order_repository: AbstractOrderRepository,
                 user_repository: AbstractUserRepository,
                 catalog_repository: AbstractCatalogRepository,
                 address_repository: AbstractAddressRepository,
                 coupon_service: CouponService,
                 payment_gateway: AbstractPaymentGateway,
                 notification_service: NotificationService,
                 stock_service: StockMovementService,
                 geocoder: AbstractGeocoder,
                 currency: str,
                 flat_surcharge: Decimal,
                 require_vendor_ownership_for_status: bool = False):
        self.db = db
        self.order_repository = order_repository
        self.user_repository = user_repository
        self.catalog_repository = catalog_repository
        self.address_repository = address_repository
        self.coupon_service = coupon_service
        self.payment_gateway = payment_gateway
        self.notification_service = notification_service
        self.stock_service = stock_service
        self.geocoder = geocoder
        self.currency = currency
        self.flat_surcharge = quantize_money(Decimal(flat_surcharge))
        self.require_vendor_ownership_for_status = require_vendor_ownership_for_status

    # --- Lecture ---

    async def _get_order_or_404(self, order_id: int) -> Order:
        order = await self.order_repository.get_by_id(order_id)
        if order is None:
            logger.warning(f"[OrderService] Commande ID {order_id} non trouvée.")
            raise OrderNotFoundException(order_id=order_id)
        return order

    async def _is_vendor_of_order(self, order: Order, user: UserRead) -> bool:
        if user.role != UserRole.VENDOR:
            return False
        return await self.order_repository.vendor_has_item(order.id, user.id)

    async def _check_read_access(self, order: Order, user: UserRead) -> None:
        if order.buyer_id == user.id or user.role == UserRole.ADMIN:
            return
        if await self._is_vendor_of_order(order, user):
            return
        logger.warning(f"[OrderService] Accès refusé commande {order.id} pour user {user.id}.")
        raise OrderAccessDeniedException(order.id)

    async def _reload(self, order_id: int) -> OrderRead:
        return OrderRead.from_order(await self._get_order_or_404(order_id))

    async def get_order(self, order_id: int, user: UserRead) -> OrderRead:
        order = await self._get_order_or_404(order_id)
        await self._check_read_access(order, user)
        return OrderRead.from_order(order)

    async def list_orders(self, user: UserRead, limit: int, offset: int,
                          status: Optional[OrderStatus] = None) -> Tuple[List[OrderRead], int]:
        """Commandes de l'acheteur, du vendeur (via ses produits) ou toutes pour un admin."""
        logger.debug(f"[OrderService] Listage commandes user {user.id} ({user.role.value}), limit={limit}, offset={offset}")
        if user.role == UserRole.VENDOR:
            orders, total = await self.order_repository.list_for_vendor(user.id, limit, offset, status)
        elif user.role == UserRole.ADMIN:
            orders, total = await self.order_repository.list_all(limit, offset, status)
        else:
            orders, total = await self.order_repository.list_for_buyer(user.id, limit, offset, status)
        return [OrderRead.from_order(order) for order in orders], total

    async def vendor_stats(self, vendor: UserRead) -> VendorOrderStats:
        stats = await self.order_repository.vendor_stats(vendor.id)
        recent, _ = await self.order_repository.list_for_vendor(vendor.id, RECENT_ORDERS_COUNT, 0)
        stats.recent_orders = [OrderRead.from_order(order) for order in recent]
        return stats

    # --- Création ---

    async def create_order(self, buyer: UserRead, order_data: OrderCreate,
                           idempotency_key: Optional[str] = None) -> Tuple[OrderRead, bool]:
        """Crée une commande à partir du panier de l'acheteur.

        Returns:
            La commande et un booléen indiquant si elle vient d'être créée
            (False lorsqu'une commande existe déjà pour la clé d'idempotence).
        """
        logger.info(f"[OrderService] Tentative création commande pour user ID: {buyer.id}")

        if idempotency_key:
            existing = await self.order_repository.get_by_idempotency_key(buyer.id, idempotency_key)
            if existing is not None:
                logger.info(f"[OrderService] Clé d'idempotence déjà utilisée, commande {existing.id} retournée.")
                return OrderRead.from_order(existing), False

        address = await self.address_repository.get_by_id(order_data.shipping_address_id)
        if address is None or address.user_id != buyer.id:
            raise ShippingAddressNotFoundException(order_data.shipping_address_id)

        cart = await self.user_repository.get_cart(buyer.id)
        if not cart:
            logger.info(f"[OrderService] Panier vide pour user {buyer.id}.")
            raise EmptyCartException()
        cart_item_ids = [item.id for item in cart]

        products = await self.catalog_repository.get_products(item.product_id for item in cart)
        lines = price_cart(cart, products)
        subtotal = subtotal_of(lines)

        discount = Decimal("0.00")
        coupon_code = None
        if order_data.coupon_code:
            quote = await self.coupon_service.validate(order_data.coupon_code, subtotal)
            discount = quote.discount
            coupon_code = quote.coupon.code

        total = total_of(subtotal, discount, self.flat_surcharge)

        order = Order(
            buyer_id=buyer.id,
            shipping_address_id=address.id,
            subtotal=subtotal,
            discount_amount=discount,
            surcharge=self.flat_surcharge,
            total_price=total,
            coupon_code=coupon_code,
            status=OrderStatus.PENDING.value,
            payment_method=order_data.payment_method.value,
            payment_status=PaymentStatus.PENDING.value,
            notes=order_data.notes,
            idempotency_key=idempotency_key,
            items=[
                OrderItem(
                    product_id=line.product_id,
                    shop_id=line.shop_id,
                    vendor_id=line.vendor_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
                for line in lines
            ],
        )

        # Une erreur de la passerelle interrompt la création avant toute écriture
        if order_data.payment_method == PaymentMethod.ONLINE_GATEWAY:
            receipt_id = new_receipt_id()
            intent = await self.payment_gateway.create_payment_intent(total, self.currency, receipt_id)
            order.gateway_order_ref = intent.gateway_order_ref
            order.receipt_id = receipt_id
            logger.info(f"[OrderService] Intention de paiement {intent.gateway_order_ref} créée ({receipt_id}).")

        try:
            if coupon_code:
                await self.coupon_service.increment_usage(coupon_code)
            await self.order_repository.add(order)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if idempotency_key:
                existing = await self.order_repository.get_by_idempotency_key(buyer.id, idempotency_key)
                if existing is not None:
                    logger.info(f"[OrderService] Création concurrente détectée, commande {existing.id} retournée.")
                    return OrderRead.from_order(existing), False
            raise
        except Exception:
            await self.db.rollback()
            raise

        order_id = order.id
        logger.info(f"[OrderService] Commande {order_id} enregistrée (total {total}, user {buyer.id}).")

        report = await self.stock_service.reserve_for_order(order_id, [(line.product_id, line.quantity) for line in lines])
        if not report.complete:
            logger.error(f"[OrderService] Commande {order_id}: sorties de stock incomplètes {report.failed}.")

        try:
            await self.user_repository.clear_cart(buyer.id, cart_item_ids)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[OrderService] Commande {order_id}: impossible de vider le panier de {buyer.id}: {e}")

        created = await self._reload(order_id)
        await self._notify(buyer.id, "order_confirmation", {
            "order_id": created.id,
            "total_price": f"{created.total_price:.2f}",
            "discount_amount": f"{created.discount_amount:.2f}",
            "coupon_code": created.coupon_applied,
            "currency": self.currency,
            "payment_method": created.payment.method.value,
            "items": [
                {"product_id": item.product_id, "quantity": item.quantity, "unit_price": f"{item.unit_price:.2f}"}
                for item in created.items
            ],
        })
        return created, True

    # --- Statut ---

    async def update_status(self, order_id: int, new_status: OrderStatus, vendor: UserRead) -> OrderRead:
        order = await self._get_order_or_404(order_id)
        if self.require_vendor_ownership_for_status and not await self._is_vendor_of_order(order, vendor):
            raise OrderAccessDeniedException(order_id, action="modifier")

        current = OrderStatus(order.status)
        if current == OrderStatus.CANCELLED:
            raise InvalidOrderStateException(f"La commande {order_id} est annulée, son statut ne peut plus changer.")
        if new_status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidOrderStateException(
                f"Transition de statut '{current.value}' vers '{new_status.value}' non autorisée."
            )

        if new_status == OrderStatus.CANCELLED:
            return await self._cancel(order, actor_role=UserRole.VENDOR)

        if not await self.order_repository.transition(order_id, [current], {"status": new_status}):
            await self.db.rollback()
            raise InvalidOrderStateException(f"La commande {order_id} a été modifiée entre-temps.")
        await self.db.commit()
        logger.info(f"[OrderService] Commande {order_id}: statut '{current.value}' -> '{new_status.value}' (vendeur {vendor.id}).")

        await self._notify(order.buyer_id, "order_status_update", {
            "order_id": order_id,
            "status": ORDER_STATUS_DISPLAY[new_status],
        })
        return await self._reload(order_id)

    # --- Annulation ---

    async def cancel_order(self, order_id: int, user: UserRead) -> OrderRead:
        order = await self._get_order_or_404(order_id)
        if order.buyer_id == user.id:
            actor_role = UserRole.CUSTOMER
        elif await self._is_vendor_of_order(order, user):
            actor_role = UserRole.VENDOR
        else:
            raise OrderAccessDeniedException(order_id, action="annuler")
        return await self._cancel(order, actor_role=actor_role)

    async def _cancel(self, order: Order, actor_role: UserRole,
                      extra_values: Optional[Dict[str, Any]] = None,
                      extra_conditions: Optional[Dict[str, Any]] = None) -> OrderRead:
        """Annule la commande puis remet en stock ce qui en avait été sorti."""
        order_id = order.id
        buyer_id = order.buyer_id
        current = OrderStatus(order.status)
        if current not in CANCELLABLE_STATUSES:
            raise InvalidOrderStateException(f"Impossible d'annuler une commande au statut '{current.value}'.")
        if DeliveryStatus(order.delivery_status) == DeliveryStatus.DELIVERED:
            raise InvalidOrderStateException(f"La commande {order_id} a déjà été livrée.")

        values = {"status": OrderStatus.CANCELLED}
        values.update(extra_values or {})
        note = f"Cancelled by {actor_role.value} on {utcnow().isoformat()}"
        applied = await self.order_repository.transition(
            order_id,
            CANCELLABLE_STATUSES,
            values,
            note=note,
            extra_conditions=extra_conditions,
            excluded_delivery_statuses=[DeliveryStatus.DELIVERED],
        )
        if not applied:
            await self.db.rollback()
            raise InvalidOrderStateException(f"La commande {order_id} ne peut plus être annulée.")
        await self.db.commit()
        logger.info(f"[OrderService] Commande {order_id} annulée par {actor_role.value}.")

        report = await self.stock_service.restore_for_order(order_id)
        if not report.complete:
            logger.error(f"[OrderService] Commande {order_id}: remises en stock incomplètes {report.failed}.")

        await self._notify(buyer_id, "order_cancelled", {
            "order_id": order_id,
            "actor_role": actor_role.value,
            "status": ORDER_STATUS_DISPLAY[OrderStatus.CANCELLED],
        })
        return await self._reload(order_id)

    # --- Paiement à la livraison ---

    async def vendor_action(self, order_id: int, action: VendorAction, vendor: UserRead) -> OrderRead:
        order = await self._get_order_or_404(order_id)
        if not await self._is_vendor_of_order(order, vendor):
            raise OrderAccessDeniedException(order_id, action="traiter")
        if PaymentMethod(order.payment_method) != PaymentMethod.CASH_ON_DELIVERY:
            raise InvalidOrderStateException("Cette action est réservée aux commandes payées à la livraison.")
        if OrderStatus(order.status) != OrderStatus.PENDING:
            raise InvalidOrderStateException(
                f"La commande {order_id} n'est plus en attente (statut '{order.status}')."
            )

        cod_only = {"payment_method": PaymentMethod.CASH_ON_DELIVERY}
        if action == VendorAction.REJECT:
            logger.info(f"[OrderService] Commande COD {order_id} refusée par le vendeur {vendor.id}.")
            return await self._cancel(
                order,
                actor_role=UserRole.VENDOR,
                extra_values={"payment_status": PaymentStatus.FAILED},
                extra_conditions=cod_only,
            )

        applied = await self.order_repository.transition(
            order_id, [OrderStatus.PENDING], {"status": OrderStatus.PROCESSING}, extra_conditions=cod_only
        )
        if not applied:
            await self.db.rollback()
            raise InvalidOrderStateException(f"La commande {order_id} n'est plus en attente.")
        await self.db.commit()
        logger.info(f"[OrderService] Commande COD {order_id} acceptée par le vendeur {vendor.id}.")

        await self._notify(order.buyer_id, "order_status_update", {
            "order_id": order_id,
            "status": ORDER_STATUS_DISPLAY[OrderStatus.PROCESSING],
        })
        return await self._reload(order_id)

    # --- Paiement en ligne ---

    async def confirm_payment(self, order_id: int, confirmation: PaymentConfirmation, user: UserRead) -> OrderRead:
        order = await self._get_order_or_404(order_id)
        if order.buyer_id != user.id:
            raise OrderAccessDeniedException(order_id, action="payer")
        if PaymentMethod(order.payment_method) != PaymentMethod.ONLINE_GATEWAY:
            raise InvalidOrderStateException("Cette commande n'est pas payable en ligne.")
        if PaymentStatus(order.payment_status) != PaymentStatus.PENDING or OrderStatus(order.status) != OrderStatus.PENDING:
            raise InvalidOrderStateException(f"Le paiement de la commande {order_id} a déjà été traité.")
        if not order.gateway_order_ref or confirmation.gateway_order_ref != order.gateway_order_ref:
            raise InvalidOrderStateException("La référence de paiement ne correspond pas à cette commande.")

        if not self.payment_gateway.verify_payment_signature(
            confirmation.gateway_order_ref, confirmation.gateway_payment_ref, confirmation.signature
        ):
            logger.warning(f"[OrderService] Signature de paiement invalide pour la commande {order_id}.")
            raise InvalidSignatureException()

        applied = await self.order_repository.transition(
            order_id,
            [OrderStatus.PENDING],
            {
                "gateway_payment_ref": confirmation.gateway_payment_ref,
                "payment_status": PaymentStatus.COMPLETED,
                "status": OrderStatus.PROCESSING,
            },
            extra_conditions={
                "payment_status": PaymentStatus.PENDING,
                "gateway_order_ref": confirmation.gateway_order_ref,
            },
        )
        if not applied:
            await self.db.rollback()
            raise InvalidOrderStateException(f"Le paiement de la commande {order_id} a déjà été traité.")
        await self.db.commit()
        logger.info(f"[OrderService] Paiement {confirmation.gateway_payment_ref} confirmé pour la commande {order_id}.")

        await self._notify(order.buyer_id, "payment_confirmed", {
            "order_id": order_id,
            "status": ORDER_STATUS_DISPLAY[OrderStatus.PROCESSING],
            "payment_status": PaymentStatus.COMPLETED.value,
        })
        return await self._reload(order_id)

    # --- Suivi de livraison ---

    async def update_tracking(self, order_id: int, tracking: TrackingUpdate, vendor: UserRead) -> OrderRead:
        order = await self._get_order_or_404(order_id)
        if not await self._is_vendor_of_order(order, vendor):
            raise OrderAccessDeniedException(order_id, action="mettre à jour le suivi de")
        if OrderStatus(order.status) == OrderStatus.CANCELLED:
            raise InvalidOrderStateException(f"La commande {order_id} est annulée.")

        values = {
            TRACKING_COLUMNS[field]: value
            for field, value in tracking.model_dump(exclude_unset=True).items()
            if value is not None or field in ("eta", "route")
        }
        if not await self.order_repository.update_tracking(order_id, values):
            await self.db.rollback()
            raise InvalidOrderStateException(f"La commande {order_id} est annulée.")
        await self.db.commit()
        logger.info(f"[OrderService] Suivi de la commande {order_id} mis à jour par le vendeur {vendor.id}: {sorted(values)}")
        return await self._reload(order_id)

    async def get_tracking(self, order_id: int, user: UserRead) -> OrderTrackingRead:
        order = await self._get_order_or_404(order_id)
        await self._check_read_access(order, user)

        address = await self.address_repository.get_by_id(order.shipping_address_id)
        if address is not None and not address.has_coordinates:
            address = await self._geocode_address(address)

        current_location = None
        if order.current_latitude is not None and order.current_longitude is not None:
            current_location = GeoPoint(latitude=order.current_latitude, longitude=order.current_longitude)

        straight_line = None
        if current_location is not None and address is not None and address.has_coordinates:
            straight_line = haversine_distance_meters(
                current_location.latitude, current_location.longitude, address.latitude, address.longitude
            )

        shop_ids = list(dict.fromkeys(item.shop_id for item in order.items))
        shops = await self.catalog_repository.get_shops(shop_ids)

        return OrderTrackingRead(
            order_id=order.id,
            status=OrderStatus(order.status),
            tracking_status=DeliveryStatus(order.delivery_status),
            current_location=current_location,
            eta=order.eta,
            distance=order.distance_meters if order.distance_meters is not None else straight_line,
            straight_line_distance=straight_line,
            route=order.route,
            last_updated=order.tracking_updated_at,
            shipping_address=address,
            shops=shops,
        )

    async def _geocode_address(self, address: AddressRead) -> AddressRead:
        """Géocode une adresse sans coordonnées et les enregistre. Best-effort."""
        try:
            coordinates = await self.geocoder.geocode(address.one_line())
        except Exception as e:
            logger.error(f"[OrderService] Géocodage de l'adresse {address.id} en échec: {e}", exc_info=True)
            return address
        if coordinates == DEFAULT_COORDINATES:
            return address

        latitude, longitude = coordinates
        try:
            await self.address_repository.set_coordinates(address.id, latitude, longitude)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[OrderService] Enregistrement des coordonnées de l'adresse {address.id} impossible: {e}")
        return address.model_copy(update={"latitude": latitude, "longitude": longitude})

    # --- Notifications ---

    async def _notify(self, user_id: int, template: str, data: Dict[str, Any]) -> None:
        """Notification best-effort: aucune erreur n'est propagée."""
        try:
            await self.notification_service.send_notification(user_id, template, data)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"[OrderService] Notification '{template}' pour user {user_id} en échec: {e}", exc_info=True)
