from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import model_validator
from sqlalchemy import JSON, Column, Text, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

from marketplace.addresses.models import AddressRead
from marketplace.catalog.models import ShopRead
from marketplace.core.utils import utcnow
from marketplace.orders.constants import (
    DeliveryStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    VendorAction,
)

# --- Modèles de table ---


class OrderItem(SQLModel, table=True):
    """Ligne de commande figée au moment de l'achat."""
    __tablename__ = "order_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    # Pas de clé étrangère: le produit peut être retiré du catalogue après la commande
    product_id: int = Field(index=True)
    shop_id: int = Field(index=True)
    vendor_id: int = Field(index=True)
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(max_digits=12, decimal_places=2)

    order: Optional["Order"] = Relationship(back_populates="items")


class Order(SQLModel, table=True):
    __tablename__ = "orders"
    __table_args__ = (UniqueConstraint("buyer_id", "idempotency_key", name="uq_orders_buyer_idempotency_key"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    buyer_id: int = Field(foreign_key="users.id", index=True)
    shipping_address_id: int = Field(foreign_key="addresses.id")

    subtotal: Decimal = Field(max_digits=12, decimal_places=2)
    discount_amount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    surcharge: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    total_price: Decimal = Field(max_digits=12, decimal_places=2)
    coupon_code: Optional[str] = Field(default=None, max_length=50)

    status: str = Field(default=OrderStatus.PENDING.value, index=True, max_length=20)

    payment_method: str = Field(max_length=30)
    payment_status: str = Field(default=PaymentStatus.PENDING.value, max_length=20)
    gateway_order_ref: Optional[str] = Field(default=None, index=True, max_length=100)
    gateway_payment_ref: Optional[str] = Field(default=None, max_length=100)
    receipt_id: Optional[str] = Field(default=None, max_length=100)

    # Suivi de livraison, indépendant du statut de la commande
    delivery_status: str = Field(default=DeliveryStatus.PREPARING.value, max_length=30)
    current_latitude: Optional[float] = Field(default=None)
    current_longitude: Optional[float] = Field(default=None)
    eta: Optional[datetime] = Field(default=None)
    distance_meters: Optional[float] = Field(default=None)
    route: Optional[Any] = Field(default=None, sa_column=Column(JSON, nullable=True))
    tracking_updated_at: datetime = Field(default_factory=utcnow, nullable=False)

    notes: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    idempotency_key: Optional[str] = Field(default=None, max_length=100)

    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False, sa_column_kwargs={"onupdate": utcnow})

    items: List[OrderItem] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "OrderItem.id"},
    )


# --- Schémas API ---


class OrderCreate(SQLModel):
    shipping_address_id: int
    payment_method: PaymentMethod
    coupon_code: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=1000)


class OrderStatusUpdate(SQLModel):
    status: OrderStatus


class PaymentConfirmation(SQLModel):
    gateway_order_ref: str = Field(min_length=1)
    gateway_payment_ref: str = Field(min_length=1)
    signature: str = Field(min_length=1)


class VendorActionRequest(SQLModel):
    action: VendorAction


class TrackingUpdate(SQLModel):
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    status: Optional[DeliveryStatus] = None
    eta: Optional[datetime] = None
    distance: Optional[float] = Field(default=None, ge=0)
    route: Optional[Any] = None

    @model_validator(mode="after")
    def check_coordinates_pair(self) -> "TrackingUpdate":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude et longitude doivent être fournies ensemble")
        return self


class GeoPoint(SQLModel):
    latitude: float
    longitude: float


class OrderItemRead(SQLModel):
    id: int
    product_id: int
    shop_id: int
    vendor_id: int
    quantity: int
    unit_price: Decimal


class PaymentRead(SQLModel):
    method: PaymentMethod
    status: PaymentStatus
    gateway_order_ref: Optional[str] = None
    gateway_payment_ref: Optional[str] = None


class TrackingRead(SQLModel):
    delivery_status: DeliveryStatus
    current_location: Optional[GeoPoint] = None
    eta: Optional[datetime] = None
    distance_meters: Optional[float] = None
    route: Optional[Any] = None
    last_updated: datetime


class OrderRead(SQLModel):
    id: int
    buyer_id: int
    shipping_address_id: int
    items: List[OrderItemRead]
    subtotal: Decimal
    discount_amount: Decimal
    surcharge: Decimal
    total_price: Decimal
    coupon_applied: Optional[str] = None
    status: OrderStatus
    payment: PaymentRead
    tracking: TrackingRead
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderRead":
        """Construit le schéma de lecture à partir d'une commande avec ses lignes chargées."""
        return cls(
            id=order.id,
            buyer_id=order.buyer_id,
            shipping_address_id=order.shipping_address_id,
            items=[OrderItemRead.model_validate(item, from_attributes=True) for item in order.items],
            subtotal=order.subtotal,
            discount_amount=order.discount_amount,
            surcharge=order.surcharge,
            total_price=order.total_price,
            coupon_applied=order.coupon_code,
            status=OrderStatus(order.status),
            payment=PaymentRead(
                method=PaymentMethod(order.payment_method),
                status=PaymentStatus(order.payment_status),
                gateway_order_ref=order.gateway_order_ref,
                gateway_payment_ref=order.gateway_payment_ref,
            ),
            tracking=tracking_from_order(order),
            notes=order.notes,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


def tracking_from_order(order: Order) -> TrackingRead:
    location = None
    if order.current_latitude is not None and order.current_longitude is not None:
        location = GeoPoint(latitude=order.current_latitude, longitude=order.current_longitude)
    return TrackingRead(
        delivery_status=DeliveryStatus(order.delivery_status),
        current_location=location,
        eta=order.eta,
        distance_meters=order.distance_meters,
        route=order.route,
        last_updated=order.tracking_updated_at,
    )


class OrderTrackingRead(SQLModel):
    order_id: int
    status: OrderStatus
    tracking_status: DeliveryStatus
    current_location: Optional[GeoPoint] = None
    eta: Optional[datetime] = None
    # Distance fournie par l'itinéraire, sinon distance à vol d'oiseau
    distance: Optional[float] = None
    straight_line_distance: Optional[int] = None
    route: Optional[Any] = None
    last_updated: datetime
    shipping_address: Optional[AddressRead] = None
    shops: List[ShopRead] = []


class VendorOrderStats(SQLModel):
    total_orders: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    cancelled: int = 0
    # Montant des lignes du vendeur sur les commandes non annulées
    revenue: Decimal = Decimal("0.00")
    recent_orders: List[OrderRead] = []


class ReconciliationEntry(SQLModel):
    order_id: int
    status: OrderStatus
    ordered_quantity: int
    decremented: int
    restored: int
    failed_steps: int
