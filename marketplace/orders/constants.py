from enum import Enum
from typing import Dict, FrozenSet


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    ONLINE_GATEWAY = "razorpay"
    CASH_ON_DELIVERY = "cash_on_delivery"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class DeliveryStatus(str, Enum):
    PREPARING = "preparing"
    READY_FOR_PICKUP = "ready_for_pickup"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"


class VendorAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


# Transitions autorisées pour PUT /orders/{id}/status
ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

CANCELLABLE_STATUSES: FrozenSet[OrderStatus] = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})

ORDER_STATUS_DISPLAY: Dict[OrderStatus, str] = {
    OrderStatus.PENDING: "En attente",
    OrderStatus.PROCESSING: "En préparation",
    OrderStatus.COMPLETED: "Livrée",
    OrderStatus.CANCELLED: "Annulée",
}

RECEIPT_PREFIX = "order_"
