"""Importe tous les modèles de table pour les enregistrer dans SQLModel.metadata."""
from marketplace.addresses.models import Address  # noqa: F401
from marketplace.catalog.models import Product, Shop  # noqa: F401
from marketplace.coupons.models import Coupon  # noqa: F401
from marketplace.orders.models import Order, OrderItem  # noqa: F401
from marketplace.stock_movements.models import StockMovement  # noqa: F401
from marketplace.users.models import CartItem, Notification, User  # noqa: F401
