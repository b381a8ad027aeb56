"""Calcul du prix des lignes de commande à partir du panier."""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, List

from marketplace.catalog.models import ProductRead
from marketplace.core.utils import quantize_money
from marketplace.orders.exceptions import (
    InsufficientStockException,
    InvalidPriceException,
    ProductGoneException,
)
from marketplace.users.models import CartItem


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    shop_id: int
    vendor_id: int
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


def unit_price_for(product: ProductRead) -> Decimal:
    """Prix unitaire après remise produit: price × (1 − discount/100)."""
    try:
        price = Decimal(product.price) * (Decimal(100) - Decimal(product.discount)) / Decimal(100)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidPriceException(product.id)
    if not price.is_finite() or price < 0:
        raise InvalidPriceException(product.id)
    return quantize_money(price)


def price_cart(cart: List[CartItem], products: Dict[int, ProductRead]) -> List[PricedLine]:
    """Transforme les lignes du panier en lignes de commande tarifées.

    Le stock est vérifié ligne par ligne contre l'instantané fourni.
    """
    lines = []
    requested: Dict[int, int] = {}
    for cart_item in cart:
        product = products.get(cart_item.product_id)
        if product is None:
            raise ProductGoneException(cart_item.product_id)
        requested[product.id] = requested.get(product.id, 0) + cart_item.quantity
        if requested[product.id] > product.stock:
            raise InsufficientStockException(product.id, requested[product.id], product.stock)
        lines.append(PricedLine(
            product_id=product.id,
            shop_id=product.shop_id,
            vendor_id=product.vendor_id,
            quantity=cart_item.quantity,
            unit_price=unit_price_for(product),
        ))
    return lines


def subtotal_of(lines: List[PricedLine]) -> Decimal:
    return quantize_money(sum((line.line_total for line in lines), Decimal("0")))


def total_of(subtotal: Decimal, discount: Decimal, surcharge: Decimal) -> Decimal:
    return quantize_money(max(subtotal - discount, Decimal("0")) + surcharge)
