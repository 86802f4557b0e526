"""
Inventory ledger: available quantity per product
"""
import logging

from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError, InsufficientStock
from app.models.product import Product

logger = logging.getLogger(__name__)


class InventoryService:
    """
    Stock movements never commit on their own: they run inside the
    caller's transaction so they roll back together with it.
    """

    def __init__(self, db: Session):
        self.db = db

    def reserve(self, product_id: int, quantity: int) -> None:
        """
        Decrement stock with a single conditional UPDATE.

        Two concurrent orders for the last units cannot both pass: the
        second UPDATE matches no row once the first has decremented.

        Raises:
            ValidationError: quantity <= 0
            InsufficientStock: not enough units left (or unknown product)
        """
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        updated = self.db.query(Product).filter(
            Product.id == product_id,
            Product.quantity_available >= quantity
        ).update(
            {Product.quantity_available: Product.quantity_available - quantity},
            synchronize_session=False
        )

        if updated == 0:
            logger.info(f"[Inventory] Reserve rejected: product={product_id} qty={quantity}")
            raise InsufficientStock(
                "Insufficient quantity",
                details={"productId": product_id, "requested": quantity}
            )

        logger.debug(f"[Inventory] Reserved {quantity} of product {product_id}")

    def release(self, product_id: int, quantity: int) -> None:
        """Additive restore of a previously reserved quantity"""
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        self.db.query(Product).filter(Product.id == product_id).update(
            {Product.quantity_available: Product.quantity_available + quantity},
            synchronize_session=False
        )
        logger.debug(f"[Inventory] Released {quantity} of product {product_id}")

    def available(self, product_id: int) -> int:
        quantity = self.db.query(Product.quantity_available).filter(
            Product.id == product_id
        ).scalar()
        return quantity or 0
