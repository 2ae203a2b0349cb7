"""
Inventory store: central product stock.

Both operations run inside a transaction owned by the caller; the store never
begins, commits or rolls back on its own.
"""
from typing import Optional
from uuid import UUID

from sqlalchemy import select, text, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from core.errors import InvalidQuantity, ProductNotFound
from .product import Product


def dialect_name(session: AsyncSession) -> str:
    return session.get_bind().dialect.name


class SqlAlchemyInventoryStore:
    """
    Products table accessed through an `AsyncSession` already in a transaction.

    `locked_read` takes the row lock (``SELECT ... FOR UPDATE``) that
    `write_quantity` relies on; the lock is held until the owning transaction
    commits or rolls back.
    """

    def __init__(self, lock_timeout: Optional[float] = None):
        self.lock_timeout = lock_timeout

    async def locked_read(self, session: AsyncSession, product_id: UUID) -> Optional[int]:
        """Lock the product row and return its quantity, or None if it does not exist."""
        if self.lock_timeout and dialect_name(session) == "postgresql":
            # SET does not accept bind parameters; the value is a plain int.
            timeout_ms = int(self.lock_timeout * 1000)
            await session.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))

        product_tbl = Product.__table__
        res = await session.execute(
            select(product_tbl.c.quantity)
            .where(product_tbl.c.id == product_id)
            .with_for_update()
        )
        quantity = res.scalar_one_or_none()
        if quantity is None:
            return None
        return int(quantity)

    async def write_quantity(self, session: AsyncSession, product_id: UUID, new_quantity: int) -> None:
        if new_quantity < 0:
            raise InvalidQuantity(new_quantity)

        product_tbl = Product.__table__
        res = await session.execute(
            update(product_tbl)
            .where(product_tbl.c.id == product_id)
            .values(quantity=new_quantity, updated_at=func.now())
            .returning(product_tbl.c.id)
        )
        if res.first() is None:
            raise ProductNotFound(product_id)
