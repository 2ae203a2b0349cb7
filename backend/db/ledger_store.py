"""
Client ledger store: per-client quantities of each product.
"""
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from core.errors import ClientNotFound, InvalidQuantity
from .client import Client
from .client_stock import ClientStock
from .inventory_store import dialect_name
from .product import Product

# Dialects with a native INSERT ... ON CONFLICT DO UPDATE construct
_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class SqlAlchemyLedgerStore:
    """client_stocks table accessed through an `AsyncSession` already in a transaction."""

    async def add_quantity(self, session: AsyncSession, client_id: UUID, product_id: UUID, delta: int) -> int:
        """
        Credit `delta` to the (client, product) row and return the new quantity.

        - Missing row: inserted with quantity = delta.
        - Existing row: quantity increased by delta (never overwritten).

        Both cases are one ``INSERT ... ON CONFLICT DO UPDATE`` statement, so
        two transactions crediting the same pair can't create two rows.

        The client row is share-locked first: crediting an unknown client
        raises ClientNotFound, and the client can't be deleted until this
        transaction ends.
        """
        if delta <= 0:
            raise InvalidQuantity(delta)

        name = dialect_name(session)
        insert = _UPSERT_INSERTS.get(name)
        if insert is None:
            raise NotImplementedError(f"ledger upsert is not supported on dialect {name!r}")

        client_tbl = Client.__table__
        cres = await session.execute(
            select(client_tbl.c.id)
            .where(client_tbl.c.id == client_id)
            .with_for_update(read=True)
        )
        if cres.scalar_one_or_none() is None:
            raise ClientNotFound(client_id)

        stock_tbl = ClientStock.__table__
        stmt = insert(stock_tbl).values(
            client_id=client_id,
            product_id=product_id,
            quantity=delta,
        )
        upsert = (
            stmt.on_conflict_do_update(
                index_elements=[stock_tbl.c.client_id, stock_tbl.c.product_id],
                set_={
                    "quantity": stock_tbl.c.quantity + stmt.excluded.quantity,
                    "updated_at": func.now(),
                },
            )
            .returning(stock_tbl.c.quantity)
        )
        upserted = (await session.execute(upsert)).first()
        return int(upserted.quantity)

    async def get(self, session: AsyncSession, client_id: UUID, product_id: UUID) -> Optional[ClientStock]:
        res = await session.execute(
            select(ClientStock).where(
                ClientStock.client_id == client_id,
                ClientStock.product_id == product_id,
            )
        )
        return res.scalar_one_or_none()

    async def list_for_client(self, session: AsyncSession, client_id: UUID) -> List[dict]:
        """All ledger rows of a client with the product name, ordered by product name."""
        res = await session.execute(
            select(ClientStock, Product.name)
            .join(Product, ClientStock.product_id == Product.id)
            .where(ClientStock.client_id == client_id)
            .order_by(Product.name.asc())
        )
        out = []
        for stock, product_name in res.all():
            row = stock.to_schema
            row["product_name"] = product_name
            out.append(row)
        return out
