"""
In-memory doubles of the inventory and ledger store contracts.

Writes made inside a transaction are staged on the transaction and applied
only on commit; product row locks are real asyncio locks released when the
transaction ends, whatever the outcome.
"""
import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Set, Tuple, Type
from uuid import UUID

from core.errors import ClientNotFound, InvalidQuantity, ProductNotFound


class InMemoryDatabase:
    def __init__(self):
        self.products: Dict[UUID, int] = {}
        self.clients: Set[UUID] = set()
        self.client_stocks: Dict[Tuple[UUID, UUID], int] = {}
        self.row_locks: Dict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)

        # Name of the step that should blow up: "locked_read", "write_quantity",
        # "add_quantity" or "commit"
        self.fail_on: Optional[str] = None
        self.fail_with: Type[Exception] = ConnectionError
        # Seconds the commit acknowledgement takes after the writes are durable
        self.commit_delay: float = 0

        self.lock_attempts = 0
        self.commits = 0
        self.rollbacks = 0

    def maybe_fail(self, step: str) -> None:
        if self.fail_on == step:
            raise self.fail_with(f"failed during {step}")

    @asynccontextmanager
    async def begin(self):
        tx = FakeTransaction(self)
        try:
            yield tx
            self.maybe_fail("commit")
            tx.apply()
            self.commits += 1
            if self.commit_delay:
                await asyncio.sleep(self.commit_delay)
        except BaseException:
            self.rollbacks += 1
            raise
        finally:
            tx.release()


class FakeTransaction:
    def __init__(self, db: InMemoryDatabase):
        self.db = db
        self.product_writes: Dict[UUID, int] = {}
        self.ledger_deltas: Dict[Tuple[UUID, UUID], int] = {}
        self.held: List[UUID] = []

    def apply(self) -> None:
        for product_id, quantity in self.product_writes.items():
            self.db.products[product_id] = quantity
        for key, delta in self.ledger_deltas.items():
            self.db.client_stocks[key] = self.db.client_stocks.get(key, 0) + delta

    def release(self) -> None:
        for product_id in self.held:
            self.db.row_locks[product_id].release()
        self.held.clear()


class FakeInventoryStore:
    def __init__(self, db: InMemoryDatabase):
        self.db = db

    async def locked_read(self, tx: FakeTransaction, product_id: UUID) -> Optional[int]:
        self.db.lock_attempts += 1
        self.db.maybe_fail("locked_read")
        if product_id not in self.db.products:
            return None

        await self.db.row_locks[product_id].acquire()
        tx.held.append(product_id)
        # Give every other transfer a chance to run while the lock is held
        await asyncio.sleep(0)
        return tx.product_writes.get(product_id, self.db.products[product_id])

    async def write_quantity(self, tx: FakeTransaction, product_id: UUID, new_quantity: int) -> None:
        self.db.maybe_fail("write_quantity")
        if product_id not in self.db.products:
            raise ProductNotFound(product_id)
        if product_id not in tx.held:
            raise RuntimeError(f"write to product {product_id} without holding its lock")
        if new_quantity < 0:
            raise InvalidQuantity(new_quantity)
        await asyncio.sleep(0)
        tx.product_writes[product_id] = new_quantity


class FakeLedgerStore:
    def __init__(self, db: InMemoryDatabase):
        self.db = db

    async def add_quantity(self, tx: FakeTransaction, client_id: UUID, product_id: UUID, delta: int) -> int:
        self.db.maybe_fail("add_quantity")
        if delta <= 0:
            raise InvalidQuantity(delta)
        if client_id not in self.db.clients:
            raise ClientNotFound(client_id)

        key = (client_id, product_id)
        tx.ledger_deltas[key] = tx.ledger_deltas.get(key, 0) + delta
        return self.db.client_stocks.get(key, 0) + tx.ledger_deltas[key]
