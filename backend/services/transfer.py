"""
Stock transfer: move quantity from a product's central stock into one
client's ledger, as a single all-or-nothing transaction.

Protocol, per call:

1. open a transaction private to this call
2. lock the product row and read its quantity
3. check the locked quantity against the request (never before the lock)
4. write the decremented quantity back
5. credit the client ledger with one atomic upsert
6. commit; any failure in 2-5 rolls everything back

The product is always locked before the ledger row is touched, so concurrent
transfers contend on a single row and can't deadlock against each other.
"""
import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from typing import Any, AsyncContextManager, Callable, Optional, Protocol, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from core.errors import (
    InsufficientStock,
    InvalidQuantity,
    ProductNotFound,
    StockError,
    TransactionFailure,
)
from db.database import async_session_maker, session_transaction
from db.inventory_store import SqlAlchemyInventoryStore
from db.ledger_store import SqlAlchemyLedgerStore

logger = logging.getLogger(__name__)


class InventoryStore(Protocol):
    """Central product stock, operated inside a caller-owned transaction."""
    async def locked_read(self, tx: Any, product_id: UUID) -> Optional[int]: ...
    async def write_quantity(self, tx: Any, product_id: UUID, new_quantity: int) -> None: ...


class LedgerStore(Protocol):
    """Per-client stock, operated inside a caller-owned transaction."""
    async def add_quantity(self, tx: Any, client_id: UUID, product_id: UUID, delta: int) -> int: ...


@dataclass(frozen=True)
class TransferResult:
    product_id: UUID
    client_id: UUID
    quantity: int
    product_quantity: int
    client_quantity: int


class TransferEngine:
    """
    Stateless between calls: it only holds the injected transaction factory and
    store handles, so it runs the same against PostgreSQL or in-memory doubles.

    Parameters
    ----------
    begin : callable
        Returns an async context manager yielding a fresh transaction handle;
        commits on clean exit, rolls back on any exception.
    inventory, ledger
        Store handles satisfying `InventoryStore` / `LedgerStore`.
    lock_timeout : float | None
        Upper bound in seconds for the lock wait and the writes, commit
        excluded. On expiry the transaction is rolled back.
    """

    def __init__(
        self,
        begin: Callable[[], AsyncContextManager[Any]],
        inventory: InventoryStore,
        ledger: LedgerStore,
        lock_timeout: Optional[float] = None,
    ):
        self._begin = begin
        self._inventory = inventory
        self._ledger = ledger
        self.lock_timeout = lock_timeout

    async def transfer(self, product_id: UUID, client_id: UUID, quantity: int) -> TransferResult:
        """
        Raises
        ------
        InvalidQuantity
            quantity is not a positive integer (checked before any lock).
        ProductNotFound
            the product does not exist.
        ClientNotFound
            the receiving client does not exist.
        InsufficientStock
            the locked quantity is lower than requested.
        TransactionFailure
            the transaction could not be started, finished or committed, or a
            store failed in any other way.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidQuantity(quantity)

        try:
            result = await self._run(product_id, client_id, quantity)
        except InsufficientStock as e:
            logger.warning(
                "Transfer rejected: product=%s client=%s available=%s requested=%s",
                product_id, client_id, e.available, e.requested,
            )
            raise
        except StockError:
            raise
        except asyncio.TimeoutError as e:
            logger.error(
                "Transfer timed out after %ss: product=%s client=%s quantity=%s",
                self.lock_timeout, product_id, client_id, quantity,
            )
            raise TransactionFailure(
                f"Transfer of product {product_id} timed out after {self.lock_timeout}s"
            ) from e
        except (SQLAlchemyError, OSError) as e:
            logger.exception(
                "Transfer failed: product=%s client=%s quantity=%s",
                product_id, client_id, quantity,
            )
            raise TransactionFailure(f"Failed to transfer product {product_id}: {e}") from e
        except Exception as e:
            logger.exception(
                "Transfer failed unexpectedly: product=%s client=%s quantity=%s",
                product_id, client_id, quantity,
            )
            raise TransactionFailure(f"Failed to transfer product {product_id}: {e!r}") from e

        logger.info(
            "Transferred %s of product %s to client %s (product=%s client=%s)",
            quantity, product_id, client_id, result.product_quantity, result.client_quantity,
        )
        return result

    async def _run(self, product_id: UUID, client_id: UUID, quantity: int) -> TransferResult:
        async with self._begin() as tx:
            # The deadline covers steps 2-5 only. Commit runs on exiting the
            # block, outside it: once COMMIT is sent the outcome is reported
            # as it happened, never as a timeout.
            if self.lock_timeout is None:
                remaining, credited = await self._apply(tx, product_id, client_id, quantity)
            else:
                remaining, credited = await asyncio.wait_for(
                    self._apply(tx, product_id, client_id, quantity),
                    timeout=self.lock_timeout,
                )

        return TransferResult(
            product_id=product_id,
            client_id=client_id,
            quantity=quantity,
            product_quantity=remaining,
            client_quantity=credited,
        )

    async def _apply(self, tx: Any, product_id: UUID, client_id: UUID, quantity: int) -> Tuple[int, int]:
        available = await self._inventory.locked_read(tx, product_id)
        if available is None:
            raise ProductNotFound(product_id)
        if available < quantity:
            raise InsufficientStock(product_id, available, quantity)

        remaining = available - quantity
        await self._inventory.write_quantity(tx, product_id, remaining)
        credited = await self._ledger.add_quantity(tx, client_id, product_id, quantity)
        return remaining, credited


def get_transfer_engine() -> TransferEngine:
    return TransferEngine(
        begin=partial(session_transaction, async_session_maker),
        inventory=SqlAlchemyInventoryStore(lock_timeout=settings.transfer_lock_timeout),
        ledger=SqlAlchemyLedgerStore(),
        lock_timeout=settings.transfer_lock_timeout,
    )
