import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from core.errors import (
    ClientNotFound,
    InsufficientStock,
    InvalidQuantity,
    ProductNotFound,
    TransactionFailure,
)
from db.database import get_async_session
from db.product import Product as ProductModel
from db.users import User
from schemas.products import ProductCreate, ProductRead, ProductUpdate, StockTransferRequest
from services.transfer import TransferEngine, get_transfer_engine

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_product_or_404(db: AsyncSession, product_id: UUID, for_update: bool = False) -> ProductModel:
    stmt = select(ProductModel).where(ProductModel.id == product_id)
    if for_update:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt)
    product = res.scalar_one_or_none()
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product with id {product_id} not found"
        )
    return product


@router.post("/", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    m = ProductModel(
        name=payload.name,
        description=payload.description,
        price_in_cents=payload.price_in_cents,
        quantity=payload.quantity,
    )
    db.add(m)
    await db.commit()
    await db.refresh(m)
    return ProductRead(**m.to_schema)


@router.get("/{product_id}", response_model=ProductRead)
async def get_product(
    product_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    m = await _get_product_or_404(db, product_id)
    return ProductRead(**m.to_schema)


@router.put("/{product_id}", response_model=ProductRead)
async def update_product(
    product_id: UUID,
    payload: ProductUpdate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    # Same row lock as a transfer, so a quantity edit can't interleave with one
    m = await _get_product_or_404(db, product_id, for_update=True)

    data = payload.model_dump(exclude_unset=True)
    for field in ("name", "description", "price_in_cents", "quantity"):
        if field in data and data[field] is not None:
            setattr(m, field, data[field])

    await db.commit()
    await db.refresh(m)
    return ProductRead(**m.to_schema)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    m = await _get_product_or_404(db, product_id)
    try:
        await db.delete(m)
        await db.commit()
    except IntegrityError:
        # client_stocks rows still reference the product
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Product {product_id} is still held by clients",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{product_id}/transfer", status_code=status.HTTP_200_OK)
async def transfer_stock(
    product_id: UUID,
    payload: StockTransferRequest,
    user: User = Depends(current_active_user),
    engine: TransferEngine = Depends(get_transfer_engine),
):
    """
    Move `quantity` units of the product from central stock to the client.

    Runs in its own transaction (not the request session); either both the
    product and the client ledger change, or neither does.
    """
    try:
        await engine.transfer(product_id, payload.client_id, payload.quantity)
    except InvalidQuantity as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except (ProductNotFound, ClientNotFound) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InsufficientStock as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except TransactionFailure as e:
        logger.error("Transfer requested by user %s failed: %s", user.id, e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to transfer stock, please retry",
        )
    return {"success": True}
