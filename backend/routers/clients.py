from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from db.client import Client as ClientModel
from db.database import get_async_session
from db.ledger_store import SqlAlchemyLedgerStore
from db.users import User
from schemas.clients import ClientCreate, ClientRead, ClientStockRead, ClientUpdate

router = APIRouter()

ledger = SqlAlchemyLedgerStore()


async def _get_client_or_404(db: AsyncSession, client_id: UUID) -> ClientModel:
    res = await db.execute(select(ClientModel).where(ClientModel.id == client_id))
    client = res.scalar_one_or_none()
    if not client:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Client with id {client_id} not found"
        )
    return client


@router.post("/", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
async def create_client(
    payload: ClientCreate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    m = ClientModel(name=payload.name, email=payload.email, phone=payload.phone)
    db.add(m)
    await db.commit()
    await db.refresh(m)
    return ClientRead(**m.to_schema)


@router.get("/{client_id}", response_model=ClientRead)
async def get_client(
    client_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    m = await _get_client_or_404(db, client_id)
    return ClientRead(**m.to_schema)


@router.put("/{client_id}", response_model=ClientRead)
async def update_client(
    client_id: UUID,
    payload: ClientUpdate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    m = await _get_client_or_404(db, client_id)

    data = payload.model_dump(exclude_unset=True)
    if "name" in data and data["name"] is not None:
        m.name = data["name"]
    if "email" in data:
        m.email = data["email"]
    if "phone" in data:
        m.phone = data["phone"]

    await db.commit()
    await db.refresh(m)
    return ClientRead(**m.to_schema)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(
    client_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    m = await _get_client_or_404(db, client_id)
    await db.delete(m)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{client_id}/stock", response_model=List[ClientStockRead])
async def list_client_stock(
    client_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Stock held by one client, one row per product, ordered by product name."""
    await _get_client_or_404(db, client_id)
    rows = await ledger.list_for_client(db, client_id)
    return [ClientStockRead(**row) for row in rows]


@router.get("/{client_id}/stock/{product_id}", response_model=ClientStockRead)
async def get_client_stock(
    client_id: UUID,
    product_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    stock = await ledger.get(db, client_id, product_id)
    if not stock:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Client {client_id} holds no stock of product {product_id}"
        )
    return ClientStockRead(**stock.to_schema)
