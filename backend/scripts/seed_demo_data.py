import asyncio
import logging
import sys
from pathlib import Path

"""
Seed demo data (an admin user, products, clients) into the Postgres DB.

This script can be run from either:
- backend/: `python scripts/seed_demo_data.py`
- repo root: `python backend/scripts/seed_demo_data.py`
"""

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import func, select

from db.client import Client
from db.database import async_session_maker, create_db_and_tables
from db.product import Product
from db.users import User

from fastapi_users.password import PasswordHelper


logger = logging.getLogger("seed_demo_data")
password_helper = PasswordHelper()


async def get_or_create_user(session, email: str, password: str) -> User:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user:
        return user

    user = User(
        email=email,
        hashed_password=password_helper.hash(password),
        is_active=True,
        is_superuser=True,
        is_verified=True,
    )
    session.add(user)
    await session.flush()
    return user


async def get_or_create_product(session, name: str, description: str, price_in_cents: int, quantity: int) -> Product:
    result = await session.execute(
        select(Product).where(func.lower(Product.name) == name.strip().lower())
    )
    product = result.scalar_one_or_none()
    if product:
        return product

    product = Product(
        name=name.strip(),
        description=description,
        price_in_cents=price_in_cents,
        quantity=quantity,
    )
    session.add(product)
    await session.flush()
    return product


async def get_or_create_client(session, name: str, email: str, phone: str) -> Client:
    result = await session.execute(
        select(Client).where(func.lower(Client.name) == name.strip().lower())
    )
    client = result.scalar_one_or_none()
    if client:
        return client

    client = Client(name=name.strip(), email=email, phone=phone)
    session.add(client)
    await session.flush()
    return client


async def seed():
    await create_db_and_tables()
    async with async_session_maker() as session:
        async with session.begin():
            await get_or_create_user(session, "admin@admin.com", "admin")

            # Prices are example values, in cents
            await get_or_create_product(session, "Notebook A5", "Lined, 96 sheets", 1290, 500)
            await get_or_create_product(session, "Ballpoint pen", "Blue ink", 250, 2000)
            await get_or_create_product(session, "Stapler", "Up to 20 sheets", 3490, 40)

            await get_or_create_client(session, "Acme Stores", "orders@acme.example", "+1 555 0100")
            await get_or_create_client(session, "Corner Shop", "owner@corner.example", "+1 555 0101")

    logger.info("Demo data seeded")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())
