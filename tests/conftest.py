"""
Shared fixtures: a fresh SQLite database per test, an httpx client bound to
the app, locally minted Supabase-style JWTs and a small data seeder.
"""
import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
import jwt
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

import config
from config import get_db
from main import app
from models import Base, Category, Seller, Product, UserProfile


def make_token(user_id: str, role: Optional[str] = None, email: Optional[str] = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email or f"{user_id}@example.com",
        "iat": now,
        "exp": now + timedelta(hours=1),
    }
    if role:
        payload["user_metadata"] = {"role": role}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def auth(user_id: str, role: Optional[str] = "user") -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


ADMIN = auth("admin-1", "admin")


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'marketplace.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


class Seeder:
    """Writes fixture rows straight through the ORM"""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def _add(self, obj):
        async with self.session_factory() as session:
            session.add(obj)
            await session.commit()
        return obj

    async def category(self, name: str = "Electronics") -> Category:
        return await self._add(Category(name=name))

    async def seller(self, user_id: str, store_name: str = "Corner Store", is_approved: bool = True) -> Seller:
        return await self._add(Seller(
            user_id=user_id,
            store_name=store_name,
            contact_email=f"{user_id}@example.com",
            is_approved=is_approved
        ))

    async def product(
        self,
        category: Category,
        name: str = "Widget",
        price: str = "10.00",
        stock: int = 10,
        seller: Optional[Seller] = None,
        description: Optional[str] = None
    ) -> Product:
        return await self._add(Product(
            name=name,
            description=description,
            price=Decimal(price),
            stock=stock,
            category_id=category.id,
            seller_id=seller.id if seller else None
        ))

    async def profile(self, user_id: str, role: str = "user", username: Optional[str] = None) -> UserProfile:
        return await self._add(UserProfile(user_id=user_id, role=role, username=username or user_id))


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


ORDER_DETAILS = {
    "shipping_address": "12 Market Street, Springfield",
    "contact_phone": "+15550100",
    "payment_method": "card",
}


def order_payload(*lines, **overrides) -> dict:
    """order_payload((product_id, quantity), ...)"""
    payload = dict(ORDER_DETAILS)
    payload.update(overrides)
    payload["items"] = [{"product_id": pid, "quantity": qty} for pid, qty in lines]
    return payload


@contextmanager
def capture_sql(engine, on_statement=None):
    """Collect every statement the engine sends; on_statement(statement, cursor) runs first"""
    statements = []

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if on_statement is not None:
            on_statement(statement, cursor)
        statements.append(statement)

    event.listen(engine.sync_engine, "before_cursor_execute", before_cursor_execute)
    try:
        yield statements
    finally:
        event.remove(engine.sync_engine, "before_cursor_execute", before_cursor_execute)
