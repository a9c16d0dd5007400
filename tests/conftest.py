"""
Shared fixtures: a throwaway on-disk SQLite database per test, sessions bound
to it, and an HTTP client that routes the app's DB dependency to that database.
"""
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from storefront.auth_utils import create_access_token, hash_password
from storefront.cart_manager import CartManager
from storefront.db.database import Base, get_db
from storefront.db.models import Product, User
from storefront.main import app


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront-test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def cart_manager() -> CartManager:
    return CartManager()


@pytest.fixture
def make_user(session_factory):
    """Create a user row and return its id."""

    async def _make_user(email: str = "shopper@example.com", name: str = "Shopper", password: str = "secret123") -> int:
        async with session_factory() as session:
            user = User(email=email, name=name, hashed_password=hash_password(password))
            session.add(user)
            await session.commit()
            return user.id

    return _make_user


@pytest.fixture
def make_product(session_factory):
    async def _make_product(product_id: str = "p1", stock: int = 5, price: str = "10.00", **fields) -> str:
        values = {
            "name": f"Product {product_id}",
            "description": f"Description of {product_id}",
            "category": "Electronics",
            "image": f"https://picsum.photos/seed/{product_id}/600/600",
            "rating": Decimal("4.5"),
        }
        values.update(fields)
        async with session_factory() as session:
            session.add(Product(id=product_id, price=Decimal(price), stock=stock, **values))
            await session.commit()
        return product_id

    return _make_product


@pytest.fixture
def stock_of(session_factory):
    """Read a product's stock through a fresh session."""

    async def _stock_of(product_id: str) -> int:
        async with session_factory() as session:
            product = await session.get(Product, product_id)
            return product.stock

    return _stock_of


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    original_manager = app.state.cart_manager
    app.state.cart_manager = CartManager()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.state.cart_manager = original_manager
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _auth_headers(user_id: int, email: str = "shopper@example.com") -> dict:
        token = create_access_token({"id": user_id, "email": email})
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
