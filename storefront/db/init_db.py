# storefront/db/init_db.py
import logging
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from storefront.auth_utils import hash_password
from storefront.db.database import engine, Base, SessionLocal
from storefront.db.models import Product, User

logger = logging.getLogger(__name__)

SEED_PASSWORD = "password123"

SEED_USERS = [
    {"email": "user1@example.com", "name": "User One"},
    {"email": "user2@example.com", "name": "User Two"},
]

SEED_PRODUCTS = [
    {
        "id": "1",
        "name": "Quantum Headphones",
        "description": "High-fidelity audio with active noise cancellation and 40-hour battery life.",
        "price": Decimal("299.99"),
        "category": "Electronics",
        "image": "https://picsum.photos/seed/hp1/600/600",
        "rating": Decimal("4.8"),
        "stock": 15,
    },
    {
        "id": "2",
        "name": "Minimalist Watch",
        "description": "A sleek, titanium-cased timepiece with a scratch-resistant sapphire crystal.",
        "price": Decimal("185.00"),
        "category": "Accessories",
        "image": "https://picsum.photos/seed/watch2/600/600",
        "rating": Decimal("4.5"),
        "stock": 22,
    },
    {
        "id": "3",
        "name": "Smart Desk Lamp",
        "description": "Adjustable color temperature and brightness with built-in wireless charging.",
        "price": Decimal("79.99"),
        "category": "Home",
        "image": "https://picsum.photos/seed/lamp3/600/600",
        "rating": Decimal("4.2"),
        "stock": 45,
    },
    {
        "id": "4",
        "name": "Eco-Friendly Backpack",
        "description": "Made from 100% recycled ocean plastics. Water-resistant and modular design.",
        "price": Decimal("120.00"),
        "category": "Apparel",
        "image": "https://picsum.photos/seed/bag4/600/600",
        "rating": Decimal("4.9"),
        "stock": 10,
    },
    {
        "id": "5",
        "name": "Mechanical Keyboard",
        "description": "RGB backlit, hot-swappable switches, and ultra-low latency wireless connection.",
        "price": Decimal("159.99"),
        "category": "Electronics",
        "image": "https://picsum.photos/seed/kb5/600/600",
        "rating": Decimal("4.7"),
        "stock": 8,
    },
    {
        "id": "6",
        "name": "Linen Comfort Shirt",
        "description": "Breathable organic linen, perfect for summer days and casual evenings.",
        "price": Decimal("55.00"),
        "category": "Apparel",
        "image": "https://picsum.photos/seed/shirt6/600/600",
        "rating": Decimal("4.4"),
        "stock": 30,
    },
]


async def seed_data(db: AsyncSession):
    """Заполнить пустые таблицы демо-пользователями и товарами."""
    has_users = (await db.execute(select(User.id).limit(1))).first() is not None
    if not has_users:
        logger.info("Seeding users...")
        hashed_password = hash_password(SEED_PASSWORD)
        db.add_all([User(hashed_password=hashed_password, **user) for user in SEED_USERS])

    has_products = (await db.execute(select(Product.id).limit(1))).first() is not None
    if not has_products:
        logger.info("Seeding products...")
        db.add_all([Product(**product) for product in SEED_PRODUCTS])

    await db.commit()


async def init_db(seed: bool = True):
    async with engine.begin() as conn:
        # Создание всех таблиц
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database synced successfully")

    if seed:
        async with SessionLocal() as db:
            await seed_data(db)
