from sqlalchemy import func
from sqlalchemy.future import select

from storefront.auth_utils import verify_password
from storefront.db.init_db import SEED_PASSWORD, SEED_PRODUCTS, seed_data
from storefront.db.models import Product, User


async def test_seeds_empty_tables(db):
    await seed_data(db)

    users = (await db.execute(select(User).order_by(User.id))).scalars().all()
    products = (await db.execute(select(Product).order_by(Product.id))).scalars().all()

    assert [user.email for user in users] == ["user1@example.com", "user2@example.com"]
    assert verify_password(SEED_PASSWORD, users[0].hashed_password)
    assert [product.id for product in products] == [product["id"] for product in SEED_PRODUCTS]
    assert all(product.stock > 0 for product in products)


async def test_seeding_twice_does_not_duplicate(db):
    await seed_data(db)
    await seed_data(db)

    assert (await db.execute(select(func.count(User.id)))).scalar_one() == 2
    assert (await db.execute(select(func.count(Product.id)))).scalar_one() == len(SEED_PRODUCTS)


async def test_existing_catalog_is_left_alone(db, make_product):
    await make_product("custom", stock=1)

    await seed_data(db)

    products = (await db.execute(select(Product))).scalars().all()
    assert [product.id for product in products] == ["custom"]
