# storefront/db/functions.py
from typing import List, Optional, Sequence, Tuple
from sqlalchemy import delete, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from storefront.db.models import CartItem, Product, User


# --- Пользователи ---

async def get_user_by_id(db: AsyncSession, user_id: int):
    result = await db.execute(select(User).filter(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str):
    result = await db.execute(select(User).filter(User.email == email))
    return result.scalar_one_or_none()


async def create_user(db: AsyncSession, email: str, hashed_password: str, name: str):
    db_user = User(email=email, hashed_password=hashed_password, name=name)
    db.add(db_user)
    await db.commit()
    await db.refresh(db_user)
    return db_user


# --- Каталог ---

async def get_all_products(db: AsyncSession) -> Sequence[Product]:
    result = await db.execute(select(Product).order_by(Product.id))
    return result.scalars().all()


async def get_products_by_category(db: AsyncSession, category: str) -> Sequence[Product]:
    query = select(Product)
    # "All" означает все категории
    if category != "All":
        query = query.filter(Product.category == category)
    result = await db.execute(query.order_by(Product.id))
    return result.scalars().all()


async def search_products(db: AsyncSession, search: str) -> Sequence[Product]:
    pattern = f"%{search}%"
    result = await db.execute(
        select(Product)
        .filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
        .order_by(Product.id)
    )
    return result.scalars().all()


async def get_product_by_id(db: AsyncSession, product_id: str, for_update: bool = False) -> Optional[Product]:
    query = select(Product).filter(Product.id == product_id).execution_options(populate_existing=True)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def decrement_stock(db: AsyncSession, product_id: str, quantity: int) -> bool:
    """Списать товар со склада. False, если остатка уже не хватает."""
    result = await db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


# --- Корзина ---

async def get_cart_item(db: AsyncSession, user_id: int, product_id: str) -> Optional[CartItem]:
    result = await db.execute(
        select(CartItem)
        .filter(CartItem.user_id == user_id, CartItem.product_id == product_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_user_cart_item(db: AsyncSession, user_id: int, cart_id: str) -> Optional[CartItem]:
    # Строка ищется только среди строк этого пользователя
    result = await db.execute(
        select(CartItem)
        .filter(CartItem.id == cart_id, CartItem.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_cart_product_ids(db: AsyncSession, user_id: int) -> List[str]:
    result = await db.execute(select(CartItem.product_id).filter(CartItem.user_id == user_id))
    return list(result.scalars().all())


async def get_cart_rows(db: AsyncSession, user_id: int, for_update: bool = False) -> List[Tuple[CartItem, Product]]:
    """Строки корзины вместе с товарами, в порядке добавления."""
    query = (
        select(CartItem, Product)
        .join(Product, CartItem.product_id == Product.id)
        .filter(CartItem.user_id == user_id)
        .order_by(CartItem.position)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update(of=Product)
    result = await db.execute(query)
    return [(item, product) for item, product in result.all()]


async def add_cart_item(db: AsyncSession, user_id: int, product_id: str, quantity: int) -> CartItem:
    new_item = CartItem(user_id=user_id, product_id=product_id, quantity=quantity)
    db.add(new_item)
    # flush сразу, чтобы нарушение уникальности всплыло здесь
    await db.flush()
    return new_item


async def set_cart_item_quantity(db: AsyncSession, cart_id: str, expected: int, quantity: int) -> bool:
    """Обновить количество, только если оно не изменилось с момента чтения."""
    result = await db.execute(
        update(CartItem)
        .where(CartItem.id == cart_id, CartItem.quantity == expected)
        .values(quantity=quantity)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def delete_cart_item(db: AsyncSession, cart_id: str) -> bool:
    result = await db.execute(
        delete(CartItem)
        .where(CartItem.id == cart_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def delete_cart_items(db: AsyncSession, cart_ids: List[str]) -> int:
    result = await db.execute(
        delete(CartItem)
        .where(CartItem.id.in_(cart_ids))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
