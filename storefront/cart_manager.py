# storefront/cart_manager.py
"""
Операции с корзиной: добавление, изменение количества, удаление, оформление заказа.

Every operation runs inside one session transaction. Stock checks and the
writes that depend on them are serialized per user and per product inside the
process, locked with SELECT ... FOR UPDATE on backends that support it, and
guarded in SQL (conditional UPDATEs, the unique (user_id, product_id)
constraint) so a lost race is retried instead of overwriting someone else's
write.
"""
import asyncio
import logging
import weakref
from contextlib import AsyncExitStack, asynccontextmanager
from decimal import Decimal
from typing import Awaitable, Callable, List, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.functions import (
    add_cart_item,
    decrement_stock,
    delete_cart_item,
    delete_cart_items,
    get_cart_item,
    get_cart_product_ids,
    get_cart_rows,
    get_product_by_id,
    get_user_cart_item,
    set_cart_item_quantity,
)
from storefront.db.schemas import CENT, CartLine, CheckoutResponse, OrderLine
from storefront.errors import (
    Conflict,
    EmptyCart,
    InsufficientStock,
    Internal,
    InvalidArgument,
    NotFound,
    StorefrontError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 3
CHECKOUT_MESSAGE = "¡Felicidades! Ya lo compraste."


class _LostRace(Exception):
    """A guarded write matched no row: someone changed it after we read it."""


class KeyedLocks:
    """asyncio locks created on demand and dropped once nobody holds them."""

    def __init__(self):
        self._locks = weakref.WeakValueDictionary()

    def _get(self, key) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, *keys):
        # Всегда в одном порядке, чтобы не было взаимных блокировок
        async with AsyncExitStack() as stack:
            for key in sorted(set(keys)):
                await stack.enter_async_context(self._get(key))
            yield


def _user_key(user_id: int):
    return ("0-user", str(user_id))


def _product_key(product_id: str):
    return ("1-product", str(product_id))


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidArgument("Quantity must be an integer of at least 1")
    return quantity


class CartManager:
    def __init__(self, max_attempts: int = MAX_ATTEMPTS):
        self.max_attempts = max_attempts
        self._locks = KeyedLocks()

    async def _run(self, db: AsyncSession, name: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Run operation and commit; roll back on any failure and retry lost races."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await operation()
                await db.commit()
                return result
            except StorefrontError:
                await db.rollback()
                raise
            except (IntegrityError, _LostRace) as exc:
                await db.rollback()
                logger.warning("%s: concurrent modification (attempt %d/%d): %s", name, attempt, self.max_attempts, exc)
            except SQLAlchemyError as exc:
                await db.rollback()
                logger.error("%s: storage failure, transaction rolled back", name, exc_info=True)
                raise Internal(f"{name.capitalize()} failed") from exc
        raise Conflict("Cart was modified concurrently, please retry")

    async def get_snapshot(self, db: AsyncSession, user_id: int) -> List[CartLine]:
        rows = await get_cart_rows(db, user_id)
        return [
            CartLine(
                id=product.id,
                cart_id=item.id,
                name=product.name,
                description=product.description,
                price=product.price,
                category=product.category,
                image=product.image,
                rating=product.rating,
                stock=product.stock,
                quantity=item.quantity,
            )
            for item, product in rows
        ]

    async def add(self, db: AsyncSession, user_id: int, product_id: str, quantity: int = 1) -> List[CartLine]:
        quantity = _validate_quantity(quantity)

        async def attempt():
            product = await get_product_by_id(db, product_id, for_update=True)
            if product is None:
                raise NotFound("Product not found")

            existing = await get_cart_item(db, user_id, product_id)
            target = quantity if existing is None else existing.quantity + quantity
            if target > product.stock:
                logger.info("add: user %s asked for %d of %s, only %d in stock", user_id, target, product_id, product.stock)
                raise InsufficientStock(product.id, product.name, product.stock, target)

            if existing is None:
                await add_cart_item(db, user_id, product_id, target)
            elif not await set_cart_item_quantity(db, existing.id, existing.quantity, target):
                raise _LostRace(f"cart row {existing.id} changed")
            return await self.get_snapshot(db, user_id)

        async with self._locks.hold(_user_key(user_id), _product_key(product_id)):
            snapshot = await self._run(db, "add", attempt)
        logger.info("add: user %s now has %s in cart", user_id, product_id)
        return snapshot

    async def update_quantity(self, db: AsyncSession, user_id: int, cart_id: str, quantity: int) -> List[CartLine]:
        quantity = _validate_quantity(quantity)

        async with self._locks.hold(_user_key(user_id)):
            item = await get_user_cart_item(db, user_id, cart_id)
            if item is None:
                raise NotFound("Cart item not found")
            product_id = item.product_id

            async def attempt():
                current = await get_user_cart_item(db, user_id, cart_id)
                if current is None:
                    raise NotFound("Cart item not found")
                product = await get_product_by_id(db, product_id, for_update=True)
                if product is None:
                    raise NotFound("Product not found")
                if quantity > product.stock:
                    raise InsufficientStock(product.id, product.name, product.stock, quantity)
                if not await set_cart_item_quantity(db, current.id, current.quantity, quantity):
                    raise _LostRace(f"cart row {current.id} changed")
                return await self.get_snapshot(db, user_id)

            async with self._locks.hold(_product_key(product_id)):
                snapshot = await self._run(db, "update", attempt)
        logger.info("update: user %s set cart row %s to %d", user_id, cart_id, quantity)
        return snapshot

    async def remove(self, db: AsyncSession, user_id: int, cart_id: str) -> List[CartLine]:
        async def attempt():
            item = await get_user_cart_item(db, user_id, cart_id)
            if item is None or not await delete_cart_item(db, item.id):
                raise NotFound("Cart item not found")
            return await self.get_snapshot(db, user_id)

        async with self._locks.hold(_user_key(user_id)):
            snapshot = await self._run(db, "remove", attempt)
        logger.info("remove: user %s dropped cart row %s", user_id, cart_id)
        return snapshot

    async def checkout(self, db: AsyncSession, user_id: int) -> CheckoutResponse:
        async def attempt():
            rows = await get_cart_rows(db, user_id, for_update=True)
            if not rows:
                raise EmptyCart()

            # Сначала проверяем все строки, ничего не меняя
            for item, product in rows:
                if item.quantity > product.stock:
                    logger.info("checkout: user %s blocked by %s (%d > %d)", user_id, product.id, item.quantity, product.stock)
                    raise InsufficientStock(product.id, product.name, product.stock, item.quantity)

            order_summary = []
            grand_total = Decimal("0")
            for item, product in rows:
                if not await decrement_stock(db, product.id, item.quantity):
                    raise _LostRace(f"stock of {product.id} changed")
                price = Decimal(product.price).quantize(CENT)
                # Итог складывается из уже округлённых строк, поэтому сумма строк равна итогу
                line_total = (price * item.quantity).quantize(CENT)
                grand_total += line_total
                order_summary.append(
                    OrderLine(
                        product_id=product.id,
                        name=product.name,
                        quantity=item.quantity,
                        price=price,
                        line_total=line_total,
                    )
                )

            await delete_cart_items(db, [item.id for item, _ in rows])
            return CheckoutResponse(message=CHECKOUT_MESSAGE, order_summary=order_summary, total=grand_total)

        async with self._locks.hold(_user_key(user_id)):
            product_ids = await get_cart_product_ids(db, user_id)
            async with self._locks.hold(*[_product_key(product_id) for product_id in product_ids]):
                summary = await self._run(db, "checkout", attempt)
        logger.info("checkout: user %s bought %d line(s), total %s", user_id, len(summary.order_summary), summary.total)
        return summary
