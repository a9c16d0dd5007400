# storefront/main.py
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.auth_utils import create_access_token, hash_password, verify_password, verify_token
from storefront.cart_manager import CartManager
from storefront.config import CORS_ORIGINS, LOG_LEVEL, PORT, SEED_DATA
from storefront.db.database import get_db
from storefront.db.functions import (
    create_user,
    get_all_products,
    get_product_by_id,
    get_products_by_category,
    get_user_by_email,
    get_user_by_id,
    search_products,
)
from storefront.db.init_db import init_db
from storefront.db.schemas import (
    AuthResponse,
    CartItemCreate,
    CartItemUpdate,
    CartLine,
    CheckoutResponse,
    HealthResponse,
    LoginRequest,
    ProductBase,
    RegisterRequest,
    UserOut,
)
from storefront.errors import Conflict, Internal, NotFound, StorefrontError, Unauthorized

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("storefront")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting storefront...")
    await init_db(seed=SEED_DATA)
    yield
    logger.info("Shutting down storefront...")


app = FastAPI(title="Storefront", lifespan=lifespan)
app.state.cart_manager = CartManager()

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("Request: %s %s", request.method, request.url.path)
    return await call_next(request)


# --- Обработка ошибок ---

@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid input data", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# --- Зависимости ---

def get_cart_manager(request: Request) -> CartManager:
    return request.app.state.cart_manager


async def get_current_user_id(token: Optional[str] = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)) -> int:
    if not token:
        raise Unauthorized("Access token required")
    user_id = verify_token(token)
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise Unauthorized("User not found")
    return user_id


def _issue_token(user) -> AuthResponse:
    token = create_access_token({"id": user.id, "email": user.email})
    return AuthResponse(user=UserOut.model_validate(user), token=token)


# --- Авторизация ---

@app.post("/api/auth/register", response_model=AuthResponse, status_code=201)
async def register(payload: RegisterRequest, db: AsyncSession = Depends(get_db)):
    if await get_user_by_email(db, payload.email):
        raise Conflict("User already exists")
    try:
        user = await create_user(db, payload.email, hash_password(payload.password), payload.name)
    except IntegrityError:
        # Тот же email успели зарегистрировать параллельно
        await db.rollback()
        raise Conflict("User already exists")
    logger.info("Registered user %s", user.id)
    return _issue_token(user)


@app.post("/api/auth/login", response_model=AuthResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    user = await get_user_by_email(db, payload.email)
    if user is None or not verify_password(payload.password, user.hashed_password):
        raise Unauthorized("Invalid email or password")
    return _issue_token(user)


# --- Корзина ---

@app.get("/api/cart", response_model=List[CartLine])
async def read_cart(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cart_manager: CartManager = Depends(get_cart_manager),
):
    return await cart_manager.get_snapshot(db, user_id)


@app.post("/api/cart", response_model=List[CartLine])
async def add_to_cart(
    item: CartItemCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cart_manager: CartManager = Depends(get_cart_manager),
):
    return await cart_manager.add(db, user_id, item.product_id, item.quantity)


@app.post("/api/cart/checkout", response_model=CheckoutResponse)
async def checkout(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cart_manager: CartManager = Depends(get_cart_manager),
):
    return await cart_manager.checkout(db, user_id)


@app.put("/api/cart/{cart_id}", response_model=List[CartLine])
async def update_cart_item(
    cart_id: str,
    item: CartItemUpdate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cart_manager: CartManager = Depends(get_cart_manager),
):
    return await cart_manager.update_quantity(db, user_id, cart_id, item.quantity)


@app.delete("/api/cart/{cart_id}", response_model=List[CartLine])
async def delete_from_cart(
    cart_id: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    cart_manager: CartManager = Depends(get_cart_manager),
):
    return await cart_manager.remove(db, user_id, cart_id)


# --- Каталог ---

@app.get("/api/products", response_model=List[ProductBase])
async def read_products(db: AsyncSession = Depends(get_db)):
    try:
        return await get_all_products(db)
    except SQLAlchemyError as exc:
        logger.error("Listing products failed", exc_info=True)
        raise Internal("Database error") from exc


@app.get("/api/products/category/{category}", response_model=List[ProductBase])
async def read_products_by_category(category: str, db: AsyncSession = Depends(get_db)):
    try:
        return await get_products_by_category(db, category)
    except SQLAlchemyError as exc:
        logger.error("Filtering products by %r failed", category, exc_info=True)
        raise Internal("Database error") from exc


@app.get("/api/products/search/{query}", response_model=List[ProductBase])
async def read_products_by_search(query: str, db: AsyncSession = Depends(get_db)):
    try:
        return await search_products(db, query)
    except SQLAlchemyError as exc:
        logger.error("Searching products for %r failed", query, exc_info=True)
        raise Internal("Database error") from exc


@app.get("/api/products/{product_id}", response_model=ProductBase)
async def read_product(product_id: str, db: AsyncSession = Depends(get_db)):
    try:
        product = await get_product_by_id(db, product_id)
    except SQLAlchemyError as exc:
        logger.error("Loading product %s failed", product_id, exc_info=True)
        raise Internal("Database error") from exc
    if product is None:
        raise NotFound("Product not found")
    return product


@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return HealthResponse(status="OK", timestamp=timestamp)


def main():
    import uvicorn

    uvicorn.run("storefront.main:app", host="0.0.0.0", port=PORT)


if __name__ == "__main__":
    main()
