# storefront/auth_utils.py
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
import jwt

from storefront.config import ACCESS_TOKEN_EXPIRE_DAYS, ALGORITHM, SECRET_KEY
from storefront.errors import Forbidden

PBKDF2_ITERATIONS = 260000


def hash_password(password: str, salt: str = None, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Хэширует пароль с солью через PBKDF2-HMAC-SHA256."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations).hex()
    return f"pbkdf2_sha256${iterations}${salt}${digest}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Проверяет пароль, сравнивая с хэшем."""
    try:
        scheme, iterations, salt, _ = hashed_password.split("$")
        iterations = int(iterations)
    except ValueError:
        return False
    if scheme != "pbkdf2_sha256":
        return False
    return hmac.compare_digest(hash_password(plain_password, salt, iterations), hashed_password)


def create_access_token(data: dict, expires_delta: timedelta = None) -> str:
    """Создает JWT токен с указанным временем истечения."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> int:
    """Возвращает id пользователя из токена."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Forbidden("Invalid token", details="Token has expired")
    except jwt.InvalidTokenError:
        raise Forbidden("Invalid token")
    user_id = payload.get("id")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise Forbidden("Invalid token")
    return user_id
