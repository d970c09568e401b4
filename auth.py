"""
Credentials and access control.

Password hashing (bcrypt), JWT issue/verify, and the FastAPI dependencies
that gate routes on a bearer token and on the admin role.
"""
import logging
from datetime import datetime, timedelta, timezone

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from config import BCRYPT_ROUNDS, JWT_ALGORITHM, JWT_EXPIRE_HOURS, get_secret_key
from errors import Forbidden, InvalidToken, Unauthorized

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login", auto_error=False)


class TokenData(BaseModel):
    user_id: str
    role: str = "user"


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        # unknown or corrupt hash format
        return False


def create_access_token(subject: str, role: str, expires_delta: timedelta | None = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=JWT_EXPIRE_HOURS))
    to_encode = {"sub": str(subject), "role": role, "exp": expire}
    return jwt.encode(to_encode, get_secret_key(), algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenData:
    try:
        payload = jwt.decode(token, get_secret_key(), algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise InvalidToken()
    user_id = payload.get("sub")
    if not user_id:
        raise InvalidToken()
    return TokenData(user_id=user_id, role=payload.get("role") or "user")


async def authenticate(token: str | None = Depends(oauth2_scheme)) -> TokenData:
    if not token:
        raise Unauthorized(headers={"WWW-Authenticate": "Bearer"})
    return decode_access_token(token)


async def require_admin(current: TokenData | None = Depends(authenticate)) -> TokenData:
    if current is None or current.role != "admin":
        raise Forbidden("Admin access required")
    return current
