import logging
from datetime import timedelta

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from parkit import crud
from parkit.clock import utcnow
from parkit.config import JWT_ALGORITHM, JWT_EXPIRES_MINUTES, JWT_SECRET
from parkit.database import get_db
from parkit.errors import (
    DuplicateError,
    ForbiddenError,
    UnauthorizedError,
    UserNotFoundError,
)
from parkit.models import ROLE_ADMIN, ROLE_ATTENDANT, User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str):
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str):
    return pwd_context.verify(plain_password, password_hash)


def create_access_token(user: User, expires_delta: timedelta = None):
    expire = utcnow() + (expires_delta or timedelta(minutes=JWT_EXPIRES_MINUTES))
    claims = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "exp": expire,
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str):
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise UnauthorizedError("Invalid token")
    if payload.get("sub") is None:
        raise UnauthorizedError("Invalid token")
    return payload


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
):
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Access denied. No token provided or invalid format")
    payload = decode_access_token(credentials.credentials)
    try:
        user_id = int(payload["sub"])
    except ValueError:
        raise UnauthorizedError("Invalid token")
    user = await crud.get_user(db, user_id)
    if user is None:
        raise UnauthorizedError("Invalid token")
    return user


async def require_admin(user: User = Depends(get_current_user)):
    if user.role != ROLE_ADMIN:
        raise ForbiddenError("Access denied. Admin role required")
    return user


async def require_attendant_or_admin(user: User = Depends(get_current_user)):
    if user.role not in (ROLE_ADMIN, ROLE_ATTENDANT):
        raise ForbiddenError("Access denied. Parking attendant or admin role required")
    return user


# User accounts

async def register(db: AsyncSession, first_name: str, last_name: str, email: str, password: str, role: str):
    if await crud.get_user_by_email(db, email):
        raise DuplicateError("User already exists")
    try:
        user = await crud.create_user(db, first_name, last_name, email, hash_password(password), role)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateError("User already exists")
    logger.info(f"Registered {role} user {user.id}")
    return user, create_access_token(user)


async def login(db: AsyncSession, email: str, password: str):
    user = await crud.get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Failed login attempt")
        raise UnauthorizedError("Invalid credentials")
    logger.info(f"User {user.id} logged in")
    return user, create_access_token(user)


async def update_profile(db: AsyncSession, user: User, first_name: str = None, last_name: str = None, email: str = None):
    if email and email != user.email:
        existing = await crud.get_user_by_email(db, email)
        if existing and existing.id != user.id:
            raise DuplicateError("Email already in use")
        user.email = email
    if first_name:
        user.first_name = first_name
    if last_name:
        user.last_name = last_name
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateError("Email already in use")
    await db.refresh(user)
    return user


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str):
    if not verify_password(current_password, user.password_hash):
        raise UnauthorizedError("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    await db.commit()
    logger.info(f"User {user.id} changed password")


async def get_profile(db: AsyncSession, user_id: int):
    user = await crud.get_user(db, user_id)
    if user is None:
        raise UserNotFoundError()
    return user
