from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from parkit import auth, crud
from parkit.database import get_db
from parkit.models import User
from parkit.routers import page_params
from parkit.schemas import (
    AuthData,
    AuthResponse,
    MessageResponse,
    Pagination,
    PasswordChange,
    ProfileUpdate,
    UserListResponse,
    UserLogin,
    UserOut,
    UserRegister,
    UserResponse,
)

router = APIRouter(prefix="/api/users", tags=["Users"])


def auth_response(user: User, token: str):
    data = UserOut.model_validate(user).model_dump()
    return AuthResponse(data=AuthData(**data, token=token))


@router.post("/register", response_model=AuthResponse, status_code=HTTP_201_CREATED)
async def register_user(body: UserRegister, db: AsyncSession = Depends(get_db)):
    user, token = await auth.register(
        db, body.first_name, body.last_name, body.email, body.password, body.role
    )
    return auth_response(user, token)


@router.post("/login", response_model=AuthResponse)
async def login_user(body: UserLogin, db: AsyncSession = Depends(get_db)):
    user, token = await auth.login(db, body.email, body.password)
    return auth_response(user, token)


@router.get("/profile", response_model=UserResponse)
async def get_user_profile(
    user: User = Depends(auth.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    profile = await auth.get_profile(db, user.id)
    return UserResponse(data=UserOut.model_validate(profile))


@router.put("/profile", response_model=UserResponse)
async def update_user_profile(
    body: ProfileUpdate,
    user: User = Depends(auth.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await auth.update_profile(db, user, body.first_name, body.last_name, body.email)
    return UserResponse(data=UserOut.model_validate(updated))


@router.put("/change-password", response_model=MessageResponse)
async def change_user_password(
    body: PasswordChange,
    user: User = Depends(auth.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await auth.change_password(db, user, body.current_password, body.new_password)
    return MessageResponse(message="Password updated successfully")


@router.get("", response_model=UserListResponse, dependencies=[Depends(auth.require_admin)])
async def list_users(paging=Depends(page_params), db: AsyncSession = Depends(get_db)):
    page, limit = paging
    users, total = await crud.list_users(db, page, limit)
    return UserListResponse(
        data=[UserOut.model_validate(u) for u in users],
        pagination=Pagination.build(page, limit, total),
    )
