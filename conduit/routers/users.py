from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import get_current_user
from conduit.models import User
from conduit.schemas import LoginRequest, RegisterRequest, UpdateUserRequest, UserResponse
from conduit.services import user_service

router = APIRouter(prefix="/api", tags=["users"])

@router.post("/users", status_code=201, response_model=UserResponse)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    return await user_service.register_user(db, data.user)

@router.post("/users/login", response_model=UserResponse)
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    return await user_service.login_user(db, data.user)

@router.get("/user", response_model=UserResponse)
async def get_current(user: User = Depends(get_current_user)):
    return user_service.current_user(user)

@router.put("/user", response_model=UserResponse)
async def update_current(
    data: UpdateUserRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.update_user(db, user, data.user)
