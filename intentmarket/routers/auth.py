# intentmarket/routers/auth.py
from fastapi import APIRouter, Depends, HTTPException, status

from intentmarket.core.security import create_access_token
from intentmarket.database import get_storage
from intentmarket.repositories.base import Storage
from intentmarket.schemas.user import TokenRead, UserCreate, UserLogin, UserRead
from intentmarket.services.user_service import UserService

router = APIRouter(prefix="/auth", tags=["Auth"])

service = UserService()


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
)
def register(
    payload: UserCreate,
    storage: Storage = Depends(get_storage),
):
    """
    Create a consumer or producer account.

    - 409 if the username is taken.
    """
    return service.register(storage, payload)


@router.post("/login", response_model=TokenRead)
def login(
    payload: UserLogin,
    storage: Storage = Depends(get_storage),
):
    """
    Exchange username/password for a bearer access token.
    """
    user = service.authenticate(storage, payload)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    return TokenRead(
        access_token=create_access_token(user.id, user.role),
        user=UserRead.model_validate(user),
    )
