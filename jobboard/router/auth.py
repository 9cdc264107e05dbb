from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..db import get_session
from ..models.user import User, UserLoginInput
from ..utils.auth import create_access_token, verify_password

router = APIRouter()


async def _authenticate(session: AsyncSession, email: str, password: str) -> User:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if not user or not verify_password(password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def _token_response(request: Request, user: User) -> dict:
    settings = request.app.state.settings
    access_token = create_access_token(
        data={"sub": user.email},
        secret_key=settings.SECRET_KEY,
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/login")
async def login_for_access_token(
    user_input: UserLoginInput,
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    user = await _authenticate(session, user_input.username, user_input.password)
    return _token_response(request, user)


@router.post("/token")
async def login_with_form(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: AsyncSession = Depends(get_session),
):
    user = await _authenticate(session, form_data.username, form_data.password)
    return _token_response(request, user)
