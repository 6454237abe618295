from fastapi import APIRouter, Depends, HTTPException, Form
from ..schemas.users import RegisterIn, TokenOut, MeOut, RefreshIn, LogoutIn, ActionOkOut
from ..crud import (
    create_user,
    authenticate_user,
    get_user_by_id,
    refresh_access_token,
    revoke_refresh_token,
)
from ..auth import get_current_user

router = APIRouter()


@router.post('/register', response_model=MeOut, status_code=201)
async def register(payload: RegisterIn):
    return await create_user(payload)


@router.post('/login', response_model=TokenOut)
async def login(
    username: str = Form(...),
    password: str = Form(...),
    device_id: str = Form(None)
):
    token = await authenticate_user(username, password, device_id=device_id)
    if not token:
        raise HTTPException(status_code=401, detail='Invalid email or password')
    return token


@router.post('/refresh', response_model=TokenOut)
async def refresh(payload: RefreshIn):
    token = await refresh_access_token(payload.refresh_token)
    if not token:
        raise HTTPException(status_code=401, detail='Invalid refresh token')
    return token


@router.post('/logout', response_model=ActionOkOut)
async def logout(payload: LogoutIn, current_user: dict = Depends(get_current_user)):
    await revoke_refresh_token(payload.refresh_token)
    return {'ok': True, 'message': 'Logged out successfully'}


@router.get('/me', response_model=MeOut)
async def me(current_user: dict = Depends(get_current_user)):
    user = await get_user_by_id(current_user['id'])
    if not user:
        raise HTTPException(status_code=401, detail='Not authenticated')
    return user
