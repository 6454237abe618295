from fastapi import APIRouter, Depends, HTTPException
from ..schemas.users import UserOut, ProfileOut, DiscoverOut, ProfileUpdateIn, ActionOkOut
from ..schemas.vlogs import VlogListOut
from ..crud import (
    get_user_by_username,
    is_following,
    follow,
    unfollow,
    discover_users,
    update_profile,
)
from ..content import list_user_vlogs, liked_vlog_ids
from ..auth import get_current_user
from ..cache import cache_profile, get_cached_profile, invalidate_profile, check_rate_limit
from ..lifecycle import utcnow
from .vlogs import vlog_out

router = APIRouter()


@router.get('/discover', response_model=DiscoverOut)
async def discover(q: str = '', current_user: dict = Depends(get_current_user)):
    found = await discover_users(current_user['id'], q.strip())
    return {'users': [
        {**UserOut.model_validate(user).model_dump(), 'is_following': following}
        for user, following in found
    ]}


@router.patch('/me', response_model=UserOut)
async def edit_profile(payload: ProfileUpdateIn, current_user: dict = Depends(get_current_user)):
    user = await update_profile(
        current_user['id'],
        display_name=payload.display_name,
        bio=payload.bio,
        avatar_url=payload.avatar_url,
    )
    await invalidate_profile(user.username)
    return user


@router.get('/{username}', response_model=ProfileOut)
async def profile(username: str, current_user: dict = Depends(get_current_user)):
    cached = await get_cached_profile(username)
    if cached is None:
        user = await get_user_by_username(username)
        if not user:
            raise HTTPException(404, 'User not found')
        cached = UserOut.model_validate(user).model_dump()
        await cache_profile(username, cached)
    following = await is_following(current_user['id'], cached['id'])
    return {'user': cached, 'is_following': following}


@router.post('/{user_id}/follow', response_model=ActionOkOut, status_code=201)
async def follow_user(user_id: int, current_user: dict = Depends(get_current_user)):
    if not await check_rate_limit(current_user['id'], 'follow', limit=200, window=3600):
        raise HTTPException(429, 'Rate limit exceeded. Too many follows.')
    target = await follow(current_user['id'], user_id)
    await invalidate_profile(target.username, current_user.get('username'))
    return {'ok': True, 'message': 'User followed successfully'}


@router.delete('/{user_id}/follow', response_model=ActionOkOut)
async def unfollow_user(user_id: int, current_user: dict = Depends(get_current_user)):
    target = await unfollow(current_user['id'], user_id)
    await invalidate_profile(target.username, current_user.get('username'))
    return {'ok': True, 'message': 'User unfollowed successfully'}


async def _user_vlogs(username: str, viewer_id: int, expired: bool):
    now = utcnow()
    vlogs = await list_user_vlogs(username, viewer_id, expired=expired, now=now)
    liked = await liked_vlog_ids(viewer_id, [v.id for v in vlogs])
    return {'vlogs': [vlog_out(v, v.id in liked, now) for v in vlogs]}


@router.get('/{username}/vlogs/active', response_model=VlogListOut)
async def active_vlogs(username: str, current_user: dict = Depends(get_current_user)):
    return await _user_vlogs(username, current_user['id'], expired=False)


@router.get('/{username}/vlogs/expired', response_model=VlogListOut)
async def expired_vlogs(username: str, current_user: dict = Depends(get_current_user)):
    return await _user_vlogs(username, current_user['id'], expired=True)
