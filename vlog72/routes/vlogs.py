from fastapi import APIRouter, Depends, HTTPException, Query
from ..schemas.vlogs import (
    UploadIn,
    CommentIn,
    CommentOut,
    VlogOut,
    VlogEnvelope,
    VlogListOut,
    CommentEnvelope,
    MediaDetailsOut,
)
from ..schemas.users import UserOut, ActionOkOut
from ..content import (
    create_vlog,
    get_vlog_for_viewer,
    list_feed,
    liked_vlog_ids,
    republish,
    toggle_like,
    add_comment,
)
from ..youtube import resolve_media
from ..auth import get_current_user
from ..cache import check_rate_limit
from ..lifecycle import utcnow, is_active, seconds_left

router = APIRouter()


def vlog_out(vlog, has_liked: bool, now) -> VlogOut:
    return VlogOut(
        id=vlog.id,
        user_id=vlog.user_id,
        title=vlog.title,
        description=vlog.description,
        youtube_id=vlog.youtube_id,
        thumbnail_url=vlog.thumbnail_url,
        duration=vlog.duration,
        created_at=vlog.created_at,
        expires_at=vlog.expires_at,
        is_active=is_active(vlog, now),
        seconds_left=seconds_left(vlog, now),
        likes=vlog.likes_count,
        has_liked=has_liked,
        tags=[tag.name for tag in vlog.tags],
        comments=[CommentOut.model_validate(c) for c in vlog.comments],
        user=UserOut.model_validate(vlog.user),
    )


@router.get('/feed', response_model=VlogListOut)
async def feed(tag: str = Query('all', alias='filter'), current_user: dict = Depends(get_current_user)):
    now = utcnow()
    vlogs = await list_feed(current_user['id'], tag=tag, now=now)
    liked = await liked_vlog_ids(current_user['id'], [v.id for v in vlogs])
    return {'vlogs': [vlog_out(v, v.id in liked, now) for v in vlogs]}


@router.post('/upload', response_model=VlogEnvelope, status_code=201)
async def upload(payload: UploadIn, current_user: dict = Depends(get_current_user)):
    if not await check_rate_limit(current_user['id'], 'upload', limit=20, window=3600):
        raise HTTPException(429, 'Rate limit exceeded. Too many uploads.')
    media = await resolve_media(
        payload.youtube_url,
        thumbnail_url=payload.thumbnail_url,
        duration=payload.duration,
    )
    vlog = await create_vlog(
        current_user['id'],
        media,
        payload.title,
        description=payload.description,
        tags=payload.tags,
    )
    return {'vlog': vlog_out(vlog, False, utcnow())}


@router.get('/{vlog_id}', response_model=VlogEnvelope)
async def get_vlog(vlog_id: int, current_user: dict = Depends(get_current_user)):
    now = utcnow()
    vlog = await get_vlog_for_viewer(vlog_id, current_user['id'], now=now)
    liked = await liked_vlog_ids(current_user['id'], [vlog.id])
    return {'vlog': vlog_out(vlog, vlog.id in liked, now)}


@router.get('/{vlog_id}/youtube-details', response_model=MediaDetailsOut)
async def youtube_details(vlog_id: int, current_user: dict = Depends(get_current_user)):
    vlog = await get_vlog_for_viewer(vlog_id, current_user['id'])
    return {
        'youtube_id': vlog.youtube_id,
        'thumbnail_url': vlog.thumbnail_url,
        'duration': vlog.duration,
    }


@router.post('/{vlog_id}/like', response_model=ActionOkOut, status_code=201)
async def like(vlog_id: int, current_user: dict = Depends(get_current_user)):
    if not await check_rate_limit(current_user['id'], 'like', limit=300, window=3600):
        raise HTTPException(429, 'Rate limit exceeded. Too many likes.')
    await toggle_like(vlog_id, current_user['id'], like=True)
    return {'ok': True, 'message': 'Vlog liked successfully'}


@router.delete('/{vlog_id}/like', response_model=ActionOkOut)
async def unlike(vlog_id: int, current_user: dict = Depends(get_current_user)):
    await toggle_like(vlog_id, current_user['id'], like=False)
    return {'ok': True, 'message': 'Vlog unliked successfully'}


@router.post('/{vlog_id}/comments', response_model=CommentEnvelope, status_code=201)
async def comment(vlog_id: int, payload: CommentIn, current_user: dict = Depends(get_current_user)):
    if not await check_rate_limit(current_user['id'], 'comment', limit=100, window=3600):
        raise HTTPException(429, 'Rate limit exceeded. Too many comments.')
    c = await add_comment(vlog_id, current_user['id'], payload.content)
    return {'comment': CommentOut.model_validate(c)}


@router.post('/{vlog_id}/reupload', response_model=VlogEnvelope)
async def reupload(vlog_id: int, current_user: dict = Depends(get_current_user)):
    now = utcnow()
    vlog = await republish(vlog_id, current_user['id'], now=now)
    liked = await liked_vlog_ids(current_user['id'], [vlog.id])
    return {'vlog': vlog_out(vlog, vlog.id in liked, now)}
