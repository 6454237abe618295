"""
Vlog operations: upload, reads gated by expiry, likes, comments,
republishing and the maintenance sweep.

Every function takes an optional ``now`` so the clock can be pinned; all
expiry decisions go through ``lifecycle``.
"""
import logging
from datetime import datetime

from prometheus_client import Counter, Gauge
from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError

from .models import AsyncSessionLocal
from .models.users import User
from .models.vlogs import Vlog
from .models.tags import Tag
from .models.likes import VlogLike
from .models.comments import Comment
from .models.follows import Follow
from .errors import (
    NotFound, NotOwner, ItemExpired, NotExpired, AlreadyLiked, NotLiked, ValidationError,
)
from .lifecycle import utcnow, expiry_from, is_active, can_view, active_clause, expired_clause

logger = logging.getLogger(__name__)

ACTIVE_VLOGS = Gauge('vlog72_active_vlogs', 'Vlogs inside their 72 hour window at the last sweep')
EXPIRED_VLOGS = Gauge('vlog72_expired_vlogs', 'Vlogs past their expiry at the last sweep')
SWEEP_RUNS = Counter('vlog72_sweep_runs_total', 'Expiration sweeps run')


async def _get_vlog(session, vlog_id: int, refresh: bool = False):
    stmt = select(Vlog).where(Vlog.id == vlog_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    q = await session.execute(stmt)
    vlog = q.scalars().first()
    if not vlog:
        raise NotFound('Vlog not found')
    return vlog


async def _youtube_id_taken(session, youtube_id: str) -> bool:
    q = await session.execute(select(Vlog.id).where(Vlog.youtube_id == youtube_id))
    return q.first() is not None


async def _like_exists(session, user_id: int, vlog_id: int) -> bool:
    q = await session.execute(select(VlogLike.id).where(
        VlogLike.user_id == user_id,
        VlogLike.vlog_id == vlog_id,
    ))
    return q.first() is not None


async def _ensure_tags(names: list[str]) -> list[int]:
    """Find or create tags by name; a concurrent creator of the same tag is tolerated."""
    names = list(dict.fromkeys(name.strip() for name in names if name and name.strip()))
    if not names:
        return []
    async with AsyncSessionLocal() as session:
        for _ in range(3):
            q = await session.execute(select(Tag).where(Tag.name.in_(names)))
            found = {tag.name: tag.id for tag in q.scalars().all()}
            missing = [name for name in names if name not in found]
            if not missing:
                return [found[name] for name in names]
            session.add_all([Tag(name=name) for name in missing])
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
    raise ValidationError('Could not save tags, please retry')


async def create_vlog(owner_id: int, media, title: str, description: str = None,
                      tags: list[str] = None, now: datetime = None):
    """Register an externally hosted video; its 72 hour window starts at ``now``."""
    now = now or utcnow()
    async with AsyncSessionLocal() as session:
        if await _youtube_id_taken(session, media.youtube_id):
            raise ValidationError('This video has already been posted')
    tag_ids = await _ensure_tags(list(tags or []))
    async with AsyncSessionLocal() as session:
        vlog = Vlog(
            user_id=owner_id,
            title=title,
            description=description,
            youtube_id=media.youtube_id,
            thumbnail_url=media.thumbnail_url,
            duration=media.duration,
            created_at=now,
            expires_at=expiry_from(now),
            likes_count=0,
        )
        if tag_ids:
            q = await session.execute(select(Tag).where(Tag.id.in_(tag_ids)))
            vlog.tags = list(q.scalars().all())
        session.add(vlog)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            if await _youtube_id_taken(session, media.youtube_id):
                raise ValidationError('This video has already been posted')
            raise
        vlog = await _get_vlog(session, vlog.id, refresh=True)
    logger.info({'msg': 'vlog_created', 'vlog_id': vlog.id, 'user_id': owner_id,
                 'expires_at': vlog.expires_at.isoformat()})
    return vlog


async def liked_vlog_ids(user_id: int, vlog_ids) -> set[int]:
    vlog_ids = list(vlog_ids)
    if not vlog_ids:
        return set()
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(VlogLike.vlog_id).where(
            VlogLike.user_id == user_id,
            VlogLike.vlog_id.in_(vlog_ids),
        ))
        return set(q.scalars().all())


async def get_vlog_for_viewer(vlog_id: int, viewer_id: int, now: datetime = None):
    now = now or utcnow()
    async with AsyncSessionLocal() as session:
        vlog = await _get_vlog(session, vlog_id)
    if not can_view(vlog, viewer_id, now):
        raise ItemExpired()
    return vlog


async def list_feed(viewer_id: int, tag: str = None, now: datetime = None):
    """Active vlogs by creators the viewer follows, plus the viewer's own."""
    now = now or utcnow()
    owners = select(Follow.following_id).where(Follow.follower_id == viewer_id)
    stmt = (
        select(Vlog)
        .where(active_clause(now))
        .where((Vlog.user_id == viewer_id) | Vlog.user_id.in_(owners))
        .order_by(Vlog.created_at.desc(), Vlog.id.desc())
    )
    if tag and tag != 'all':
        stmt = stmt.where(Vlog.tags.any(Tag.name == tag))
    async with AsyncSessionLocal() as session:
        q = await session.execute(stmt)
        return q.scalars().all()


async def list_user_vlogs(username: str, viewer_id: int, expired: bool = False, now: datetime = None):
    """A creator's active vlogs (anyone) or expired vlogs (the creator only)."""
    now = now or utcnow()
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(User.username == username))
        owner = q.scalars().first()
        if not owner:
            raise NotFound('User not found')
        if expired and owner.id != viewer_id:
            raise NotOwner('Not authorized to view these vlogs')
        clause = expired_clause(now) if expired else active_clause(now)
        q = await session.execute(
            select(Vlog).where(Vlog.user_id == owner.id, clause)
            .order_by(Vlog.created_at.desc(), Vlog.id.desc())
        )
        return q.scalars().all()


async def republish(vlog_id: int, requester_id: int, now: datetime = None):
    """Give an expired vlog a fresh 72 hour window; likes, comments and tags stay."""
    now = now or utcnow()
    async with AsyncSessionLocal() as session:
        vlog = await _get_vlog(session, vlog_id)
        if vlog.user_id != requester_id:
            raise NotOwner('Not authorized to reupload this vlog')
        if is_active(vlog, now):
            raise NotExpired()
        vlog.expires_at = expiry_from(now)
        await session.commit()
        vlog = await _get_vlog(session, vlog_id, refresh=True)
    logger.info({'msg': 'vlog_republished', 'vlog_id': vlog_id, 'expires_at': vlog.expires_at.isoformat()})
    return vlog


async def toggle_like(vlog_id: int, user_id: int, like: bool, now: datetime = None):
    """
    Apply a like or unlike. The like row and ``likes_count`` change in the
    same transaction; the unique (user_id, vlog_id) constraint decides the
    winner when the same user likes twice concurrently.
    """
    now = now or utcnow()
    async with AsyncSessionLocal() as session:
        vlog = await _get_vlog(session, vlog_id)
        if not is_active(vlog, now):
            raise ItemExpired()
        if like:
            if await _like_exists(session, user_id, vlog_id):
                raise AlreadyLiked()
            try:
                session.add(VlogLike(user_id=user_id, vlog_id=vlog_id))
                await session.flush()
                await session.execute(
                    update(Vlog).where(Vlog.id == vlog_id)
                    .values(likes_count=Vlog.likes_count + 1)
                )
                await session.commit()
            except IntegrityError:
                await session.rollback()
                if await _like_exists(session, user_id, vlog_id):
                    raise AlreadyLiked()
                raise
        else:
            res = await session.execute(delete(VlogLike).where(
                VlogLike.user_id == user_id,
                VlogLike.vlog_id == vlog_id,
            ))
            if res.rowcount == 0:
                await session.rollback()
                raise NotLiked()
            await session.execute(
                update(Vlog).where(Vlog.id == vlog_id, Vlog.likes_count > 0)
                .values(likes_count=Vlog.likes_count - 1)
            )
            await session.commit()
        vlog = await _get_vlog(session, vlog_id, refresh=True)
    logger.info({'msg': 'vlog_liked' if like else 'vlog_unliked', 'vlog_id': vlog_id, 'user_id': user_id})
    return vlog


async def add_comment(vlog_id: int, user_id: int, text: str, now: datetime = None):
    now = now or utcnow()
    text = (text or '').strip()
    if not text:
        raise ValidationError('Comment cannot be empty')
    async with AsyncSessionLocal() as session:
        vlog = await _get_vlog(session, vlog_id)
        if not is_active(vlog, now):
            raise ItemExpired()
        comment = Comment(vlog_id=vlog_id, user_id=user_id, content=text, created_at=now)
        session.add(comment)
        await session.commit()
        q = await session.execute(select(Comment).where(Comment.id == comment.id))
        comment = q.scalars().first()
    logger.info({'msg': 'comment_added', 'vlog_id': vlog_id, 'user_id': user_id, 'comment_id': comment.id})
    return comment


async def sweep_expirations(now: datetime = None) -> int:
    """
    Periodic maintenance pass. Expiry is derived from ``expires_at`` on every
    read, so this only counts and reports; no row is written.
    """
    now = now or utcnow()
    async with AsyncSessionLocal() as session:
        expired = (await session.execute(
            select(func.count()).select_from(Vlog).where(expired_clause(now))
        )).scalar_one()
        active = (await session.execute(
            select(func.count()).select_from(Vlog).where(active_clause(now))
        )).scalar_one()
    EXPIRED_VLOGS.set(expired)
    ACTIVE_VLOGS.set(active)
    SWEEP_RUNS.inc()
    logger.info({'msg': 'expiration_sweep', 'active': active, 'expired': expired, 'at': now.isoformat()})
    return expired


async def reconcile_like_counters(fix: bool = False) -> list[dict]:
    """Recount likes per vlog from ``vlog_likes``; report and optionally repair drift."""
    async with AsyncSessionLocal() as session:
        actual = dict((await session.execute(
            select(VlogLike.vlog_id, func.count()).group_by(VlogLike.vlog_id)
        )).all())
        rows = (await session.execute(select(Vlog.id, Vlog.likes_count))).all()
        drift = []
        for vlog_id, likes_count in rows:
            count = actual.get(vlog_id, 0)
            if likes_count == count:
                continue
            drift.append({'vlog_id': vlog_id, 'likes_count': likes_count, 'actual_likes': count})
            if fix:
                await session.execute(update(Vlog).where(Vlog.id == vlog_id).values(likes_count=count))
        if fix and drift:
            await session.commit()
    if drift:
        logger.warning({'msg': 'like_counter_drift', 'vlogs': len(drift), 'fixed': fix})
    return drift
