import re
import secrets
import logging
from datetime import timedelta

from passlib.context import CryptContext
from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.exc import IntegrityError

from .models import AsyncSessionLocal
from .models.users import User
from .models.session_tokens import SessionToken
from .models.follows import Follow
from .auth import create_access_token, generate_refresh_token, hash_token, REFRESH_TOKEN_TTL_DAYS
from .errors import NotFound, AlreadyFollowing, NotFollowing, ValidationError
from .lifecycle import utcnow

logger = logging.getLogger(__name__)

pwd_ctx = CryptContext(schemes=['bcrypt'], deprecated='auto')

USERNAME_MAX_LENGTH = 30
USERNAME_ATTEMPTS = 5


def derive_username(email: str) -> str:
    local = email.split('@')[0].lower()
    username = re.sub(r'[^a-z0-9]', '', local)[:USERNAME_MAX_LENGTH - 4]
    return username or 'user'


async def _email_taken(session, email: str) -> bool:
    q = await session.execute(select(User.id).where(User.email == email))
    return q.first() is not None


async def create_user(payload):
    """
    Register a local account. An explicit username must be free; a username
    derived from the email gets a random numeric suffix when a concurrent
    insert (or an existing account) already holds it.
    """
    hashed = pwd_ctx.hash(payload.password)
    if payload.username:
        candidates = [payload.username]
    else:
        base = derive_username(payload.email)
        candidates = [base] + [f'{base}{secrets.randbelow(10000)}' for _ in range(USERNAME_ATTEMPTS - 1)]

    async with AsyncSessionLocal() as session:
        if await _email_taken(session, payload.email):
            raise ValidationError('Email already in use')
        for username in candidates:
            user = User(
                username=username,
                display_name=payload.display_name,
                email=payload.email,
                hashed_password=hashed,
                followers_count=0,
                following_count=0,
            )
            session.add(user)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                if await _email_taken(session, payload.email):
                    raise ValidationError('Email already in use')
                logger.info({'msg': 'username_conflict', 'username': username})
                continue
            await session.refresh(user)
            logger.info({'msg': 'user_registered', 'user_id': user.id, 'username': user.username})
            return user
    if payload.username:
        raise ValidationError('Username already taken')
    raise ValidationError('Could not allocate a username, please choose one')


async def authenticate_user(login: str, password: str, device_id: str | None = None):
    """``login`` may be a username or an email address"""
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(or_(User.username == login, User.email == login)))
        user = q.scalars().first()
        if not user or not user.hashed_password or not pwd_ctx.verify(password, user.hashed_password):
            return None
        access = create_access_token({'id': user.id, 'username': user.username})
        refresh = generate_refresh_token()
        st = SessionToken(
            user_id=user.id,
            device_id=device_id,
            token_hash=hash_token(refresh),
            expires_at=utcnow() + timedelta(days=REFRESH_TOKEN_TTL_DAYS),
        )
        session.add(st)
        await session.commit()
        return {'access_token': access, 'token_type': 'bearer', 'refresh_token': refresh}


async def refresh_access_token(refresh_token: str):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(SessionToken).where(
            SessionToken.token_hash == hash_token(refresh_token),
            SessionToken.revoked_at.is_(None),
            SessionToken.expires_at > utcnow(),
        ))
        st = q.scalars().first()
        if not st:
            return None
        user = await session.get(User, st.user_id)
        if not user:
            return None
        access = create_access_token({'id': user.id, 'username': user.username})
        return {'access_token': access, 'token_type': 'bearer'}


async def revoke_refresh_token(refresh_token: str):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(SessionToken).where(
            SessionToken.token_hash == hash_token(refresh_token),
            SessionToken.revoked_at.is_(None),
        ))
        st = q.scalars().first()
        if not st:
            return False
        st.revoked_at = utcnow()
        await session.commit()
        return True


async def get_user_by_id(user_id: int):
    async with AsyncSessionLocal() as session:
        return await session.get(User, user_id)


async def get_user_by_username(username: str):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(User.username == username))
        return q.scalars().first()


async def update_profile(user_id: int, display_name: str = None, bio: str = None, avatar_url: str = None):
    async with AsyncSessionLocal() as session:
        user = await session.get(User, user_id)
        if not user:
            raise NotFound('User not found')
        if display_name is not None:
            user.display_name = display_name
        if bio is not None:
            user.bio = bio
        if avatar_url is not None:
            user.avatar_url = avatar_url
        await session.commit()
        await session.refresh(user)
        return user


# follows

async def _edge_exists(session, follower_id: int, following_id: int) -> bool:
    q = await session.execute(select(Follow.id).where(
        Follow.follower_id == follower_id,
        Follow.following_id == following_id,
    ))
    return q.first() is not None


async def is_following(follower_id: int, following_id: int) -> bool:
    async with AsyncSessionLocal() as session:
        return await _edge_exists(session, follower_id, following_id)


async def following_ids(user_id: int) -> set[int]:
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(Follow.following_id).where(Follow.follower_id == user_id))
        return set(q.scalars().all())


async def follow(follower_id: int, following_id: int):
    """Create the edge and bump both counters in one transaction. Returns the followed user."""
    if follower_id == following_id:
        raise ValidationError('You cannot follow yourself')
    async with AsyncSessionLocal() as session:
        target = await session.get(User, following_id)
        if not target:
            raise NotFound('User not found')
        if await _edge_exists(session, follower_id, following_id):
            raise AlreadyFollowing()
        try:
            session.add(Follow(follower_id=follower_id, following_id=following_id))
            await session.flush()
            await session.execute(
                update(User).where(User.id == following_id)
                .values(followers_count=User.followers_count + 1)
            )
            await session.execute(
                update(User).where(User.id == follower_id)
                .values(following_count=User.following_count + 1)
            )
            await session.commit()
        except IntegrityError:
            await session.rollback()
            if await _edge_exists(session, follower_id, following_id):
                raise AlreadyFollowing()
            raise
    logger.info({'msg': 'user_followed', 'follower_id': follower_id, 'following_id': following_id})
    return target


async def unfollow(follower_id: int, following_id: int):
    async with AsyncSessionLocal() as session:
        target = await session.get(User, following_id)
        if not target:
            raise NotFound('User not found')
        res = await session.execute(delete(Follow).where(
            Follow.follower_id == follower_id,
            Follow.following_id == following_id,
        ))
        if res.rowcount == 0:
            await session.rollback()
            raise NotFollowing()
        await session.execute(
            update(User).where(User.id == following_id, User.followers_count > 0)
            .values(followers_count=User.followers_count - 1)
        )
        await session.execute(
            update(User).where(User.id == follower_id, User.following_count > 0)
            .values(following_count=User.following_count - 1)
        )
        await session.commit()
    logger.info({'msg': 'user_unfollowed', 'follower_id': follower_id, 'following_id': following_id})
    return target


async def discover_users(viewer_id: int, query: str = '', limit: int = 20):
    """Newest creators (optionally matching ``query``) with the viewer's follow state."""
    async with AsyncSessionLocal() as session:
        stmt = select(User).where(User.id != viewer_id).order_by(User.id.desc()).limit(limit)
        if query:
            pattern = f'%{query}%'
            stmt = stmt.where(or_(User.display_name.ilike(pattern), User.username.ilike(pattern)))
        q = await session.execute(stmt)
        users = q.scalars().all()
    followed = await following_ids(viewer_id)
    return [(user, user.id in followed) for user in users]


async def reconcile_follow_counters(fix: bool = False) -> list[dict]:
    """
    Recount followers/following from the edge table. Returns one entry per
    user whose cached counters drifted; with ``fix`` the counters are rewritten.
    """
    async with AsyncSessionLocal() as session:
        followers = dict((await session.execute(
            select(Follow.following_id, func.count()).group_by(Follow.following_id)
        )).all())
        following = dict((await session.execute(
            select(Follow.follower_id, func.count()).group_by(Follow.follower_id)
        )).all())
        users = (await session.execute(
            select(User.id, User.followers_count, User.following_count)
        )).all()
        drift = []
        for user_id, followers_count, following_count in users:
            actual_followers = followers.get(user_id, 0)
            actual_following = following.get(user_id, 0)
            if (followers_count, following_count) == (actual_followers, actual_following):
                continue
            drift.append({
                'user_id': user_id,
                'followers_count': followers_count,
                'actual_followers': actual_followers,
                'following_count': following_count,
                'actual_following': actual_following,
            })
            if fix:
                await session.execute(
                    update(User).where(User.id == user_id)
                    .values(followers_count=actual_followers, following_count=actual_following)
                )
        if fix and drift:
            await session.commit()
    if drift:
        logger.warning({'msg': 'follow_counter_drift', 'users': len(drift), 'fixed': fix})
    return drift
