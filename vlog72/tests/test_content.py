import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select, func, update
from sqlalchemy.exc import IntegrityError

from vlog72 import content
from vlog72.crud import follow
from vlog72.errors import (
    NotFound, NotOwner, ItemExpired, NotExpired, AlreadyLiked, NotLiked, ValidationError,
)
from vlog72.models import AsyncSessionLocal
from vlog72.models.likes import VlogLike
from vlog72.models.tags import Tag
from vlog72.models.vlogs import Vlog

T0 = datetime(2026, 1, 1, 12, 0, 0)
H = timedelta(hours=1)


async def _like_rows(vlog_id):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(func.count()).select_from(VlogLike).where(VlogLike.vlog_id == vlog_id))
        return q.scalar_one()


async def _stored_vlog(vlog_id):
    async with AsyncSessionLocal() as session:
        return await session.get(Vlog, vlog_id)


@pytest.mark.asyncio
async def test_create_sets_72_hour_window(user_factory, video):
    owner = await user_factory('alex')
    vlog = await content.create_vlog(owner.id, video(), 'Morning coffee', 'desc', ['Daily Life', 'Food'], now=T0)
    assert vlog.created_at == T0
    assert vlog.expires_at == T0 + 72 * H
    assert vlog.likes_count == 0
    assert sorted(t.name for t in vlog.tags) == ['Daily Life', 'Food']
    assert vlog.user.username == 'alex'


@pytest.mark.asyncio
async def test_duplicate_youtube_id_rejected(user_factory, video):
    owner = await user_factory('alex')
    media = video()
    await content.create_vlog(owner.id, media, 'First', now=T0)
    with pytest.raises(ValidationError):
        await content.create_vlog(owner.id, media, 'Again', now=T0)


@pytest.mark.asyncio
async def test_tags_are_shared_between_vlogs(user_factory, video):
    owner = await user_factory('alex')
    a = await content.create_vlog(owner.id, video(), 'A', tags=['Travel'], now=T0)
    b = await content.create_vlog(owner.id, video(), 'B', tags=['Travel', 'Tech'], now=T0)
    travel_a = [t for t in a.tags if t.name == 'Travel'][0]
    travel_b = [t for t in b.tags if t.name == 'Travel'][0]
    assert travel_a.id == travel_b.id


async def _tag_count(name):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(func.count()).select_from(Tag).where(Tag.name == name))
        return q.scalar_one()


@pytest.mark.asyncio
async def test_repeated_tag_names_are_stored_once(user_factory, video):
    owner = await user_factory('alex')
    vlog = await content.create_vlog(owner.id, video(), 'Clip', tags=['Food', 'Food', ' Food ', ''], now=T0)
    assert [t.name for t in vlog.tags] == ['Food']
    assert await _tag_count('Food') == 1


@pytest.mark.asyncio
async def test_rejected_duplicate_video_creates_no_tags(user_factory, video):
    owner = await user_factory('alex')
    media = video()
    await content.create_vlog(owner.id, media, 'First', tags=['Travel'], now=T0)
    with pytest.raises(ValidationError):
        await content.create_vlog(owner.id, media, 'Again', tags=['Brand New'], now=T0)
    assert await _tag_count('Brand New') == 0


@pytest.mark.asyncio
async def test_republish_guards(user_factory, video):
    owner = await user_factory('alex')
    other = await user_factory('jamie')
    vlog = await content.create_vlog(owner.id, video(), 'Clip', now=T0)

    with pytest.raises(NotExpired):
        await content.republish(vlog.id, owner.id, now=T0 + 71 * H)
    with pytest.raises(NotOwner):
        await content.republish(vlog.id, other.id, now=T0 + 73 * H)
    with pytest.raises(NotFound):
        await content.republish(9999, owner.id, now=T0 + 73 * H)


@pytest.mark.asyncio
async def test_republish_keeps_likes_comments_tags(user_factory, video):
    owner = await user_factory('alex')
    fan = await user_factory('jamie')
    vlog = await content.create_vlog(owner.id, video(), 'Clip', tags=['Travel'], now=T0)
    await content.toggle_like(vlog.id, fan.id, like=True, now=T0 + H)
    await content.add_comment(vlog.id, fan.id, 'nice', now=T0 + H)

    republished_at = T0 + 80 * H
    vlog = await content.republish(vlog.id, owner.id, now=republished_at)

    assert vlog.expires_at == republished_at + 72 * H
    assert vlog.created_at == T0
    assert vlog.likes_count == 1
    assert [c.content for c in vlog.comments] == ['nice']
    assert [t.name for t in vlog.tags] == ['Travel']


@pytest.mark.asyncio
async def test_double_like_fails_and_counts_once(user_factory, video):
    owner = await user_factory('alex')
    fan = await user_factory('jamie')
    vlog = await content.create_vlog(owner.id, video(), 'Clip', now=T0)

    liked = await content.toggle_like(vlog.id, fan.id, like=True, now=T0 + H)
    assert liked.likes_count == 1
    with pytest.raises(AlreadyLiked):
        await content.toggle_like(vlog.id, fan.id, like=True, now=T0 + H)

    stored = await _stored_vlog(vlog.id)
    assert stored.likes_count == 1 == await _like_rows(vlog.id)


@pytest.mark.asyncio
async def test_like_by_unknown_user_is_not_reported_as_duplicate(user_factory, video):
    owner = await user_factory('alex')
    vlog = await content.create_vlog(owner.id, video(), 'Clip', now=T0)
    with pytest.raises(IntegrityError):
        await content.toggle_like(vlog.id, 9999, like=True, now=T0 + H)
    assert (await _stored_vlog(vlog.id)).likes_count == 0
    assert await _like_rows(vlog.id) == 0


@pytest.mark.asyncio
async def test_like_unlike_round_trip(user_factory, video):
    owner = await user_factory('alex')
    fan = await user_factory('jamie')
    vlog = await content.create_vlog(owner.id, video(), 'Clip', now=T0)
    await content.toggle_like(vlog.id, owner.id, like=True, now=T0 + H)

    await content.toggle_like(vlog.id, fan.id, like=True, now=T0 + H)
    unliked = await content.toggle_like(vlog.id, fan.id, like=False, now=T0 + 2 * H)
    assert unliked.likes_count == 1 == await _like_rows(vlog.id)

    with pytest.raises(NotLiked):
        await content.toggle_like(vlog.id, fan.id, like=False, now=T0 + 2 * H)
    assert (await _stored_vlog(vlog.id)).likes_count == 1


@pytest.mark.asyncio
async def test_like_and_comment_rejected_once_expired(user_factory, video):
    owner = await user_factory('alex')
    fan = await user_factory('jamie')
    vlog = await content.create_vlog(owner.id, video(), 'Clip', now=T0)
    await content.toggle_like(vlog.id, fan.id, like=True, now=T0 + H)

    expired_at = T0 + 72 * H
    with pytest.raises(ItemExpired):
        await content.toggle_like(vlog.id, owner.id, like=True, now=expired_at)
    with pytest.raises(ItemExpired):
        await content.toggle_like(vlog.id, fan.id, like=False, now=expired_at)
    with pytest.raises(ItemExpired):
        await content.add_comment(vlog.id, fan.id, 'late', now=expired_at)
    assert (await _stored_vlog(vlog.id)).likes_count == 1


@pytest.mark.asyncio
async def test_comment_timestamp_and_validation(user_factory, video):
    owner = await user_factory('alex')
    vlog = await content.create_vlog(owner.id, video(), 'Clip', now=T0)
    comment = await content.add_comment(vlog.id, owner.id, '  first!  ', now=T0 + 5 * H)
    assert comment.created_at == T0 + 5 * H
    assert comment.content == 'first!'
    assert comment.user.username == 'alex'
    with pytest.raises(ValidationError):
        await content.add_comment(vlog.id, owner.id, '   ', now=T0 + 5 * H)
    with pytest.raises(NotFound):
        await content.add_comment(9999, owner.id, 'hello', now=T0)


@pytest.mark.asyncio
async def test_expired_vlog_only_visible_to_owner(user_factory, video):
    owner = await user_factory('alex')
    other = await user_factory('jamie')
    vlog = await content.create_vlog(owner.id, video(), 'Clip', now=T0)

    assert (await content.get_vlog_for_viewer(vlog.id, other.id, now=T0 + H)).id == vlog.id
    with pytest.raises(ItemExpired):
        await content.get_vlog_for_viewer(vlog.id, other.id, now=T0 + 73 * H)
    assert (await content.get_vlog_for_viewer(vlog.id, owner.id, now=T0 + 73 * H)).id == vlog.id
    with pytest.raises(NotFound):
        await content.get_vlog_for_viewer(9999, owner.id, now=T0)


@pytest.mark.asyncio
async def test_feed_shows_active_vlogs_of_followed_creators(user_factory, video):
    me = await user_factory('me')
    followed = await user_factory('followed')
    stranger = await user_factory('stranger')
    await follow(me.id, followed.id)

    mine = await content.create_vlog(me.id, video(), 'Mine', tags=['Tech'], now=T0)
    theirs = await content.create_vlog(followed.id, video(), 'Theirs', tags=['Travel'], now=T0 + H)
    old = await content.create_vlog(followed.id, video(), 'Old', now=T0 - 80 * H)
    await content.create_vlog(stranger.id, video(), 'Stranger', now=T0)

    feed = await content.list_feed(me.id, now=T0 + 2 * H)
    assert [v.id for v in feed] == [theirs.id, mine.id]
    assert old.id not in [v.id for v in feed]

    travel = await content.list_feed(me.id, tag='Travel', now=T0 + 2 * H)
    assert [v.id for v in travel] == [theirs.id]
    everything = await content.list_feed(me.id, tag='all', now=T0 + 2 * H)
    assert len(everything) == 2
    unknown = await content.list_feed(me.id, tag='Gardening', now=T0 + 2 * H)
    assert unknown == []


@pytest.mark.asyncio
async def test_user_vlog_listings(user_factory, video):
    owner = await user_factory('alex')
    other = await user_factory('jamie')
    active = await content.create_vlog(owner.id, video(), 'Active', now=T0)
    expired = await content.create_vlog(owner.id, video(), 'Expired', now=T0 - 100 * H)

    listed = await content.list_user_vlogs('alex', other.id, expired=False, now=T0 + H)
    assert [v.id for v in listed] == [active.id]
    mine = await content.list_user_vlogs('alex', owner.id, expired=True, now=T0 + H)
    assert [v.id for v in mine] == [expired.id]
    with pytest.raises(NotOwner):
        await content.list_user_vlogs('alex', other.id, expired=True, now=T0 + H)
    with pytest.raises(NotFound):
        await content.list_user_vlogs('nobody', other.id, now=T0)


@pytest.mark.asyncio
async def test_expiry_and_republish_scenario(user_factory, video):
    owner = await user_factory('alex')
    fan = await user_factory('jamie')
    await follow(fan.id, owner.id)
    vlog = await content.create_vlog(owner.id, video(), 'Weekend', now=T0)

    await content.toggle_like(vlog.id, fan.id, like=True, now=T0 + 71 * H)
    await content.add_comment(vlog.id, fan.id, 'love it', now=T0 + 71 * H)

    later = T0 + 73 * H
    with pytest.raises(ItemExpired):
        await content.get_vlog_for_viewer(vlog.id, fan.id, now=later)
    assert vlog.id not in [v.id for v in await content.list_feed(fan.id, now=later)]
    seen_by_owner = await content.get_vlog_for_viewer(vlog.id, owner.id, now=later)
    assert seen_by_owner.likes_count == 1
    assert [c.content for c in seen_by_owner.comments] == ['love it']

    republished = await content.republish(vlog.id, owner.id, now=later)
    assert republished.expires_at == later + 72 * H

    assert (await content.get_vlog_for_viewer(vlog.id, fan.id, now=later)).id == vlog.id
    assert vlog.id in [v.id for v in await content.list_feed(fan.id, now=later)]
    with pytest.raises(AlreadyLiked):
        await content.toggle_like(vlog.id, fan.id, like=True, now=later)
    await content.toggle_like(vlog.id, fan.id, like=False, now=later)
    relike = await content.toggle_like(vlog.id, fan.id, like=True, now=later)
    assert relike.likes_count == 1


@pytest.mark.asyncio
async def test_concurrent_double_like(user_factory, video):
    owner = await user_factory('alex')
    fan = await user_factory('jamie')
    vlog = await content.create_vlog(owner.id, video(), 'Clip', now=T0)

    results = await asyncio.gather(
        content.toggle_like(vlog.id, fan.id, like=True, now=T0 + H),
        content.toggle_like(vlog.id, fan.id, like=True, now=T0 + H),
        return_exceptions=True,
    )
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], AlreadyLiked)
    assert (await _stored_vlog(vlog.id)).likes_count == 1 == await _like_rows(vlog.id)


@pytest.mark.asyncio
async def test_sweep_counts_without_writing(user_factory, video):
    owner = await user_factory('alex')
    live = await content.create_vlog(owner.id, video(), 'Live', now=T0)
    gone = await content.create_vlog(owner.id, video(), 'Gone', now=T0 - 100 * H)

    expired = await content.sweep_expirations(now=T0 + H)
    assert expired == 1
    assert content.EXPIRED_VLOGS._value.get() == 1
    assert content.ACTIVE_VLOGS._value.get() == 1
    assert (await _stored_vlog(gone.id)).expires_at == T0 - 28 * H
    assert (await _stored_vlog(live.id)).expires_at == T0 + 72 * H


@pytest.mark.asyncio
async def test_reconcile_like_counters(user_factory, video):
    owner = await user_factory('alex')
    fan = await user_factory('jamie')
    vlog = await content.create_vlog(owner.id, video(), 'Clip', now=T0)
    await content.toggle_like(vlog.id, fan.id, like=True, now=T0 + H)
    async with AsyncSessionLocal() as session:
        await session.execute(update(Vlog).where(Vlog.id == vlog.id).values(likes_count=5))
        await session.commit()

    drift = await content.reconcile_like_counters()
    assert drift == [{'vlog_id': vlog.id, 'likes_count': 5, 'actual_likes': 1}]
    assert (await _stored_vlog(vlog.id)).likes_count == 5

    await content.reconcile_like_counters(fix=True)
    assert (await _stored_vlog(vlog.id)).likes_count == 1
    assert await content.reconcile_like_counters() == []
