#!/usr/bin/env python3
"""Seed a development database with creators, follows and vlogs in every state"""

import asyncio
import sys
from pathlib import Path
from datetime import timedelta

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from vlog72.schemas.users import RegisterIn
from vlog72.crud import create_user, follow
from vlog72.content import create_vlog, republish, toggle_like, add_comment
from vlog72.lifecycle import utcnow
from vlog72.youtube import VideoDetails, default_thumbnail
from vlog72.errors import DomainError
from vlog72.models import engine, Base

CREATORS = [
    ("alexmorgan", "Alex Morgan"),
    ("sarahj", "Sarah Johnson"),
    ("mikechen", "Mike Chen"),
    ("emilyd", "Emily Davis"),
]

VLOGS = [
    # (creator, youtube id, title, tags, age in hours)
    ("alexmorgan", "dQw4w9WgXcQ", "Morning coffee run", ["Daily Life", "Food"], 2),
    ("alexmorgan", "9bZkp7q19f0", "Weekend hike", ["Travel", "Fitness"], 30),
    ("sarahj", "kJQP7kiw5Fk", "Studio tour", ["Daily Life"], 70),
    ("mikechen", "JGwWNGJdvx8", "Street food in Taipei", ["Food", "Travel"], 80),
    ("emilyd", "OPf0YbXqDm0", "Leg day", ["Fitness"], 100),
]


async def seed_users():
    users = {}
    for username, display_name in CREATORS:
        user = await create_user(RegisterIn(
            email=f"{username}@example.com",
            password="password123",
            display_name=display_name,
            username=username,
        ))
        users[username] = user
    print(f"Seeded {len(users)} users (password: password123)")
    return users


async def seed_follows(users):
    pairs = [
        ("alexmorgan", "sarahj"),
        ("alexmorgan", "mikechen"),
        ("sarahj", "alexmorgan"),
        ("emilyd", "alexmorgan"),
        ("mikechen", "emilyd"),
    ]
    for follower, target in pairs:
        await follow(users[follower].id, users[target].id)
    print(f"Seeded {len(pairs)} follows")


async def seed_vlogs(users):
    now = utcnow()
    vlogs = []
    for username, youtube_id, title, tags, age in VLOGS:
        media = VideoDetails(youtube_id=youtube_id, thumbnail_url=default_thumbnail(youtube_id), duration="5:00")
        vlog = await create_vlog(users[username].id, media, title, tags=tags, now=now - timedelta(hours=age))
        vlogs.append(vlog)

    # likes and comments land while the vlogs are still live
    await toggle_like(vlogs[0].id, users["sarahj"].id, True)
    await toggle_like(vlogs[0].id, users["emilyd"].id, True)
    await add_comment(vlogs[0].id, users["sarahj"].id, "Looks like a great start to the day!")
    await add_comment(vlogs[2].id, users["alexmorgan"].id, "Love the lighting in here")

    # one expired vlog gets a second window
    await republish(vlogs[3].id, users["mikechen"].id)
    print(f"Seeded {len(vlogs)} vlogs (active, expired and republished)")


async def main():
    """Main seeding routine"""
    print("Seeding test data...")

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        users = await seed_users()
        await seed_follows(users)
        await seed_vlogs(users)
        print("\nTest data seeded successfully!")
    except DomainError as e:
        print(f"Seeding failed: {e.message}")
        sys.exit(1)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
