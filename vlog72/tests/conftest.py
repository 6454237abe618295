import os
import sys
import tempfile
import itertools
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy import event

# Configure test environment: a throwaway SQLite file unless a test database is given
TEST_DB = Path(tempfile.gettempdir()) / 'vlog72_test.db'
os.environ['DATABASE_URL'] = os.getenv('TEST_DATABASE_URL', f'sqlite+aiosqlite:///{TEST_DB}')
os.environ.pop('YOUTUBE_API_KEY', None)
os.environ.pop('PUSHGATEWAY_URL', None)

# Ensure the package root is on sys.path when pytest changes CWD to this tests dir
HERE = Path(__file__).resolve()
PKG_ROOT = HERE.parents[2]
if str(PKG_ROOT) not in sys.path:
    sys.path.insert(0, str(PKG_ROOT))

from vlog72.models import AsyncSessionLocal, Base, engine  # noqa: E402
from vlog72.models.users import User  # noqa: E402
from vlog72.youtube import VideoDetails  # noqa: E402


if engine.dialect.name == 'sqlite':
    # SQLite only checks foreign keys when asked to, PostgreSQL always does
    @event.listens_for(engine.sync_engine, 'connect')
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


@pytest_asyncio.fixture
async def db():
    """Fresh schema for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def user_factory(db):
    async def make(username: str, display_name: str = None):
        async with AsyncSessionLocal() as session:
            user = User(
                username=username,
                display_name=display_name or username.title(),
                email=f'{username}@example.com',
                followers_count=0,
                following_count=0,
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user
    return make


@pytest.fixture
def video():
    """Factory for external media references with unique 11 character ids."""
    counter = itertools.count(1)

    def make():
        n = next(counter)
        vid = f'vid{n:08d}'
        return VideoDetails(
            youtube_id=vid,
            thumbnail_url=f'https://i.ytimg.com/vi/{vid}/hqdefault.jpg',
            duration='1:30',
        )
    return make
