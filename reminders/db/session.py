from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from reminders.config import get_settings
from reminders.db.models import Base

settings = get_settings()

engine_kwargs = {"echo": False, "pool_pre_ping": True}
if not settings.database_url.startswith("sqlite"):
    engine_kwargs.update(pool_size=5, max_overflow=5)

engine = create_async_engine(settings.database_url, **engine_kwargs)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db():
    """Create missing tables; existing ones are left untouched."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
