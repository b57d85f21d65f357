from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from app.core.config import settings

# Create engine
# For PostgreSQL, we might need to adjust pool_size and max_overflow in production
engine = create_async_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True
)

SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def create_tables(bind=None) -> None:
    """Create every table registered on Base (idempotent)."""
    import app.db.base  # noqa: F401  registers the models

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
