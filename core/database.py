"""
Database engine and session management with SQLAlchemy async
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from core.config import Settings, settings
from models.base import Base
import logging

logger = logging.getLogger(__name__)


def build_engine(config: Settings) -> AsyncEngine:
    """
    Create the async engine backing the connection pool.

    The pool holds DB_POOL_MIN_SIZE connections and may grow to
    DB_POOL_MAX_SIZE. SQLite URLs (used by the test suite) keep the
    driver's default pool.
    """
    options = {"echo": False}

    if not config.DATABASE_URL.startswith("sqlite"):
        options.update(
            pool_size=config.DB_POOL_MIN_SIZE,
            max_overflow=max(0, config.DB_POOL_MAX_SIZE - config.DB_POOL_MIN_SIZE),
            pool_pre_ping=True,
        )

    return create_async_engine(config.DATABASE_URL, **options)


async def init_models(engine: AsyncEngine):
    """Create every table that does not exist yet"""
    from models import owner, posts, relations, last_update  # noqa: F401  registers tables

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


# Engine and session factory for the reporting API
engine = build_engine(settings)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)

