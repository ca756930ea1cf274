from contextlib import asynccontextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from core.config import settings
from core.exceptions import ConflictError, QuizError, StoreFault
from core.logger import logger


def _engine_options(url: str) -> dict:
    options = {"echo": settings.DB_ECHO, "future": True}
    # SQLite picks its own pool; sizing only applies to server databases
    if not url.startswith("sqlite"):
        options.update(
            pool_pre_ping=True,
            pool_recycle=settings.DB_POOL_RECYCLE,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
    return options


# PostgreSQL driver for async operations is asyncpg
engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


@asynccontextmanager
async def transaction(db: AsyncSession):
    """
    Unit of work around a single transaction.

    Commits when the block exits cleanly and rolls back on every other exit
    path. Integrity violations surface as ConflictError, any other database
    error as StoreFault; service errors pass through unchanged.
    """
    try:
        yield db
        await db.commit()
    except QuizError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await db.rollback()
        logger.warning("Transaction rolled back on constraint violation", error=str(e.orig))
        raise ConflictError("Constraint violation") from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Transaction rolled back on store fault", error=str(e))
        raise StoreFault("Database error") from e
    except BaseException:
        # Cancellation and anything unexpected still must not leave a half-written batch
        await db.rollback()
        raise


async def init_models():
    """Create all tables directly (development bootstrap; production uses alembic)."""
    from models.base import Base
    from models import quiz, question, answer, result  # noqa: F401  registers every mapped class

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")
