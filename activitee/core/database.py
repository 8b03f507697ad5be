import asyncio
import logging
from functools import wraps
from typing import Callable, TypeVar, Any, AsyncGenerator, Dict, Iterable, List, Sequence
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.sql import text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import (
    SQLAlchemyError,
    OperationalError,
    DisconnectionError,
    TimeoutError,
)
from asyncpg.exceptions import (
    ConnectionFailureError,
    ConnectionDoesNotExistError,
)

from .config import (
    DATABASE_URL,
    DB_RETRY_ATTEMPTS,
    DB_RETRY_BACKOFF_FACTOR,
    DB_RETRY_DELAY,
)
from .exceptions import (
    BaseAppException,
    DatabaseConnectionError,
    DatabaseTimeoutError,
    PersistenceError,
)

logger = logging.getLogger(__name__)

engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    pool_size=20,
    max_overflow=10,
    pool_timeout=30,
    pool_recycle=3600,  # reconnect hourly
    pool_pre_ping=True,
)

async_session = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()

F = TypeVar("F", bound=Callable[..., Any])

RETRYABLE_EXCEPTIONS = (
    OperationalError,
    DisconnectionError,
    TimeoutError,
    ConnectionFailureError,
    ConnectionDoesNotExistError,
)


def db_retry(
    max_attempts: int = None,
    delay: float = None,
    backoff_factor: float = None,
    exceptions: tuple = None,
) -> Callable[[F], F]:
    """
    Retry decorator for database operations

    Args:
        max_attempts: Maximum number of attempts (config default)
        delay: Initial delay between attempts (config default)
        backoff_factor: Delay multiplier per attempt
        exceptions: Exceptions that trigger a retry
    """
    if max_attempts is None:
        max_attempts = DB_RETRY_ATTEMPTS

    if backoff_factor is None:
        backoff_factor = DB_RETRY_BACKOFF_FACTOR

    if delay is None:
        delay = DB_RETRY_DELAY

    if exceptions is None:
        exceptions = RETRYABLE_EXCEPTIONS

    def decorator(func: F) -> F:
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            current_delay = delay
            last_exception = None

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)

                except exceptions as e:
                    last_exception = e

                    if attempt == max_attempts - 1:
                        break

                    logger.warning(
                        f"Database operation failed (attempt {attempt + 1}/{max_attempts}): {str(e)}",
                        extra={
                            "function": func.__name__,
                            "attempt": attempt + 1,
                            "max_attempts": max_attempts,
                            "exception_type": type(e).__name__,
                        },
                    )

                    await asyncio.sleep(current_delay)
                    current_delay *= backoff_factor

            logger.error(
                f"Database operation failed after {max_attempts} attempts: {str(last_exception)}",
                extra={
                    "function": func.__name__,
                    "max_attempts": max_attempts,
                    "final_exception": str(last_exception),
                },
            )

            if isinstance(
                last_exception,
                (
                    ConnectionFailureError,
                    ConnectionDoesNotExistError,
                    DisconnectionError,
                ),
            ):
                raise DatabaseConnectionError(
                    f"Database connection failed after {max_attempts} attempts"
                )
            elif isinstance(last_exception, TimeoutError):
                raise DatabaseTimeoutError(func.__name__, 30)
            else:
                raise last_exception

        return async_wrapper

    return decorator


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency yielding a database session
    """
    session = async_session()
    try:
        yield session
    except Exception as e:
        await session.rollback()
        logger.error(f"Session error: {str(e)}")
        raise
    finally:
        await session.close()


class DatabaseManager:
    """Schema and connection management"""

    @staticmethod
    @db_retry()
    async def create_tables():
        """Create all tables"""
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    @staticmethod
    @db_retry()
    async def check_connection():
        """Check the database connection"""
        try:
            async with engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database connection check failed: {str(e)}")
            raise DatabaseConnectionError("Database connection check failed")

    @staticmethod
    async def close_connections():
        """Close all database connections"""
        try:
            await engine.dispose()
            logger.info("Database connections closed successfully")
        except Exception as e:
            logger.error(f"Error closing database connections: {str(e)}")


db_manager = DatabaseManager()


class TransactionManager:
    """
    Unit of work over an existing session.

    Commits when the block exits cleanly and rolls back otherwise. Store errors
    leave the block as PersistenceError; application errors pass through as-is.
    """

    def __init__(self, session: AsyncSession, name: str = "transaction"):
        self.session = session
        self.name = name

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            try:
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error(f"Commit failed in {self.name}: {str(e)}")
                raise PersistenceError(
                    f"Could not commit {self.name}",
                    {"exception_type": type(e).__name__},
                ) from e
            return False

        await self.session.rollback()

        if isinstance(exc_val, SQLAlchemyError):
            logger.error(
                f"Transaction {self.name} rolled back: {str(exc_val)}",
                extra={"exception_type": exc_type.__name__},
            )
            raise PersistenceError(
                f"Database operation failed in {self.name}",
                {"exception_type": exc_type.__name__},
            ) from exc_val

        if not isinstance(exc_val, BaseAppException):
            logger.error(f"Transaction {self.name} rolled back: {str(exc_val)}")
        return False


def _dialect_insert(session: AsyncSession):
    dialect_name = session.get_bind().dialect.name
    if dialect_name == "postgresql":
        return postgresql.insert
    if dialect_name == "sqlite":
        return sqlite.insert
    raise PersistenceError(
        f"Upsert is not supported for dialect '{dialect_name}'",
        {"dialect": dialect_name},
    )


async def insert_ignore(
    session: AsyncSession,
    model,
    rows: Iterable[Dict[str, Any]],
    index_elements: Sequence[str],
) -> int:
    """
    Bulk INSERT ... ON CONFLICT (index_elements) DO NOTHING.

    Existing rows are never touched, so concurrent writers targeting the same
    key converge on a single row. Returns the number of rows actually
    inserted; rows skipped on conflict are not counted.
    """
    payload: List[Dict[str, Any]] = list(rows)
    if not payload:
        return 0

    insert = _dialect_insert(session)
    stmt = insert(model).values(payload).on_conflict_do_nothing(
        index_elements=list(index_elements)
    )
    result = await session.execute(stmt)
    return max(result.rowcount, 0)


def db_operation(func: F) -> F:
    """
    Logging decorator for CRUD operations
    """

    @wraps(func)
    async def wrapper(*args, **kwargs):
        operation_name = func.__name__

        try:
            logger.debug(f"Starting database operation: {operation_name}")
            result = await func(*args, **kwargs)
            logger.debug(f"Database operation completed: {operation_name}")
            return result

        except SQLAlchemyError as e:
            logger.error(
                f"SQLAlchemy error in {operation_name}: {str(e)}",
                extra={"operation": operation_name, "exception_type": type(e).__name__},
            )
            raise

    return wrapper
