from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from pinme.core.config import settings

# 1. Fetch the Database URL from settings (which pulls from .env)
DATABASE_URL = settings.DATABASE_URL

# 2. Validation: Ensure DATABASE_URL is present
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment variables.")

# 3. Supabase/Heroku Fix:
# Supabase provides 'postgresql://'. Async SQLAlchemy requires 'postgresql+asyncpg://'
if DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)
elif DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+asyncpg://", 1)


def _connect_args(url: str) -> dict:
    # Hosted Postgres wants SSL; local servers and SQLite do not
    if url.startswith("postgresql+asyncpg://") and "localhost" not in url and "127.0.0.1" not in url:
        return {"ssl": "require"}
    return {}


# 4. Create the Async Engine
engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    future=True,
    connect_args=_connect_args(DATABASE_URL),
    pool_pre_ping=True,
    pool_recycle=300
)

# 5. Create Session Factory
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    class_=AsyncSession,
    expire_on_commit=False
)

# 6. Base class for Models
Base = declarative_base()

# JSONB on Postgres, plain JSON everywhere else (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


