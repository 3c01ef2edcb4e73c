import asyncio
import sys
import os

# Add the current directory to the sys.path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from sqlalchemy import text

from pinme.core.database import engine, Base
from pinme.models import Toy, PlaySession, ReminderSetting, Notification, DeviceToken  # noqa: F401


async def init_db():
    print("Starting Database Initialization...", flush=True)

    try:
        async with engine.begin() as conn:
            print("Creating tables: " + ", ".join(sorted(Base.metadata.tables)), flush=True)
            await conn.run_sync(Base.metadata.create_all)

        print("SUCCESS: All tables created successfully!", flush=True)

        if engine.dialect.name == "postgresql":
            async with engine.connect() as conn:
                result = await conn.execute(text("SELECT version();"))
                row = result.fetchone()
                print(f"Database Version: {row[0]}", flush=True)

    except Exception as e:
        print(f"ERROR: Database initialization failed: {e}", flush=True)
        if "ssl" in str(e).lower():
            print("Hint: hosted Postgres needs SSL; check DATABASE_URL.", flush=True)

if __name__ == "__main__":
    asyncio.run(init_db())
