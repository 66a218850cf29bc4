"""Initialize the CRM database schema.

Drops and recreates every table, then creates the default "Connect People"
networking project that referral goals are filed under.
Run this before starting the API server.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from be.config import settings
from be.db import AsyncSessionMaker, engine
from be.models import Base
from be.pipelines.referrals import ensure_connect_project


async def init_database():
    """Recreate all tables and seed the default project."""
    print(f"Initializing database: {settings.db.url}")

    async with engine.begin() as conn:
        # Drop all tables (for clean start)
        await conn.run_sync(Base.metadata.drop_all)
        print("✓ Dropped existing tables")

        await conn.run_sync(Base.metadata.create_all)
        print("✓ Created all tables")

    async with AsyncSessionMaker() as session:
        project = await ensure_connect_project(session)
        print(f"✓ Project '{project.title}' ready (id {project.id})")

    print("\n✅ Database initialization complete!")
    print(f"Tables created: {', '.join(Base.metadata.tables.keys())}")


async def main():
    """Main entry point."""
    try:
        await init_database()
    except Exception as e:
        print(f"\n❌ Error initializing database: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
