# create_db.py
"""
Creates the configured PostgreSQL database and applies migrations/init.sql.
"""

import asyncio

import asyncpg

from parceltrack.config import settings
from parceltrack.infra.database import close_db, init_db


async def create_db():
    db_name = settings.database.DB_NAME

    # Connect to the default postgres DB to create the new one
    sys_conn = await asyncpg.connect(
        user=settings.database.DB_USER,
        password=settings.database.DB_PASSWORD,
        host=settings.database.DB_HOST,
        port=settings.database.DB_PORT,
        database="postgres",
    )

    try:
        exists = await sys_conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", db_name)
        if not exists:
            print(f"Creating database {db_name}...")
            # Identifiers cannot be bound as parameters
            await sys_conn.execute(f'CREATE DATABASE "{db_name}"')
            print("Database created.")
        else:
            print(f"Database {db_name} already exists.")
    finally:
        await sys_conn.close()


async def apply_schema():
    # init_db applies migrations/init.sql after connecting
    await init_db()
    await close_db()
    print("Schema applied.")


async def main():
    try:
        await create_db()
        await apply_schema()
    except (OSError, asyncpg.PostgresError) as e:
        print(f"Error: {e}")


if __name__ == "__main__":
    asyncio.run(main())
