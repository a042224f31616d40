import asyncpg


async def setup_database_schema(connection: asyncpg.Connection) -> None:
    """Create the thread and user document tables."""
    await connection.execute(
        """CREATE TABLE IF NOT EXISTS threads(
            thread_id TEXT PRIMARY KEY,
            data JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
        )"""
    )

    await connection.execute(
        """CREATE TABLE IF NOT EXISTS users(
            user_id TEXT PRIMARY KEY,
            data JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
        )"""
    )
