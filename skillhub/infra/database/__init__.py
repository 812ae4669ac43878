from .connection import AsyncSessionLocal, async_engine, create_db_and_tables, get_session

__all__ = ["AsyncSessionLocal", "async_engine", "create_db_and_tables", "get_session"]
