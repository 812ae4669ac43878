from pydantic import BaseModel, Field


class PostgresConfig(BaseModel):
    Host: str = Field(default="postgresql", description="PostgreSQL host")
    Port: int = Field(default=5432, description="PostgreSQL port")
    User: str = Field(default="postgres", description="PostgreSQL user")
    Password: str = Field(default="postgres", description="PostgreSQL password")
    DBName: str = Field(default="skillhub", description="PostgreSQL database name")
    PoolSize: int = Field(default=10, description="Number of persistent connections in the pool")
    MaxOverflow: int = Field(default=20, description="Max temporary connections beyond pool_size")


class SQLiteConfig(BaseModel):
    Path: str = Field(default="skillhub.db", description="SQLite database file path")


class DatabaseConfig(BaseModel):
    Engine: str = Field(default="sqlite", description="Database engine (postgres, sqlite)")

    Postgres: PostgresConfig = Field(
        default_factory=lambda: PostgresConfig(),
        description="PostgreSQL configuration",
    )

    SQLite: SQLiteConfig = Field(
        default_factory=lambda: SQLiteConfig(),
        description="SQLite configuration",
    )

    @property
    def url(self) -> str:
        """SQLAlchemy async connection URL for the configured engine."""
        if self.Engine == "postgres":
            pg = self.Postgres
            return f"postgresql+asyncpg://{pg.User}:{pg.Password}@{pg.Host}:{pg.Port}/{pg.DBName}"
        return f"sqlite+aiosqlite:///{self.SQLite.Path}"
