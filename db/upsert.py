from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(db: AsyncSession, entity):
    """
    Dialect specific INSERT for `entity` so callers can chain on_conflict_do_update.

    Both PostgreSQL and SQLite (3.24+) support ON CONFLICT ... DO UPDATE.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(entity)
    if dialect == "sqlite":
        return sqlite.insert(entity)
    raise NotImplementedError(f"Upsert is not supported for dialect '{dialect}'")
