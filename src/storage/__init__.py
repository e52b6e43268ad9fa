from src.storage.database import Base, create_db_engine, create_schema, create_session_factory
from src.storage.repositories import SqlMembershipStore, SqlTenantDirectory, SqlUserStore

__all__ = [
    "Base",
    "SqlMembershipStore",
    "SqlTenantDirectory",
    "SqlUserStore",
    "create_db_engine",
    "create_schema",
    "create_session_factory",
]
