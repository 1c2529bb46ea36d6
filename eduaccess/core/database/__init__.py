"""Database connection module for EduAccess."""

from eduaccess.core.database.cassandra import (
    CassandraConnection,
    init_cassandra,
    shutdown_cassandra,
)


__all__ = [
    "CassandraConnection",
    "init_cassandra",
    "shutdown_cassandra",
]
