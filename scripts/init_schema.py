"""Create the eduaccess keyspace and access tables.

The API creates missing tables on startup; this script does the same ahead of
a deploy, or against a cluster the API user cannot alter.

Usage:
    python -m scripts.init_schema
"""

import structlog

from eduaccess.access.models import get_access_tables_cql
from eduaccess.config.settings import get_settings
from eduaccess.core.database.cassandra import CassandraConnection, init_keyspace


logger = structlog.get_logger(__name__)


def apply_statements(session, keyspace: str) -> int:
    """Run every CREATE TABLE statement. Returns the number applied."""
    applied = 0
    for stmt in get_access_tables_cql(keyspace):
        summary = " ".join(stmt.split())[:60] + "..."
        try:
            session.execute(stmt)
        except Exception as e:
            logger.error("schema_statement_failed", statement=summary, error=str(e))
            raise
        logger.info("schema_statement_applied", statement=summary)
        applied += 1
    return applied


def run() -> None:
    settings = get_settings()
    keyspace = settings.cassandra_keyspace

    logger.info(
        "schema_init_starting",
        keyspace=keyspace,
        hosts=settings.cassandra_hosts,
    )

    session = CassandraConnection.connect()
    try:
        init_keyspace(session, keyspace)
        applied = apply_statements(session, keyspace)
        logger.info("schema_init_completed", keyspace=keyspace, applied=applied)
    finally:
        CassandraConnection.disconnect()


if __name__ == "__main__":
    run()
