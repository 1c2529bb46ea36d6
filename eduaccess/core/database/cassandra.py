"""Cassandra session for the access read model.

One cluster and one session per process. The cluster comes from
cassandra-asyncio-driver, so the session offers ``aexecute`` for request-time
queries; DDL at startup uses plain ``execute``. ``init_cassandra`` bootstraps
the keyspace and the access tables.
"""

from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import Session
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from eduaccess.access.models import get_access_tables_cql
from eduaccess.config.settings import Settings, get_settings
from eduaccess.core.logging import get_logger


logger = get_logger(__name__)


def _build_cluster(settings: Settings) -> Cluster:
    auth_provider = None
    if settings.cassandra_username and settings.cassandra_password:
        auth_provider = PlainTextAuthProvider(
            username=settings.cassandra_username,
            password=settings.cassandra_password,
        )

    return Cluster(
        contact_points=settings.cassandra_hosts,
        port=settings.cassandra_port,
        auth_provider=auth_provider,
        protocol_version=settings.cassandra_protocol_version,
        load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
        connect_timeout=settings.cassandra_connect_timeout,
    )


class CassandraConnection:
    """Process-wide Cassandra cluster and session."""

    _cluster: Cluster | None = None
    _session: Session | None = None

    @classmethod
    def connect(cls) -> Session:
        """Open the session (idempotent).

        Raises:
            ConnectionError: If no contact point accepts the connection
        """
        if cls._session is not None:
            return cls._session

        settings = get_settings()
        cls._cluster = _build_cluster(settings)

        try:
            cls._session = cls._cluster.connect()
        except Exception as e:
            logger.error(
                "cassandra_connection_failed",
                hosts=settings.cassandra_hosts,
                error=str(e),
            )
            cls._cluster.shutdown()
            cls._cluster = None
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        logger.info(
            "cassandra_connected",
            hosts=settings.cassandra_hosts,
            port=settings.cassandra_port,
        )
        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("cassandra_disconnected")

    @classmethod
    def is_connected(cls) -> bool:
        return cls._session is not None and not cls._session.is_shutdown


def init_keyspace(session: Session, keyspace: str) -> None:
    """Create the keyspace if missing (RF 3 in production, 1 elsewhere)."""
    if get_settings().is_production:
        replication = "'class': 'NetworkTopologyStrategy', 'datacenter1': 3"
    else:
        replication = "'class': 'SimpleStrategy', 'replication_factor': 1"

    session.execute(f"""
        CREATE KEYSPACE IF NOT EXISTS {keyspace}
        WITH replication = {{{replication}}}
        AND durable_writes = true
    """)
    logger.info("keyspace_ready", keyspace=keyspace)


def init_access_tables(session: Session, keyspace: str) -> None:
    """Create the read-model and audit tables if missing."""
    for cql in get_access_tables_cql(keyspace):
        session.execute(cql)
    logger.info("access_tables_ready", keyspace=keyspace)


def init_cassandra() -> Session:
    """Connect and make sure the keyspace and tables exist."""
    keyspace = get_settings().cassandra_keyspace

    session = CassandraConnection.connect()
    init_keyspace(session, keyspace)
    session.set_keyspace(keyspace)
    init_access_tables(session, keyspace)
    return session


def shutdown_cassandra() -> None:
    CassandraConnection.disconnect()
